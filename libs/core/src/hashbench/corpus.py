from __future__ import annotations

"""Password corpora used as benchmark input.

Randomness is intentional: entries after the fixed tiers differ run to run.
Pass a seeded `random.Random` when a test needs repeatable output.
"""

import random
from typing import Dict, List, Optional

ALPHABET = "abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789!@#$%^&*()-_=+"
LOAD_ALPHABET = "abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789!@#$%^&*()"

# simple, medium, complex
COMPLEXITY_TIERS: Dict[str, str] = {
    "simple": "password123",
    "medium": "P@ssw0rd!2024",
    "complex": "X7#9$fGh@2L*pQz&Kb3!",
}

MIN_LENGTH = 8
MAX_LENGTH = 20


def _random_password(rng: random.Random, min_len: int, max_len: int, alphabet: str) -> str:
    length = rng.randint(min_len, max_len)
    return "".join(rng.choice(alphabet) for _ in range(length))


def generate(count: int, rng: Optional[random.Random] = None) -> List[str]:
    """Fixed complexity tiers first, then random passwords up to `count`."""
    rng = rng or random.Random()
    passwords = list(COMPLEXITY_TIERS.values())[: max(count, 0)]
    while len(passwords) < count:
        passwords.append(_random_password(rng, MIN_LENGTH, MAX_LENGTH, ALPHABET))
    return passwords


def generate_load_passwords(count: int, rng: Optional[random.Random] = None) -> List[str]:
    """Random corpus for the duration-bounded monitor: lengths 8..16, no tiers."""
    rng = rng or random.Random()
    return [_random_password(rng, 8, 16, LOAD_ALPHABET) for _ in range(max(count, 0))]


def generate_users(count: int, rng: Optional[random.Random] = None) -> List[Dict[str, str]]:
    rng = rng or random.Random()
    return [
        {
            "email": f"testuser{index}@example.com",
            "password": f"Password{index}!{rng.randint(1000, 9999)}",
        }
        for index in range(max(count, 0))
    ]
