
from __future__ import annotations
import logging
import time
from typing import List, Optional

import typer

from hashbench import registry
from hashbench.config import load_settings
from hashbench.engine import PasswordStats, RunResult
from hashbench.errors import HashBenchError, HasherFailure, InvalidArgument
from hashbench.export import EXPORT_FORMATS
from hashbench.params import ParameterSet
from .runners import common
from .runners.common import _load_adapters

app = typer.Typer(add_completion=False, help="Password hashing benchmark CLI")


def _fail(message: str) -> None:
    typer.echo(message, err=True)
    raise typer.Exit(code=1)


@app.callback()
def configure_logging(
    log_level: Optional[str] = typer.Option(
        None,
        "--log-level",
        help="Logging level (overrides HASHBENCH_LOG_LEVEL).",
    ),
) -> None:
    """Benchmark bcrypt/argon2 hashing latency, throughput and resource usage."""
    try:
        level = (log_level or load_settings().log_level).upper()
    except InvalidArgument as exc:
        _fail(f"Error: {exc}")
    if not isinstance(logging.getLevelName(level), int):
        _fail(f"Error: unknown log level '{log_level}'")
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@app.command()
def list_algos():
    """List registered hashing algorithms available via adapters."""
    _load_adapters()
    for name in registry.list().keys():
        typer.echo(f"- {name}")


@app.command()
def demo(name: str):
    """Hash and verify one password with the selected algorithm."""
    try:
        hasher = common._get_adapter_instance(name)
        digest = hasher.hash("password123")
        ok = hasher.verify("password123", digest)
    except HashBenchError as exc:
        _fail(f"Error: {exc}")
    typer.echo(f"[{name}] {hasher.configuration.to_json()}: verify={ok}")
    typer.echo(f"  digest: {digest}")


@app.command()
def benchmark(
    iterations: int = typer.Option(100, help="Number of iterations for each test"),
    passwords: int = typer.Option(10, help="Number of different passwords to test"),
    export: str = typer.Option("csv", help="Export format (csv or json)"),
    matrix: Optional[str] = typer.Option(None, help="YAML sweep matrix (overrides HASHBENCH_MATRIX)"),
    algorithm: Optional[List[str]] = typer.Option(
        None,
        "--algorithm",
        "-a",
        help="Restrict the sweep to these algorithms (repeatable).",
    ),
):
    """Benchmark every default and variation parameter set in the sweep matrix."""
    if export not in EXPORT_FORMATS:
        _fail(f"Error: unsupported export format '{export}' (use csv or json)")
    if iterations < 1 or passwords < 1:
        _fail("Error: --iterations and --passwords must be >= 1")
    try:
        sweep_matrix = common.resolve_matrix(matrix, algorithm)
    except InvalidArgument as exc:
        _fail(f"Error: {exc}")

    started = time.perf_counter()
    typer.echo(f"Starting password hashing benchmark with {iterations} iterations per test...")
    headers = {"default": "\n== DEFAULT CONFIGURATION BENCHMARK ==", "variation": "\n== PARAMETER VARIATIONS BENCHMARK =="}

    def _on_start(ps: ParameterSet) -> None:
        section = "default" if ps.label == "default" else "variation"
        header = headers.pop(section, None)
        if header:
            typer.echo(header)
        typer.echo(f"\nTesting {ps.algorithm} ({ps.describe()}):")

    def _on_password(stats: PasswordStats, total: int) -> None:
        typer.echo(
            f"  Password {stats.index}: hash {stats.hash_time_ms:.2f} ms, "
            f"verify {stats.verify_time_ms:.2f} ms"
        )

    def _on_result(result: RunResult) -> None:
        for line in common.summary_lines(result):
            typer.echo(line)

    try:
        outcome, _ = common.run_benchmark(
            iterations,
            passwords,
            matrix=sweep_matrix,
            on_start=_on_start,
            on_result=_on_result,
            progress=_on_password,
        )
    except InvalidArgument as exc:
        _fail(f"Error: {exc}")

    for failure in outcome.failures:
        ps = failure.parameter_set
        typer.echo(f"\n[FAILED] {ps.algorithm} {ps.label} {ps.to_json()}: {failure.error}", err=True)

    if outcome.results:
        typer.echo("")
        for line in common.row_preview(outcome.rows()):
            typer.echo(line)
        path = common.export_results(outcome.results, export)
        typer.echo(f"Results exported to {path}")
    else:
        typer.echo("No configuration completed; nothing exported.", err=True)

    typer.echo(f"\nBenchmark completed in {time.perf_counter() - started:.2f} seconds")
    if outcome.failures:
        raise typer.Exit(code=1)


@app.command("auth-simulation")
def auth_simulation(
    users: int = typer.Option(100, help="Number of user accounts to create"),
    algorithm: str = typer.Option("bcrypt", help="Hashing algorithm to use"),
    login_attempts: int = typer.Option(50, help="Number of login attempts to simulate"),
    concurrent: int = typer.Option(5, help="Attempts per batch (pacing between batches)"),
    parallel: bool = typer.Option(False, help="Run each batch on a thread pool instead of sequentially"),
):
    """Simulate user registration and authentication under the chosen hasher."""
    typer.echo(f"Running authentication simulation with {algorithm}")
    typer.echo(f"Creating {users} users and simulating {login_attempts} login attempts")
    try:
        report = common.run_auth_simulation(
            algorithm, users, login_attempts, concurrent, parallel=parallel
        )
    except InvalidArgument as exc:
        _fail(f"Error: {exc}")
    except HasherFailure as exc:
        _fail(f"Hasher failed during simulation: {exc}")

    typer.echo(f"Registration completed in {report.registration_seconds:.2f} seconds")
    typer.echo(f"Average registration time: {report.avg_registration_ms:.2f} ms per user")
    if not report.outcomes:
        _fail("No login attempts completed.")

    stats = report.timing_summary()
    typer.echo(f"\nAuthentication Simulation Results ({algorithm}):")
    typer.echo(f"Total login attempts: {report.attempts}")
    typer.echo(f"Successful logins: {report.success_count} ({report.success_rate:.2f}%)")
    typer.echo(f"Failed logins: {report.failure_count} ({100 - report.success_rate:.2f}%)")
    typer.echo("Login time statistics:")
    typer.echo(f" - Average: {stats.mean:.2f} ms")
    typer.echo(f" - Minimum: {stats.min:.2f} ms")
    typer.echo(f" - Maximum: {stats.max:.2f} ms")
    typer.echo(f" - Std Dev: {stats.stddev:.2f} ms")

    path = common.export_timings(report)
    typer.echo(f"\nDetailed results exported to {path}")


@app.command("resource-test")
def resource_test(
    algorithm: str = typer.Argument("bcrypt", help="The hashing algorithm to test"),
    duration: float = typer.Option(60.0, help="Duration of the test in seconds"),
    users: int = typer.Option(1000, help="Number of user passwords to hash"),
    interval: float = typer.Option(1.0, help="Seconds between resource samples"),
):
    """Hash continuously for a fixed duration while sampling resource usage."""
    typer.echo(f"Starting resource monitoring for {algorithm} hashing...")
    typer.echo(f"Duration: {duration:g} seconds | Simulating {users} users")
    typer.echo("\nHashing passwords", nl=False)

    def _dot(count: int) -> None:
        if count % 10 == 0:
            typer.echo(".", nl=False)

    try:
        report = common.run_resource_test(algorithm, duration, users, interval=interval, on_hash=_dot)
    except InvalidArgument as exc:
        typer.echo("")
        _fail(f"Error: {exc}")
    except HasherFailure as exc:
        typer.echo("")
        _fail(f"Hasher failed during resource test: {exc}")

    typer.echo("\n\nTest completed!")
    typer.echo(f"Hashed {report.hash_count} passwords in {report.elapsed_seconds:.2f} seconds")
    typer.echo(f"Performance: {report.hashes_per_second:.2f} hashes/second")
    if report.samples:
        path = common.export_resource_usage(report)
        typer.echo(f"Resource usage data exported to {path}")
    else:
        typer.echo("No resource samples were recorded.", err=True)


def app_main():
    app()

if __name__ == "__main__":
    app_main()
