"""
dbharness CLI.

Operator commands for preparing test database servers outside a test run:
- versions: installed LocalDB versions
- init-server: make a provider's server ready
- deploy: provision configured databases as a test group would
- reset: purge one database's data as a test would
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, NoReturn, Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from dbharness.application import GroupDeclaration, ProvisioningOrchestrator
from dbharness.domain.config import DatabaseSpec
from dbharness.domain.errors import HarnessError, ProvisioningError
from dbharness.infrastructure.config_loader import DEFAULT_CONFIG_FILE, load_config
from dbharness.infrastructure.logging_config import setup_logging
from dbharness.infrastructure.providers import LocalDbManager

logger = logging.getLogger(__name__)

console = Console()

app = typer.Typer(
    name="dbharness",
    help="Ephemeral SQL Server databases for automated tests",
    add_completion=False,
    no_args_is_help=True,
)

ConfigOption = typer.Option(Path(DEFAULT_CONFIG_FILE), "--config", "-c", help="Harness configuration file.")
ProviderOption = typer.Option(None, "--provider", "-p", help="Provider id (default: global policy default).")


@app.callback()
def main_callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
    log_file: Optional[Path] = typer.Option(None, "--log-file", help="Write logs to file."),
):
    """Provision and reset SQL Server test databases."""
    setup_logging(logging.DEBUG if verbose else logging.INFO, log_file)


def _fail(error: Exception) -> NoReturn:
    logger.debug("Command failed", exc_info=error)
    console.print(f"[red]Error:[/red] {escape(str(error))}")
    if isinstance(error, ProvisioningError):
        for name, cause in error.errors.items():
            console.print(f"  [red]-[/red] {escape(name)}: {escape(str(cause))}")
    raise typer.Exit(1)


@app.command("versions")
def versions(
    executable: str = typer.Option("SqlLocalDB", "--sqllocaldb", help="SqlLocalDB executable."),
):
    """List installed LocalDB versions, newest first."""
    try:
        installed = LocalDbManager(executable=executable).installed_versions()
    except HarnessError as e:
        _fail(e)

    if not installed:
        console.print("[yellow]No LocalDB versions installed.[/yellow]")
        raise typer.Exit(1)

    table = Table(title="Installed LocalDB versions")
    table.add_column("Version", style="cyan")
    for version in installed:
        table.add_row(version)
    console.print(table)


@app.command("init-server")
def init_server(
    config: Path = ConfigOption,
    provider: Optional[str] = ProviderOption,
):
    """Make the provider's server ready (create/repair/start LocalDB)."""
    try:
        orchestrator = ProvisioningOrchestrator(load_config(config))
        provider_id = provider or orchestrator.config.global_policy.default_provider_id
        orchestrator.create_provider(provider_id).initialise_server()
    except HarnessError as e:
        _fail(e)
    console.print(f"[green]Server for provider '{provider_id}' is ready.[/green]")


@app.command("deploy")
def deploy(
    config: Path = ConfigOption,
    provider: Optional[str] = ProviderOption,
    database: List[str] = typer.Option([], "--database", "-d", help="Deploy only these databases (repeatable)."),
):
    """Deploy databases as a test group would."""
    try:
        loaded = load_config(config)
        if database:
            # Only the named databases, not every configured one
            loaded = loaded.model_copy(update={
                "databases": tuple(spec for spec in loaded.databases if spec.name in database)
            })
        group = ProvisioningOrchestrator(loaded).group_setup(GroupDeclaration(
            group_id="cli",
            databases=tuple(database),
            provider_ids=(provider,) if provider else (),
        ))
    except HarnessError as e:
        _fail(e)

    table = Table(title=f"Deployed with provider '{group.provider_id}'")
    table.add_column("Database", style="cyan")
    table.add_column("Strategy")
    table.add_column("Artifact")
    for spec in group.specs:
        table.add_row(
            spec.name,
            "rapid" if spec.rapid_deploy else "engine",
            str(spec.schema_artifact_path or "(empty database)"),
        )
    console.print(table)
    console.print(f"[green]{len(group.specs)} database(s) deployed in {group.timings_ms.get('deploy', 0)} ms.[/green]")


@app.command("reset")
def reset(
    name: str = typer.Argument(..., help="Database to reset."),
    config: Path = ConfigOption,
    provider: Optional[str] = ProviderOption,
):
    """Purge a database's data and re-run its per-test post-deployment script."""
    try:
        loaded = load_config(config)
        orchestrator = ProvisioningOrchestrator(loaded)
        provider_id = provider or loaded.global_policy.default_provider_id
        spec = loaded.database(name) or DatabaseSpec(name=name)
        orchestrator.create_provider(provider_id).execute_pre_test_tasks(spec)
    except HarnessError as e:
        _fail(e)
    console.print(f"[green]Database '{name}' reset.[/green]")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
