"""CLI entrypoint for administering the covstatus settings store."""

import json
import logging
from collections.abc import Callable
from pathlib import Path
from typing import Annotated, Any, NoReturn, TypeVar

import typer

from covstatus import __version__
from covstatus.app.settings_store import SettingsStore
from covstatus.bootstrap import bootstrap_store
from covstatus.config import get_settings, set_settings
from covstatus.errors import CovstatusError, PersistenceError
from covstatus.secret import MASK

T = TypeVar("T")

app = typer.Typer(
    name="covstatus",
    help="Settings store for pull-request coverage status reporting",
    no_args_is_help=True,
)

coverage_app = typer.Typer(help="Per-project coverage cache")
app.add_typer(coverage_app, name="coverage")


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"covstatus version {__version__}")
        raise typer.Exit()


def _fail(message: str) -> NoReturn:
    typer.secho(f"❌ {message}", fg=typer.colors.RED, err=True)
    raise typer.Exit(code=1)


def _load_store() -> SettingsStore:
    try:
        return bootstrap_store(get_settings()).store
    except PersistenceError as exc:
        _fail(f"Unable to load settings: {exc}")


def _run(action: Callable[[], T]) -> T:
    try:
        return action()
    except CovstatusError as exc:
        _fail(str(exc))


def _mask(value: str | None) -> str:
    return MASK if value else "-"


def _display(value: Any) -> str:
    if value is None:
        return "-"
    return str(value)


@app.callback()
def main(
    version: Annotated[
        bool | None,
        typer.Option("--version", "-v", callback=version_callback, is_eager=True),
    ] = None,
    data_dir: Annotated[
        Path | None,
        typer.Option("--data-dir", help="Override data directory"),
    ] = None,
    config_dir: Annotated[
        Path | None,
        typer.Option("--config-dir", help="Override config directory (key files)"),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", help="Enable debug logging"),
    ] = False,
) -> None:
    """covstatus - settings store for pull-request coverage status."""
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")

    # Update settings with CLI flags
    settings = get_settings()
    if data_dir:
        settings.data_dir = data_dir
    if config_dir:
        settings.config_dir = config_dir
    set_settings(settings)


@app.command("show")
def show(
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Emit configuration as JSON"),
    ] = False,
) -> None:
    """Show the current configuration with credentials masked."""
    store = _load_store()
    snapshot = store.get()
    rows = {
        "api_base_url": snapshot.api_base_url,
        "access_token": _mask(snapshot.access_token),
        "jenkins_url": snapshot.jenkins_url,
        "proxied_jenkins": snapshot.proxied_jenkins,
        "yellow_threshold": snapshot.yellow_threshold,
        "green_threshold": snapshot.green_threshold,
        "use_secondary_analysis_for_baseline": snapshot.use_secondary_analysis_for_baseline,
        "disable_simple_cov": snapshot.disable_simple_cov,
        "secondary_service_url": snapshot.secondary_service_url,
        "secondary_service_token": _mask(snapshot.secondary_service_token),
        "secondary_service_user": snapshot.secondary_service_user,
        "secondary_service_password": _mask(snapshot.secondary_service_password),
        "cached_projects": len(store.coverage_by_project()),
    }

    if json_output:
        typer.echo(json.dumps(rows, indent=2))
        return

    width = max(len(name) for name in rows)
    for name, value in rows.items():
        typer.echo(f"{name.ljust(width)}  {_display(value)}")


@app.command("configure")
def configure(
    api_base_url: Annotated[str | None, typer.Option("--api-base-url")] = None,
    access_token: Annotated[str | None, typer.Option("--access-token")] = None,
    yellow_threshold: Annotated[str | None, typer.Option("--yellow-threshold")] = None,
    green_threshold: Annotated[str | None, typer.Option("--green-threshold")] = None,
    jenkins_url: Annotated[str | None, typer.Option("--jenkins-url")] = None,
    proxied_jenkins: Annotated[
        bool | None,
        typer.Option(
            "--proxied-jenkins/--no-proxied-jenkins",
            help="CI server is reachable publicly through a different address",
        ),
    ] = None,
    use_secondary_baseline: Annotated[
        bool | None,
        typer.Option(
            "--use-secondary-baseline/--no-use-secondary-baseline",
            help="Take baseline coverage from the secondary analysis service",
        ),
    ] = None,
    disable_simple_cov: Annotated[
        bool | None,
        typer.Option("--disable-simple-cov/--no-disable-simple-cov"),
    ] = None,
    secondary_url: Annotated[str | None, typer.Option("--secondary-url")] = None,
    secondary_token: Annotated[str | None, typer.Option("--secondary-token")] = None,
    secondary_user: Annotated[str | None, typer.Option("--secondary-user")] = None,
    secondary_password: Annotated[str | None, typer.Option("--secondary-password")] = None,
) -> None:
    """Update configuration; options not given keep their current value.

    Pass an empty string to clear a text or credential value.
    """
    store = _load_store()
    overrides = {
        "apiBaseUrl": api_base_url,
        "accessToken": access_token,
        "yellowThreshold": yellow_threshold,
        "greenThreshold": green_threshold,
        "jenkinsUrl": jenkins_url,
        "proxiedJenkins": proxied_jenkins,
        "useSecondaryAnalysisForBaseline": use_secondary_baseline,
        "disableSimpleCov": disable_simple_cov,
        "secondaryServiceUrl": secondary_url,
        "secondaryServiceToken": secondary_token,
        "secondaryServiceUser": secondary_user,
        "secondaryServicePassword": secondary_password,
    }
    form_values = store.get().to_form_values()
    form_values.update({key: value for key, value in overrides.items() if value is not None})

    configuration = _run(lambda: store.apply_configuration(form_values))
    typer.secho("✅ Configuration saved", fg=typer.colors.GREEN)
    typer.echo(
        f"   Thresholds: yellow={configuration.yellow_threshold} "
        f"green={configuration.green_threshold}"
    )


@coverage_app.command("set")
def coverage_set(
    project: Annotated[str, typer.Argument(help="Project identifier, e.g. owner/repo")],
    value: Annotated[float, typer.Argument(help="Coverage percentage")],
) -> None:
    """Record the latest coverage for a project."""
    store = _load_store()
    _run(lambda: store.set_coverage(project, value))
    typer.secho(f"✅ {project}: {value:g}%", fg=typer.colors.GREEN)


@coverage_app.command("get")
def coverage_get(
    project: Annotated[str, typer.Argument(help="Project identifier")],
) -> None:
    """Print the last recorded coverage for a project."""
    store = _load_store()
    value = store.get_coverage(project)
    if value is None:
        typer.secho(f"No coverage recorded for {project}", fg=typer.colors.YELLOW, err=True)
        raise typer.Exit(code=1)
    typer.echo(f"{value:g}")


@coverage_app.command("list")
def coverage_list(
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Emit the coverage cache as JSON"),
    ] = False,
) -> None:
    """List every cached project coverage."""
    coverage = _load_store().coverage_by_project()
    if json_output:
        typer.echo(json.dumps(coverage, indent=2, sort_keys=True))
        return
    if not coverage:
        typer.echo("No coverage recorded.")
        return
    for project in sorted(coverage):
        typer.echo(f"{project}  {coverage[project]:g}")


if __name__ == "__main__":
    app()
