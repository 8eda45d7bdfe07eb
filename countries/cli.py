"""Command line tools for exercising the image pipeline and the store."""

import json
import logging
import sys
import uuid
from pathlib import Path

import click
import structlog

from countries import __version__
from countries.environment import bootstrap
from countries.images.interactor import ImageBinding, LoadTask
from countries.loadable.binding import Binding
from countries.loadable.models import NotRequested
from countries.loadable.state_machine import LoadableState
from countries.observability.logging import (
    bind_session_context,
    clear_session_context,
    configure_logging,
)
from countries.settings.app import get_settings
from countries.store.errors import StoreOpenError, StoreOperationError
from countries.store.repository import ALL_COUNTRIES


logger = structlog.get_logger()

# Seconds to wait for a load or the store open before giving up
WAIT_TIMEOUT_SECONDS = 120.0


def _start_session() -> str:
    """Tag every log line of this invocation with a short session id."""
    session_id = str(uuid.uuid4())[:8]
    bind_session_context(session_id)
    return session_id


@click.group()
@click.version_option(version=__version__)
def cli() -> None:
    """Countries data-loading tools."""


@cli.command("fetch-image")
@click.argument("url")
@click.option(
    "--out",
    "output_path",
    required=True,
    type=click.Path(dir_okay=False, path_type=Path),
    help="Where to write the loaded image as PNG.",
)
@click.option(
    "--width",
    type=click.IntRange(min=1),
    default=None,
    help="Maximum width (defaults to the configured target width).",
)
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
def fetch_image(url: str, output_path: Path, width: int | None, verbose: bool) -> None:
    """Load URL through the image pipeline and save it as PNG."""
    settings = get_settings()
    if width is not None:
        settings = settings.model_copy(update={"image_target_width": width})
    configure_logging(
        level=logging.DEBUG if verbose else settings.log_level_number,
        json_format=settings.log_json,
    )
    session_id = _start_session()
    log = logger.bind(component="cli", command="fetch-image", session_id=session_id)

    env = bootstrap(settings)
    try:
        binding: ImageBinding = Binding(NotRequested())
        task = env.main.dispatch(env.images.load, binding, url).result(
            timeout=WAIT_TIMEOUT_SECONDS
        )
        if isinstance(task, LoadTask) and not task.wait(WAIT_TIMEOUT_SECONDS):
            click.echo(f"Error: timed out loading {url}", err=True)
            sys.exit(1)

        state = env.main.dispatch(lambda: binding.value).result(
            timeout=WAIT_TIMEOUT_SECONDS
        )
        if state.state != LoadableState.LOADED or state.value is None:
            log.warning("fetch_image_failed", error=str(state.error))
            click.echo(f"Error: {state.error}", err=True)
            sys.exit(1)

        output_path.parent.mkdir(parents=True, exist_ok=True)
        state.value.save(output_path, format="PNG")
        log.info("fetch_image_saved", path=str(output_path), size=state.value.size)
        click.echo(f"{output_path} ({state.value.width}x{state.value.height})")
    finally:
        env.close()
        clear_session_context()


@cli.command("db-stats")
@click.option("--json", "json_output", is_flag=True, help="Output as JSON.")
def db_stats(json_output: bool) -> None:
    """Open the store and show its location, state and country count."""
    settings = get_settings()
    configure_logging(json_format=False, level=logging.WARNING)
    _start_session()

    env = bootstrap(settings)
    try:
        # A no-op write resolves once the open settled either way
        opened = env.store.update(lambda _: None)
        try:
            opened.result(timeout=WAIT_TIMEOUT_SECONDS)
        except (StoreOpenError, StoreOperationError, TimeoutError) as e:
            click.echo(f"Error: {e}", err=True)
            sys.exit(1)

        stats = {
            "db_path": str(env.store.db_path),
            "model": env.store.version.model_name,
            "state": env.store.state.name,
            "countries": env.store.count(ALL_COUNTRIES),
        }
        if json_output:
            click.echo(json.dumps(stats, indent=2))
        else:
            click.echo("Store Statistics")
            click.echo("=" * 40)
            for key, value in stats.items():
                click.echo(f"  {key}: {value}")
    finally:
        env.close()
        clear_session_context()


if __name__ == "__main__":
    cli()
