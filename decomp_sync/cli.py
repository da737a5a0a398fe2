import asyncio
import json
import sys

import click


@click.group()
def main() -> None:
    """decomp-sync - Keep a decompilation diff in sync with your workspace."""


@main.command()
@click.option("--host", default=None, help="Bind host (default: from DECOMP_HOST or 127.0.0.1).")
@click.option("--port", default=None, type=int, help="Bind port (default: from DECOMP_PORT or 8765).")
@click.option("--root", default=None, type=click.Path(exists=True, file_okay=False), help="Workspace root.")
@click.option("--reload", is_flag=True, default=False, help="Enable auto-reload for development.")
def serve(host: str | None, port: int | None, root: str | None, reload: bool) -> None:
    """Start the workspace service."""
    import os

    import uvicorn

    from decomp_sync.workspace_runtime.settings import DecompSettings

    if root is not None:
        # Read by get_settings() inside the app lifespan.
        os.environ["DECOMP_WORKSPACE_ROOT"] = root
    settings = DecompSettings()

    uvicorn.run(
        "decomp_sync.workspace_runtime.app:app",
        host=host or settings.host,
        port=port or settings.port,
        reload=reload,
        log_level="warning",  # uvicorn's own logging is intercepted by loguru
        # Leave room for an in-flight build to publish before exit.
        timeout_graceful_shutdown=settings.graceful_shutdown_timeout + 10,
    )


# ---------------------------------------------------------------------------
# Local (headless) commands
# ---------------------------------------------------------------------------


def _local_settings(root: str | None):
    from decomp_sync.workspace_runtime.log import setup_logging
    from decomp_sync.workspace_runtime.settings import DecompSettings

    overrides = {"workspace_root": root} if root is not None else {}
    settings = DecompSettings(**overrides)
    setup_logging(settings.log_level, settings.log_file)
    return settings


def _load_config(root: str | None):
    from decomp_sync.workspace_runtime.managers.config_store import ConfigLoadError, ConfigStore

    settings = _local_settings(root)
    store = ConfigStore(settings.root_path)
    try:
        config = asyncio.run(store.load())
    except ConfigLoadError as exc:
        raise click.ClickException(str(exc)) from exc
    if config is None:
        msg = f"No {store.path.name} in {settings.root_path}"
        raise click.ClickException(msg)
    return config


root_option = click.option(
    "--root",
    default=None,
    type=click.Path(exists=True, file_okay=False),
    help="Workspace root (default: from DECOMP_WORKSPACE_ROOT or the current directory).",
)


@main.command()
@root_option
@click.option("--all", "show_all", is_flag=True, default=False, help="Include auto-generated units.")
def units(root: str | None, show_all: bool) -> None:
    """List the units of the project."""
    config = _load_config(root)
    for unit in config.units or []:
        if unit.auto_generated and not show_all:
            continue
        source = f"  ({unit.source_path})" if unit.source_path else ""
        click.echo(f"{unit.display_name}{source}")


@main.command()
@root_option
def config(root: str | None) -> None:
    """Print the resolved project configuration."""
    resolved = _load_config(root)
    click.echo(resolved.model_dump_json(indent=2, exclude_none=True))


@main.command()
@root_option
@click.argument("unit_name")
def build(root: str | None, unit_name: str) -> None:
    """Build both sides of UNIT_NAME once and report the result."""
    from decomp_sync.workspace_runtime.workspace import Workspace

    settings = _local_settings(root)

    async def run() -> bool:
        async with Workspace(settings.root_path, settings, watcher_factory=None, autobuild=False) as workspace:
            unit = workspace.selector.find_by_name(unit_name)
            if unit is None:
                msg = f"Unit '{unit_name}' not found"
                raise click.ClickException(msg)
            workspace.broadcaster.publish(current_unit=unit)
            if not await workspace.build():
                return False
            state = workspace.broadcaster.state
            ok = True
            for side, status, data in (
                ("target", state.left_status, state.left_object),
                ("base", state.right_status, state.right_object),
            ):
                size = f"{len(data)} bytes" if data is not None else "no object"
                if status is None:
                    click.echo(f"{side}: not built ({size})")
                    continue
                click.echo(f"{side}: {'ok' if status.success else 'FAILED'} ({size})  $ {status.cmdline}")
                if not status.success:
                    ok = False
                    click.echo(status.stdout, nl=False)
                    click.echo(status.stderr, nl=False, err=True)
            return ok

    if not asyncio.run(run()):
        sys.exit(1)


# ---------------------------------------------------------------------------
# Remote commands (talk to a running service)
# ---------------------------------------------------------------------------


def _client(url: str | None):
    import httpx

    from decomp_sync.workspace_runtime.settings import DecompSettings

    if url is None:
        settings = DecompSettings()
        url = f"http://{settings.host}:{settings.port}"
    return httpx.Client(base_url=url, timeout=30.0)


def _request(url: str | None, method: str, path: str, **kwargs):
    import httpx

    with _client(url) as client:
        try:
            response = client.request(method, path, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            try:
                detail = exc.response.json().get("detail", exc.response.text)
            except ValueError:
                detail = exc.response.text
            msg = f"{method} {path} failed ({exc.response.status_code}): {detail}"
            raise click.ClickException(msg) from exc
        except httpx.HTTPError as exc:
            msg = f"Cannot reach decomp-sync at {client.base_url}: {exc}"
            raise click.ClickException(msg) from exc
    return response.json() if response.content else None


url_option = click.option("--url", default=None, help="Service URL (default: from DECOMP_HOST / DECOMP_PORT).")


@main.command()
@url_option
@click.option("--all", "show_all", is_flag=True, default=False, help="Include auto-generated units.")
def pick(url: str | None, show_all: bool) -> None:
    """Interactively pick the current unit."""
    listed = _request(url, "GET", "/api/units/list", params={"include_hidden": show_all})
    if not listed:
        raise click.ClickException("No units available")
    for index, unit in enumerate(listed, start=1):
        click.echo(f"{index:>4}  {unit['name']}")
    choice = click.prompt("Unit", type=click.IntRange(1, len(listed)))
    selected = _request(url, "POST", "/api/units/select", json={"name": listed[choice - 1]["name"]})
    click.echo(f"Selected {selected['name']}")


@main.command()
@url_option
@click.argument("name")
def select(url: str | None, name: str) -> None:
    """Select the unit NAME."""
    selected = _request(url, "POST", "/api/units/select", json={"name": name})
    click.echo(f"Selected {selected['name']}")


@main.command()
@url_option
def clear(url: str | None) -> None:
    """Clear the current unit."""
    _request(url, "POST", "/api/units/clear")
    click.echo("Selection cleared")


@main.command("resolve-active")
@url_option
@click.argument("path", type=click.Path(exists=True, dir_okay=False, resolve_path=True))
def resolve_active(url: str | None, path: str) -> None:
    """Select the unit built from the source file PATH."""
    _request(url, "POST", "/api/editor/active", json={"path": path})
    result = _request(url, "POST", "/api/units/resolve-active")
    if not result["resolved"]:
        raise click.ClickException(f"No unit found for {path}")
    click.echo(f"Selected {result['unit']}")


@main.command()
@url_option
@click.option("--wait", is_flag=True, default=False, help="Wait for the build to finish.")
def trigger(url: str | None, wait: bool) -> None:
    """Rebuild the current unit."""
    result = _request(url, "POST", "/api/commands/build", params={"wait": wait})
    if not result["accepted"]:
        raise click.ClickException("Build not started (already running, or no unit selected)")
    click.echo("Build finished" if wait else "Build started")


@main.command()
@url_option
def status(url: str | None) -> None:
    """Print the service's workspace state."""
    click.echo(json.dumps(_request(url, "GET", "/api/state"), indent=2))


if __name__ == "__main__":
    main()
