"""
CLI entry point for toolhub.

This module provides the Typer-based command-line interface for toolhub.

Commands:
    serve       Run the JSON-RPC server
    list-tools  List the tools derived from the descriptor store
    show-tool   Show one tool's definition
    call        Invoke one tool and print the result
    doctor      Check settings, store and catalog

Every command accepts --config; when it is omitted the TOOLHUB_CONFIG
environment variable names the settings file, and built-in defaults apply
when neither is set.
"""

import asyncio
import json
import os
import sys
import traceback
from pathlib import Path
from typing import Annotated, Any, Optional

import typer
from rich.console import Console
from rich.table import Table

from toolhub import __version__
from toolhub.catalog import CatalogLoader
from toolhub.engine import InvocationEngine, InvocationResult
from toolhub.errors import ConfigError, StorageError
from toolhub.logging_config import setup_logging
from toolhub.schema import Settings, load_settings
from toolhub.store import DescriptorStore
from toolhub.tools.http import HttpDispatcher
from toolhub.tools.registry import ToolRegistry

CONFIG_ENV_VAR = "TOOLHUB_CONFIG"

app = typer.Typer(
    name="toolhub",
    help="Serve database-driven HTTP APIs as JSON-RPC tools.",
    add_completion=False,
    no_args_is_help=True,
)

console = Console()


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold]toolhub[/bold] version {__version__}")
        raise typer.Exit()


def load_config(config: Path | None) -> Settings:
    """
    Resolve and load settings.

    Args:
        config: Explicit --config path, or None

    Returns:
        Loaded settings (defaults when no file is configured)

    Raises:
        ConfigError: If the configured file cannot be loaded
    """
    if config is None:
        env_path = os.environ.get(CONFIG_ENV_VAR)
        if env_path:
            config = Path(env_path)
    if config is None:
        return Settings()
    return load_settings(config)


def _settings_or_exit(config: Path | None) -> Settings:
    try:
        settings = load_config(config)
    except ConfigError as e:
        console.print(f"[red]Error loading settings: {e.message}[/red]")
        raise typer.Exit(code=1)
    setup_logging(settings.log_level)
    return settings


def _open_store_or_exit(settings: Settings) -> DescriptorStore:
    try:
        return DescriptorStore(settings.database_path)
    except StorageError as e:
        console.print(f"[red]Cannot open descriptor store: {e.message}[/red]")
        raise typer.Exit(code=1)


def _load_registry(store: DescriptorStore, settings: Settings, project: int | None) -> ToolRegistry:
    scope = project if project is not None else settings.project_scope
    loader = CatalogLoader(store, settings, mark_registered=False)
    registry = ToolRegistry(loader, project_scope=scope)
    if not registry.reload().loaded:
        console.print("[red]Cannot read descriptors from the store[/red]")
        raise typer.Exit(code=1)
    return registry


@app.callback()
def main(
    version: Annotated[
        Optional[bool],
        typer.Option(
            "--version",
            "-v",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
) -> None:
    """
    toolhub - Database-driven tool catalog over JSON-RPC.

    Descriptors authored in the store become tools that clients can list,
    call and hot-reload without restarting the server.
    """
    pass


@app.command()
def serve(
    config: Annotated[
        Optional[Path],
        typer.Option(
            "--config",
            "-c",
            help="Path to the settings YAML file. Defaults to $TOOLHUB_CONFIG.",
            resolve_path=True,
        ),
    ] = None,
    host: Annotated[
        Optional[str],
        typer.Option("--host", help="Bind address (overrides settings)."),
    ] = None,
    port: Annotated[
        Optional[int],
        typer.Option("--port", "-p", help="Bind port (overrides settings)."),
    ] = None,
) -> None:
    """
    Run the JSON-RPC server.

    Example:
        $ toolhub serve --config toolhub.yaml --port 8000
    """
    import uvicorn

    from toolhub.protocol.server import create_app

    settings = _settings_or_exit(config)
    bind_host = host or settings.host
    bind_port = port or settings.port

    console.print(
        f"[bold]toolhub[/bold] serving on http://{bind_host}:{bind_port}/mcp "
        f"[dim](store: {settings.database_path})[/dim]"
    )
    uvicorn.run(
        create_app(settings),
        host=bind_host,
        port=bind_port,
        log_level=settings.log_level.lower(),
    )


@app.command("list-tools")
def list_tools(
    config: Annotated[
        Optional[Path],
        typer.Option(
            "--config",
            "-c",
            help="Path to the settings YAML file. Defaults to $TOOLHUB_CONFIG.",
            resolve_path=True,
        ),
    ] = None,
    project: Annotated[
        Optional[int],
        typer.Option("--project", help="Only list this project's tools."),
    ] = None,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output results in JSON format."),
    ] = False,
) -> None:
    """
    List the tools derived from the descriptor store.

    Example:
        $ toolhub list-tools --project 7
    """
    settings = _settings_or_exit(config)
    with _open_store_or_exit(settings) as store:
        registry = _load_registry(store, settings, project)

    tools = list(registry)
    if json_output:
        print(json.dumps(
            [registry.info(tool.name) for tool in tools],
            indent=2,
            ensure_ascii=False,
        ))
        return

    if not tools:
        console.print("[dim]No tools found.[/dim]")
        raise typer.Exit(code=0)

    table = Table(show_header=True, header_style="bold")
    table.add_column("Name", style="cyan")
    table.add_column("Method", width=7)
    table.add_column("URL")
    table.add_column("Project", justify="right")
    table.add_column("Data type")
    table.add_column("Required")

    for tool in tools:
        url = tool.url if len(tool.url) <= 60 else tool.url[:57] + "..."
        table.add_row(
            tool.name,
            tool.method,
            "[dim]static[/dim]" if tool.is_static else url,
            "" if tool.project_id is None else str(tool.project_id),
            tool.data_type or "",
            ", ".join(tool.required_parameters()),
        )

    console.print(table)
    console.print(f"[dim]Total: {len(tools)}[/dim]")


@app.command("show-tool")
def show_tool(
    name: Annotated[str, typer.Argument(help="The tool name to show.")],
    config: Annotated[
        Optional[Path],
        typer.Option(
            "--config",
            "-c",
            help="Path to the settings YAML file. Defaults to $TOOLHUB_CONFIG.",
            resolve_path=True,
        ),
    ] = None,
) -> None:
    """
    Show one tool's definition.

    Example:
        $ toolhub show-tool get_poi_list
    """
    settings = _settings_or_exit(config)
    with _open_store_or_exit(settings) as store:
        registry = _load_registry(store, settings, None)

    info = registry.info(name)
    if info is None:
        console.print(f"[red]Tool not found: {name}[/red]")
        raise typer.Exit(code=1)

    console.print(f"[bold]Tool {info['name']}[/bold]")
    console.print(f"  Description: {info['description']}")
    console.print(f"  Endpoint: {info['method']} {info['url']}")
    console.print(f"  Kind: {info['apiType'] or '-'}")
    console.print(f"  Data type: {info['dataType'] or '-'}")
    console.print(f"  Project: {info['projectId'] if info['projectId'] is not None else '-'}")
    console.print(f"  {info['parameterHint']}")
    console.print()

    if info["parameters"]:
        table = Table(show_header=True, header_style="bold")
        table.add_column("Parameter", style="cyan")
        table.add_column("Type")
        table.add_column("Required", width=8)
        table.add_column("Description")
        for param, spec in info["parameters"].items():
            table.add_row(
                param,
                spec["type"],
                "[green]yes[/green]" if spec["required"] else "no",
                spec["description"],
            )
        console.print(table)
    else:
        console.print("[dim]No parameters.[/dim]")


def _parse_call_arguments(raw: str | None) -> Any:
    """Decode ARGS as a JSON object when possible, else keep the free text."""
    if raw is None:
        return None
    try:
        decoded = json.loads(raw)
    except ValueError:
        return raw
    return decoded if isinstance(decoded, dict) else raw


async def _invoke(
    registry: ToolRegistry,
    settings: Settings,
    name: str,
    arguments: Any,
    project: int | None,
) -> InvocationResult:
    async with HttpDispatcher(
        timeout_seconds=settings.request_timeout_seconds,
        max_response_bytes=settings.max_response_bytes,
    ) as dispatcher:
        engine = InvocationEngine(registry, dispatcher)
        return await engine.invoke(name, arguments, project_scope=project)


@app.command()
def call(
    name: Annotated[str, typer.Argument(help="The tool name to invoke.")],
    arguments: Annotated[
        Optional[str],
        typer.Argument(help='Arguments as a JSON object or free text, e.g. "id=5, name=foo".'),
    ] = None,
    config: Annotated[
        Optional[Path],
        typer.Option(
            "--config",
            "-c",
            help="Path to the settings YAML file. Defaults to $TOOLHUB_CONFIG.",
            resolve_path=True,
        ),
    ] = None,
    project: Annotated[
        Optional[int],
        typer.Option("--project", help="Caller project scope."),
    ] = None,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output results in JSON format."),
    ] = False,
    debug: Annotated[
        bool,
        typer.Option("--debug", help="Enable debug mode with full error tracebacks."),
    ] = False,
) -> None:
    """
    Invoke one tool and print the result.

    Example:
        $ toolhub call get_poi_list '{"city": "guian"}'
        $ toolhub call get_poi_list "city=guian, limit=10"
    """
    settings = _settings_or_exit(config)
    try:
        with _open_store_or_exit(settings) as store:
            registry = _load_registry(store, settings, None)
        result = asyncio.run(
            _invoke(registry, settings, name, _parse_call_arguments(arguments), project)
        )
    except typer.Exit:
        raise
    except Exception as e:
        console.print(f"[red]Invocation error: {e}[/red]")
        if debug:
            console.print(f"[dim]{traceback.format_exc()}[/dim]")
        raise typer.Exit(code=1)

    if json_output:
        print(json.dumps({
            "tool": result.tool_name,
            "status": result.status.value,
            "success": result.success,
            "stage": result.stage.value,
            "failed_stage": result.failed_stage.value if result.failed_stage else None,
            "error_kind": result.error_kind,
            "text": result.text,
            "duration_ms": result.duration_ms,
        }, indent=2, ensure_ascii=False))
    elif result.success:
        console.print(result.text, markup=False, highlight=False)
    else:
        failed = result.failed_stage or result.stage
        console.print(f"[red]✗ {result.error_kind}[/red] at {failed.value}")
        console.print(result.text, markup=False, highlight=False)

    raise typer.Exit(code=0 if result.success else 1)


@app.command()
def doctor(
    config: Annotated[
        Optional[Path],
        typer.Option(
            "--config",
            "-c",
            help="Path to the settings YAML file. Defaults to $TOOLHUB_CONFIG.",
            resolve_path=True,
        ),
    ] = None,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output results in JSON format."),
    ] = False,
) -> None:
    """
    Check settings, the descriptor store and the catalog.

    Example:
        $ toolhub doctor --config toolhub.yaml
    """
    checks = []
    all_ok = True

    # Check 1: Python version
    py_version = sys.version_info
    py_version_str = f"{py_version.major}.{py_version.minor}.{py_version.micro}"
    py_ok = py_version >= (3, 11)
    checks.append({
        "name": "Python version",
        "ok": py_ok,
        "value": py_version_str,
        "message": "OK" if py_ok else "Requires Python 3.11+",
    })
    all_ok = all_ok and py_ok

    # Check 2: Settings
    settings: Settings | None = None
    try:
        settings = load_config(config)
        setup_logging(settings.log_level)
        source = str(config or os.environ.get(CONFIG_ENV_VAR) or "built-in defaults")
        checks.append({"name": "Settings", "ok": True, "value": source, "message": "OK"})
    except ConfigError as e:
        all_ok = False
        checks.append({
            "name": "Settings",
            "ok": False,
            "value": e.path,
            "message": e.message,
        })

    # Check 3: Descriptor store
    if settings is not None:
        try:
            with DescriptorStore(settings.database_path) as store:
                active = store.count_active(settings.project_scope)
                loader = CatalogLoader(store, settings, mark_registered=False)
                tools = loader.load_catalog(settings.project_scope)
            store_ok = active > 0 and tools is not None
            checks.append({
                "name": "Descriptor store",
                "ok": store_ok,
                "value": settings.database_path,
                "message": (
                    f"{active} active descriptor(s), {len(tools or [])} tool(s)"
                    if store_ok else "No active descriptors"
                ),
            })
        except StorageError as e:
            store_ok = False
            checks.append({
                "name": "Descriptor store",
                "ok": False,
                "value": settings.database_path,
                "message": e.message,
            })
        all_ok = all_ok and store_ok

    if json_output:
        print(json.dumps({"ok": all_ok, "version": __version__, "checks": checks}, indent=2))
    else:
        console.print(f"[bold]toolhub doctor[/bold] v{__version__}")
        console.print()
        for check in checks:
            icon = "[green]✓[/green]" if check["ok"] else "[red]✗[/red]"
            if check["ok"]:
                console.print(f"{icon} {check['name']}: [dim]{check['value']}[/dim] - {check['message']}")
            else:
                console.print(f"{icon} {check['name']}: [dim]{check['value']}[/dim]")
                console.print(f"    [red]{check['message']}[/red]")
        console.print()
        if all_ok:
            console.print("[green]All checks passed![/green]")
        else:
            console.print("[yellow]Some checks failed. See above for details.[/yellow]")

    raise typer.Exit(code=0 if all_ok else 1)


if __name__ == "__main__":
    app()
