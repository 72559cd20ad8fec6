"""Main CLI entry point - thin client commands plus the host server."""

import socket
from pathlib import Path
from typing import Callable, Optional

import typer

from neurobridge.core.configs import LOG_LEVELS, BridgeSettings, get_bridge_settings
from neurobridge.daemon.client import BridgeClient
from neurobridge.daemon.errors import BridgeUnavailable, ProtocolError
from neurobridge.daemon.messages import Error, GpuInfo, Pong, Response

app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    help="Neuro-Bridge - reach host hardware from a chroot or container.",
)


# ============================================================================
# Shared Setup
# ============================================================================

def _load_settings() -> BridgeSettings:
    """Load settings. Exits on error."""
    try:
        return get_bridge_settings()
    except ValueError as e:
        typer.echo(f"Error loading configuration: {e}", err=True)
        raise typer.Exit(1)


def _make_client(socket_path: Optional[Path], timeout: Optional[float]) -> BridgeClient:
    settings = _load_settings()
    return BridgeClient(
        socket_path=socket_path or settings.socket_path,
        timeout=timeout or settings.timeout,
    )


def _send(client: BridgeClient, call: Callable[[], Response]) -> Response:
    """
    Run one request, turning transport failures into exit codes.

    Exit 2: server not reachable. Exit 1: protocol or I/O failure.
    """
    try:
        return call()
    except BridgeUnavailable as e:
        typer.echo(str(e), err=True)
        raise typer.Exit(2)
    except ProtocolError as e:
        typer.echo(f"Protocol error: {e}", err=True)
        raise typer.Exit(1)
    except socket.timeout:
        typer.echo(
            f"Timed out waiting for Neuro-Bridge after {client.timeout:g}s",
            err=True,
        )
        raise typer.Exit(1)
    except OSError as e:
        typer.echo(f"Connection error: {e}", err=True)
        raise typer.Exit(1)


def _render(response: Response) -> None:
    """Print a response; server errors go to stderr with exit code 1."""
    if isinstance(response, Pong):
        typer.echo("Pong! Server is alive.")
    elif isinstance(response, GpuInfo):
        typer.echo("GPU Detected via Bridge!")
        typer.echo(f"   Device: {response.device_name}")
        typer.echo(f"   Driver: {response.driver_version}")
    elif isinstance(response, Error):
        typer.echo(f"Server Error: {response.message}", err=True)
        raise typer.Exit(1)
    else:
        typer.echo(f"Received: {response.TAG}")


SOCKET_OPTION = typer.Option(None, "--socket", "-s", help="Path to the bridge Unix socket")
TIMEOUT_OPTION = typer.Option(None, "--timeout", "-t", min=0.1, help="Socket timeout in seconds")


# ============================================================================
# Commands
# ============================================================================

@app.command()
def ping(
    socket_path: Optional[Path] = SOCKET_OPTION,
    timeout: Optional[float] = TIMEOUT_OPTION,
) -> None:
    """
    Check that the host server is alive.

    Example: neuro ping
    """
    client = _make_client(socket_path, timeout)
    _render(_send(client, client.ping))


@app.command()
def gpu(
    socket_path: Optional[Path] = SOCKET_OPTION,
    timeout: Optional[float] = TIMEOUT_OPTION,
) -> None:
    """
    Show the GPU visible to the host server.

    Example: neuro gpu
    """
    client = _make_client(socket_path, timeout)
    _render(_send(client, client.gpu_info))


@app.command()
def serve(
    socket_path: Optional[Path] = SOCKET_OPTION,
    probe: Optional[str] = typer.Option(None, "--probe", "-p", help="GPU probe: vulkan, nvml or static"),
    query_timeout: Optional[float] = typer.Option(
        None, "--query-timeout", min=0, help="Seconds to wait for the GPU probe (0 = no limit)"
    ),
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Logging level"),
) -> None:
    """
    Run the host server in the foreground (privileged side).

    Lazy import the server module to keep client commands light.
    """
    from neurobridge.daemon.server import run_server
    from neurobridge.gpu import PROBE_KINDS

    settings = _load_settings()
    if socket_path:
        settings.socket_path = socket_path
    if probe:
        if probe.lower() not in PROBE_KINDS:
            typer.echo(f"Unknown probe '{probe}'. Available: {', '.join(PROBE_KINDS)}", err=True)
            raise typer.Exit(1)
        settings.gpu_probe = probe.lower()
    if query_timeout is not None:
        settings.query_timeout = query_timeout
    if log_level:
        if log_level.upper() not in LOG_LEVELS:
            typer.echo(f"Unknown log level '{log_level}'. Available: {', '.join(LOG_LEVELS)}", err=True)
            raise typer.Exit(1)
        settings.log_level = log_level.upper()

    try:
        run_server(settings)
    except OSError as e:
        typer.echo(f"Error starting server on {settings.socket_path}: {e}", err=True)
        raise typer.Exit(1)


@app.command()
def config() -> None:
    """
    Show the effective configuration.

    Lazy import config_commands to avoid Rich on the client path.
    """
    from neurobridge.ui.config_commands import show_config
    show_config(_load_settings())


def run() -> None:
    """Entry point for console script mapping."""
    app()


if __name__ == "__main__":
    run()
