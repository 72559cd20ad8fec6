"""
Configuration display for Neuro-Bridge.

Lazy-loaded only by `neuro config` so the ping/gpu path never imports Rich.
"""

from rich.console import Console
from rich.table import Table

from neurobridge.core.configs import CONFIG_PATH, ENV_OVERRIDES, BridgeSettings

console = Console()


def show_config(settings: BridgeSettings) -> None:
    """Display the effective settings in a formatted table."""
    table = Table(title="Neuro-Bridge Configuration", show_header=True)
    table.add_column("Setting", style="cyan", width=25)
    table.add_column("Value", style="green")

    table.add_row("socket_path", str(settings.socket_path))
    table.add_row("socket_mode", oct(settings.socket_mode))
    table.add_row("timeout", f"{settings.timeout:g}s")
    table.add_row(
        "query_timeout",
        f"{settings.query_timeout:g}s" if settings.query_timeout else "[dim]no limit[/dim]",
    )
    table.add_row("gpu_probe", settings.gpu_probe)
    if settings.gpu_probe == "vulkan":
        table.add_row("vulkan_library", settings.vulkan_library or "[dim]auto[/dim]")
    elif settings.gpu_probe == "static":
        table.add_row("static_device_name", settings.static_device_name)
        table.add_row("static_driver_version", settings.static_driver_version)
    table.add_row("log_level", settings.log_level)

    console.print(table)

    if CONFIG_PATH.exists():
        console.print(f"\n[dim]Config file: {CONFIG_PATH}[/dim]")
    else:
        console.print(f"\n[yellow]No config file at {CONFIG_PATH}; using defaults[/yellow]")
    console.print(f"[dim]Environment overrides: {', '.join(ENV_OVERRIDES)}[/dim]")
