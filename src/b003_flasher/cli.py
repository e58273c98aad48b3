"""
B003 Flasher CLI

Command-line interface for flashing firmware images to B003 bootloaders.
"""

import json
import logging
import sys
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from b003_flasher.config import FlasherConfig, load_config
from b003_flasher.core.actions import flash as core_flash
from b003_flasher.core.driver import SIMULATED_DRIVER, DriverLoadError, load_driver
from b003_flasher.core.image_source import (
    LocalImageSource,
    RemoteImageSource,
    UntrustedSourceError,
    is_trusted_image_url,
)
from b003_flasher.core.messages import (
    COMMON_MESSAGES,
    MessageItem,
    MessageLevel,
    OPEN_FAILED_REMEDIATION,
    result_to_messages,
)
from b003_flasher.core.results import OperationResult
from b003_flasher.core.safety import (
    CONFIRMATION_TOKEN,
    TrustNotAcknowledgedError,
    create_cli_safety_context,
    untrusted_warning,
)
from b003_flasher.devices import hid_backend_available, list_bootloader_devices, udev_instructions

# Setup logging
logging.basicConfig(
    level=logging.INFO,
    format="%(message)s",
    handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True)],
)
logger = logging.getLogger("b003_flasher")

# Setup Rich console
console = Console()

app = typer.Typer(help="⚡ B003 Flasher - push firmware images to CH32 B003 bootloaders")


def print_header(text: str) -> None:
    """Print fancy header."""
    console.print(Panel(text, expand=False, style="bold blue"))


def print_success(text: str) -> None:
    """Print success message."""
    console.print(f"✓ {text}", style="green")


def print_warning(text: str) -> None:
    """Print warning message."""
    console.print(f"⚠️  {text}", style="yellow")


def print_error(text: str) -> None:
    """Print error message."""
    console.print(f"❌ {text}", style="red")


def print_structured_message(message: MessageItem, verbose: bool = False) -> None:
    """Print a structured message with optional remediation."""
    if message.level == MessageLevel.ERROR:
        style = "red"
        icon = "❌"
    elif message.level == MessageLevel.WARN:
        style = "yellow"
        icon = "⚠️"
    else:
        style = "blue"
        icon = "ℹ️"

    console.print(f"{icon} [{message.code.value}] {message.title}", style=style)
    if verbose and message.detail:
        console.print(f"   {message.detail}", style="dim")
    if verbose and message.remediation:
        console.print(f"   → {message.remediation}", style="cyan")


def print_messages_from_result(result: OperationResult, verbose: bool = False) -> None:
    """Print all warnings and the failure from an OperationResult."""
    for message in result_to_messages(result):
        print_structured_message(message, verbose=verbose)


def print_open_failed_help() -> None:
    """Corrective guidance for a device the host is not allowed to open."""
    console.print(
        Panel(
            OPEN_FAILED_REMEDIATION,
            title="Failed to open the device!",
            border_style="red",
            expand=False,
        )
    )


def print_external_warning(source: RemoteImageSource) -> None:
    """Flag a remote image as untrusted before anything is flashed."""
    console.print(
        Panel(
            f"An external binary URL was supplied. Only flash if you trust the source!\n\n"
            f"[bold]{source.url}[/bold]",
            title="⚠️  External Binary Warning",
            border_style="yellow",
            expand=False,
        )
    )


def _load_config_or_exit() -> FlasherConfig:
    try:
        return load_config()
    except ValueError as e:
        print_error(f"Invalid configuration: {e}")
        sys.exit(2)


def _build_source(file: Optional[Path], url: Optional[str]):
    """Pick exactly one image source, mirroring the flash button gating."""
    if file is not None and url:
        raise typer.BadParameter("Pass either a FILE or --url, not both")
    if url:
        try:
            return RemoteImageSource(url)
        except UntrustedSourceError as e:
            raise typer.BadParameter(str(e))
    if file is None:
        raise typer.BadParameter("Select a .bin file to flash, or pass --url")
    return LocalImageSource(file)


@app.command()
def flash(
    file: Optional[Path] = typer.Argument(None, help="Firmware image (.bin) to flash"),
    url: Optional[str] = typer.Option(
        None, "--url", "-u", help="External image URL (http(s)://....bin). Defaults to $B003_FLASHER_IMAGE_URL"
    ),
    driver: Optional[str] = typer.Option(
        None, "--driver", "-d", help="Driver: 'simulated' or 'package.module:Factory'"
    ),
    simulate: bool = typer.Option(False, "--simulate", help="Use the simulated driver (no hardware)"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Accept an untrusted external image without prompting"),
    confirm: Optional[str] = typer.Option(
        None,
        "--confirm",
        help=f"Non-interactive acknowledgment token for external images (must be '{CONFIRMATION_TOKEN}')",
    ),
    fetch_timeout: Optional[float] = typer.Option(
        None, "--fetch-timeout", help="HTTP timeout in seconds for external images"
    ),
    output_json: bool = typer.Option(False, "--json", "-j", help="Output result as JSON"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging and remediation hints"),
) -> None:
    """
    Flash an image: open device → setup interface → chip info → write → boot.

    Every failure ends the session; run the command again to retry.
    """
    if verbose:
        logger.setLevel(logging.DEBUG)

    config = _load_config_or_exit()
    if file is None and not url:
        url = config.image_url

    try:
        source = _build_source(file, url)
    except typer.BadParameter as e:
        print_error(str(e))
        sys.exit(2)

    driver_spec = SIMULATED_DRIVER if simulate else (driver or config.driver)
    try:
        device_driver = load_driver(driver_spec)
    except DriverLoadError as e:
        print_error(str(e))
        sys.exit(2)

    if not output_json:
        print_header("Flash to device")
        console.print(f"Device: {config.device_label}")
        console.print(f"Flash origin: 0x{config.flash_origin:08X}")
        console.print(f"Driver: {driver_spec}")
        if driver_spec == SIMULATED_DRIVER:
            print_structured_message(COMMON_MESSAGES["simulation_mode"])

    safety_ctx = create_cli_safety_context(yes=yes, confirmation_token=confirm)
    if output_json:
        # stdout carries only the JSON document; remote images need --yes or --confirm
        safety_ctx.interactive = False
    if isinstance(source, RemoteImageSource):
        if not output_json:
            print_external_warning(source)
            safety_ctx.prompt_confirmation = lambda prompt: typer.confirm(prompt, default=False)
    elif not output_json:
        console.print(f"Image: {source.name}")

    def _on_status(message: str) -> None:
        if not output_json:
            console.print(f"Status: [bold]{message}[/bold]")

    try:
        result = core_flash(
            source,
            device_driver,
            safety_ctx=safety_ctx,
            on_status=_on_status,
            fetch_timeout=fetch_timeout if fetch_timeout is not None else config.fetch_timeout,
            vendor_id=config.vendor_id,
            product_id=config.product_id,
            flash_origin=config.flash_origin,
        )
    except TrustNotAcknowledgedError as e:
        print_error(e.reason)
        sys.exit(1)

    if output_json:
        data = result.to_dict()
        data["messages"] = [message.to_dict() for message in result_to_messages(result)]
        console.print_json(json.dumps(data))
    else:
        console.print(result.to_summary())
        print_messages_from_result(result, verbose=verbose)
        if result.requires_open_remediation:
            print_open_failed_help()
        if result.ok:
            print_success("Image flashed and device booted")

    if not result.ok:
        sys.exit(1)


@app.command("check-url")
def check_url(url: str = typer.Argument(..., help="External image URL to check")) -> None:
    """Check whether a URL is accepted as an external image source."""
    if is_trusted_image_url(url):
        print_success(f"Accepted: {url}")
        print_warning(untrusted_warning(RemoteImageSource(url)))
        return
    print_error(f"Rejected: {url} (only http(s) URLs ending in .bin are accepted)")
    sys.exit(1)


@app.command("list-devices")
def list_devices() -> None:
    """List attached B003 bootloaders (HID)."""
    config = _load_config_or_exit()

    if not hid_backend_available():
        print_structured_message(COMMON_MESSAGES["hid_unavailable"], verbose=True)
        sys.exit(1)

    devices = list_bootloader_devices(config.vendor_id, config.product_id)
    if not devices:
        print_structured_message(COMMON_MESSAGES["device_not_found"], verbose=True)
        return

    table = Table(title=f"B003 bootloaders ({config.device_label})")
    table.add_column("Device", style="cyan")
    table.add_column("Interface", style="green")
    table.add_column("Serial", style="yellow")
    table.add_column("Path", style="dim")

    for dev in devices:
        table.add_row(dev.label, str(dev.interface_number), dev.serial_number or "-", dev.path)

    console.print(table)


@app.command("udev-rule")
def udev_rule() -> None:
    """Show how to grant read & write access to the bootloader on Linux."""
    print_header("Linux HID permissions")
    for line in udev_instructions():
        console.print(line)


@app.command()
def info() -> None:
    """Show the device ids, flash origin and configured driver."""
    config = _load_config_or_exit()

    table = Table(title="B003 Flasher configuration", show_header=False)
    table.add_column("Setting", style="cyan")
    table.add_column("Value")
    table.add_row("Vendor ID", f"0x{config.vendor_id:04X}")
    table.add_row("Product ID", f"0x{config.product_id:04X}")
    table.add_row("Flash origin", f"0x{config.flash_origin:08X}")
    table.add_row("Driver", config.driver)
    table.add_row("External image", config.image_url or "-")
    table.add_row("Fetch timeout", f"{config.fetch_timeout}s" if config.fetch_timeout else "none")
    table.add_row("HID backend", "available" if hid_backend_available() else "missing")
    console.print(table)


def main() -> None:
    """Main entry point."""
    try:
        app()
    except KeyboardInterrupt:
        console.print("\n[yellow]Operation cancelled by user[/yellow]")
        sys.exit(0)
    except Exception as e:
        console.print(f"\n[red bold]Fatal error:[/red bold] {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
