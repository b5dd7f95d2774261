"""Typer CLI entrypoint."""

from __future__ import annotations

import logging
from pathlib import Path

import typer

from fastbootctl.core.errors import FastbootError
from fastbootctl.core.model import Instruction
from fastbootctl.core.service import FastbootService

app = typer.Typer(help="Android fastboot over USB and factory image flashing")


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log every packet and instruction"),
) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )


def _print_instructions(instructions: list[Instruction]) -> None:
    for instruction in instructions:
        line = " ".join([instruction.command.value, *instruction.args])
        options = {
            name: value
            for name, value in vars(instruction.options).items()
            if value not in (None, False)
        }
        if options:
            rendered = ", ".join(
                f"{name}={getattr(value, 'value', value)}" for name, value in sorted(options.items())
            )
            line = f"{line}  [{rendered}]"
        typer.echo(line)


@app.command("devices")
def list_devices() -> None:
    """List fastboot devices visible on USB."""
    try:
        service = FastbootService()
        devices = service.list_devices()
        if not devices:
            typer.echo("No fastboot devices found")
            return

        for device in devices:
            typer.echo(f"{device.serial}\t{device.product}")
    except FastbootError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("getvar")
def getvar(
    name: str,
    serial: str | None = typer.Option(None, "--serial", "-s", help="Device serial number"),
) -> None:
    """Read a bootloader variable."""
    try:
        service = FastbootService()
        typer.echo(f"{name}: {service.get_var(name, serial)}")
    except FastbootError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("flash-all")
def flash_all(
    archive: Path = typer.Argument(..., exists=True, dir_okay=False, help="Factory image zip"),
    serial: str | None = typer.Option(None, "--serial", "-s", help="Device serial number"),
) -> None:
    """Run the flash-all.sh script contained in a factory image zip."""
    try:
        service = FastbootService()
        instructions = service.flash_all(archive, serial)
        typer.echo(f"Completed {len(instructions)} instructions from {archive.name}")
    except FastbootError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("run")
def run_script(
    script: Path = typer.Argument(..., exists=True, dir_okay=False, help="Fastboot script"),
    archive: Path = typer.Argument(..., exists=True, dir_okay=False, help="Zip holding the images"),
    serial: str | None = typer.Option(None, "--serial", "-s", help="Device serial number"),
) -> None:
    """Run a fastboot script against images from a zip archive."""
    try:
        service = FastbootService()
        instructions = service.run_script(script.read_text(encoding="utf-8"), archive, serial)
        typer.echo(f"Completed {len(instructions)} instructions")
    except FastbootError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("parse")
def parse_script(
    script: Path = typer.Argument(..., exists=True, dir_okay=False, help="Fastboot script"),
    flash_all: bool = typer.Option(
        False, "--flash-all", help="Treat SCRIPT as a shell flash-all script"
    ),
) -> None:
    """Print the instructions a script would run, without touching a device."""
    try:
        service = FastbootService()
        instructions = service.parse_script(script.read_text(encoding="utf-8"), flash_all=flash_all)
        if not instructions:
            typer.echo("No instructions")
            return
        _print_instructions(instructions)
    except FastbootError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


def run() -> None:
    app()


if __name__ == "__main__":
    run()
