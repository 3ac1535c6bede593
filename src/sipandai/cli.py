"""
CLI Entrypoint for the SIPANDAI Google Drive client

Provides a command-line interface for checking the Drive configuration,
running the end-to-end diagnostic, and uploading a document into the
SIPANDAI folder hierarchy.

Usage:
    sipandai-drive check [OPTIONS]
    sipandai-drive diagnose [OPTIONS]
    sipandai-drive upload PATH [OPTIONS]
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Optional

import typer
import yaml  # type: ignore[import-untyped]
from rich.console import Console
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from sipandai.gdrive.client import AvailabilityCode, DriveClient, create_client
from sipandai.gdrive.config import load_config
from sipandai.gdrive.diagnostics import run_diagnostics
from sipandai.gdrive.errors import DriveClientError, ErrorInfo
from sipandai.gdrive.uploader import UploadFile

app = typer.Typer(
    name="sipandai-drive",
    help="Google Drive storage for SIPANDAI submissions",
    add_completion=False,
)

console = Console()


def _client(config: Optional[Path]) -> DriveClient:
    try:
        return create_client(load_config(config))
    except (OSError, ValueError, yaml.YAMLError) as e:
        console.print(f"[red]Could not read configuration:[/] {e}")
        raise typer.Exit(1) from e


def _print_error(info: ErrorInfo) -> None:
    console.print(
        Panel(
            f"{info.message}\n\n{info.remediation}",
            title=f"[red]{info.category.value}[/]",
            border_style="red",
        )
    )


@app.command()
def check(
    config: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to configuration YAML file",
    ),
) -> None:
    """
    Show whether Google Drive is configured, without touching the network.
    """
    client = _client(config)
    availability = client.availability()

    table = Table(title="Google Drive configuration")
    table.add_column("Setting")
    table.add_column("Value")
    for key, value in client.classifier.describe_config().items():
        table.add_row(key, str(value))
    table.add_row("scope", client.config.client.scope)
    table.add_row("enabled", str(client.config.enabled))
    console.print(table)

    if availability.code is AvailabilityCode.AVAILABLE:
        console.print(f"[green]{availability.reason}[/]")
        return

    console.print(f"[red]{availability.code.value}:[/] {availability.reason}")
    raise typer.Exit(1)


@app.command()
def diagnose(
    config: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to configuration YAML file",
    ),
    category: str = typer.Option(
        "Test Upload Category",
        "--category",
        help="Category folder used for the test upload",
    ),
    subject: str = typer.Option(
        "Test Employee Upload",
        "--subject",
        help="Subject folder used for the test upload",
    ),
    interactive: bool = typer.Option(
        True,
        "--interactive/--silent",
        help="Open the Google consent flow if no session can be reused",
    ),
) -> None:
    """
    Run configuration, initialization, sign-in, folder creation and a test upload.

    Stops at the first failing step and prints its remediation.
    """
    client = _client(config)

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
    ) as progress:
        progress.add_task("Running Google Drive diagnostics...", total=None)
        report = asyncio.run(run_diagnostics(client, category, subject, interactive=interactive))

    table = Table(title="Google Drive diagnostics")
    table.add_column("Step")
    table.add_column("Result")
    table.add_column("Message")
    table.add_column("Time (s)", justify="right")
    for step in report.steps:
        result = "[green]OK[/]" if step.success else "[red]FAILED[/]"
        table.add_row(step.name, result, step.message, f"{step.duration_seconds:.2f}")
    console.print(table)

    failed = report.failed_step
    if failed is not None:
        if failed.error is not None:
            _print_error(failed.error)
        raise typer.Exit(1)

    link = report.steps[-1].data.get("web_view_link")
    if link:
        console.print(f"[green]Test file:[/] {link}")


@app.command()
def upload(
    path: Path = typer.Argument(
        ...,
        help="File to upload",
        exists=True,
        dir_okay=False,
        readable=True,
    ),
    category: str = typer.Option(
        "",
        "--category",
        help="Category folder (e.g. the submission type)",
    ),
    subject: str = typer.Option(
        "",
        "--subject",
        help="Subject folder (e.g. the employee name)",
    ),
    name: Optional[str] = typer.Option(
        None,
        "--name",
        "-n",
        help="File name in Drive (default: local file name)",
    ),
    config: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to configuration YAML file",
    ),
) -> None:
    """
    Upload a file into SIPANDAI/<category>/<subject>.

    A browser window opens for sign-in if no session can be reused.

    Examples:
        sipandai-drive upload surat_cuti.pdf --category Cuti --subject Siti
    """
    client = _client(config)
    upload_file = UploadFile.from_path(path)
    destination = name or upload_file.name

    async def _run() -> None:
        await client.authenticate(silent=False)
        structure = await client.resolve_folder_structure(category, subject)
        result = await client.upload_file(upload_file, structure.subject_id, destination)
        console.print(f"[green]Uploaded:[/] {result.file_name} ({result.file_id})")
        if result.web_view_link:
            console.print(f"[green]View:[/] {result.web_view_link}")

    try:
        asyncio.run(_run())
    except DriveClientError as e:
        _print_error(e.info)
        raise typer.Exit(1) from e


if __name__ == "__main__":
    app()
