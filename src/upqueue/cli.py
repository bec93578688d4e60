"""CLI entry point for upqueue.

Provides commands:
  - upload: Upload one file to one URL, or split it across several URLs
  - batch: Upload every file listed in a JSON manifest as one batch
  - config: Manage the upload bearer token stored in the system keyring
"""

from __future__ import annotations

import dataclasses
import json
import logging
from pathlib import Path
from typing import Annotated

import keyring
import typer
from keyring.errors import KeyringError, PasswordDeleteError
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from upqueue.config import KEY_NAME, SERVICE_NAME, load_upload_config, set_auth_token
from upqueue.models import UploadConfig, UploadOutcome, UploadRequest

logger = logging.getLogger(__name__)

app = typer.Typer(
    help="upqueue - concurrent uploads with progress tracking",
    rich_markup_mode="rich",
)
config_app = typer.Typer(help="Manage configuration (auth token)")
app.add_typer(config_app, name="config")

console = Console()


# ----------------------------------------------------------------------
# Shared helpers
# ----------------------------------------------------------------------


def _enable_debug_log() -> None:
    debug_dir = Path.home() / ".upqueue"
    debug_dir.mkdir(exist_ok=True)
    fh = logging.FileHandler(debug_dir / "debug.log")
    fh.setLevel(logging.DEBUG)
    fh.setFormatter(
        logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
    )
    package_logger = logging.getLogger("upqueue")
    package_logger.setLevel(logging.DEBUG)
    package_logger.addHandler(fh)


def _build_config(config_path: Path | None, threads: int | None) -> UploadConfig:
    try:
        config = load_upload_config(config_path)
        if threads is not None:
            config = dataclasses.replace(config, threads=threads)
    except (ValueError, json.JSONDecodeError) as e:
        console.print(f"[red]Error:[/red] Invalid configuration: {e}")
        raise typer.Exit(code=1)
    return config


def _format_size(size: int) -> str:
    size_kb = size / 1024
    return f"{size_kb:.1f} KB" if size_kb < 1024 else f"{size_kb / 1024:.1f} MB"


async def _run_requests(
    requests: list[UploadRequest], config: UploadConfig
) -> list[UploadOutcome]:
    # Import upload modules here to keep CLI startup fast for config commands
    from upqueue.upload.orchestrator import UploadOrchestrator
    from upqueue.upload.progress import UploadProgressTracker
    from upqueue.upload.transport import HttpTransport

    tracker = UploadProgressTracker(labels={r.id: r.label for r in requests})
    async with HttpTransport(config) as transport:
        uploader = UploadOrchestrator(transport, config)
        with tracker:
            uploader.subscribe(tracker.update)
            outcomes = await uploader.run(requests)
    return outcomes


def _print_summary(requests: list[UploadRequest], outcomes: list[UploadOutcome]) -> int:
    """Print the per-request result table and return the failure count."""
    summary_table = Table(title="Upload Summary")
    summary_table.add_column("#", justify="right", style="dim")
    summary_table.add_column("File", style="cyan", no_wrap=True)
    summary_table.add_column("Size", justify="right")
    summary_table.add_column("Destinations", justify="right")
    summary_table.add_column("Result")

    failed = 0
    for i, (request, outcome) in enumerate(zip(requests, outcomes), start=1):
        if outcome.ok:
            result = "[green]OK[/green]"
        else:
            failed += 1
            result = f"[red]FAILED[/red] {outcome.error}"
        summary_table.add_row(
            str(i),
            request.label,
            _format_size(request.size),
            str(len(request.destinations)),
            result,
        )

    succeeded = len(requests) - failed
    console.print(
        Panel(
            summary_table,
            title=f"Upload Complete: [green]{succeeded}[/green] succeeded, "
            f"[red]{failed}[/red] failed",
        )
    )
    return failed


# ----------------------------------------------------------------------
# Commands
# ----------------------------------------------------------------------


@app.command()
def upload(
    file: Annotated[
        Path,
        typer.Argument(help="File to upload"),
    ],
    to: Annotated[
        list[str],
        typer.Option(
            "--to",
            "-t",
            help="Destination URL; repeat to split the file across several URLs",
        ),
    ],
    threads: Annotated[
        int | None,
        typer.Option("--threads", "-n", help="Max concurrent transfers (default 5)"),
    ] = None,
    config_path: Annotated[
        Path | None,
        typer.Option("--config", "-c", help="Path to upload_config.json"),
    ] = None,
    dry_run: Annotated[
        bool,
        typer.Option("--dry-run", help="Show the byte ranges without uploading"),
    ] = False,
    debug: Annotated[
        bool, typer.Option("--debug", help="Write debug log to ~/.upqueue/debug.log")
    ] = False,
) -> None:
    """Upload FILE to one URL, or split it into one part per --to URL."""
    if debug:
        _enable_debug_log()

    if not file.is_file():
        console.print(f"[red]Error:[/red] File not found: {file}")
        raise typer.Exit(code=1)

    config = _build_config(config_path, threads)
    request = UploadRequest(file.read_bytes(), tuple(to), name=file.name)

    if dry_run:
        from upqueue.upload.planner import plan_parts

        plan_table = Table(title=f"Upload plan for {file.name} ({_format_size(request.size)})")
        plan_table.add_column("Part", justify="right")
        plan_table.add_column("Bytes", justify="right")
        plan_table.add_column("Size", justify="right")
        plan_table.add_column("Destination", style="cyan")
        for part in plan_parts(request.size, request.destinations):
            plan_table.add_row(
                str(part.index),
                f"{part.start}-{part.end}",
                _format_size(part.size),
                part.destination,
            )
        console.print(plan_table)
        return

    import asyncio

    outcomes = asyncio.run(_run_requests([request], config))
    if _print_summary([request], outcomes):
        raise typer.Exit(code=1)


@app.command()
def batch(
    manifest: Annotated[
        Path,
        typer.Argument(help='JSON list of {"file": path, "to": url or [urls]}'),
    ],
    threads: Annotated[
        int | None,
        typer.Option("--threads", "-n", help="Max concurrent transfers (default 5)"),
    ] = None,
    config_path: Annotated[
        Path | None,
        typer.Option("--config", "-c", help="Path to upload_config.json"),
    ] = None,
    debug: Annotated[
        bool, typer.Option("--debug", help="Write debug log to ~/.upqueue/debug.log")
    ] = False,
) -> None:
    """Upload every manifest entry as one batch; exit 1 if any entry fails.

    Relative file paths are resolved against the manifest's directory.
    """
    if debug:
        _enable_debug_log()

    if not manifest.is_file():
        console.print(f"[red]Error:[/red] Manifest not found: {manifest}")
        raise typer.Exit(code=1)

    try:
        entries = json.loads(manifest.read_text())
    except json.JSONDecodeError as e:
        console.print(f"[red]Error:[/red] Manifest is not valid JSON: {e}")
        raise typer.Exit(code=1)

    if not isinstance(entries, list) or not entries:
        console.print("[red]Error:[/red] Manifest must be a non-empty JSON list")
        raise typer.Exit(code=1)

    requests: list[UploadRequest] = []
    for i, entry in enumerate(entries):
        destinations = entry.get("to") if isinstance(entry, dict) else None
        if isinstance(destinations, str):
            destinations = [destinations]
        if (
            not isinstance(entry, dict)
            or not isinstance(entry.get("file"), str)
            or not isinstance(destinations, list)
            or not destinations
            or not all(isinstance(url, str) and url for url in destinations)
        ):
            console.print(
                f"[red]Error:[/red] Entry {i} needs a 'file' path and at least one 'to' URL"
            )
            raise typer.Exit(code=1)
        path = Path(entry["file"])
        if not path.is_absolute():
            path = manifest.parent / path
        if not path.is_file():
            console.print(f"[red]Error:[/red] File not found: {path}")
            raise typer.Exit(code=1)
        requests.append(UploadRequest(path.read_bytes(), destinations, name=path.name))

    config = _build_config(config_path, threads)

    console.print(
        Panel(
            f"Uploading [bold]{len(requests)}[/bold] files | "
            f"Concurrency: {config.threads}",
            title="Batch Upload",
        )
    )

    import asyncio

    outcomes = asyncio.run(_run_requests(requests, config))
    if _print_summary(requests, outcomes):
        raise typer.Exit(code=1)


@config_app.command("set-token")
def set_token(
    token: Annotated[
        str,
        typer.Argument(help="Bearer token to store in the system keyring"),
    ],
) -> None:
    """Store the upload bearer token in the system keyring (service: upqueue)."""
    try:
        set_auth_token(token)
    except ValueError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(code=1)
    except KeyringError as e:
        console.print(f"[red]Error:[/red] Failed to store token: {e}")
        raise typer.Exit(code=1)

    console.print(
        f"[green]✓[/green] Token stored in system keyring (service: {SERVICE_NAME})"
    )


@config_app.command("get-token")
def show_token() -> None:
    """Display the stored upload token (masked)."""
    token = keyring.get_password(SERVICE_NAME, KEY_NAME)
    if not token:
        console.print(
            "[yellow]No token found in keyring.[/yellow]\n"
            "Set it with: [bold]upqueue config set-token TOKEN[/bold]"
        )
        raise typer.Exit(code=1)

    # Mask all but first 4 characters
    if len(token) > 4:
        masked = token[:4] + "*" * (len(token) - 4)
    else:
        masked = "*" * len(token)

    console.print(f"[green]Token:[/green] {masked}")


@config_app.command("remove-token")
def remove_token() -> None:
    """Delete the stored upload token from the system keyring."""
    try:
        keyring.delete_password(SERVICE_NAME, KEY_NAME)
    except PasswordDeleteError:
        console.print("[yellow]Warning:[/yellow] No token found in keyring. Nothing to remove.")
        return

    console.print(
        f"[green]✓[/green] Token removed from system keyring (service: {SERVICE_NAME})"
    )


if __name__ == "__main__":
    app()
