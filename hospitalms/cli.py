"""Command Line Interface for the hospital management tools.

    hospitalms import-csv patients data/patients.csv
    hospitalms import-csv prescriptions rx.csv --doctor-id DOC001
    hospitalms serve --port 5000

``import-csv`` fetches the existing collections from the API, validates the
file against them, shows the result and uploads the valid rows in chunks.
"""

import logging
from pathlib import Path
from typing import Optional

import httpx
import typer
from rich.console import Console
from rich.table import Table

from hospitalms.adapters.http import ChunkedUploader, ChunkFailure, HospitalAPIClient
from hospitalms.domain.enums import EntityKind, UploadPolicy
from hospitalms.domain.import_result import ImportOutcome
from hospitalms.domain.ports import BulkUploadError, CSVImportError, StorageError
from hospitalms.domain.store import HospitalStore
from hospitalms.importer import ImportRun, default_policy
from hospitalms.infrastructure.logging_config import setup_logging
from hospitalms.infrastructure.settings import Settings

app = typer.Typer(
    name="hospitalms",
    help="Hospital management: CSV bulk import and document API",
    add_completion=False,
)
console = Console()
logger = logging.getLogger(__name__)

# Row errors shown on screen; the full list goes to --errors-out
MAX_ERRORS_SHOWN = 50


def build_http_client(api_url: str, timeout: float) -> httpx.Client:
    return httpx.Client(base_url=api_url, timeout=timeout)


def print_summary(outcome: ImportOutcome) -> None:
    table = Table(title=f"{outcome.kind.value.capitalize()} import", show_header=True)
    table.add_column("Total", justify="right")
    table.add_column("Valid", justify="right", style="green")
    table.add_column("Invalid", justify="right", style="red")
    table.add_row(str(outcome.summary.total), str(outcome.summary.valid), str(outcome.summary.invalid))
    console.print(table)

    if outcome.errors:
        errors = Table(title="Row errors", show_header=True)
        errors.add_column("Row", justify="right")
        errors.add_column("Message")
        for error in outcome.errors[:MAX_ERRORS_SHOWN]:
            errors.add_row(str(error.row), error.message)
        console.print(errors)
        if len(outcome.errors) > MAX_ERRORS_SHOWN:
            console.print(f"[dim]... {len(outcome.errors) - MAX_ERRORS_SHOWN} more (use --errors-out)[/dim]")


def report_chunk_failure(failure: ChunkFailure) -> None:
    console.print(f"[yellow]⚠[/yellow] Chunk {failure.index + 1} ({failure.size} records) failed: {failure.message}")


@app.command("import-csv")
def import_csv(
    kind: EntityKind = typer.Argument(..., help="Collection to import: patients, visits or prescriptions"),
    csv_file: Path = typer.Argument(..., help="CSV file to import"),
    api_url: Optional[str] = typer.Option(None, "--api-url", help="API base URL (default: HMS_API_URL)"),
    doctor_id: Optional[str] = typer.Option(None, "--doctor-id", help="Issuing doctor for a prescription import"),
    policy: Optional[UploadPolicy] = typer.Option(None, "--policy", help="stop or continue when a chunk fails"),
    chunk_size: Optional[int] = typer.Option(None, "--chunk-size", min=1, help="Records per bulk request"),
    check_file_duplicates: bool = typer.Option(False, "--check-file-duplicates", help="Reject ids repeated within the file"),
    errors_out: Optional[Path] = typer.Option(None, "--errors-out", help="Write row errors to this CSV file"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Validate only, do not upload"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
) -> None:
    """Validate a CSV file and bulk-upload its valid rows."""
    settings = Settings()
    setup_logging(use_json=settings.json_logs, log_level="DEBUG" if verbose else settings.log_level)

    base_url = (api_url or settings.api_url).rstrip("/")
    upload_policy = policy or default_policy(kind)

    console.print(f"\n[bold blue]{settings.app_name} CSV import[/bold blue]")
    console.print(f"[dim]File:[/dim] {csv_file}")
    console.print(f"[dim]API:[/dim] {base_url}")
    console.print(f"[dim]Policy:[/dim] {upload_policy.value}\n")

    with build_http_client(base_url, settings.upload_timeout) as client:
        store = HospitalStore()
        try:
            with console.status("[bold green]Fetching existing records..."):
                HospitalAPIClient(client).load_store(store)
        except StorageError as e:
            console.print(f"[red]✗[/red] {e}")
            raise typer.Exit(code=1)

        uploader = ChunkedUploader(
            client,
            policy=upload_policy,
            chunk_size=chunk_size or settings.upload_chunk_size,
            on_failure=report_chunk_failure,
        )
        run = ImportRun(
            kind,
            store,
            uploader,
            doctor_id=doctor_id,
            check_file_duplicates=check_file_duplicates,
        )

        try:
            outcome = run.parse_file(str(csv_file))
        except CSVImportError as e:
            console.print(f"[red]✗[/red] {e}")
            raise typer.Exit(code=1)

        print_summary(outcome)
        if errors_out and outcome.errors:
            written = outcome.write_errors_csv(str(errors_out))
            console.print(f"[dim]Wrote {written} row errors to {errors_out}[/dim]")

        if dry_run:
            console.print("\n[dim]Dry run: nothing uploaded[/dim]")
            return
        if not outcome.has_valid():
            console.print("\n[yellow]⚠[/yellow] No valid records to upload")
            return

        try:
            with console.status(f"[bold green]Uploading {outcome.summary.valid} records..."):
                saved = run.upload()
        except BulkUploadError as e:
            console.print(f"\n[red]✗[/red] Upload failed: {e}")
            console.print(f"[dim]{e.saved_before_failure} records were saved before the failure[/dim]")
            raise typer.Exit(code=1)

    if run.report and run.report.failures:
        console.print(
            f"\n[yellow]⚠[/yellow] Saved {saved} records; {len(run.report.failures)} chunk(s) failed"
        )
    else:
        console.print(f"\n[green]✓[/green] Successfully imported {saved} {kind.value}")


@app.command()
def serve(
    host: str = typer.Option("0.0.0.0", "--host", help="Bind address"),
    port: Optional[int] = typer.Option(None, "--port", help="Port (default: HMS_PORT)"),
    reload: bool = typer.Option(False, "--reload", help="Reload on code changes"),
) -> None:
    """Run the document API under uvicorn."""
    import uvicorn

    settings = Settings()
    uvicorn.run(
        "hospitalms.api.main:app",
        host=host,
        port=port or settings.port,
        reload=reload,
        log_level=settings.log_level.lower(),
    )


def main() -> None:
    app()


if __name__ == "__main__":
    main()
