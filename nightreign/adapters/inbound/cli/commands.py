"""CLI interface for the Nightreign search service."""

import json
from pathlib import Path

import typer
from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.progress import BarColumn, MofNCompleteColumn, Progress, SpinnerColumn, TextColumn
from rich.table import Table

from ....composition import SearchContainer, build_container
from ....config.logging import get_logger, setup_logging
from ....config.settings import Settings
from ....core.domain import ContentType, Document, SearchRequest
from ....core.domain.exceptions import InvalidDocumentError
from ....core.domain.utils import clean_text, truncate
from ...common.exception_handler import (
    format_exception_json,
    get_error_code,
    handle_exception,
)

app = typer.Typer(
    name="nightreign",
    help="Nightreign search - hybrid keyword and semantic search over game content",
    add_completion=False,
)

console = Console(legacy_windows=False)
cli_logger = get_logger("cli")


class IngestRecord(BaseModel):
    """One normalized content record from a JSONL export."""

    id: str | None = None
    type: ContentType
    name: str
    section: str = ""
    content: str
    tags: list[str] = Field(default_factory=list)
    source_url: str = Field("", alias="sourceUrl")
    embedding: list[float] | None = None

    model_config = ConfigDict(populate_by_name=True)

    def embedding_text(self) -> str:
        return f"{self.name} ({self.section}): {self.content}"

    def to_document(self, embedding: list[float]) -> Document:
        return Document(
            id=self.id,
            type=self.type,
            name=clean_text(self.name),
            section=clean_text(self.section),
            content=clean_text(self.content),
            tags=[clean_text(tag) for tag in self.tags],
            source_url=self.source_url,
            embedding=embedding,
        )


def get_settings() -> Settings:
    return Settings()


def get_container(settings: Settings) -> SearchContainer:
    """Build the search container for one command."""
    return build_container(settings)


def handle_cli_error(exc: Exception, debug: bool = False, command: str | None = None) -> None:
    """Handle and display errors in CLI with structured format.

    The error is always logged through the shared exception handler. In debug
    mode, the full JSON error details are printed; in normal mode, a
    user-friendly message with the error code.

    Args:
        exc: The exception to handle.
        debug: Whether to print the full structured error.
        command: Name of the failing command, attached as log context.
    """
    context = {"command": command} if command else None
    error_data = handle_exception(exc, context=context, reraise=False, log=cli_logger)

    if debug:
        console.print(
            Panel(
                json.dumps(
                    format_exception_json(exc, include_trace=True, extra_context=context),
                    indent=2,
                    default=str,
                ),
                title="[bold red]Error Details[/]",
                border_style="red",
            )
        )
        return

    error_type = error_data["error"]["type"]
    error_msg = error_data["error"]["message"]
    error_code = get_error_code(exc)
    location = error_data.get("location", {})

    console.print(f"\n[red]Error {escape(f'[{error_code}]')}:[/] {escape(error_msg)}")
    console.print(f"[dim]Type: {error_type}[/]")

    if location:
        loc_str = (
            f"{location.get('file', '?')}:{location.get('line', '?')} "
            f"in {location.get('method', '?')}"
        )
        console.print(f"[dim]Location: {loc_str}[/]")

    console.print("[dim]Set NIGHTREIGN_DEBUG=true for full details[/]")


def read_records(path: Path) -> list[IngestRecord]:
    """Parse a JSONL file of content records.

    Raises:
        InvalidDocumentError: If a line is not valid JSON or not a valid record.
    """
    records = []
    with path.open(encoding="utf-8-sig") as handle:
        for line_number, line in enumerate(handle, start=1):
            if not line.strip():
                continue
            try:
                records.append(IngestRecord.model_validate_json(line))
            except PydanticValidationError as e:
                raise InvalidDocumentError(
                    f"Invalid record on line {line_number}",
                    cause=e,
                    context={"path": str(path), "line": line_number},
                ) from e
    return records


@app.command()
def search(
    query: str = typer.Argument(..., help="Search query"),
    limit: int | None = typer.Option(
        None, "--limit", "-n", min=1, help="Number of results (defaults to the configured limit)"
    ),
    types: list[ContentType] = typer.Option(
        None, "--type", "-t", help="Restrict to a content type (repeatable)"
    ),
    rerank: bool = typer.Option(True, "--rerank/--no-rerank", help="Re-rank with the cross-encoder"),
    json_output: bool = typer.Option(False, "--json", help="Print raw JSON"),
) -> None:
    """Search the index and print ranked results."""
    settings = get_settings()
    setup_logging(settings.log_level, json_format=settings.log_json)

    container = None
    try:
        container = get_container(settings)
        container.load_index()
        with console.status("[bold green]Searching...[/]"):
            response = container.search_service.search(
                SearchRequest(text=query, types=types or None, limit=limit, rerank=rerank)
            )
    except Exception as exc:
        handle_cli_error(exc, settings.debug, command="search")
        raise typer.Exit(1)
    finally:
        if container is not None:
            container.close()

    if json_output:
        from ..api.models import SearchResponseBody

        body = SearchResponseBody.from_response(response)
        console.print_json(body.model_dump_json(by_alias=True))
        return

    if not response.results:
        console.print(f"[yellow]No results found for \"{query}\".[/]")
        return

    table = Table(title=f"Results for \"{query}\" ({response.mode.value})")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Name", style="bold")
    table.add_column("Type", style="cyan")
    table.add_column("Section")
    table.add_column("Score", justify="right", style="green")
    table.add_column("Excerpt", style="dim")

    for rank, hit in enumerate(response.results, start=1):
        table.add_row(
            str(rank),
            hit.name,
            hit.type.value,
            hit.section,
            f"{hit.score:.4f}",
            truncate(hit.content, 60),
        )

    console.print(table)
    console.print(f"[dim]{response.count} results in {response.timing.total:.0f}ms[/]")


@app.command()
def status() -> None:
    """Show the current status of the search index."""
    settings = get_settings()
    setup_logging(settings.log_level, json_format=settings.log_json)

    console.print("[bold]Nightreign Search Status[/]\n")
    console.print(f"Embedding model: {settings.embedding_model} ({settings.embedding_dimensions} dims)")
    console.print(f"Reranker model:  {settings.reranker_model}")
    console.print(f"Rerank enabled:  {settings.rerank_enabled}")
    console.print(f"Search debug:    {settings.search_debug}")

    console.print(f"\n[bold]Index ({settings.index_path}):[/]")
    container = None
    try:
        container = get_container(settings)
        loaded = container.load_index()
        count = container.index.count()
    except Exception as exc:
        handle_cli_error(exc, settings.debug, command="status")
        raise typer.Exit(1)
    finally:
        if container is not None:
            container.close()

    if loaded:
        console.print(f"  ✅ {count} indexed documents")
    elif settings.index_path.exists():
        console.print("  ❌ Snapshot could not be restored; index is empty")
    else:
        console.print("  ⚪ No snapshot found. Run 'nightreign ingest <file>' to build one.")


@app.command()
def ingest(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="JSONL file of records"),
    replace: bool = typer.Option(False, "--replace", help="Discard the existing index first"),
    batch_size: int = typer.Option(32, "--batch-size", min=1, help="Records embedded per batch"),
) -> None:
    """Index normalized content records and write the index snapshot.

    Records without an ``embedding`` are embedded with the configured model.
    """
    settings = get_settings()
    setup_logging(settings.log_level, json_format=settings.log_json)

    container = None
    try:
        records = read_records(path)
        container = get_container(settings)
        if not replace:
            container.load_index()

        documents: list[Document] = []
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            MofNCompleteColumn(),
            console=console,
        ) as progress:
            task = progress.add_task("Embedding records", total=len(records))
            for start in range(0, len(records), batch_size):
                batch = records[start : start + batch_size]
                missing = [r for r in batch if r.embedding is None]
                vectors = iter(
                    container.embedding_provider.embed_documents(
                        [r.embedding_text() for r in missing]
                    )
                    if missing
                    else []
                )
                for record in batch:
                    embedding = record.embedding if record.embedding is not None else next(vectors)
                    documents.append(record.to_document(embedding))
                progress.advance(task, len(batch))

        if replace:
            container.index.clear()
        ids = container.index.insert_batch(documents)
        saved_to = container.store.save()
        total = container.index.count()
    except Exception as exc:
        handle_cli_error(exc, settings.debug, command="ingest")
        raise typer.Exit(1)
    finally:
        if container is not None:
            container.close()

    console.print(f"[green]Indexed {len(ids)} records ({total} total) -> {saved_to}[/]")


@app.command()
def prewarm() -> None:
    """Pre-warm the embedding cache with popular queries."""
    settings = get_settings()
    setup_logging(settings.log_level, json_format=settings.log_json)

    container = None
    try:
        container = get_container(settings)
        with console.status("[bold green]Embedding popular queries...[/]"):
            result = container.prewarm()
    except Exception as exc:
        handle_cli_error(exc, settings.debug, command="prewarm")
        raise typer.Exit(1)
    finally:
        if container is not None:
            container.close()

    console.print(
        f"Pre-warmed [green]{result.success}[/] queries "
        f"([red]{result.failed}[/] failed) in {result.duration_ms:.0f}ms"
    )


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", help="Bind address"),
    port: int = typer.Option(8000, help="Bind port"),
    reload: bool = typer.Option(False, help="Reload on code changes"),
) -> None:
    """Run the HTTP search API with uvicorn."""
    import uvicorn

    uvicorn.run(
        "nightreign.adapters.inbound.api.main:app_factory",
        factory=True,
        host=host,
        port=port,
        reload=reload,
    )


def main() -> None:
    app()


if __name__ == "__main__":
    main()
