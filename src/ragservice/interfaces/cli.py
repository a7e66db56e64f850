"""Command-line interface for the retrieval service.

Commands:
- search: Query a knowledge base
- add: Add a text or a file to a knowledge base
- status: Show knowledge bases and service metrics
- remove-kb: Delete a knowledge base
- info: Show configuration
"""

import asyncio
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from ragservice.config.loader import get_default_config_path, load_config
from ragservice.config.schema import AppConfig
from ragservice.entities import RAGDocument
from ragservice.index import VectorIndexError
from ragservice.observability.logging import configure_from_config, get_logger
from ragservice.providers import ProviderError
from ragservice.service import RAGService

app = typer.Typer(
    name="ragservice",
    help="Knowledge base vector search service",
    add_completion=False,
)

console = Console()
logger = get_logger(__name__)


async def _open_service(config: AppConfig) -> RAGService:
    """Create and initialize a service for one CLI command."""
    service = RAGService(config)
    try:
        await service.initialize()
    except (ProviderError, VectorIndexError, ValueError) as e:
        console.print(f"[red]Error initializing service: {str(e)}[/red]")
        raise typer.Exit(1)
    return service


@app.command()
def search(
    query: str = typer.Argument(..., help="Search query"),
    knowledge_base: str = typer.Option(..., "--kb", "-b", help="Knowledge base name"),
    top_k: int = typer.Option(10, "--top-k", "-k", help="Number of results"),
    threshold: float = typer.Option(0.0, "--threshold", "-t", help="Minimum similarity score"),
    config_file: Optional[Path] = typer.Option(None, "--config", "-c", help="Config file path"),
):
    """Search a knowledge base."""
    asyncio.run(_search_async(query, knowledge_base, top_k, threshold, config_file))


async def _search_async(
    query: str,
    knowledge_base: str,
    top_k: int,
    threshold: float,
    config_file: Optional[Path],
):
    """Async implementation of search command."""
    config = _load_config(config_file)
    service = await _open_service(config)

    try:
        results = await service.search(
            query, knowledge_base, k=top_k, similarity_threshold=threshold
        )

        if not results:
            console.print("[yellow]No results found[/yellow]")
            return

        console.print(f"\n[green]Found {len(results)} result(s) in '{knowledge_base}':[/green]\n")
        for i, result in enumerate(results, 1):
            console.print(f"[bold cyan]{i}. Score: {result.score:.4f}[/bold cyan]  [dim]{result.id}[/dim]")
            source = result.metadata.get("source")
            if source:
                console.print(f"   Source: {source}")
            console.print(f"   {result.content[:200]}")
            console.print()

    except (ProviderError, VectorIndexError) as e:
        console.print(f"[red]Search error: {str(e)}[/red]")
        logger.error("search_error", error=str(e))
        raise typer.Exit(1)

    finally:
        await service.shutdown()


@app.command()
def add(
    content: str = typer.Argument(..., help="Text to add, or path to a text file"),
    knowledge_base: str = typer.Option(..., "--kb", "-b", help="Knowledge base name"),
    doc_id: Optional[str] = typer.Option(None, "--id", help="Document id (default: doc-<ordinal>)"),
    source: Optional[str] = typer.Option(None, "--source", "-s", help="Source label"),
    config_file: Optional[Path] = typer.Option(None, "--config", "-c", help="Config file path"),
):
    """Add a document to a knowledge base."""
    asyncio.run(_add_async(content, knowledge_base, doc_id, source, config_file))


async def _add_async(
    content: str,
    knowledge_base: str,
    doc_id: Optional[str],
    source: Optional[str],
    config_file: Optional[Path],
):
    """Async implementation of add command."""
    path = Path(content)
    if path.is_file():
        text = path.read_text(encoding="utf-8")
        source = source or str(path)
    else:
        text = content

    try:
        document = RAGDocument(
            id=doc_id,
            content=text,
            knowledge_base=knowledge_base,
            metadata={"source": source} if source else None,
        )
    except ValueError as e:
        console.print(f"[red]Invalid document: {str(e)}[/red]")
        raise typer.Exit(1)

    config = _load_config(config_file)
    service = await _open_service(config)

    try:
        chunks = await service.add_document(document)
        for chunk in chunks:
            console.print(f"[green]✓ Added '{chunk.id}' to '{knowledge_base}'[/green]")

    except (ProviderError, VectorIndexError) as e:
        console.print(f"[red]Add error: {str(e)}[/red]")
        logger.error("add_error", error=str(e))
        raise typer.Exit(1)

    finally:
        await service.shutdown()


@app.command()
def status(
    config_file: Optional[Path] = typer.Option(None, "--config", "-c", help="Config file path"),
):
    """Show knowledge bases and service metrics."""
    asyncio.run(_status_async(config_file))


async def _status_async(config_file: Optional[Path]):
    """Async implementation of status command."""
    config = _load_config(config_file)
    service = await _open_service(config)

    try:
        for name in await service.list_knowledge_bases():
            try:
                await service.registry.get_or_load(name)
            except VectorIndexError as e:
                console.print(f"[red]Cannot load '{name}': {str(e)}[/red]")

        service_status = await service.get_status()

        if not service_status.knowledge_bases:
            console.print(f"[yellow]No knowledge bases in {config.work_dir}[/yellow]")
            return

        table = Table(title=f"Knowledge Bases ({service_status.status})")
        table.add_column("Name", style="cyan")
        table.add_column("Documents", justify="right", style="green")
        table.add_column("Capacity", justify="right")
        table.add_column("Last Update", style="dim")

        for kb in service_status.knowledge_bases:
            last_update = kb.last_update.strftime("%Y-%m-%d %H:%M:%S") if kb.last_update else "-"
            table.add_row(kb.name, str(kb.document_count), str(kb.capacity), last_update)

        console.print(table)

    finally:
        await service.shutdown()


@app.command("remove-kb")
def remove_kb(
    name: str = typer.Argument(..., help="Knowledge base name"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
    config_file: Optional[Path] = typer.Option(None, "--config", "-c", help="Config file path"),
):
    """Delete a knowledge base and its files."""
    asyncio.run(_remove_kb_async(name, yes, config_file))


async def _remove_kb_async(name: str, yes: bool, config_file: Optional[Path]):
    """Async implementation of remove-kb command."""
    if not yes and not typer.confirm(f"Delete knowledge base '{name}' and its files?"):
        console.print("[yellow]Cancelled[/yellow]")
        return

    config = _load_config(config_file)
    service = await _open_service(config)

    try:
        removed = await service.remove_knowledge_base(name)
        if removed:
            console.print(f"[green]✓ Knowledge base '{name}' removed[/green]")
        else:
            console.print(f"[yellow]Knowledge base '{name}' not found[/yellow]")

    finally:
        await service.shutdown()


@app.command()
def info(
    config_file: Optional[Path] = typer.Option(None, "--config", "-c", help="Config file path"),
):
    """Show configuration."""
    config = _load_config(config_file)

    table = Table(title="RAG Service Configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Work Directory", str(config.work_dir))
    table.add_row("Embedding Provider", config.vectorizer.provider.value)
    table.add_row("Embedding URL", config.vectorizer.api_url or "-")
    table.add_row("Embedding Model", config.vectorizer.model)
    table.add_row("Dimensions", str(config.dimensions))
    table.add_row("Index Backend", config.index.backend.value)
    table.add_row("ef_search", str(config.ef_search))
    table.add_row("Cache Size", str(config.cache_size))
    table.add_row("Cache TTL (ms)", str(config.cache_ttl))
    table.add_row("Log Level", "DEBUG" if config.debug else config.logging.level.value)

    console.print(table)


def _load_config(config_file: Optional[Path]) -> AppConfig:
    """Load configuration and setup logging."""
    if config_file is None:
        config_file = get_default_config_path()

    config = load_config(config_file)
    configure_from_config(config.logging, debug=config.debug)

    return config


if __name__ == "__main__":
    app()
