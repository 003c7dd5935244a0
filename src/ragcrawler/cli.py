"""Command line interface for ragcrawler."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.markdown import Markdown
from rich.table import Table

from ragcrawler.answer.synthesizer import AnswerSynthesizer
from ragcrawler.config import AppConfig, LLMConfig
from ragcrawler.embedding.encoder import (
    DenseEmbeddingModel,
    DualEncoder,
    EmbeddingConfig,
    SparseEmbeddingModel,
)
from ragcrawler.embedding.reranker import CrossEncoderReranker
from ragcrawler.errors import RagCrawlerError
from ragcrawler.index.indexer import Indexer
from ragcrawler.index.search import HybridSearcher, SearchResult
from ragcrawler.index.storage import QdrantVectorStore
from ragcrawler.utils.files import iter_document_paths

console = Console()
app = typer.Typer(help="ragcrawler - hybrid retrieval-augmented search over office documents")


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="[%(levelname)s] %(message)s")


def _load_encoder(config: AppConfig) -> DualEncoder:
    dense = DenseEmbeddingModel(EmbeddingConfig(model_name=config.dense_model))
    sparse = SparseEmbeddingModel(EmbeddingConfig(model_name=config.sparse_model))
    return DualEncoder(dense, sparse)


async def _open_store(config: AppConfig, dimension: int) -> QdrantVectorStore:
    store = QdrantVectorStore.from_url(
        config.qdrant_url,
        dimension=dimension,
        files_collection=config.files_collection,
        chunks_collection=config.chunks_collection,
    )
    await store.initialize()
    return store


def _files_table(paths: List[Path]) -> Table:
    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("File")
    table.add_column("Size")
    table.add_column("Modified")
    for path in paths:
        stat = path.stat()
        table.add_row(
            path.name,
            f"{stat.st_size // 1024} KB",
            datetime.fromtimestamp(stat.st_mtime).strftime("%Y-%m-%d"),
        )
    return table


def _results_table(results: List[SearchResult]) -> Table:
    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Score")
    table.add_column("File")
    table.add_column("Chunk")
    table.add_column("Snippet")
    for result in results:
        table.add_row(
            f"{result.score:.4f}", result.name or result.path, str(result.chunk_index), result.text[:180]
        )
    return table


@app.command()
def index(
    directory: Path = typer.Argument(Path("data"), help="Directory to crawl."),
    since: Optional[int] = typer.Option(
        None, "--since", "-s", help="Only files modified since this Unix timestamp"
    ),
    chunk_size: int = typer.Option(AppConfig().chunk_size, help="Chunk size in characters"),
    url: Optional[str] = typer.Option(None, "--url", help="Qdrant URL"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    """Convert, chunk, embed and store every supported document under DIRECTORY."""
    _setup_logging(verbose)
    if not directory.is_dir():
        raise typer.BadParameter(f"'{directory}' is not a directory")

    config = AppConfig.from_env(qdrant_url=url, chunk_size=chunk_size)
    paths = list(iter_document_paths([directory], since=since))
    if not paths:
        console.print("[yellow]No files found to process.[/yellow]")
        return

    console.print(f"Found [bold]{len(paths)}[/bold] files to process")
    console.print(_files_table(paths))

    encoder = _load_encoder(config)

    async def run():
        store = await _open_store(config, encoder.dimension)
        try:
            return await Indexer(encoder, store, chunk_size=config.chunk_size).index(paths)
        finally:
            await store.close()

    try:
        stats = asyncio.run(run())
    except RagCrawlerError as exc:
        console.print(f"[red]Indexing failed: {exc}[/red]")
        raise typer.Exit(code=1) from exc

    console.print(
        f"Inserted: {stats.inserted}, updated: {stats.updated}, "
        f"skipped: {stats.skipped}, failed: {stats.failed}"
    )
    console.print(f"Chunks stored: {stats.chunks_stored}, chunk failures: {stats.chunks_failed}")


@app.command()
def search(
    query: str = typer.Argument(..., help="Query text"),
    top_k: int = typer.Option(AppConfig().top_k, help="Number of results to keep after reranking"),
    no_answer: bool = typer.Option(False, "--no-answer", help="Only list results, skip the LLM"),
    url: Optional[str] = typer.Option(None, "--url", help="Qdrant URL"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    """Run a hybrid search and answer the query from the retrieved chunks."""
    _setup_logging(verbose)
    config = AppConfig.from_env(qdrant_url=url, top_k=top_k)
    try:
        llm_config = None if no_answer else LLMConfig.from_env()
    except RagCrawlerError as exc:
        raise typer.BadParameter(str(exc)) from exc

    encoder = _load_encoder(config)
    reranker = CrossEncoderReranker(config.reranker_model)

    async def run():
        store = await _open_store(config, encoder.dimension)
        try:
            searcher = HybridSearcher(
                encoder,
                store,
                reranker,
                prefetch_k=config.prefetch_k,
                fusion_k=config.fusion_k,
                rank_constant=config.rrf_k,
            )
            results = await searcher.search(query, top_k=config.top_k)
        finally:
            await store.close()

        if not results or llm_config is None:
            return results, None
        synthesizer = AnswerSynthesizer(llm_config)
        try:
            return results, await synthesizer.generate(query, results)
        finally:
            await synthesizer.aclose()

    try:
        results, answer = asyncio.run(run())
    except RagCrawlerError as exc:
        console.print(f"[red]Search failed: {exc}[/red]")
        raise typer.Exit(code=1) from exc

    if not results:
        console.print("[yellow]No results found.[/yellow]")
        return

    console.print(f"Found {len(results)} results")
    console.print(_results_table(results))
    if answer is not None:
        console.rule("AI Response")
        console.print(Markdown(answer))


@app.command()
def status(
    url: Optional[str] = typer.Option(None, "--url", help="Qdrant URL"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    """Show how many files and chunks are stored."""
    _setup_logging(verbose)
    config = AppConfig.from_env(qdrant_url=url)

    async def run():
        store = QdrantVectorStore.from_url(
            config.qdrant_url,
            dimension=1,
            files_collection=config.files_collection,
            chunks_collection=config.chunks_collection,
        )
        try:
            return await store.count_files(), await store.count_chunks()
        finally:
            await store.close()

    try:
        files, chunks = asyncio.run(run())
    except RagCrawlerError as exc:
        console.print(f"[red]Could not read the store: {exc}[/red]")
        raise typer.Exit(code=1) from exc
    console.print(f"Files: {files}, chunks: {chunks}")
