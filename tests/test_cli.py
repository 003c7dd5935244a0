"""Tests for CLI commands."""

from __future__ import annotations

import logging
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from typer.testing import CliRunner

from ragcrawler.cli import _setup_logging, app
from ragcrawler.errors import RetrievalError, StoreError
from ragcrawler.index.indexer import IndexStats
from ragcrawler.index.search import SearchResult

runner = CliRunner()


@pytest.fixture
def mock_store() -> MagicMock:
    store = MagicMock()
    store.initialize = AsyncMock()
    store.close = AsyncMock()
    store.count_files = AsyncMock(return_value=2)
    store.count_chunks = AsyncMock(return_value=17)
    return store


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("ragcrawler.config.load_dotenv", lambda: False)
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    monkeypatch.setenv("OPENAI_URL", "https://llm.example.com/v1/chat/completions")
    monkeypatch.setenv("OPENAI_MODEL", "gpt-test")


class TestSetupLogging:
    """Tests for _setup_logging helper."""

    def test_setup_logging_verbose(self) -> None:
        with patch("ragcrawler.cli.logging.basicConfig") as mock_config:
            _setup_logging(verbose=True)
            assert mock_config.call_args[1]["level"] == logging.DEBUG

    def test_setup_logging_normal(self) -> None:
        with patch("ragcrawler.cli.logging.basicConfig") as mock_config:
            _setup_logging(verbose=False)
            assert mock_config.call_args[1]["level"] == logging.INFO


class TestIndexCommand:
    """Tests for the index command."""

    def test_missing_directory(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["index", str(tmp_path / "missing")])
        assert result.exit_code != 0

    def test_no_files_found(self, tmp_path: Path) -> None:
        """Shows warning when nothing supported is found."""
        (tmp_path / "notes.txt").write_text("text")

        result = runner.invoke(app, ["index", str(tmp_path)])

        assert result.exit_code == 0
        assert "No files found" in result.stdout

    @patch("ragcrawler.cli._load_encoder")
    @patch("ragcrawler.cli.QdrantVectorStore")
    @patch("ragcrawler.cli.Indexer")
    def test_index_files(
        self,
        mock_indexer_class: MagicMock,
        mock_store_class: MagicMock,
        mock_load_encoder: MagicMock,
        mock_store: MagicMock,
        tmp_path: Path,
    ) -> None:
        """Indexes discovered files and prints a summary."""
        doc = tmp_path / "report.docx"
        doc.write_text("content")
        mock_store_class.from_url.return_value = mock_store
        mock_load_encoder.return_value.dimension = 384
        mock_indexer_class.return_value.index = AsyncMock(
            return_value=IndexStats(inserted=1, chunks_stored=4)
        )

        result = runner.invoke(
            app, ["index", str(tmp_path), "--url", "http://qdrant:6333", "--chunk-size", "500"]
        )

        assert result.exit_code == 0, result.stdout
        assert "Inserted: 1" in result.stdout
        assert "Chunks stored: 4" in result.stdout
        mock_store_class.from_url.assert_called_once()
        assert mock_store_class.from_url.call_args.args[0] == "http://qdrant:6333"
        assert mock_indexer_class.call_args.kwargs["chunk_size"] == 500
        mock_indexer_class.return_value.index.assert_awaited_once_with([doc])
        mock_store.initialize.assert_awaited_once()
        mock_store.close.assert_awaited_once()


class TestSearchCommand:
    """Tests for the search command."""

    @pytest.fixture
    def results(self) -> list[SearchResult]:
        return [SearchResult("/d/a.pdf", "a.pdf", 0, 0.87, "Alpha text")]

    @patch("ragcrawler.cli._load_encoder")
    @patch("ragcrawler.cli.CrossEncoderReranker")
    @patch("ragcrawler.cli.QdrantVectorStore")
    @patch("ragcrawler.cli.HybridSearcher")
    @patch("ragcrawler.cli.AnswerSynthesizer")
    def test_search_with_answer(
        self,
        mock_synth_class: MagicMock,
        mock_searcher_class: MagicMock,
        mock_store_class: MagicMock,
        mock_reranker_class: MagicMock,
        mock_load_encoder: MagicMock,
        mock_store: MagicMock,
        results,
    ) -> None:
        mock_store_class.from_url.return_value = mock_store
        mock_searcher_class.return_value.search = AsyncMock(return_value=results)
        mock_synth_class.return_value.generate = AsyncMock(return_value="**Alpha** is first.")
        mock_synth_class.return_value.aclose = AsyncMock()

        result = runner.invoke(app, ["search", "what is alpha", "--top-k", "3"])

        assert result.exit_code == 0, result.stdout
        assert "a.pdf" in result.stdout
        assert "Alpha is first." in result.stdout
        mock_searcher_class.return_value.search.assert_awaited_once_with("what is alpha", top_k=3)
        mock_synth_class.return_value.generate.assert_awaited_once_with("what is alpha", results)

    @patch("ragcrawler.cli._load_encoder")
    @patch("ragcrawler.cli.CrossEncoderReranker")
    @patch("ragcrawler.cli.QdrantVectorStore")
    @patch("ragcrawler.cli.HybridSearcher")
    @patch("ragcrawler.cli.AnswerSynthesizer")
    def test_no_results_skips_answer(
        self,
        mock_synth_class: MagicMock,
        mock_searcher_class: MagicMock,
        mock_store_class: MagicMock,
        mock_reranker_class: MagicMock,
        mock_load_encoder: MagicMock,
        mock_store: MagicMock,
    ) -> None:
        mock_store_class.from_url.return_value = mock_store
        mock_searcher_class.return_value.search = AsyncMock(return_value=[])

        result = runner.invoke(app, ["search", "anything"])

        assert result.exit_code == 0
        assert "No results found" in result.stdout
        mock_synth_class.assert_not_called()

    @patch("ragcrawler.cli._load_encoder")
    @patch("ragcrawler.cli.CrossEncoderReranker")
    @patch("ragcrawler.cli.QdrantVectorStore")
    @patch("ragcrawler.cli.HybridSearcher")
    def test_retrieval_error(
        self,
        mock_searcher_class: MagicMock,
        mock_store_class: MagicMock,
        mock_reranker_class: MagicMock,
        mock_load_encoder: MagicMock,
        mock_store: MagicMock,
    ) -> None:
        """Retrieval errors should exit non-zero with a message."""
        mock_store_class.from_url.return_value = mock_store
        mock_searcher_class.return_value.search = AsyncMock(
            side_effect=RetrievalError("Reranking failed: boom")
        )

        result = runner.invoke(app, ["search", "anything", "--no-answer"])

        assert result.exit_code == 1
        assert "Reranking failed" in result.stdout
        mock_store.close.assert_awaited_once()

    @patch("ragcrawler.cli._load_encoder")
    def test_missing_llm_config(self, mock_load_encoder: MagicMock, monkeypatch) -> None:
        monkeypatch.delenv("OPENAI_MODEL")

        result = runner.invoke(app, ["search", "anything"])

        assert result.exit_code != 0
        mock_load_encoder.assert_not_called()


class TestStatusCommand:
    @patch("ragcrawler.cli.QdrantVectorStore")
    def test_status(self, mock_store_class: MagicMock, mock_store: MagicMock) -> None:
        mock_store_class.from_url.return_value = mock_store

        result = runner.invoke(app, ["status"])

        assert result.exit_code == 0
        assert "Files: 2, chunks: 17" in result.stdout

    @patch("ragcrawler.cli.QdrantVectorStore")
    def test_status_store_error(self, mock_store_class: MagicMock, mock_store: MagicMock) -> None:
        mock_store.count_files = AsyncMock(side_effect=StoreError("Failed to count file records"))
        mock_store_class.from_url.return_value = mock_store

        result = runner.invoke(app, ["status", "--verbose"])

        assert result.exit_code == 1
        assert "Failed to count file records" in result.stdout
        mock_store.close.assert_awaited_once()
