"""Unit tests for the huddle-index command line."""

import json
from datetime import datetime, timezone
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest

from huddle.application.services.index_job import DEFAULT_BATCH_SIZE, IndexMode, IndexSummary
from huddle.domain.errors import UpstreamError
from huddle.indexer import main, parse_args


class TestParseArgs:
    """Test cases for parse_args function."""

    def test_defaults(self) -> None:
        args = parse_args([])

        assert args.config == Path("config.yaml")
        assert args.mode == "full"
        assert args.since is None
        assert args.batch_size == DEFAULT_BATCH_SIZE
        assert args.dry_run is False

    def test_incremental_with_since(self) -> None:
        args = parse_args(["--incremental", "--since=2024-03-19T00:00:00Z"])

        assert args.mode == IndexMode.INCREMENTAL.value
        assert args.since == datetime(2024, 3, 19, tzinfo=timezone.utc)

    def test_naive_since_treated_as_utc(self) -> None:
        args = parse_args(["--mode", "incremental", "--since", "2024-03-19T08:30:00"])

        assert args.since == datetime(2024, 3, 19, 8, 30, tzinfo=timezone.utc)

    def test_incremental_without_since_is_usage_error(
        self, capsys: pytest.CaptureFixture[str]
    ) -> None:
        with pytest.raises(SystemExit) as exc_info:
            parse_args(["--incremental"])

        assert exc_info.value.code == 2
        assert "--since is required" in capsys.readouterr().err

    @pytest.mark.parametrize("value", ["0", "-3", "ten"])
    def test_invalid_batch_size(self, value: str) -> None:
        with pytest.raises(SystemExit) as exc_info:
            parse_args([f"--batch-size={value}"])

        assert exc_info.value.code == 2

    def test_invalid_since(self) -> None:
        with pytest.raises(SystemExit):
            parse_args(["--incremental", "--since=yesterday"])


class TestMain:
    """Test cases for main function."""

    def test_prints_summary_and_exits_zero(
        self, capsys: pytest.CaptureFixture[str]
    ) -> None:
        summary = IndexSummary(
            mode=IndexMode.FULL,
            messages_processed=3,
            chunks_processed=6,
            initial_vector_count=2,
            final_vector_count=8,
            vectors_added=6,
        )

        with patch("huddle.indexer.run_index", AsyncMock(return_value=summary)):
            with pytest.raises(SystemExit) as exc_info:
                main(["--batch-size=50"])

        assert exc_info.value.code == 0
        payload = json.loads(capsys.readouterr().out)
        assert payload["messagesProcessed"] == 3
        assert payload["vectorsAdded"] == 6

    def test_missing_config_exits_one(self, capsys: pytest.CaptureFixture[str]) -> None:
        with pytest.raises(SystemExit) as exc_info:
            main(["-c", "nonexistent.yaml"])

        assert exc_info.value.code == 1
        assert "nonexistent.yaml not found" in capsys.readouterr().err

    def test_upstream_error_exits_one(self, capsys: pytest.CaptureFixture[str]) -> None:
        failure = AsyncMock(side_effect=UpstreamError("Embedding failed", "rate limited"))

        with patch("huddle.indexer.run_index", failure):
            with pytest.raises(SystemExit) as exc_info:
                main([])

        assert exc_info.value.code == 1
        assert "Embedding failed: rate limited" in capsys.readouterr().err

    def test_unexpected_error_exits_one(self, capsys: pytest.CaptureFixture[str]) -> None:
        with patch("huddle.indexer.run_index", AsyncMock(side_effect=RuntimeError("disk"))):
            with pytest.raises(SystemExit) as exc_info:
                main([])

        assert exc_info.value.code == 1
        assert "Index run failed: disk" in capsys.readouterr().err

    def test_usage_error_does_not_load_config(self) -> None:
        with patch("huddle.indexer.run_index") as run_index:
            with pytest.raises(SystemExit) as exc_info:
                main(["--incremental"])

        assert exc_info.value.code == 2
        run_index.assert_not_called()
