"""
Unit tests for the command line entry point
"""

from datetime import date
from unittest.mock import AsyncMock, patch

import pytest

from ingestion.backfill import BackfillMode
from ingestion.cli import backfill_mode, build_parser, exit_code, main
from models.base import JobStatus


def parse(*argv):
    return build_parser().parse_args(list(argv))


class TestArguments:
    def test_defaults_select_daily_run(self):
        args = parse()

        assert backfill_mode(args) is None
        assert args.start_date is None
        assert args.threads >= 1

    def test_backfill_range(self):
        args = parse("--backfill", "--start-date", "2024-01-01", "--end-date", "2024-01-31", "--threads", "8")

        assert backfill_mode(args) is BackfillMode.FULL
        assert args.start_date == date(2024, 1, 1)
        assert args.end_date == date(2024, 1, 31)
        assert args.threads == 8

    @pytest.mark.parametrize("flag, mode", [
        ("--resume", BackfillMode.RESUME),
        ("--gap-fill", BackfillMode.GAP_FILL),
        ("--retry-failed", BackfillMode.RETRY_FAILED),
    ])
    def test_mode_flags_imply_backfill(self, flag, mode):
        assert backfill_mode(parse(flag)) is mode
        assert backfill_mode(parse("--backfill", flag)) is mode

    def test_modes_are_mutually_exclusive(self):
        with pytest.raises(SystemExit):
            parse("--resume", "--gap-fill")

    def test_invalid_date_is_rejected(self):
        with pytest.raises(SystemExit):
            parse("--backfill", "--start-date", "01/02/2024")


@pytest.mark.parametrize("status, code", [
    (JobStatus.IDLE, 0),
    (JobStatus.PARTIAL, 0),
    (JobStatus.FAILED, 1),
    ("failed", 1),
])
def test_exit_code(status, code):
    assert exit_code(status) == code


class TestMain:
    def test_start_after_end_is_rejected(self):
        with pytest.raises(SystemExit):
            main(["--backfill", "--start-date", "2024-02-01", "--end-date", "2024-01-01"])

    def test_daily_run_dispatch(self):
        with patch("ingestion.cli.setup_logging"), \
                patch("ingestion.cli.run_daily", new=AsyncMock(return_value=1)) as run_daily:
            assert main([]) == 1
        run_daily.assert_awaited_once()

    def test_backfill_dispatch(self):
        with patch("ingestion.cli.setup_logging"), \
                patch("ingestion.cli.run_backfill", new=AsyncMock(return_value=0)) as run_backfill:
            assert main(["--gap-fill", "--start-date", "2024-01-01", "--threads", "3"]) == 0
        run_backfill.assert_awaited_once_with(BackfillMode.GAP_FILL, date(2024, 1, 1), None, 3)
