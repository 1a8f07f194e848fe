from __future__ import annotations

from unittest.mock import Mock, patch

from reportsheets.services.progress import ReparseProgress, is_tty_enabled


def test_is_tty_enabled_returns_stdout_isatty():
    with patch('sys.stdout.isatty', return_value=True):
        assert is_tty_enabled() is True

    with patch('sys.stdout.isatty', return_value=False):
        assert is_tty_enabled() is False


class TestReparseProgress:
    """Per-file bar and outcome tally used by reparse-all."""

    def test_bar_created_on_tty(self):
        with patch('reportsheets.services.progress.is_tty_enabled', return_value=True), \
             patch('reportsheets.services.progress.tqdm') as mock_tqdm:
            progress = ReparseProgress(5, description="Re-parsing")

        assert progress.bar is mock_tqdm.return_value
        mock_tqdm.assert_called_once_with(
            total=5,
            desc="Re-parsing",
            unit="file",
            leave=True,
            ncols=80,
            ascii=True,
        )

    def test_no_bar_off_tty(self):
        with patch('reportsheets.services.progress.is_tty_enabled', return_value=False), \
             patch('reportsheets.services.progress.tqdm') as mock_tqdm:
            progress = ReparseProgress(5)

        assert progress.bar is None
        mock_tqdm.assert_not_called()

    def test_tally_without_bar(self):
        with patch('reportsheets.services.progress.is_tty_enabled', return_value=False):
            with ReparseProgress(3) as progress:
                progress.start_file("a.xlsx")
                progress.finish_file(True, 10)
                progress.start_file("b.xlsx")
                progress.finish_file(False, 99)
                progress.start_file("c.csv")
                progress.finish_file(True, 2)

        assert (progress.completed, progress.failed, progress.rows) == (2, 1, 12)
        assert progress.done == 3

    def test_file_cycle_updates_bar(self):
        bar = Mock()
        with patch('reportsheets.services.progress.is_tty_enabled', return_value=True), \
             patch('reportsheets.services.progress.tqdm', return_value=bar):
            progress = ReparseProgress(2)
            progress.start_file("資金日報.xlsx")
            progress.finish_file(True, 12)

        bar.set_description.assert_any_call("Re-parsing files (資金日報.xlsx)")
        bar.set_description.assert_called_with("Re-parsing files")
        bar.set_postfix.assert_called_once_with(completed=1, failed=0, rows=12)
        bar.update.assert_called_once_with(1)

    def test_context_manager_closes_once(self):
        bar = Mock()
        with patch('reportsheets.services.progress.is_tty_enabled', return_value=True), \
             patch('reportsheets.services.progress.tqdm', return_value=bar):
            with ReparseProgress(1) as progress:
                progress.start_file("a.xlsx")
            progress.close()

        bar.close.assert_called_once()
        assert progress.bar is None
