from __future__ import annotations

from unittest.mock import Mock, patch

from laia_import.models import ImportProgress
from laia_import.services.progress import ProgressRecorder, ProgressTracker, is_tty_enabled


def test_is_tty_enabled_returns_stdout_isatty():
    """Test that is_tty_enabled returns sys.stdout.isatty()."""
    with patch('sys.stdout.isatty', return_value=True):
        assert is_tty_enabled() is True

    with patch('sys.stdout.isatty', return_value=False):
        assert is_tty_enabled() is False


class TestProgressTracker:
    """Test cases for ProgressTracker class."""

    def test_init_with_tty_enabled(self):
        with patch('laia_import.services.progress.is_tty_enabled', return_value=True), \
             patch('laia_import.services.progress.tqdm') as mock_tqdm:

            tracker = ProgressTracker(5, description="Rows")

            assert tracker.total_rows == 5
            assert tracker.current_row == 0
            assert tracker.enabled is True
            mock_tqdm.assert_called_once_with(
                total=5,
                desc="Rows",
                unit="row",
                disable=False,
                leave=True,
                position=0,
                ncols=80,
                ascii=True,
            )

    def test_init_with_tty_disabled(self):
        with patch('laia_import.services.progress.is_tty_enabled', return_value=False):
            tracker = ProgressTracker(5)
            assert tracker.enabled is False
            assert tracker.pbar is None

    def test_update_advances_by_delta(self):
        mock_pbar = Mock()
        mock_pbar.total = 3
        with patch('laia_import.services.progress.is_tty_enabled', return_value=True), \
             patch('laia_import.services.progress.tqdm', return_value=mock_pbar):
            tracker = ProgressTracker(3)
            tracker(ImportProgress(0, 3, "Creating 1 sector(s)..."))
            tracker(ImportProgress(1, 3, "Importing row 2..."))
            tracker(ImportProgress(3, 3, "Importing row 4..."))

        assert [c.args[0] for c in mock_pbar.update.call_args_list] == [1, 2]
        mock_pbar.set_postfix_str.assert_called_with("Importing row 4...")
        assert tracker.current_row == 3
        assert tracker.last_message == "Importing row 4..."

    def test_update_without_tty_only_tracks_state(self):
        with patch('laia_import.services.progress.is_tty_enabled', return_value=False):
            tracker = ProgressTracker(2)
            tracker.update(ImportProgress(1, 2, "Importing row 3..."))
        assert tracker.current_row == 1

    def test_context_manager_closes_bar(self):
        mock_pbar = Mock()
        with patch('laia_import.services.progress.is_tty_enabled', return_value=True), \
             patch('laia_import.services.progress.tqdm', return_value=mock_pbar):
            with ProgressTracker(1) as tracker:
                pass
        mock_pbar.close.assert_called_once()
        assert tracker.pbar is None


def test_progress_recorder_keeps_latest():
    recorder = ProgressRecorder()
    assert recorder.latest is None
    recorder(ImportProgress(1, 4))
    recorder(ImportProgress(2, 4))
    assert recorder.latest.percent == 50.0
    recorder.clear()
    assert recorder.events == []


def test_percent_with_zero_total():
    assert ImportProgress(0, 0).percent == 0.0
