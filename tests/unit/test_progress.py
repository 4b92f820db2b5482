from __future__ import annotations

from unittest.mock import MagicMock, patch

from student_mover.services.progress import ProgressTracker


def test_disabled_without_tty():
    with patch("student_mover.services.progress.is_tty_enabled", return_value=False):
        tracker = ProgressTracker(3, description="Analyzing bands", unit="band")
    assert tracker.enabled is False
    assert tracker.pbar is None
    tracker.start_item("WS")
    tracker.advance()
    tracker.set_postfix(moves=1)
    tracker.close()
    assert tracker.current == 1


def test_tqdm_used_on_tty():
    bar = MagicMock()
    with patch("student_mover.services.progress.is_tty_enabled", return_value=True), \
         patch("student_mover.services.progress.tqdm", return_value=bar) as mock_tqdm:
        with ProgressTracker(2, description="Moving students", unit="student") as tracker:
            tracker.start_item("Alice")
            tracker.advance()
            tracker.set_postfix(moves=1)

    kwargs = mock_tqdm.call_args.kwargs
    assert kwargs["total"] == 2
    assert kwargs["unit"] == "student"
    bar.set_description.assert_any_call("Moving students (Alice)")
    bar.update.assert_called_once_with(1)
    bar.set_postfix.assert_called_once_with(moves=1)
    bar.close.assert_called_once()
