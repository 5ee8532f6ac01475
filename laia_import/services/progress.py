from __future__ import annotations

import logging
import sys
from typing import Any

from tqdm import tqdm
from tqdm.std import tqdm as TqdmType

from ..models.import_result import ImportProgress

"""Progress display for the commit phase.

ProgressTracker is a plain progress observer: pass it (or its ``update``
method) as the committer's ``on_progress`` callback. A single tqdm bar is
drawn only when stdout is a TTY; in CI/non-TTY runs it falls back to a DEBUG
log line per event so the output is not flooded with control sequences.
"""

__all__ = [
    "ProgressTracker",
    "ProgressRecorder",
    "is_tty_enabled",
]

logger = logging.getLogger(__name__)


def is_tty_enabled() -> bool:
    """Check if TTY output is enabled.

    Returns:
        True if stdout is a TTY and progress should be displayed, False otherwise
    """
    return sys.stdout.isatty()


class ProgressTracker:
    """Row progress bar driven by ImportProgress events."""

    def __init__(self, total_rows: int, *, description: str = "Importing rows") -> None:
        self.total_rows = total_rows
        self.description = description
        self.current_row = 0
        self.last_message = ""

        # Create tqdm instance only if TTY is enabled
        self.enabled = is_tty_enabled()
        self.pbar: TqdmType[Any] | None
        if self.enabled:
            self.pbar = tqdm(
                total=total_rows,
                desc=description,
                unit="row",
                disable=False,
                leave=True,
                position=0,
                ncols=80,
                ascii=True,
            )
        else:
            self.pbar = None

    def update(self, progress: ImportProgress) -> None:
        """Advance the bar to ``progress.current`` and show its message."""
        step = max(progress.current - self.current_row, 0)
        self.current_row = max(self.current_row, progress.current)
        self.last_message = progress.message

        if self.enabled and self.pbar is not None:
            if progress.total != self.pbar.total:
                self.pbar.total = progress.total
            if step:
                self.pbar.update(step)
            self.pbar.set_postfix_str(progress.message)
        else:
            logger.debug("progress %d/%d %s", progress.current, progress.total, progress.message)

    __call__ = update

    def close(self) -> None:
        """Close the progress bar."""
        if self.enabled and self.pbar is not None:
            self.pbar.close()
            self.pbar = None

    def __enter__(self) -> ProgressTracker:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()


class ProgressRecorder:
    """Keeps every ImportProgress it receives; the session exposes the latest one."""

    def __init__(self) -> None:
        self.events: list[ImportProgress] = []

    def __call__(self, progress: ImportProgress) -> None:
        self.events.append(progress)

    @property
    def latest(self) -> ImportProgress | None:
        return self.events[-1] if self.events else None

    def clear(self) -> None:
        self.events.clear()
