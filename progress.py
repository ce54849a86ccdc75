"""Progress reporting for optimization runs."""

import time
from threading import Lock

from models import Outcome, RunSummary


class ProgressRenderer:
    """Per-file progress lines and a closing summary line.

    Workers report concurrently, so every print goes through one lock.
    """

    def __init__(self, enable: bool = True, name_width: int = 60):
        self.enable = enable
        self.name_width = name_width
        self._lock = Lock()
        self.reset(0)

    def reset(self, total: int) -> None:
        self.total = max(total, 0)
        self.ok = 0
        self.not_ok = 0
        self.start = time.time()
        self.lines = []

    def _emit(self, line: str) -> None:
        self.lines.append(line)
        if self.enable:
            print(line, flush=True)

    def begin(self, total: int) -> None:
        with self._lock:
            self.reset(total)
            self._emit(f"Optimizing {total} files:")

    def update(self, index: int, name: str, outcome: Outcome) -> None:
        with self._lock:
            if outcome.accepted:
                self.ok += 1
                status = f"OK: {outcome.message}"
            else:
                self.not_ok += 1
                status = outcome.message
            self._emit(f"\t{index})\t{name:<{self.name_width}} {status}")

    def finish(self, summary: RunSummary) -> None:
        with self._lock:
            elapsed = time.time() - self.start
            self._emit(
                f"Optimized {summary.files_optimized} of {summary.files_processed} / {summary.files_scanned}. "
                f"Save rate: {summary.save_rate:.1f}%. "
                f"Total KB {summary.total_bytes / 1024:,.0f}, "
                f"new size {summary.optimized_bytes / 1024:,.0f}, "
                f"saved {summary.saved_bytes / 1024:,.0f} "
                f"in {elapsed:.1f}s"
            )

    def error(self, message: str) -> None:
        with self._lock:
            self._emit(f"ERROR! {message}")
