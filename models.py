"""Data models for image optimization."""

import traceback
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from threading import Lock
from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

from config import DEFAULT_JPEG_QUALITIES, TEMP_SUFFIX


class FileKind(str, Enum):
    LOSSY = "lossy"
    LOSSLESS = "lossless"
    UNSUPPORTED = "unsupported"


class OutcomeStatus(str, Enum):
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    FAILED = "failed"


class OutcomeKind(str, Enum):
    OPTIMIZED = "optimized"
    CLASSIFICATION_SKIP = "classification_skip"
    SIZE_GATE = "size_gate"
    SIMILARITY_GATE = "similarity_gate"
    TOOL_MISSING = "tool_missing"
    SOURCE_MISSING = "source_missing"
    INVALID_PATHS = "invalid_paths"
    TARGET_MISSING = "target_missing"
    TOOL_TIMEOUT = "tool_timeout"
    TRANSIENT_LOCK = "transient_lock"
    DECODE_ERROR = "decode_error"
    ENCODE_ERROR = "encode_error"
    UNEXPECTED = "unexpected"


class OptimizationPolicy(BaseModel):
    """Process-wide optimization settings, read-only once built."""

    model_config = ConfigDict(frozen=True)

    minimum_similarity: float = Field(default=96.0, ge=0, le=100)
    comparison_width: int = Field(default=500, gt=0)
    min_compression_bytes: int = Field(default=2048, ge=0)
    jpeg_qualities: Tuple[int, ...] = tuple(DEFAULT_JPEG_QUALITIES)
    worker_concurrency: int = Field(default=8, gt=0)
    tool_timeout_seconds: int = Field(default=45, gt=0)
    optimizer_path: Optional[Path] = None

    @field_validator("jpeg_qualities", mode="before")
    @classmethod
    def _default_when_empty(cls, value):
        if value is None or len(value) == 0:
            return tuple(DEFAULT_JPEG_QUALITIES)
        return value

    @field_validator("jpeg_qualities")
    @classmethod
    def _sorted_unique(cls, value: Tuple[int, ...]) -> Tuple[int, ...]:
        for quality in value:
            if not 1 <= quality <= 100:
                raise ValueError(f"JPEG quality must be within 1-100, got {quality}")
        # Ascending: the search must try the most compressed encoding first.
        return tuple(sorted(set(value)))


@dataclass
class RunOptions:
    """Per-run switches that are not part of the optimization policy."""
    root: Path
    recursive: bool = True
    override_files: bool = True
    delete_unoptimizable: bool = False


@dataclass(frozen=True)
class FileTask:
    """One input file scheduled for optimization."""
    source_path: Path
    kind: FileKind
    size_bytes: int

    @property
    def artifact_path(self) -> Path:
        return artifact_path_for(self.source_path)


def artifact_path_for(source_path: Path) -> Path:
    return source_path.with_name(source_path.name + TEMP_SUFFIX)


def final_path_for(artifact_path: Path) -> Path:
    """Strip the temp suffix from an artifact path."""
    name = artifact_path.name
    if not name.endswith(TEMP_SUFFIX):
        raise ValueError(f"Not an optimization artifact: {artifact_path}")
    return artifact_path.with_name(name[: -len(TEMP_SUFFIX)])


@dataclass(frozen=True)
class Outcome:
    """Result of optimizing one file."""
    status: OutcomeStatus
    kind: OutcomeKind
    message: str = ""
    artifact_path: Optional[Path] = None

    @property
    def accepted(self) -> bool:
        return self.status is OutcomeStatus.ACCEPTED

    @classmethod
    def accept(cls, artifact_path: Path, note: str = "") -> "Outcome":
        return cls(OutcomeStatus.ACCEPTED, OutcomeKind.OPTIMIZED, note, artifact_path)

    @classmethod
    def reject(cls, kind: OutcomeKind, reason: str) -> "Outcome":
        return cls(OutcomeStatus.REJECTED, kind, reason)

    @classmethod
    def fail(cls, kind: OutcomeKind, error: str) -> "Outcome":
        return cls(OutcomeStatus.FAILED, kind, error)

    @classmethod
    def from_exception(cls, kind: OutcomeKind, exc: BaseException) -> "Outcome":
        trace = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
        return cls.fail(kind, f"{exc}\n{trace}".rstrip())


@dataclass(frozen=True)
class RetryEntry:
    """A commit deferred because the final path was locked."""
    artifact_path: Path
    final_path: Path


@dataclass
class RunSummary:
    """Aggregate counters for one run; safe to update from worker threads."""
    files_scanned: int = 0
    files_processed: int = 0
    files_optimized: int = 0
    total_bytes: int = 0
    optimized_bytes: int = 0
    retries_resolved: int = 0
    retries_failed: int = 0
    _lock: Lock = field(default_factory=Lock, repr=False, compare=False)

    def next_index(self) -> int:
        """Count one more processed file and return its 1-based index."""
        with self._lock:
            self.files_processed += 1
            return self.files_processed

    def record_optimized(self, original_bytes: int, new_bytes: int) -> None:
        with self._lock:
            self.files_optimized += 1
            self.total_bytes += original_bytes
            self.optimized_bytes += new_bytes

    def record_retry(self, resolved: bool) -> None:
        with self._lock:
            if resolved:
                self.retries_resolved += 1
            else:
                self.retries_failed += 1

    @property
    def saved_bytes(self) -> int:
        return self.total_bytes - self.optimized_bytes

    @property
    def save_rate(self) -> float:
        """Percentage of the optimized files' original bytes that were saved."""
        if self.total_bytes <= 0:
            return 0.0
        return 100.0 * self.saved_bytes / self.total_bytes
