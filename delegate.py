"""Lossless path: delegate to an external optimizer (optipng) and gate the result."""

import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Protocol

from image_io import verify_image
from models import OptimizationPolicy, Outcome, OutcomeKind

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ToolRun:
    returncode: Optional[int]
    timed_out: bool = False


class OptimizerTool(Protocol):
    def is_available(self) -> bool: ...

    def describe(self) -> str: ...

    def run(self, source_path: Path, target_path: Path, timeout: float) -> ToolRun: ...


class OptiPngTool:
    """Runs `optipng <source> -o3 -fix -quiet -out <target>`."""

    def __init__(self, path: Optional[Path]):
        self.path = path

    def is_available(self) -> bool:
        return self.path is not None and Path(self.path).is_file()

    def describe(self) -> str:
        return str(self.path)

    def command(self, source_path: Path, target_path: Path) -> list:
        return [str(self.path), str(source_path), "-o3", "-fix", "-quiet", "-out", str(target_path)]

    def run(self, source_path: Path, target_path: Path, timeout: float) -> ToolRun:
        process = subprocess.Popen(
            self.command(source_path, target_path),
            stdin=subprocess.DEVNULL,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
        )
        try:
            return ToolRun(process.wait(timeout=timeout))
        except subprocess.TimeoutExpired:
            process.kill()
            process.wait()
            return ToolRun(process.returncode, timed_out=True)


def is_worth_it(source_path: Path, target_path: Path, min_compression_bytes: int) -> Outcome:
    """Keep target only if it is meaningfully smaller than source.

    A target that is not worth it is deleted. Safe to call again on a target
    that was already deleted.
    """
    if not target_path.exists():
        return Outcome.reject(OutcomeKind.TARGET_MISSING, "Can't find target file.")

    source_size = source_path.stat().st_size
    target_size = target_path.stat().st_size

    if target_size >= source_size - min_compression_bytes:
        target_path.unlink(missing_ok=True)
        return Outcome.reject(
            OutcomeKind.SIZE_GATE,
            f"Saved bytes ({source_size - target_size}) less than {min_compression_bytes}.",
        )
    return Outcome.accept(target_path, f"Saved {source_size - target_size} bytes")


def delegate_and_gate(
    source_path: Path,
    target_path: Path,
    policy: OptimizationPolicy,
    tool: OptimizerTool,
) -> Outcome:
    """Run the external optimizer on source_path and apply the worth-it gate."""
    try:
        if not tool.is_available():
            return Outcome.reject(OutcomeKind.TOOL_MISSING, f"Can't find optipng in {tool.describe()}")

        if not source_path.exists():
            return Outcome.reject(OutcomeKind.SOURCE_MISSING, f"Can't find input file {source_path}")

        if source_path.resolve() == target_path.resolve():
            return Outcome.reject(OutcomeKind.INVALID_PATHS, "Can't override source file now.")

        target_path.unlink(missing_ok=True)

        run = tool.run(source_path, target_path, policy.tool_timeout_seconds)
        if run.timed_out:
            logger.warning(f"Optimizer killed after {policy.tool_timeout_seconds}s on {source_path}")
        elif run.returncode:
            logger.debug(f"Optimizer exited with {run.returncode} on {source_path}")

        outcome = is_worth_it(source_path, target_path, policy.min_compression_bytes)

        # A killed tool may leave a truncated file that happens to be small.
        if run.timed_out and outcome.accepted and not verify_image(target_path):
            target_path.unlink(missing_ok=True)
            return Outcome.reject(
                OutcomeKind.TOOL_TIMEOUT,
                f"Optimizer timed out after {policy.tool_timeout_seconds}s; output discarded.",
            )
        return outcome
    except Exception as exc:
        logger.error(f"Unexpected error optimizing {source_path}: {exc}", exc_info=True)
        target_path.unlink(missing_ok=True)
        return Outcome.from_exception(OutcomeKind.UNEXPECTED, exc)
