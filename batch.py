"""Batch processing: optimize every image under a folder concurrently."""

import errno
import logging
import os
import queue
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import List, Optional

from delegate import OptimizerTool, OptiPngTool
from image_io import iter_artifacts, iter_files
from models import (
    FileTask,
    OptimizationPolicy,
    Outcome,
    OutcomeKind,
    RetryEntry,
    RunOptions,
    RunSummary,
    final_path_for,
)
from processing import optimize_file
from progress import ProgressRenderer
from quality_search import Encoder, Scorer
from router import classify, partition

logger = logging.getLogger(__name__)

# Errors meaning "someone else has the file open right now".
TRANSIENT_ERRNOS = {errno.EBUSY, errno.EACCES, errno.ETXTBSY}


def is_transient_lock(exc: OSError) -> bool:
    return isinstance(exc, PermissionError) or exc.errno in TRANSIENT_ERRNOS


def process_folder(
    options: RunOptions,
    policy: OptimizationPolicy,
    tool: Optional[OptimizerTool] = None,
    encoder: Optional[Encoder] = None,
    scorer: Optional[Scorer] = None,
    progress_renderer: Optional[ProgressRenderer] = None,
) -> RunSummary:
    """Optimize all supported images under options.root.

    Args:
        options: Folder and run switches (recursive, override, delete)
        policy: Optimization settings shared by every worker
        tool: External lossless optimizer (defaults to optipng at policy.optimizer_path)
        encoder: JPEG encode capability override
        scorer: Similarity capability override
        progress_renderer: Receives one line per file and the summary line

    Returns:
        RunSummary with the run's totals

    Raises:
        FileNotFoundError: working folder or configured optimizer is missing
        NotADirectoryError: working folder is not a directory
    """
    root = options.root
    if not root.exists():
        raise FileNotFoundError(f"Working folder not found: {root}")
    if not root.is_dir():
        raise NotADirectoryError(f"Working folder is not a directory: {root}")
    if tool is None:
        if policy.optimizer_path is not None and not Path(policy.optimizer_path).is_file():
            raise FileNotFoundError(f"Can't find optipng in {policy.optimizer_path}")
        tool = OptiPngTool(policy.optimizer_path)

    renderer = progress_renderer if progress_renderer is not None else ProgressRenderer(enable=False)

    optimizable, unsupported = partition(iter_files(root, recursive=options.recursive))
    if options.delete_unoptimizable:
        for path in unsupported:
            _delete(path)

    tasks = _build_tasks(optimizable)
    summary = RunSummary(files_scanned=len(tasks))
    retries: "queue.Queue[RetryEntry]" = queue.Queue()
    renderer.begin(len(tasks))

    with ThreadPoolExecutor(max_workers=policy.worker_concurrency) as executor:
        future_to_task = {
            executor.submit(
                _run_task, task, options, policy, summary, retries, renderer, tool, encoder, scorer
            ): task
            for task in tasks
        }
        for future in as_completed(future_to_task):
            exc = future.exception()
            if exc is not None:
                task = future_to_task[future]
                logger.error(f"Worker crashed on {task.source_path}: {exc}", exc_info=exc)

    # Every worker has finished; leftovers on disk can be resolved safely now.
    pending = _drain(retries)
    if options.override_files:
        queued = {entry.artifact_path for entry in pending}
        for artifact in iter_artifacts(root, recursive=options.recursive):
            if artifact not in queued:
                pending.append(RetryEntry(artifact, final_path_for(artifact)))

    if pending:
        logger.info(f"Retrying {len(pending)} deferred replacement(s)")
    for entry in pending:
        _retry(entry, summary, renderer)

    renderer.finish(summary)
    return summary


def _build_tasks(paths: List[Path]) -> List[FileTask]:
    tasks = []
    for path in paths:
        try:
            size = path.stat().st_size
        except FileNotFoundError:
            logger.warning(f"File disappeared before processing: {path}")
            continue
        tasks.append(FileTask(path, classify(path), size))
    return tasks


def _run_task(
    task: FileTask,
    options: RunOptions,
    policy: OptimizationPolicy,
    summary: RunSummary,
    retries: "queue.Queue[RetryEntry]",
    renderer: ProgressRenderer,
    tool: OptimizerTool,
    encoder: Optional[Encoder],
    scorer: Optional[Scorer],
) -> Outcome:
    """Optimize one file and commit or clean up its artifact."""
    index = summary.next_index()
    source = task.source_path
    artifact = task.artifact_path

    try:
        outcome = optimize_file(source, artifact, policy, tool=tool, encoder=encoder, scorer=scorer)
    except Exception as exc:
        logger.error(f"Unexpected error optimizing {source}: {exc}", exc_info=True)
        outcome = Outcome.from_exception(OutcomeKind.UNEXPECTED, exc)

    if outcome.accepted:
        outcome = _commit(task, outcome, options, summary, retries)
    else:
        artifact.unlink(missing_ok=True)
        if options.delete_unoptimizable and outcome.kind is OutcomeKind.CLASSIFICATION_SKIP:
            _delete(source)

    renderer.update(index, source.name, outcome)
    return outcome


def _commit(
    task: FileTask,
    outcome: Outcome,
    options: RunOptions,
    summary: RunSummary,
    retries: "queue.Queue[RetryEntry]",
) -> Outcome:
    artifact = outcome.artifact_path or task.artifact_path
    try:
        new_size = artifact.stat().st_size
    except OSError as exc:
        logger.error(f"Accepted artifact vanished for {task.source_path}: {exc}", exc_info=True)
        return Outcome.from_exception(OutcomeKind.UNEXPECTED, exc)

    try:
        if options.override_files:
            os.replace(artifact, task.source_path)
    except OSError as exc:
        if not is_transient_lock(exc):
            logger.error(f"Failed to replace {task.source_path}: {exc}", exc_info=True)
            artifact.unlink(missing_ok=True)
            return Outcome.from_exception(OutcomeKind.UNEXPECTED, exc)
        logger.warning(f"{task.source_path} is locked, replacement deferred: {exc}")
        retries.put(RetryEntry(artifact, task.source_path))
        summary.record_optimized(task.size_bytes, new_size)
        return Outcome.accept(artifact, f"{outcome.message} (replace deferred)".strip())

    summary.record_optimized(task.size_bytes, new_size)
    return outcome


def _drain(retries: "queue.Queue[RetryEntry]") -> List[RetryEntry]:
    entries = []
    while True:
        try:
            entries.append(retries.get_nowait())
        except queue.Empty:
            return entries


def _retry(entry: RetryEntry, summary: RunSummary, renderer: ProgressRenderer) -> None:
    """Move a deferred artifact into place; failures are logged, never raised."""
    if not entry.artifact_path.exists():
        return
    try:
        # Overwrites any file at final_path in one step; a failure leaves it intact.
        os.replace(entry.artifact_path, entry.final_path)
    except OSError as exc:
        logger.error(f"Deferred replace failed for {entry.final_path}: {exc}", exc_info=True)
        renderer.error(f"{entry.final_path}: {exc}")
        summary.record_retry(False)
        return
    summary.record_retry(True)


def _delete(path: Path) -> None:
    try:
        path.unlink()
    except FileNotFoundError:
        return
    except OSError as exc:
        logger.error(f"Failed to delete {path}: {exc}")
