"""Core per-file pipeline: route one file to the matching engine."""

from pathlib import Path
from typing import Optional

from delegate import OptimizerTool, OptiPngTool, delegate_and_gate
from image_io import encode_jpeg
from models import FileKind, OptimizationPolicy, Outcome, OutcomeKind
from quality_search import Encoder, Scorer, search_best_quality
from router import classify
from similarity import candidate_similarity


def optimize_file(
    source_path: Path,
    target_path: Path,
    policy: OptimizationPolicy,
    tool: Optional[OptimizerTool] = None,
    encoder: Optional[Encoder] = None,
    scorer: Optional[Scorer] = None,
) -> Outcome:
    """Optimize a single file into target_path.

    JPEGs go through the quality search; other supported rasters are handed
    to the external optimizer. Unsupported files are rejected untouched.

    Args:
        source_path: File to optimize
        target_path: Where the candidate replacement is written
        policy: Optimization settings
        tool: External lossless optimizer (defaults to optipng at policy.optimizer_path)
        encoder: JPEG encode capability (defaults to Pillow)
        scorer: Similarity capability (defaults to candidate_similarity)

    Returns:
        Exactly one Outcome for the file
    """
    kind = classify(source_path)

    if kind is FileKind.LOSSY:
        return search_best_quality(
            source_path,
            target_path,
            policy,
            encoder=encoder or encode_jpeg,
            scorer=scorer or candidate_similarity,
        )

    if kind is FileKind.LOSSLESS:
        if tool is None:
            tool = OptiPngTool(policy.optimizer_path)
        return delegate_and_gate(source_path, target_path, policy, tool)

    return Outcome.reject(
        OutcomeKind.CLASSIFICATION_SKIP,
        f"File with an unoptimizable extension: {source_path.name}",
    )
