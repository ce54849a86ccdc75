"""Command-line interface for in-place image optimization."""

import argparse
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from batch import process_folder
from config import load_settings, parse_qualities
from models import OptimizationPolicy, RunOptions
from progress import ProgressRenderer

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Recompress images in place, keeping only smaller, near-identical results."
    )
    parser.add_argument(
        "working_folder",
        type=Path,
        nargs="?",
        help="Folder with the images to optimize (overrides working_folder in the config file).",
    )
    parser.add_argument(
        "--config",
        type=Path,
        help="Optional JSON config file; command-line flags take precedence over its values.",
    )
    parser.add_argument(
        "--optipng",
        type=Path,
        help="Path to the optipng executable used for PNG/BMP/GIF/PNM/TIFF files.",
    )
    parser.add_argument(
        "--min-similarity",
        type=float,
        help="Minimum boosted similarity (0-100) a JPEG re-encode must reach.",
    )
    parser.add_argument(
        "--comparison-width",
        type=int,
        help="Images are shrunk to at most this width before comparing.",
    )
    parser.add_argument(
        "--min-saved-bytes",
        type=int,
        help="Smallest size reduction, in bytes, worth replacing a file for.",
    )
    parser.add_argument(
        "--qualities",
        type=str,
        help="JPEG qualities to try, e.g. '65,75,80,85,90'.",
    )
    parser.add_argument(
        "--workers",
        type=int,
        help="Number of files optimized in parallel.",
    )
    parser.add_argument(
        "--tool-timeout",
        type=int,
        help="Seconds before the external optimizer is killed.",
    )
    parser.add_argument(
        "--only-top-directory",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Do not descend into subfolders.",
    )
    parser.add_argument(
        "--override-files",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Replace originals with their optimized versions.",
    )
    parser.add_argument(
        "--delete-unoptimizable",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Delete files that are not supported images.",
    )
    parser.add_argument(
        "--log-file",
        type=Path,
        help="Also write log records to this file.",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging.",
    )
    return parser.parse_args(argv)


def merge_settings(args: argparse.Namespace) -> Dict[str, Any]:
    """Config file values overridden by any flag given on the command line."""
    settings = load_settings(args.config)
    overrides = {
        "working_folder": args.working_folder,
        "optipng_path": args.optipng,
        "min_jpeg_similarity": args.min_similarity,
        "quality_check_width": args.comparison_width,
        "meaningful_file_size_change": args.min_saved_bytes,
        "tried_jpeg_qualities": parse_qualities(args.qualities) if args.qualities else None,
        "worker_concurrency": args.workers,
        "tool_timeout_seconds": args.tool_timeout,
        "only_top_directory": args.only_top_directory,
        "override_files": args.override_files,
        "delete_unoptimizable": args.delete_unoptimizable,
    }
    settings.update({key: value for key, value in overrides.items() if value is not None})
    return settings


def build_policy(settings: Dict[str, Any]) -> OptimizationPolicy:
    optipng_path = settings["optipng_path"]
    return OptimizationPolicy(
        minimum_similarity=settings["min_jpeg_similarity"],
        comparison_width=settings["quality_check_width"],
        min_compression_bytes=settings["meaningful_file_size_change"],
        jpeg_qualities=settings["tried_jpeg_qualities"],
        worker_concurrency=settings["worker_concurrency"],
        tool_timeout_seconds=settings["tool_timeout_seconds"],
        optimizer_path=Path(optipng_path) if optipng_path else None,
    )


def build_run_options(settings: Dict[str, Any]) -> RunOptions:
    return RunOptions(
        root=Path(settings["working_folder"]),
        recursive=not settings["only_top_directory"],
        override_files=bool(settings["override_files"]),
        delete_unoptimizable=bool(settings["delete_unoptimizable"]),
    )


def print_banner(options: RunOptions, policy: OptimizationPolicy) -> None:
    print("Starting with parameters:")
    rows = [
        ("Target folder", options.root),
        ("Path to optipng", policy.optimizer_path or "(not set)"),
        ("Min. jpeg similarity", f"{policy.minimum_similarity} %"),
        ("Comparison width", f"{policy.comparison_width} px"),
        ("Meaningful file size change", f"{policy.min_compression_bytes} bytes"),
        ("Only top directory", not options.recursive),
        ("Override files", options.override_files),
        ("Delete unoptimized", options.delete_unoptimizable),
        ("Tried jpeg qualities", ", ".join(str(q) for q in policy.jpeg_qualities) + " %"),
        ("Workers", policy.worker_concurrency),
    ]
    for label, value in rows:
        print(f"{label:>30}:\t{value}")


def setup_logging(log_file: Optional[Path] = None, verbose: bool = False) -> None:
    handlers: List[logging.Handler] = [logging.StreamHandler()]
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=LOG_FORMAT,
        handlers=handlers,
        force=True,
    )


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for CLI."""
    args = parse_args(argv)
    setup_logging(args.log_file, args.verbose)

    try:
        settings = merge_settings(args)
        if not settings["working_folder"]:
            print("No working folder given (argument or working_folder in config).", file=sys.stderr)
            return 1
        policy = build_policy(settings)
        options = build_run_options(settings)
    except (FileNotFoundError, ValueError, ValidationError) as exc:
        print(f"Invalid configuration: {exc}", file=sys.stderr)
        return 1

    print_banner(options, policy)

    try:
        process_folder(options, policy, progress_renderer=ProgressRenderer(enable=True))
    except (FileNotFoundError, NotADirectoryError) as exc:
        print(str(exc), file=sys.stderr)
        return 1
    except OSError as exc:
        print(f"Cannot read working folder: {exc}", file=sys.stderr)
        return 1

    print("Completed.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
