import json
from pathlib import Path

from cli import build_policy, build_run_options, main, merge_settings, parse_args


def test_flags_override_config_file(tmp_path: Path) -> None:
    config_file = tmp_path / "settings.json"
    config_file.write_text(
        json.dumps({"working_folder": str(tmp_path), "worker_concurrency": 3, "quality_check_width": 320})
    )

    settings = merge_settings(parse_args(["--config", str(config_file), "--workers", "2", "--qualities", "80;70"]))
    policy = build_policy(settings)
    options = build_run_options(settings)

    assert policy.worker_concurrency == 2
    assert policy.comparison_width == 320
    assert policy.jpeg_qualities == (70, 80)
    assert policy.optimizer_path is None
    assert options.root == tmp_path
    assert options.recursive is True
    assert options.override_files is True


def test_boolean_flags(tmp_path: Path) -> None:
    settings = merge_settings(
        parse_args([str(tmp_path), "--only-top-directory", "--no-override-files", "--no-delete-unoptimizable"])
    )
    options = build_run_options(settings)

    assert options.recursive is False
    assert options.override_files is False
    assert options.delete_unoptimizable is False


def test_main_runs_on_empty_folder(tmp_path: Path, capsys) -> None:
    notes = tmp_path / "notes.txt"
    notes.write_text("keep")

    code = main([str(tmp_path), "--no-delete-unoptimizable"])

    out = capsys.readouterr().out
    assert code == 0
    assert "Starting with parameters:" in out
    assert "Optimizing 0 files:" in out
    assert notes.exists()


def test_main_fails_on_missing_folder(tmp_path: Path, capsys) -> None:
    code = main([str(tmp_path / "missing")])

    assert code == 1
    assert "Working folder not found" in capsys.readouterr().err


def test_main_fails_on_invalid_policy(tmp_path: Path, capsys) -> None:
    code = main([str(tmp_path), "--min-similarity", "150"])

    assert code == 1
    assert "Invalid configuration" in capsys.readouterr().err


def test_main_requires_a_folder(capsys) -> None:
    assert main([]) == 1
