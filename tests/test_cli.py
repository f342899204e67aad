import pytest

from bundlepatch import cli
from bundlepatch import logger as bp_logger
from tests import bundles


@pytest.fixture(autouse=True)
def _quiet_logging(monkeypatch):
    monkeypatch.setattr(bp_logger, "configure_logging", lambda *a, **kw: None)


@pytest.fixture
def bundle(tmp_path):
    path = tmp_path / "cli.js"
    path.write_text(bundles.FULL, encoding="utf-8")
    return path


def test_patches_in_place_and_keeps_backup(bundle, capsys):
    assert cli.main([str(bundle)]) == cli.EXIT_OK

    patched = bundle.read_text(encoding="utf-8")
    assert "verbose:true" in patched
    assert bundles.INJECTED in patched

    backup = bundle.with_name("cli.js.backup")
    assert backup.read_text(encoding="utf-8") == bundles.FULL

    out = capsys.readouterr().out
    assert "Created backup" in out
    assert "cp " in out


def test_second_run_keeps_first_backup(bundle):
    cli.main([str(bundle)])
    first = bundle.read_text(encoding="utf-8")
    assert cli.main([str(bundle)]) == cli.EXIT_OK
    assert bundle.read_text(encoding="utf-8") == first
    assert bundle.with_name("cli.js.backup").read_text(encoding="utf-8") == bundles.FULL


def test_dry_run_writes_nothing(bundle, capsys):
    assert cli.main([str(bundle), "--dry-run", "--show-diff"]) == cli.EXIT_OK
    assert bundle.read_text(encoding="utf-8") == bundles.FULL
    assert not bundle.with_name("cli.js.backup").exists()
    out = capsys.readouterr().out
    assert "Dry run" in out
    assert "OLD:" in out and "NEW:" in out


def test_only_and_overrides(bundle):
    code = cli.main(
        [
            str(bundle),
            "--only",
            "verbose",
            "--only",
            "statusline_refresh",
            "--verbose-value",
            "false",
            "--interval-ms",
            "2500",
            "--no-backup",
        ]
    )
    assert code == cli.EXIT_OK
    patched = bundle.read_text(encoding="utf-8")
    assert "verbose:false" in patched
    assert "},2500);" in patched
    assert "...H1?" in patched
    assert not bundle.with_name("cli.js.backup").exists()


def test_output_path_leaves_target_alone(bundle, tmp_path):
    out = tmp_path / "patched.js"
    assert cli.main([str(bundle), "--output", str(out)]) == cli.EXIT_OK
    assert bundle.read_text(encoding="utf-8") == bundles.FULL
    assert "if(true)return null" in out.read_text(encoding="utf-8")
    assert not bundle.with_name("cli.js.backup").exists()


def test_partial_failure_still_saves(tmp_path):
    path = tmp_path / "cli.js"
    path.write_text(bundles.VERBOSE, encoding="utf-8")
    assert cli.main([str(path), "--no-backup"]) == cli.EXIT_PATCH_FAILED
    assert "verbose:true" in path.read_text(encoding="utf-8")


def test_config_file(bundle, tmp_path):
    cfg = tmp_path / "bp.yaml"
    cfg.write_text(
        "backup: false\npatches:\n  statusline_refresh:\n    enabled: false\n",
        encoding="utf-8",
    )
    assert cli.main([str(bundle), "--config", str(cfg)]) == cli.EXIT_OK
    patched = bundle.read_text(encoding="utf-8")
    assert "setInterval" not in patched
    assert "...(false)?" in patched
    assert not bundle.with_name("cli.js.backup").exists()


def test_missing_target(tmp_path):
    assert cli.main([str(tmp_path / "missing.js")]) == cli.EXIT_ERROR


def test_invalid_config(bundle, tmp_path):
    cfg = tmp_path / "bp.yaml"
    cfg.write_text("patches:\n  statusline_refresh:\n    interval_ms: -1\n")
    assert cli.main([str(bundle), "--config", str(cfg)]) == cli.EXIT_ERROR
    assert bundle.read_text(encoding="utf-8") == bundles.FULL


def test_unknown_kind_is_rejected(bundle):
    with pytest.raises(SystemExit):
        cli.main([str(bundle), "--only", "nope"])


def test_output_is_written_when_nothing_changes(bundle, tmp_path):
    assert cli.main([str(bundle), "--no-backup"]) == cli.EXIT_OK
    patched = bundle.read_text(encoding="utf-8")

    out = tmp_path / "copy.js"
    assert cli.main([str(bundle), "--output", str(out)]) == cli.EXIT_OK
    assert out.read_text(encoding="utf-8") == patched
    assert not bundle.with_name("cli.js.backup").exists()
