import argparse

import pytest

from player_scraper import main as cli


@pytest.fixture
def workdir(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("OUTPUT_DIR", str(tmp_path))
    monkeypatch.setattr(cli, "install_signal_handlers", lambda: None)
    for name in ("STATUS_FILE", "PLAYERS_DATA_JSON", "FAILED_UPLOADS_FILE"):
        monkeypatch.delenv(name, raising=False)
    return tmp_path


def test_parse_years():
    assert cli.parse_years("2004") == (2004, 2004)
    assert cli.parse_years("1992-2006") == (1992, 2006)
    with pytest.raises(argparse.ArgumentTypeError):
        cli.parse_years("2006-1992")
    with pytest.raises(argparse.ArgumentTypeError):
        cli.parse_years("soon")


def test_flags_override_config(workdir):
    args = cli.build_parser().parse_args(["search", "--workers", "3", "--positions", "F, d", "--years", "2000-2002"])
    config = cli.build_config(args)
    assert config.workers == 3
    assert config.positions == ["f", "d"]
    assert (config.year_from, config.year_to) == (2000, 2002)
    assert config.paths.status_file == workdir / "swedish_extractor_status.json"


def test_upload_refuses_without_extraction_marker(workdir):
    assert cli.main(["upload"]) == 1


def test_upload_aborts_when_lock_is_held(workdir):
    (workdir / ".extraction_success").write_text("done")
    (workdir / "api_uploader.lock").write_text("LOCKED by PID 1")
    assert cli.main(["upload"]) == 1
    assert (workdir / "api_uploader.lock").exists()


def test_forced_upload_with_missing_document_is_a_configuration_error(workdir):
    assert cli.main(["upload", "--force"]) == 1
    assert not (workdir / "api_uploader.lock").exists()


def test_reset_removes_status(workdir):
    (workdir / "swedish_extractor_status.json").write_text('{"processedTeams": ["x"]}')
    assert cli.main(["reset"]) == 0
    assert not (workdir / "swedish_extractor_status.json").exists()


def test_memory_error_maps_to_137(workdir, monkeypatch):
    def exhausted(args, config):
        raise MemoryError()

    monkeypatch.setitem(cli.HANDLERS, 'reset', exhausted)
    assert cli.main(["reset"]) == 137
