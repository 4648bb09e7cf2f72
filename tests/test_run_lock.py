import pytest

from player_scraper.errors import LockHeldError
from player_scraper.resilience.run_lock import RunLock


def test_acquire_writes_files_and_release_removes_them(tmp_path):
    lock = RunLock(tmp_path / "api_uploader.lock", tmp_path / "api_uploader.pid")
    lock.acquire(register_atexit=False)
    assert lock.held
    assert (tmp_path / "api_uploader.lock").read_text().startswith("LOCKED by PID")
    assert (tmp_path / "api_uploader.pid").read_text().isdigit()

    lock.release()
    lock.release()
    assert not (tmp_path / "api_uploader.lock").exists()
    assert not (tmp_path / "api_uploader.pid").exists()


def test_existing_lock_aborts(tmp_path):
    (tmp_path / "api_uploader.lock").write_text("LOCKED by PID 1")
    (tmp_path / "api_uploader.pid").write_text("1")
    lock = RunLock(tmp_path / "api_uploader.lock", tmp_path / "api_uploader.pid")

    with pytest.raises(LockHeldError) as excinfo:
        lock.acquire(register_atexit=False)
    assert excinfo.value.pid == "1"
    assert (tmp_path / "api_uploader.lock").exists()


def test_context_manager_releases_on_error(tmp_path):
    with pytest.raises(RuntimeError):
        with RunLock(tmp_path / "a.lock", tmp_path / "a.pid"):
            raise RuntimeError("boom")
    assert not (tmp_path / "a.lock").exists()
