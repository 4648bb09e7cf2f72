"""
Lock file + PID file pair that keeps a second uploader from starting.
"""

import atexit
import os
from datetime import datetime
from pathlib import Path
from typing import Optional

from ..errors import ConfigurationError, LockHeldError


class RunLock:
    """Presence of the lock file means another run is active."""

    def __init__(self, lock_file: Path, pid_file: Path):
        self.lock_file = Path(lock_file)
        self.pid_file = Path(pid_file)
        self._held = False

    def _read_pid(self) -> Optional[str]:
        try:
            return self.pid_file.read_text(encoding='utf-8').strip() or None
        except OSError:
            return None

    def acquire(self, register_atexit: bool = True):
        """
        Create the lock and PID files.

        Raises:
            LockHeldError: if the lock file already exists
            ConfigurationError: if the files cannot be created
        """
        if self.lock_file.exists():
            pid = self._read_pid()
            print(f"✗ Uploader is already running (PID: {pid or 'unknown'})")
            print(f"  If this is a stale lock, remove: {self.lock_file.resolve()}")
            raise LockHeldError(self.lock_file, pid)

        pid = str(os.getpid())
        try:
            self.lock_file.parent.mkdir(parents=True, exist_ok=True)
            # 'x' mode fails if another process created the file meanwhile
            with open(self.lock_file, 'x', encoding='utf-8') as f:
                f.write(f"LOCKED by PID {pid} at {datetime.now().isoformat()}")
            self.pid_file.write_text(pid, encoding='utf-8')
        except FileExistsError:
            raise LockHeldError(self.lock_file, self._read_pid())
        except OSError as e:
            raise ConfigurationError(f"Failed to create uploader lock: {e}") from e

        self._held = True
        print(f"🔒 Lock acquired (PID: {pid}) - Lock file: {self.lock_file}")
        if register_atexit:
            atexit.register(self.release)

    def release(self):
        """Delete both files; safe to call more than once."""
        if not self._held:
            return
        self._held = False
        for path in (self.lock_file, self.pid_file):
            try:
                path.unlink()
            except FileNotFoundError:
                pass
            except OSError as e:
                print(f"Warning: Failed to delete {path}: {e}")
        print(f"🔓 Lock released - deleted {self.lock_file}")

    @property
    def held(self) -> bool:
        return self._held

    def __enter__(self):
        self.acquire(register_atexit=False)
        return self

    def __exit__(self, exc_type, exc, tb):
        self.release()
        return False
