from __future__ import annotations

import os
import time
from pathlib import Path

from .fs import utcnow_iso


def lock_path_for_mirror(mirror_path: Path) -> Path:
    """Lock file guarding a mirror: a sibling named ``<mirror>.lock``."""
    mirror_path = Path(mirror_path)
    return mirror_path.with_name(mirror_path.name + ".lock")


def _pid_alive(pid: int) -> bool:
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True
    return True


class MirrorLock:
    """File-based lock serializing runs against one mirror path.

    A lock is stale when the process that wrote it is gone. Environment
    variables (optional):
    - REFWATCH_LOCK_POLL: polling interval in seconds while waiting
    """

    def __init__(self, mirror_path: Path, *, timeout: float | None = None, force_break: bool = False):
        self.path = lock_path_for_mirror(mirror_path)
        self.poll = float(os.getenv("REFWATCH_LOCK_POLL", "0.1"))
        self.timeout = timeout
        self.force_break = force_break
        self.acquired = False

    def _write_owner(self, fd: int) -> None:
        os.write(fd, f"pid={os.getpid()} time={utcnow_iso()}\n".encode("utf-8"))

    def owner(self) -> dict | None:
        """Parse the lock file into a dict (pid, time), or None if unlocked."""
        try:
            content = self.path.read_text(encoding="utf-8").strip()
        except FileNotFoundError:
            return None
        info: dict = {}
        for part in content.split():
            if "=" in part:
                key, value = part.split("=", 1)
                info[key] = value
        if "pid" in info:
            try:
                info["pid"] = int(info["pid"])
            except ValueError:
                del info["pid"]
        return info or None

    def _is_stale(self) -> bool:
        info = self.owner()
        if not info or "pid" not in info:
            return False
        return not _pid_alive(info["pid"])

    def _break(self) -> None:
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass

    def acquire(self) -> bool:
        start = time.monotonic()
        while True:
            try:
                fd = os.open(self.path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
            except FileExistsError:
                if self.force_break or self._is_stale():
                    self._break()
                    continue
                if self.timeout is not None and (time.monotonic() - start) >= self.timeout:
                    return False
                time.sleep(self.poll)
                continue
            try:
                self._write_owner(fd)
            finally:
                os.close(fd)
            self.acquired = True
            return True

    def release(self) -> None:
        if self.acquired:
            self._break()
            self.acquired = False

    def __enter__(self):
        if not self.acquire():
            raise TimeoutError(f"Mirror is busy: {self.path}")
        return self

    def __exit__(self, exc_type, exc, tb):
        self.release()
        return False
