from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict

import pytest
from git import Actor, Repo

from refwatch.models import Author, CommitRef


def pytest_sessionstart(session):  # type: ignore[override]
    root = Path(__file__).resolve().parents[1]
    src = root / "src"
    if str(src) not in sys.path:
        sys.path.insert(0, str(src))
    # Ensure console scripts load in editable style as well
    os.environ.setdefault("PYTHONPATH", str(src))


@pytest.fixture(autouse=True)
def quiet_logs(monkeypatch, tmp_path):
    """Keep log files out of the home directory."""
    monkeypatch.setenv("REFWATCH_LOG_DISABLE_FILE", "1")
    monkeypatch.setenv("REFWATCH_LOG_DIR", str(tmp_path / "logs"))
    for var in ("GIT_AUTHOR_NAME", "GIT_COMMITTER_NAME"):
        monkeypatch.setenv(var, "Tester")
    for var in ("GIT_AUTHOR_EMAIL", "GIT_COMMITTER_EMAIL"):
        monkeypatch.setenv(var, "tester@example.com")


def make_commit(sha: str, ts: int, message: str | None = None) -> CommitRef:
    """Hand-built CommitRef for tests that don't touch git."""
    return CommitRef(
        sha=sha,
        message=message or f"commit {sha}",
        author=Author(name="Tester", email="tester@example.com"),
        timestamp=datetime.fromtimestamp(ts, tz=timezone.utc),
    )


AUTHOR = Actor("Tester", "tester@example.com")
BASE_TS = 1_700_000_000


@dataclass
class Upstream:
    """A bare remote plus a work clone used to push changes into it."""

    remote_path: Path
    work: Repo
    clock: int = BASE_TS
    files: Dict[str, int] = field(default_factory=dict)

    @property
    def url(self) -> str:
        return self.remote_path.as_posix()

    def commit(self, message: str, path: str = "file.txt", lines: int = 1):
        self.clock += 100
        target = Path(self.work.working_tree_dir) / path
        target.parent.mkdir(parents=True, exist_ok=True)
        start = self.files.get(path, 0)
        with open(target, "a", encoding="utf-8") as f:
            for i in range(lines):
                f.write(f"line {start + i}\n")
        self.files[path] = start + lines
        self.work.index.add([path])
        date = f"{self.clock} +0000"
        return self.work.index.commit(
            message,
            author=AUTHOR,
            committer=AUTHOR,
            author_date=date,
            commit_date=date,
        )

    def checkout(self, branch: str, create: bool = False) -> None:
        if create:
            self.work.git.checkout("-b", branch)
        else:
            self.work.git.checkout(branch)

    def tag(self, name: str, ref="HEAD", force: bool = False):
        return self.work.create_tag(name, ref=ref, force=force)

    def push(self) -> None:
        self.work.git.push("--force", "--all", "origin")
        self.work.git.push("--force", "--tags", "origin")

    def delete_remote_branch(self, name: str) -> None:
        self.work.git.push("origin", "--delete", name)

    def delete_remote_tag(self, name: str) -> None:
        self.work.git.push("origin", f":refs/tags/{name}")


@pytest.fixture
def upstream(tmp_path: Path) -> Upstream:
    """A remote seeded with one commit on ``main``."""
    remote_path = tmp_path / "remote.git"
    remote_path.mkdir()
    Repo.init(remote_path, bare=True)

    work_path = tmp_path / "work"
    work = Repo.init(work_path)
    up = Upstream(remote_path=remote_path, work=work)
    up.commit("seed")
    work.git.branch("-M", "main")
    work.create_remote("origin", up.url)
    up.push()
    # Point the remote's HEAD at main whatever the local git default is
    Repo(remote_path).git.symbolic_ref("HEAD", "refs/heads/main")
    return up


@pytest.fixture
def mirror_path(tmp_path: Path) -> Path:
    return tmp_path / "mirrors" / "project.git"


@pytest.fixture
def mirrors_dir(mirror_path: Path) -> Path:
    mirror_path.parent.mkdir(parents=True, exist_ok=True)
    return mirror_path.parent
