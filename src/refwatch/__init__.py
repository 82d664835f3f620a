"""refwatch: track a remote git repository and report what changed between checks."""

from importlib.metadata import version, PackageNotFoundError

try:
    __version__ = version("refwatch")
except PackageNotFoundError:
    __version__ = "0.0.0-dev"  # Fallback for editable installs without metadata

from .models import (  # noqa: F401
    Author,
    BranchSnapshot,
    BranchUpdate,
    CommitRef,
    DiffStats,
    FileStats,
    RepositorySnapshot,
    TagSnapshot,
    TagUpdate,
)
from .reconcile import ReconciliationResult, reconcile, reconcile_branches, reconcile_tags  # noqa: F401
from .report import assemble_report  # noqa: F401
from .window import commit_window  # noqa: F401

__all__ = [
    "Author",
    "BranchSnapshot",
    "BranchUpdate",
    "CommitRef",
    "DiffStats",
    "FileStats",
    "RepositorySnapshot",
    "TagSnapshot",
    "TagUpdate",
    "ReconciliationResult",
    "reconcile",
    "reconcile_branches",
    "reconcile_tags",
    "assemble_report",
    "commit_window",
    "__version__",
]
