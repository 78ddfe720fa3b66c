from __future__ import annotations

import sys
from pathlib import Path

import matplotlib


def pytest_configure() -> None:
    """Ensure the repository root is on sys.path and plots render headless.

    When pytest picks ``eslstat/`` as its rootdir, importing the top-level
    package ``eslstat`` fails unless the parent directory is on ``sys.path``.
    """

    matplotlib.use("Agg")
    repo_root = Path(__file__).resolve().parents[2]
    repo_root_str = str(repo_root)
    if repo_root_str not in sys.path:
        sys.path.insert(0, repo_root_str)
