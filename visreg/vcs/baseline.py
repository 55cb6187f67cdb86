"""Baseline fetcher: materializes the base branch's screenshots from git history."""

from __future__ import annotations

import logging
import shutil
from pathlib import Path

from visreg.errors import GitError

from .git import Git

logger = logging.getLogger(__name__)


def fetch_baseline(
    git: Git,
    remote: str,
    base_ref: str,
    screenshot_path: str,
    dest_dir: Path,
) -> int:
    """Write the base ref's ``*.png`` files under ``screenshot_path`` into ``dest_dir``.

    Returns the number of files written. Any git failure leaves ``dest_dir``
    empty so that every candidate screenshot is treated as new.
    """
    if dest_dir.exists():
        shutil.rmtree(dest_dir)
    dest_dir.mkdir(parents=True)

    try:
        git.fetch(remote, base_ref, depth=1)
        files = [f for f in git.list_files("FETCH_HEAD", screenshot_path) if f.endswith(".png")]
        for repo_path in files:
            name = Path(repo_path).name
            (dest_dir / name).write_bytes(git.show_file("FETCH_HEAD", repo_path))
    except GitError as e:
        logger.warning(
            "Could not fetch base screenshots from %s/%s: %s. Treating all screenshots as new.",
            remote, base_ref, e,
        )
        shutil.rmtree(dest_dir)
        dest_dir.mkdir(parents=True)
        return 0

    logger.info("Fetched %d base screenshot(s) from %s/%s", len(files), remote, base_ref)
    return len(files)
