"""Library for finding manifest files in a local git repository.

Only files tracked by git are considered, which skips build output, vendored
charts and anything listed in `.gitignore`.

Example usage:

```python
from flux_deps import extract, git_repo

files = git_repo.manifest_files(Path("clusters/prod"))
results = await extract.extract_all_package_files(None, files)
```
"""

from functools import cache
import logging
import os
from pathlib import Path

import git

from .exceptions import InputException

__all__ = ["manifest_files"]

_LOGGER = logging.getLogger(__name__)

MANIFEST_SUFFIXES = (".yaml", ".yml")


@cache
def git_repo(path: Path | None = None) -> git.repo.Repo:
    """Return the local git repo containing the path."""
    try:
        if path is None:
            return git.repo.Repo(os.getcwd(), search_parent_directories=True)
        return git.repo.Repo(str(path), search_parent_directories=True)
    except git.GitError as err:
        raise InputException(f"Unable to find git repo for {path}: {err}") from err


def repo_root(repo: git.repo.Repo) -> Path:
    """Return the local git repo path."""
    return Path(repo.git.rev_parse("--show-toplevel"))


def manifest_files(path: Path | None = None) -> list[Path]:
    """Return the YAML files tracked by git under the path, sorted by name."""
    search_path = (path or Path(os.getcwd())).resolve()
    repo = git_repo(search_path)
    root = repo_root(repo).resolve()
    try:
        relative_path = search_path.relative_to(root)
    except ValueError as err:
        raise InputException(f"Path {path} is not inside {root}") from err
    pathspec = str(relative_path) if relative_path.parts else "."
    tracked = repo.git.ls_files("--", pathspec)
    files = sorted(
        root / name
        for name in tracked.splitlines()
        if name.endswith(MANIFEST_SUFFIXES)
    )
    _LOGGER.debug("Found %d manifest files in %s", len(files), search_path)
    return files
