"""Helpers for mapping git repository URLs to tag datasources."""

import re
from urllib.parse import urlparse

from .dependency import (
    BITBUCKET_TAGS_DATASOURCE,
    GIT_TAGS_DATASOURCE,
    GITHUB_TAGS_DATASOURCE,
    GITLAB_TAGS_DATASOURCE,
)

__all__ = ["source_url", "tag_datasource"]

# Hosts with a dedicated tag datasource, looked up by `owner/repo`.
HOST_DATASOURCES = {
    "github.com": GITHUB_TAGS_DATASOURCE,
    "gitlab.com": GITLAB_TAGS_DATASOURCE,
    "bitbucket.org": BITBUCKET_TAGS_DATASOURCE,
}

# e.g. ssh://git@github.com/owner/repo or ssh://git@github.com:22/owner/repo
SSH_URL_RE = re.compile(
    r"^ssh://(?:[^@/]+@)?(?P<host>[^:/]+)(?::\d+)?/(?P<path>.+)$"
)

# e.g. git@github.com:owner/repo.git
SCP_URL_RE = re.compile(r"^git@(?P<host>[^:/]+):(?P<path>.+)$")


def source_url(url: str) -> str:
    """Return the https:// form of a git repository URL."""
    if match := SSH_URL_RE.match(url) or SCP_URL_RE.match(url):
        url = f"https://{match.group('host')}/{match.group('path')}"
    url = url.rstrip("/")
    if url.endswith(".git"):
        url = url[: -len(".git")]
    return url


def tag_datasource(url: str) -> tuple[str, str]:
    """Return the tag datasource and package name for a git repository URL.

    Well known hosts are queried by `owner/repo`, any other host falls back to
    listing the tags of the repository URL itself.
    """
    parsed = urlparse(source_url(url))
    if (
        parsed.hostname
        and (datasource := HOST_DATASOURCES.get(parsed.hostname))
        and (path := parsed.path.strip("/"))
    ):
        return datasource, path
    return GIT_TAGS_DATASOURCE, url
