"""
flux-deps finds the dependencies pinned in flux manifests.

Helm charts, container images and git repositories referenced by flux objects
are reported with the version they are pinned to and the datasource an update
tool should query for newer versions.
"""

__all__ = [
    "config",
    "dependency",
    "extract",
    "git_repo",
    "manifest",
    "exceptions",
    # Note this is exposed for CLI documentation, not to be used as a library
    "tool",
]
