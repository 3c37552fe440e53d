"""Representation of the dependencies extracted from a manifest file.

A `PackageDependency` describes a single pinned reference found in a file: what
it is called, the value currently pinned, which datasource an update engine
should query, and how the pinned text can be rewritten after an update. The
serialized form uses the camelCase keys that update engines expect e.g.
`depName`, `currentValue`.
"""

from dataclasses import dataclass, field
from typing import Any

from mashumaro import DataClassDictMixin, field_options
from mashumaro.config import BaseConfig

__all__ = [
    "PackageDependency",
    "PackageFile",
]


# Datasource identifiers understood by the external lookup services.
HELM_DATASOURCE = "helm"
DOCKER_DATASOURCE = "docker"
GIT_REFS_DATASOURCE = "git-refs"
GIT_TAGS_DATASOURCE = "git-tags"
GITHUB_TAGS_DATASOURCE = "github-tags"
GITLAB_TAGS_DATASOURCE = "gitlab-tags"
BITBUCKET_TAGS_DATASOURCE = "bitbucket-tags"
GITHUB_RELEASES_DATASOURCE = "github-releases"

# Reasons a dependency is reported but not actionable.
SKIP_LOCAL_CHART = "local-chart"
SKIP_UNKNOWN_REGISTRY = "unknown-registry"
SKIP_UNSUPPORTED_DATASOURCE = "unsupported-datasource"
SKIP_UNVERSIONED_REFERENCE = "unversioned-reference"


@dataclass
class PackageDependency(DataClassDictMixin):
    """A single dependency reference found in a manifest."""

    dep_name: str = field(metadata=field_options(alias="depName"))
    """The display name of the dependency."""

    package_name: str | None = field(
        metadata=field_options(alias="packageName"), default=None
    )
    """The identity used for the upstream lookup, if different from dep_name."""

    current_value: str | None = field(
        metadata=field_options(alias="currentValue"), default=None
    )
    """The version currently pinned."""

    current_digest: str | None = field(
        metadata=field_options(alias="currentDigest"), default=None
    )
    """The content digest currently pinned."""

    datasource: str | None = None
    """Identifier of the upstream lookup service for this dependency."""

    versioning: str | None = None
    """Versioning scheme hint for the update engine."""

    registry_urls: list[str] | None = field(
        metadata=field_options(alias="registryUrls"), default=None
    )
    """Registries to query, used by helm chart repositories."""

    source_url: str | None = field(
        metadata=field_options(alias="sourceUrl"), default=None
    )
    """Human facing URL of the upstream project."""

    skip_reason: str | None = field(
        metadata=field_options(alias="skipReason"), default=None
    )
    """Set when the dependency was found but can't be updated."""

    replace_string: str | None = field(
        metadata=field_options(alias="replaceString"), default=None
    )
    """Verbatim text in the file that holds the pinned reference."""

    auto_replace_string_template: str | None = field(
        metadata=field_options(alias="autoReplaceStringTemplate"), default=None
    )
    """Template used to rebuild replace_string after an update."""

    manager_data: dict[str, Any] | None = field(
        metadata=field_options(alias="managerData"), default=None
    )
    """Free form data for special manifest kinds."""

    class Config(BaseConfig):
        omit_none = True
        serialize_by_alias = True


@dataclass
class PackageFile(DataClassDictMixin):
    """The dependencies found in a single file."""

    deps: list[PackageDependency] = field(default_factory=list)
    """Dependencies in the order they appear in the file."""

    package_file: str | None = field(
        metadata=field_options(alias="packageFile"), default=None
    )
    """The path of the file the dependencies were read from."""

    class Config(BaseConfig):
        omit_none = True
        serialize_by_alias = True
