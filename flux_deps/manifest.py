"""Representation of the flux resources found in a manifest file.

Each supported flux kind is parsed from a raw YAML document into a small typed
object that carries only the fields needed to index sources or to extract
dependencies. Documents that are not flux resources, or that are missing the
fields required for their kind, are rejected with an `InputException` at this
boundary so that nothing downstream works on an untyped tree.
"""

from dataclasses import dataclass, field
import logging
from typing import Any, ClassVar, Union

from mashumaro import DataClassDictMixin, field_options
from mashumaro.config import BaseConfig

from .exceptions import InputException
from .image import is_oci_url

__all__ = [
    "classify",
    "parse_raw_obj",
    "NamedResource",
    "SourceReference",
    "HelmRepository",
    "GitRepository",
    "OCIRepository",
    "Bucket",
    "HelmRelease",
    "HelmChart",
    "Kustomization",
]

_LOGGER = logging.getLogger(__name__)


# Match a prefix of apiVersion to ensure we have the right type of object.
# We don't check specific versions for forward compatibility on upgrade.
SOURCE_DOMAIN = "source.toolkit.fluxcd.io"
HELM_RELEASE_DOMAIN = "helm.toolkit.fluxcd.io"
FLUXTOMIZE_DOMAIN = "kustomize.toolkit.fluxcd.io"
HELM_RELEASE = "HelmRelease"
HELM_CHART = "HelmChart"
HELM_REPOSITORY = "HelmRepository"
GIT_REPOSITORY = "GitRepository"
OCI_REPOSITORY = "OCIRepository"
BUCKET = "Bucket"
KUSTOMIZE_KIND = "Kustomization"

REPO_TYPE_DEFAULT = "default"
REPO_TYPE_OCI = "oci"

LOCAL_CHART_PREFIXES = ("./", "../", "/")


def _check_version(doc: dict[str, Any], version: str) -> None:
    """Assert that the resource has the specified version."""
    if not (api_version := doc.get("apiVersion")):
        raise InputException(f"Invalid object missing apiVersion: {doc}")
    if not isinstance(api_version, str) or not api_version.startswith(version):
        raise InputException(f"Invalid object expected '{version}': {doc}")


def _mapping(doc: dict[str, Any], key: str) -> dict[str, Any]:
    """Return the mapping stored at key, or an empty mapping."""
    if isinstance(value := doc.get(key), dict):
        return value
    return {}


def scalar(value: Any) -> str | None:
    """Return a scalar YAML value as a string.

    Documents read from files keep numbers as text, objects built in code may
    still hold an int or float.
    """
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return None


@dataclass
class BaseManifest(DataClassDictMixin):
    """Base class for all manifest objects."""

    class Config(BaseConfig):
        omit_none = True


@dataclass(frozen=True, order=True)
class NamedResource:
    """Identifier for a kubernetes resource."""

    kind: str
    namespace: str | None
    name: str

    @property
    def namespaced_name(self) -> str:
        if self.namespace:
            return f"{self.namespace}/{self.name}"
        return self.name

    def __str__(self) -> str:
        """Return the kind and namespaced name concatenated as an id."""
        return f"{self.kind}/{self.namespaced_name}"


@dataclass
class SourceReference(BaseManifest):
    """A reference from a consumer object to a source object e.g. `sourceRef`."""

    kind: str | None
    """The kind of the referenced object."""

    name: str | None
    """The name of the referenced object."""

    namespace: str | None = None
    """The namespace of the referenced object, defaults to the consumer namespace."""

    @classmethod
    def parse_doc(cls, doc: Any, default_kind: str | None = None) -> "SourceReference":
        """Parse a reference, tolerating missing fields."""
        if not isinstance(doc, dict):
            raise InputException(f"Invalid reference, expected a mapping: {doc}")
        return cls(
            kind=scalar(doc.get("kind")) or default_kind,
            name=scalar(doc.get("name")),
            namespace=scalar(doc.get("namespace")),
        )


def _chart_source_ref(spec: dict[str, Any]) -> SourceReference | None:
    """Return the sourceRef of a chart, or None when it can't be used."""
    if (source_ref := spec.get("sourceRef")) is None:
        return None
    if not isinstance(source_ref, dict):
        _LOGGER.debug("Ignoring sourceRef that is not a mapping: %s", source_ref)
        return None
    return SourceReference.parse_doc(source_ref, default_kind=HELM_REPOSITORY)


@dataclass
class HelmRepository(BaseManifest):
    """A representation of a flux HelmRepository."""

    kind: ClassVar[str] = HELM_REPOSITORY
    """The kind of the object."""

    name: str
    """The name of the HelmRepository."""

    namespace: str
    """The namespace of owning the HelmRepository."""

    url: str
    """The URL to the repository of helm charts."""

    repo_type: str | None = None
    """The type of the HelmRepository."""

    @classmethod
    def parse_doc(cls, doc: dict[str, Any]) -> "HelmRepository":
        """Parse a HelmRepository from a kubernetes resource."""
        _check_version(doc, SOURCE_DOMAIN)
        metadata = _mapping(doc, "metadata")
        if not (name := scalar(metadata.get("name"))):
            raise InputException(f"Invalid {cls.kind} missing metadata.name: {doc}")
        if not (namespace := scalar(metadata.get("namespace"))):
            raise InputException(
                f"Invalid {cls.kind} missing metadata.namespace: {doc}"
            )
        spec = _mapping(doc, "spec")
        if not (url := scalar(spec.get("url"))):
            raise InputException(f"Invalid {cls.kind} missing spec.url: {doc}")
        return cls(
            name=name,
            namespace=namespace,
            url=url,
            repo_type=scalar(spec.get("type")) or REPO_TYPE_DEFAULT,
        )

    @property
    def is_oci(self) -> bool:
        """Return true if charts are served from an OCI registry."""
        return self.repo_type == REPO_TYPE_OCI or is_oci_url(self.url)


@dataclass
class GitRepositoryRef:
    """GitRepositoryRef defines the Git ref used for pull and checkout operations."""

    branch: str | None = field(default=None)
    """The Git branch to checkout, defaults to master."""

    tag: str | None = field(default=None)
    """The Git tag to checkout."""

    semver: str | None = field(default=None)
    """The Git tag semver expression."""

    commit: str | None = field(default=None)
    """The Git commit SHA to checkout."""

    @classmethod
    def parse_doc(cls, doc: dict[str, Any]) -> "GitRepositoryRef":
        """Parse a GitRepositoryRef from a kubernetes resource."""
        return cls(
            branch=scalar(doc.get("branch")),
            tag=scalar(doc.get("tag")),
            semver=scalar(doc.get("semver")),
            commit=scalar(doc.get("commit")),
        )


@dataclass
class GitRepository(BaseManifest):
    """GitRepository represents a Git repository."""

    kind: ClassVar[str] = GIT_REPOSITORY
    """The kind of the object."""

    name: str
    """The name of the GitRepository."""

    namespace: str | None
    """The namespace of owning the GitRepository."""

    url: str
    """The URL to the repository."""

    ref: GitRepositoryRef = field(default_factory=GitRepositoryRef)
    """The Git reference to use for pull and checkout operations."""

    @classmethod
    def parse_doc(cls, doc: dict[str, Any]) -> "GitRepository":
        """Parse a GitRepository from a kubernetes resource."""
        _check_version(doc, SOURCE_DOMAIN)
        metadata = _mapping(doc, "metadata")
        if not (name := scalar(metadata.get("name"))):
            raise InputException(f"Invalid {cls.kind} missing metadata.name: {doc}")
        spec = _mapping(doc, "spec")
        if not (url := scalar(spec.get("url"))):
            raise InputException(f"Invalid {cls.kind} missing spec.url: {doc}")
        return cls(
            name=name,
            namespace=scalar(metadata.get("namespace")),
            url=url,
            ref=GitRepositoryRef.parse_doc(_mapping(spec, "ref")),
        )


@dataclass
class OCIRepositoryRef:
    """OCIRepositoryRef defines the image reference for the OCIRepository's URL."""

    digest: str | None = None
    """The image digest to pull, takes precedence over the tag."""

    tag: str | None = None
    """The image tag to pull, which may include a digest e.g. `v1@sha256:...`."""

    semver: str | None = None
    """The range of tags to pull selecting the latest within the range."""

    @classmethod
    def parse_doc(cls, doc: dict[str, Any]) -> "OCIRepositoryRef":
        """Parse a dictionary into an OCIRepositoryRef."""
        return cls(
            digest=scalar(doc.get("digest")),
            tag=scalar(doc.get("tag")),
            semver=scalar(doc.get("semver")),
        )


@dataclass
class OCIRepository(BaseManifest):
    """A representation of a flux OCIRepository."""

    kind: ClassVar[str] = OCI_REPOSITORY
    """The kind of the object."""

    name: str | None
    """The name of the OCIRepository."""

    namespace: str | None
    """The namespace of owning the OCIRepository."""

    url: str
    """The URL to the repository."""

    ref: OCIRepositoryRef = field(default_factory=OCIRepositoryRef)
    """The OCI reference (tag or digest) to use."""

    @classmethod
    def parse_doc(cls, doc: dict[str, Any]) -> "OCIRepository":
        """Parse an OCIRepository from a kubernetes resource."""
        _check_version(doc, SOURCE_DOMAIN)
        metadata = _mapping(doc, "metadata")
        spec = _mapping(doc, "spec")
        if not (url := scalar(spec.get("url"))):
            raise InputException(f"Invalid {cls.kind} missing spec.url: {doc}")
        return cls(
            name=scalar(metadata.get("name")),
            namespace=scalar(metadata.get("namespace")),
            url=url,
            ref=OCIRepositoryRef.parse_doc(_mapping(spec, "ref")),
        )


@dataclass
class Bucket(BaseManifest):
    """A representation of a flux Bucket source."""

    kind: ClassVar[str] = BUCKET
    """The kind of the object."""

    name: str
    """The name of the Bucket."""

    namespace: str
    """The namespace of owning the Bucket."""

    endpoint: str | None = None
    """The object storage endpoint."""

    bucket_name: str | None = field(
        metadata=field_options(alias="bucketName"), default=None
    )
    """The bucket name within the endpoint."""

    @classmethod
    def parse_doc(cls, doc: dict[str, Any]) -> "Bucket":
        """Parse a Bucket from a kubernetes resource."""
        _check_version(doc, SOURCE_DOMAIN)
        metadata = _mapping(doc, "metadata")
        if not (name := scalar(metadata.get("name"))):
            raise InputException(f"Invalid {cls.kind} missing metadata.name: {doc}")
        if not (namespace := scalar(metadata.get("namespace"))):
            raise InputException(
                f"Invalid {cls.kind} missing metadata.namespace: {doc}"
            )
        spec = _mapping(doc, "spec")
        return cls(
            name=name,
            namespace=namespace,
            endpoint=scalar(spec.get("endpoint")),
            bucket_name=scalar(spec.get("bucketName")),
        )


@dataclass
class HelmRelease(BaseManifest):
    """A representation of a Flux HelmRelease."""

    kind: ClassVar[str] = HELM_RELEASE
    """The kind of the object."""

    name: str | None
    """The name of the HelmRelease."""

    namespace: str | None
    """The namespace that owns the HelmRelease."""

    chart: str | None = None
    """The name of the chart, or a path for charts stored in a source."""

    version: str | None = None
    """The version of the chart."""

    source_ref: SourceReference | None = None
    """The source that serves the chart."""

    chart_ref: SourceReference | None = None
    """A reference to a HelmChart or OCIRepository that provides the chart."""

    values: dict[str, Any] | None = field(
        metadata={"serialize": "omit"}, default=None
    )
    """The values to install in the chart."""

    @classmethod
    def parse_doc(cls, doc: dict[str, Any]) -> "HelmRelease":
        """Parse a HelmRelease from a kubernetes resource object."""
        _check_version(doc, HELM_RELEASE_DOMAIN)
        if not isinstance(metadata := doc.get("metadata"), dict):
            raise InputException(f"Invalid {cls.kind} missing metadata: {doc}")
        spec = _mapping(doc, "spec")
        values = spec.get("values")
        release = cls(
            name=scalar(metadata.get("name")),
            namespace=scalar(metadata.get("namespace")),
            values=values if isinstance(values, dict) else None,
        )
        if "chartRef" in spec:
            release.chart_ref = SourceReference.parse_doc(spec["chartRef"])
            return release
        chart_spec = _mapping(_mapping(spec, "chart"), "spec")
        if not (chart := scalar(chart_spec.get("chart"))):
            raise InputException(
                f"Invalid {cls.kind} missing spec.chart.spec.chart: {doc}"
            )
        release.chart = chart
        release.version = scalar(chart_spec.get("version"))
        release.source_ref = _chart_source_ref(chart_spec)
        return release

    @property
    def is_local_chart(self) -> bool:
        """Return true if the chart is a path within a source."""
        return self.chart is not None and self.chart.startswith(LOCAL_CHART_PREFIXES)


@dataclass
class HelmChart(BaseManifest):
    """A representation of a flux HelmChart source."""

    kind: ClassVar[str] = HELM_CHART
    """The kind of the object."""

    name: str | None
    """The name of the HelmChart."""

    namespace: str | None
    """The namespace that owns the HelmChart."""

    chart: str
    """The name of the chart, or a path for charts stored in a source."""

    version: str | None = None
    """The version of the chart."""

    source_ref: SourceReference | None = None
    """The source that serves the chart."""

    @classmethod
    def parse_doc(cls, doc: dict[str, Any]) -> "HelmChart":
        """Parse a HelmChart from a kubernetes resource object."""
        _check_version(doc, SOURCE_DOMAIN)
        if not isinstance(metadata := doc.get("metadata"), dict):
            raise InputException(f"Invalid {cls.kind} missing metadata: {doc}")
        spec = _mapping(doc, "spec")
        if not (chart := scalar(spec.get("chart"))):
            raise InputException(f"Invalid {cls.kind} missing spec.chart: {doc}")
        return cls(
            name=scalar(metadata.get("name")),
            namespace=scalar(metadata.get("namespace")),
            chart=chart,
            version=scalar(spec.get("version")),
            source_ref=_chart_source_ref(spec),
        )


@dataclass
class KustomizationImage(BaseManifest):
    """An image override in a flux Kustomization."""

    name: str
    """The image name as it appears in the manifests."""

    new_name: str | None = field(metadata=field_options(alias="newName"), default=None)
    """The replacement image name."""

    new_tag: str | None = field(metadata=field_options(alias="newTag"), default=None)
    """The replacement tag."""

    digest: str | None = None
    """The replacement digest."""

    @classmethod
    def parse_doc(cls, doc: Any) -> "KustomizationImage":
        """Parse a single entry of spec.images."""
        if not isinstance(doc, dict):
            raise InputException(f"Invalid image entry, expected a mapping: {doc}")
        if not (name := scalar(doc.get("name"))):
            raise InputException(f"Invalid image entry missing name: {doc}")
        return cls(
            name=name,
            new_name=scalar(doc.get("newName")),
            new_tag=scalar(doc.get("newTag")),
            digest=scalar(doc.get("digest")),
        )

    @property
    def image_name(self) -> str:
        """The effective image name after the override."""
        return self.new_name or self.name


@dataclass
class Kustomization(BaseManifest):
    """A flux Kustomization, used here only for its list of image overrides."""

    kind: ClassVar[str] = KUSTOMIZE_KIND
    """The kind of the object."""

    name: str | None
    """The name of the kustomization."""

    namespace: str | None
    """The namespace of the kustomization."""

    images: list[KustomizationImage] = field(default_factory=list)
    """The image overrides applied by the kustomization."""

    @classmethod
    def parse_doc(cls, doc: dict[str, Any]) -> "Kustomization":
        """Parse a partial Kustomization from a kubernetes resource."""
        _check_version(doc, FLUXTOMIZE_DOMAIN)
        metadata = _mapping(doc, "metadata")
        images: list[KustomizationImage] = []
        entries = _mapping(doc, "spec").get("images")
        for entry in entries if isinstance(entries, list) else ():
            try:
                images.append(KustomizationImage.parse_doc(entry))
            except InputException as err:
                _LOGGER.debug("Skipping Kustomization image: %s", err)
        return cls(
            name=scalar(metadata.get("name")),
            namespace=scalar(metadata.get("namespace")),
            images=images,
        )


SourceResource = Union[HelmRepository, GitRepository, OCIRepository, Bucket]
FluxResource = Union[
    HelmRepository,
    GitRepository,
    OCIRepository,
    Bucket,
    HelmRelease,
    HelmChart,
    Kustomization,
]

KINDS: dict[str, type[FluxResource]] = {
    HELM_REPOSITORY: HelmRepository,
    GIT_REPOSITORY: GitRepository,
    OCI_REPOSITORY: OCIRepository,
    BUCKET: Bucket,
    HELM_RELEASE: HelmRelease,
    HELM_CHART: HelmChart,
    KUSTOMIZE_KIND: Kustomization,
}


def parse_raw_obj(obj: dict[str, Any]) -> FluxResource:
    """Parse a raw kubernetes object into a flux resource."""
    if not (kind := obj.get("kind")):
        raise InputException(f"Invalid object missing kind: {obj}")
    if not obj.get("apiVersion"):
        raise InputException(f"Invalid object missing apiVersion: {obj}")
    if not isinstance(kind, str) or not (cls := KINDS.get(kind)):
        raise InputException(f"Unsupported object kind: {kind}")
    return cls.parse_doc(obj)


def classify(obj: dict[str, Any]) -> FluxResource | None:
    """Return the flux resource for a document or None if it is not supported."""
    try:
        return parse_raw_obj(obj)
    except InputException as err:
        _LOGGER.debug("Ignoring document: %s", err)
        return None
