"""Library for extracting dependencies from flux manifest files.

A manifest file may contain many YAML documents. Extraction runs in two passes
over the documents of a file:
  - Source objects (HelmRepository, GitRepository, OCIRepository, Bucket) are
    added to a `SourceIndex`.
  - Every object that pins a version is turned into `PackageDependency`
    objects, in document order, resolving chart sources through the index.

Example usage:

```python
from flux_deps import extract
from flux_deps.config import ExtractConfig

config = ExtractConfig(registry_aliases={"ghcr.io": "mirror.example.com/ghcr"})
results = await extract.extract_all_package_files(
    config, ["clusters/prod/apps.yaml", "clusters/prod/sources.yaml"]
)
for package_file in results or []:
    for dep in package_file.deps:
        print(package_file.package_file, dep.dep_name, dep.current_value)
```

Documents that are not flux resources, or that are incomplete, are ignored. A
file that fails to parse contributes nothing rather than failing the batch.
"""

import asyncio
from collections.abc import Sequence
import logging
from pathlib import Path
from typing import Any

import aiofiles
import yaml

from .config import ExtractConfig
from .dependency import (
    DOCKER_DATASOURCE,
    GIT_REFS_DATASOURCE,
    HELM_DATASOURCE,
    SKIP_LOCAL_CHART,
    SKIP_UNKNOWN_REGISTRY,
    SKIP_UNSUPPORTED_DATASOURCE,
    SKIP_UNVERSIONED_REFERENCE,
    PackageDependency,
    PackageFile,
)
from .exceptions import FluxDepsException, InputException
from .git_url import source_url, tag_datasource
from .image import (
    OPTIONAL_VALUE_TEMPLATE,
    VALUE_TEMPLATE,
    apply_registry_aliases,
    image_dependency,
    remove_oci_prefix,
)
from .manifest import (
    GIT_REPOSITORY,
    HELM_REPOSITORY,
    Bucket,
    FluxResource,
    GitRepository,
    HelmChart,
    HelmRelease,
    HelmRepository,
    Kustomization,
    OCIRepository,
    SourceReference,
    classify,
)
from .source_index import SourceIndex
from .system_manifest import extract_system_manifest, is_system_manifest
from .values import extract_values_images

__all__ = [
    "extract_package_file",
    "extract_all_package_files",
]

_LOGGER = logging.getLogger(__name__)

_CONCURRENCY = 20

SOURCE_TYPES = (HelmRepository, GitRepository, OCIRepository, Bucket)

NUMERIC_TAGS = ("tag:yaml.org,2002:int", "tag:yaml.org,2002:float")


class ManifestLoader(yaml.SafeLoader):
    """A SafeLoader that keeps unquoted numbers as written e.g. `version: 1.10`."""


ManifestLoader.yaml_implicit_resolvers = {
    first: [(tag, regexp) for tag, regexp in resolvers if tag not in NUMERIC_TAGS]
    for first, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()
}


def parse_documents(content: str) -> list[dict[str, Any]]:
    """Parse the YAML documents in a file.

    Empty documents are skipped. Any document that is not a mapping makes the
    whole file invalid.
    """
    docs: list[dict[str, Any]] = []
    try:
        for doc in yaml.load_all(content, Loader=ManifestLoader):
            if doc is None:
                continue
            if not isinstance(doc, dict):
                raise InputException(
                    f"Expected a mapping but found {type(doc).__name__}: {doc}"
                )
            docs.append(doc)
    except yaml.YAMLError as err:
        raise InputException(f"Invalid YAML: {err}") from err
    return docs


def read_resources(content: str, package_file: str | None = None) -> list[FluxResource]:
    """Return the flux resources in the content of a file, in document order."""
    try:
        docs = parse_documents(content)
    except InputException as err:
        _LOGGER.debug("Ignoring file %s: %s", package_file, err)
        return []
    return [resource for doc in docs if (resource := classify(doc)) is not None]


def index_sources(
    resources: Sequence[FluxResource], index: SourceIndex | None = None
) -> SourceIndex:
    """Add the source objects to the index."""
    if index is None:
        index = SourceIndex()
    for resource in resources:
        if isinstance(resource, SOURCE_TYPES):
            index.register(resource)
    return index


def _helm_chart_dependency(
    chart: str,
    version: str | None,
    source_ref: SourceReference | None,
    namespace: str | None,
    index: SourceIndex,
    config: ExtractConfig,
) -> PackageDependency:
    """Return the dependency for a chart served by a HelmRepository."""
    dep = PackageDependency(
        dep_name=chart, current_value=version, datasource=HELM_DATASOURCE
    )
    source = index.resolve(source_ref, namespace)
    if not isinstance(source, HelmRepository):
        _LOGGER.debug("No HelmRepository found for chart %s (%s)", chart, source_ref)
        dep.skip_reason = SKIP_UNKNOWN_REGISTRY
        return dep
    if source.is_oci:
        dep.datasource = DOCKER_DATASOURCE
        dep.package_name = apply_registry_aliases(
            f"{remove_oci_prefix(source.url).rstrip('/')}/{chart}",
            config.registry_aliases,
        )
        return dep
    dep.registry_urls = [source.url]
    return dep


def extract_helm_release(
    release: HelmRelease, index: SourceIndex, config: ExtractConfig
) -> list[PackageDependency]:
    """Return the chart and images used by a HelmRelease."""
    if release.chart_ref is not None:
        _LOGGER.debug(
            "Skipping HelmRelease %s using chartRef %s/%s, the chart is reported "
            "by the referenced object",
            release.name,
            release.chart_ref.kind,
            release.chart_ref.name,
        )
        return []
    if not release.chart:
        return []
    if release.is_local_chart:
        return [
            PackageDependency(
                dep_name=release.chart,
                current_value=release.version,
                skip_reason=SKIP_LOCAL_CHART,
            )
        ]
    dep = _helm_chart_dependency(
        release.chart,
        release.version,
        release.source_ref,
        release.namespace,
        index,
        config,
    )
    return [dep, *extract_values_images(release.values, config.registry_aliases)]


def extract_helm_chart(
    chart: HelmChart, index: SourceIndex, config: ExtractConfig
) -> list[PackageDependency]:
    """Return the chart pinned by a HelmChart."""
    kind = chart.source_ref.kind if chart.source_ref else HELM_REPOSITORY
    if kind == GIT_REPOSITORY:
        _LOGGER.debug("Skipping HelmChart %s from a GitRepository", chart.name)
        return []
    if kind == HELM_REPOSITORY:
        return [
            _helm_chart_dependency(
                chart.chart,
                chart.version,
                chart.source_ref,
                chart.namespace,
                index,
                config,
            )
        ]
    return [
        PackageDependency(
            dep_name=chart.chart,
            current_value=chart.version,
            skip_reason=SKIP_UNSUPPORTED_DATASOURCE,
        )
    ]


def extract_git_repository(repo: GitRepository) -> list[PackageDependency]:
    """Return the commit or tag pinned by a GitRepository."""
    if commit := repo.ref.commit:
        return [
            PackageDependency(
                dep_name=repo.name,
                package_name=repo.url,
                current_digest=commit,
                datasource=GIT_REFS_DATASOURCE,
                replace_string=commit,
                source_url=source_url(repo.url),
            )
        ]
    if tag := repo.ref.tag:
        datasource, package_name = tag_datasource(repo.url)
        return [
            PackageDependency(
                dep_name=repo.name,
                package_name=package_name,
                current_value=tag,
                datasource=datasource,
                source_url=source_url(repo.url),
            )
        ]
    return [
        PackageDependency(dep_name=repo.name, skip_reason=SKIP_UNVERSIONED_REFERENCE)
    ]


def extract_oci_repository(
    repo: OCIRepository, config: ExtractConfig
) -> list[PackageDependency]:
    """Return the tag and/or digest pinned by an OCIRepository."""
    if not (image := remove_oci_prefix(repo.url)):
        return []
    aliases = config.registry_aliases
    tag, _, embedded_digest = (repo.ref.tag or "").partition("@")
    if digest := repo.ref.digest:
        if embedded_digest and embedded_digest != digest:
            _LOGGER.warning(
                "OCIRepository %s has conflicting digests in ref.digest (%s) and "
                "ref.tag (%s), using ref.digest",
                repo.name,
                digest,
                repo.ref.tag,
            )
        return [image_dependency(image, digest=digest, registry_aliases=aliases)]
    if repo.ref.tag:
        dep = image_dependency(image, tag or None, embedded_digest or None, aliases)
        dep.replace_string = repo.ref.tag
        dep.auto_replace_string_template = OPTIONAL_VALUE_TEMPLATE
        return [dep]
    dep = image_dependency(image, registry_aliases=aliases)
    dep.skip_reason = SKIP_UNVERSIONED_REFERENCE
    return [dep]


def extract_kustomization(
    kustomization: Kustomization, config: ExtractConfig
) -> list[PackageDependency]:
    """Return the image overrides of a flux Kustomization."""
    deps = []
    for image in kustomization.images:
        dep = image_dependency(
            image.image_name, image.new_tag, image.digest, config.registry_aliases
        )
        if image.new_tag and image.digest:
            dep.replace_string = f"{image.new_tag}@{image.digest}"
            dep.auto_replace_string_template = VALUE_TEMPLATE
        elif image.new_tag:
            dep.replace_string = image.new_tag
            dep.auto_replace_string_template = VALUE_TEMPLATE
        elif image.digest:
            dep.replace_string = image.digest
        elif image.new_name:
            dep.replace_string = image.new_name
        deps.append(dep)
    return deps


def extract_resource(
    resource: FluxResource, index: SourceIndex, config: ExtractConfig
) -> list[PackageDependency]:
    """Return the dependencies pinned by a single flux resource."""
    if isinstance(resource, HelmRelease):
        return extract_helm_release(resource, index, config)
    if isinstance(resource, HelmChart):
        return extract_helm_chart(resource, index, config)
    if isinstance(resource, GitRepository):
        return extract_git_repository(resource)
    if isinstance(resource, OCIRepository):
        return extract_oci_repository(resource, config)
    if isinstance(resource, Kustomization):
        return extract_kustomization(resource, config)
    return []


def _extract_resources(
    resources: list[FluxResource],
    package_file: str | None,
    config: ExtractConfig,
    index: SourceIndex,
) -> PackageFile | None:
    deps = [
        dep
        for resource in resources
        for dep in extract_resource(resource, index, config)
    ]
    if not deps:
        return None
    _LOGGER.debug("Found %d dependencies in %s", len(deps), package_file)
    return PackageFile(deps=deps, package_file=package_file)


def extract_package_file(
    content: str,
    package_file: str | None = None,
    config: ExtractConfig | None = None,
) -> PackageFile | None:
    """Return the dependencies in the content of a single file.

    Returns None when the file has no dependencies, including when it is not
    valid YAML.
    """
    if config is None:
        config = ExtractConfig()
    if package_file is not None and is_system_manifest(package_file):
        if not (dep := extract_system_manifest(content)):
            return None
        return PackageFile(deps=[dep], package_file=package_file)
    if not (resources := read_resources(content, package_file)):
        return None
    return _extract_resources(resources, package_file, config, index_sources(resources))


async def read_package_file(package_file: str | Path) -> str | None:
    """Return the contents of a file, or None if it does not exist."""
    try:
        async with aiofiles.open(str(package_file), encoding="utf-8") as f:
            return await f.read()
    except FileNotFoundError:
        _LOGGER.debug("Skipping missing file %s", package_file)
        return None
    except UnicodeDecodeError as err:
        _LOGGER.debug("Skipping file %s that is not UTF-8: %s", package_file, err)
        return None
    except OSError as err:
        raise FluxDepsException(f"Failed to read file {package_file}: {err}") from err


async def extract_all_package_files(
    config: ExtractConfig | None,
    package_files: Sequence[str | Path],
    *,
    share_sources: bool = False,
) -> list[PackageFile] | None:
    """Return the dependencies for a set of files, preserving their order.

    Files that are missing or have no dependencies are omitted, and None is
    returned when no file has any dependencies. By default a reference only
    resolves against sources declared in the same file; with `share_sources`
    the sources of every file in the batch are visible to all of them.
    """
    if config is None:
        config = ExtractConfig()
    sem = asyncio.Semaphore(_CONCURRENCY)

    async def read(package_file: str | Path) -> str | None:
        async with sem:
            return await read_package_file(package_file)

    contents = await asyncio.gather(
        *(read(package_file) for package_file in package_files)
    )
    shared_index: SourceIndex | None = None
    if share_sources:
        shared_index = SourceIndex()
        for package_file, content in zip(package_files, contents):
            if content is not None and not is_system_manifest(str(package_file)):
                index_sources(read_resources(content, str(package_file)), shared_index)
        _LOGGER.debug("Indexed %d sources across the batch", len(shared_index))

    results: list[PackageFile] = []
    for package_file, content in zip(package_files, contents):
        if content is None:
            continue
        result: PackageFile | None
        if shared_index is None or is_system_manifest(str(package_file)):
            result = extract_package_file(content, str(package_file), config)
        else:
            result = _extract_resources(
                read_resources(content, str(package_file)),
                str(package_file),
                config,
                shared_index,
            )
        if result is not None:
            results.append(result)
    return results or None
