"""Helper functions for working with container images.

Container image references found in OCIRepository objects, Kustomization image
lists, OCI helm repositories and helm values all share the same normalization:
a reference is split into a name, tag and digest, and the name may be rewritten
through the configured registry aliases to find the registry to query.
"""

import logging

from .dependency import DOCKER_DATASOURCE, PackageDependency

_LOGGER = logging.getLogger(__name__)

OCI_PREFIX = "oci://"

# Rebuilds a reference that always carries a value e.g. `v1` or `v1@sha256:...`
VALUE_TEMPLATE = "{{newValue}}{{#if newDigest}}@{{newDigest}}{{/if}}"

# Rebuilds a reference where the value may be dropped in favor of a digest
OPTIONAL_VALUE_TEMPLATE = (
    "{{#if newValue}}{{newValue}}{{/if}}{{#if newDigest}}@{{newDigest}}{{/if}}"
)

# Rebuilds a full inline image reference e.g. `ghcr.io/org/image:v1`
IMAGE_TEMPLATE = (
    "{{depName}}{{#if newValue}}:{{newValue}}{{/if}}"
    "{{#if newDigest}}@{{newDigest}}{{/if}}"
)


def remove_oci_prefix(url: str) -> str:
    """Return the image path for an oci:// url."""
    if url.startswith(OCI_PREFIX):
        return url[len(OCI_PREFIX) :]
    return url


def is_oci_url(url: str) -> bool:
    """Return true if the url points at an OCI registry."""
    return url.startswith(OCI_PREFIX)


def split_image(image: str) -> tuple[str, str | None, str | None]:
    """Split an image reference into the name, tag and digest.

    The tag separator is only recognized after the last path segment so that
    registries with a port (e.g. `localhost:5000/app`) keep their port.
    """
    name, sep, digest = image.partition("@")
    tag: str | None = None
    last_slash = name.rfind("/")
    colon = name.rfind(":")
    if colon > last_slash:
        name, tag = name[:colon], name[colon + 1 :]
    return name, (tag or None), (digest if sep and digest else None)


def apply_registry_aliases(name: str, registry_aliases: dict[str, str] | None) -> str:
    """Rewrite the registry prefix of an image name using the alias table.

    The first alias whose key is a path prefix of the name is applied.
    """
    for alias, replacement in (registry_aliases or {}).items():
        prefix = f"{alias.rstrip('/')}/"
        if name.startswith(prefix):
            rewritten = f"{replacement.rstrip('/')}/{name[len(prefix):]}"
            _LOGGER.debug("Applied registry alias %s: %s -> %s", alias, name, rewritten)
            return rewritten
    return name


def image_dependency(
    name: str,
    tag: str | None = None,
    digest: str | None = None,
    registry_aliases: dict[str, str] | None = None,
) -> PackageDependency:
    """Build a docker dependency for an image name with an optional tag/digest."""
    return PackageDependency(
        dep_name=name,
        package_name=apply_registry_aliases(name, registry_aliases),
        current_value=tag,
        current_digest=digest,
        datasource=DOCKER_DATASOURCE,
    )


def parse_image(
    image: str, registry_aliases: dict[str, str] | None = None
) -> PackageDependency:
    """Build a docker dependency from a full image reference string."""
    name, tag, digest = split_image(image)
    return image_dependency(name, tag, digest, registry_aliases)
