"""Container images referenced in HelmRelease values.

Charts commonly take their image as a mapping under an `image` key:

```yaml
values:
  image:
    registry: ghcr.io
    repository: org/app
    tag: v1.2.3
```

or as a single string `image: ghcr.io/org/app:v1.2.3`. Any key ending in
`image` (e.g. `sidecarImage`) is considered.
"""

import logging
import re
from typing import Any

from .dependency import DOCKER_DATASOURCE, PackageDependency
from .image import IMAGE_TEMPLATE, VALUE_TEMPLATE, image_dependency, parse_image
from .manifest import scalar

__all__ = ["extract_values_images"]

_LOGGER = logging.getLogger(__name__)

IMAGE_KEY_RE = re.compile(r"image$", re.IGNORECASE)


def _image_mapping(
    value: dict[str, Any], registry_aliases: dict[str, str] | None
) -> PackageDependency | None:
    """Return a dependency for an image mapping with a repository and tag."""
    repository = scalar(value.get("repository"))
    tag = scalar(value.get("tag", value.get("version")))
    if not repository or not tag:
        return None
    if registry := scalar(value.get("registry")):
        repository = f"{registry.rstrip('/')}/{repository}"
    name, _, digest = tag.partition("@")
    dep = image_dependency(repository, name or None, digest or None, registry_aliases)
    dep.versioning = DOCKER_DATASOURCE
    dep.replace_string = tag
    dep.auto_replace_string_template = VALUE_TEMPLATE
    return dep


def _extract_images(
    values: dict[str, Any],
    registry_aliases: dict[str, str] | None,
) -> list[PackageDependency]:
    deps: list[PackageDependency] = []
    for key, value in values.items():
        is_image_key = isinstance(key, str) and IMAGE_KEY_RE.search(key)
        if is_image_key and isinstance(value, dict):
            if dep := _image_mapping(value, registry_aliases):
                deps.append(dep)
                continue
        if is_image_key and isinstance(value, str) and value:
            dep = parse_image(value, registry_aliases)
            dep.replace_string = value
            dep.auto_replace_string_template = IMAGE_TEMPLATE
            deps.append(dep)
        elif isinstance(value, dict):
            deps.extend(_extract_images(value, registry_aliases))
        elif isinstance(value, list):
            for item in value:
                if isinstance(item, dict):
                    deps.extend(_extract_images(item, registry_aliases))
    return deps


def extract_values_images(
    values: dict[str, Any] | None,
    registry_aliases: dict[str, str] | None = None,
) -> list[PackageDependency]:
    """Return the container images referenced in HelmRelease values."""
    if not values:
        return []
    deps = _extract_images(values, registry_aliases)
    _LOGGER.debug("Found %d images in values", len(deps))
    return deps
