"""Extract the flux version from the flux system manifest.

`flux bootstrap` writes the flux components to `gotk-components.yaml` with a
header comment recording the flux release and the installed components:

```yaml
# This manifest was generated by flux. DO NOT EDIT.
# Flux Version: v0.24.1
# Components: source-controller,kustomize-controller,helm-controller
```
"""

import logging
import re

from .dependency import GITHUB_RELEASES_DATASOURCE, PackageDependency

__all__ = ["is_system_manifest", "extract_system_manifest"]

_LOGGER = logging.getLogger(__name__)

SYSTEM_MANIFEST_RE = re.compile(r"(?:^|/)gotk-components\.ya?ml$")
VERSION_RE = re.compile(r"^#\s*Flux\s+Version:\s*(\S+)", re.MULTILINE)
COMPONENTS_RE = re.compile(r"^#\s*Components:\s*([A-Za-z,-]+)", re.MULTILINE)
FLUX_REPO = "fluxcd/flux2"


def is_system_manifest(package_file: str) -> bool:
    """Return true if the path is a flux system manifest."""
    return SYSTEM_MANIFEST_RE.search(package_file.replace("\\", "/")) is not None


def extract_system_manifest(content: str) -> PackageDependency | None:
    """Return the flux release pinned by a system manifest."""
    if not (version := VERSION_RE.search(content)):
        _LOGGER.debug("System manifest is missing a Flux Version header")
        return None
    dep = PackageDependency(
        dep_name=FLUX_REPO,
        current_value=version.group(1),
        datasource=GITHUB_RELEASES_DATASOURCE,
    )
    if components := COMPONENTS_RE.search(content):
        dep.manager_data = {"components": components.group(1)}
    return dep
