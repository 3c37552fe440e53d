"""Index of the source objects declared alongside consumer objects.

HelmReleases and HelmCharts refer to the HelmRepository that serves their chart
by kind, name and namespace. The index is populated with every source object
before any reference is resolved so that a release may appear before or after
its repository in the same file.
"""

import logging

from .manifest import NamedResource, SourceReference, SourceResource

__all__ = ["SourceIndex"]

_LOGGER = logging.getLogger(__name__)


class SourceIndex:
    """A table of source objects keyed by kind, namespace and name."""

    def __init__(self) -> None:
        """Initialize SourceIndex."""
        self._sources: dict[NamedResource, SourceResource] = {}

    def register(self, source: SourceResource) -> None:
        """Add a source object to the index, replacing any previous entry.

        Sources without both a name and namespace can never be referenced and
        are not indexed.
        """
        if not source.name or not source.namespace:
            _LOGGER.debug("Not indexing %s without a name and namespace", source.kind)
            return
        key = NamedResource(
            kind=source.kind, namespace=source.namespace, name=source.name
        )
        if key in self._sources:
            _LOGGER.debug("Replacing duplicate source %s", key)
        self._sources[key] = source

    def lookup(
        self, kind: str, namespace: str | None, name: str
    ) -> SourceResource | None:
        """Return the source object with the identity, if any."""
        return self._sources.get(
            NamedResource(kind=kind, namespace=namespace, name=name)
        )

    def resolve(
        self, reference: SourceReference | None, consumer_namespace: str | None
    ) -> SourceResource | None:
        """Return the source object a reference points at.

        A reference without a namespace refers to an object in the namespace
        of the consumer. An unset namespace never matches anything.
        """
        if reference is None or not reference.kind or not reference.name:
            return None
        if not (namespace := reference.namespace or consumer_namespace):
            _LOGGER.debug(
                "Unable to resolve %s/%s without a namespace",
                reference.kind,
                reference.name,
            )
            return None
        return self.lookup(reference.kind, namespace, reference.name)

    def __len__(self) -> int:
        """Return the number of indexed sources."""
        return len(self._sources)

    def __contains__(self, key: NamedResource) -> bool:
        """Return true if a source with the identity is indexed."""
        return key in self._sources
