"""Tests for extracting images from HelmRelease values."""

from typing import Any

import yaml

from flux_deps.values import extract_values_images

VALUE_TEMPLATE = "{{newValue}}{{#if newDigest}}@{{newDigest}}{{/if}}"
IMAGE_TEMPLATE = (
    "{{depName}}{{#if newValue}}:{{newValue}}{{/if}}"
    "{{#if newDigest}}@{{newDigest}}{{/if}}"
)


def extract(values: str, aliases: dict[str, str] | None = None) -> list[dict[str, Any]]:
    return [
        dep.to_dict() for dep in extract_values_images(yaml.safe_load(values), aliases)
    ]


def test_no_values() -> None:
    """Test releases without values."""
    assert extract_values_images(None) == []
    assert extract_values_images({}) == []


def test_image_mapping() -> None:
    """Test an image mapping with a registry, repository and tag."""
    assert extract(
        """
        image:
          registry: ghcr.io
          repository: org/app
          tag: v1.2.3
        """,
        {"ghcr.io": "mirror.test/ghcr"},
    ) == [
        {
            "depName": "ghcr.io/org/app",
            "packageName": "mirror.test/ghcr/org/app",
            "currentValue": "v1.2.3",
            "datasource": "docker",
            "versioning": "docker",
            "replaceString": "v1.2.3",
            "autoReplaceStringTemplate": VALUE_TEMPLATE,
        }
    ]


def test_image_mapping_with_digest() -> None:
    """Test a tag that carries a digest."""
    digest = "sha256:" + "a" * 64
    assert extract(
        f"""
        controller:
          image:
            repository: quay.io/org/app
            tag: "v1@{digest}"
        """
    ) == [
        {
            "depName": "quay.io/org/app",
            "packageName": "quay.io/org/app",
            "currentValue": "v1",
            "currentDigest": digest,
            "datasource": "docker",
            "versioning": "docker",
            "replaceString": f"v1@{digest}",
            "autoReplaceStringTemplate": VALUE_TEMPLATE,
        }
    ]


def test_image_strings() -> None:
    """Test inline image references, including in lists."""
    deps = extract(
        """
        sidecarImage: busybox:1.36
        initContainers:
        - name: init
          image: alpine:3.18
        replicaCount: 2
        """
    )
    assert deps == [
        {
            "depName": "busybox",
            "packageName": "busybox",
            "currentValue": "1.36",
            "datasource": "docker",
            "replaceString": "busybox:1.36",
            "autoReplaceStringTemplate": IMAGE_TEMPLATE,
        },
        {
            "depName": "alpine",
            "packageName": "alpine",
            "currentValue": "3.18",
            "datasource": "docker",
            "replaceString": "alpine:3.18",
            "autoReplaceStringTemplate": IMAGE_TEMPLATE,
        },
    ]


def test_image_mapping_without_tag() -> None:
    """Test an image mapping that leaves the tag to the chart is ignored."""
    assert (
        extract(
            """
            image:
              repository: ghcr.io/org/app
              pullPolicy: IfNotPresent
            """
        )
        == []
    )
