"""Tests for the flux system manifest."""

import pytest

from flux_deps.system_manifest import extract_system_manifest, is_system_manifest


@pytest.mark.parametrize(
    ("path", "expected"),
    [
        ("gotk-components.yaml", True),
        ("gotk-components.yml", True),
        ("clusters/prod/flux-system/gotk-components.yaml", True),
        ("clusters\\prod\\flux-system\\gotk-components.yaml", True),
        ("clusters/prod/flux-system/gotk-sync.yaml", False),
        ("clusters/prod/my-gotk-components.yaml", False),
        ("gotk-components.yaml.bak", False),
    ],
)
def test_is_system_manifest(path: str, expected: bool) -> None:
    """Test matching system manifest paths."""
    assert is_system_manifest(path) == expected


def test_extract_system_manifest() -> None:
    """Test extracting the flux version and components."""
    dep = extract_system_manifest(
        "# This manifest was generated by flux. DO NOT EDIT.\n"
        "# Flux Version: v2.1.2\n"
        "# Components: source-controller,kustomize-controller\n"
        "---\n"
        "apiVersion: v1\n"
        "kind: Namespace\n"
    )
    assert dep
    assert dep.to_dict() == {
        "depName": "fluxcd/flux2",
        "currentValue": "v2.1.2",
        "datasource": "github-releases",
        "managerData": {"components": "source-controller,kustomize-controller"},
    }


def test_extract_system_manifest_no_version() -> None:
    """Test a manifest without a version header."""
    assert extract_system_manifest("apiVersion: v1\nkind: Namespace\n") is None
