"""Test helpers for flux-deps tools."""

import json
from typing import Any

import pytest

from flux_deps.tool.flux_deps import main


def run_main(capsys: pytest.CaptureFixture[str], args: list[str]) -> str:
    """Run the command line tool and return its output."""
    capsys.readouterr()
    main(args)
    return capsys.readouterr().out


def run_main_json(capsys: pytest.CaptureFixture[str], args: list[str]) -> Any:
    """Run the command line tool with json output and return the parsed result."""
    return json.loads(run_main(capsys, args + ["--output", "json"]))
