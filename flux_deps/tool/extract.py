"""Flux-deps extract action."""

import logging
from argparse import (
    ArgumentParser,
    BooleanOptionalAction,
    _SubParsersAction as SubParsersAction,
)
import pathlib
from typing import Any, cast

from flux_deps import git_repo
from flux_deps.config import ExtractConfig, load_config
from flux_deps.extract import extract_all_package_files

from .format import JsonFormatter, PrintFormatter, StructFormatter, YamlFormatter

_LOGGER = logging.getLogger(__name__)

COLUMNS = ["file", "name", "version", "datasource", "skip"]


class ExtractAction:
    """Extract dependencies from flux manifests."""

    @classmethod
    def register(
        cls, subparsers: SubParsersAction  # type: ignore[type-arg]
    ) -> ArgumentParser:
        """Register the subparser commands."""
        args = cast(
            ArgumentParser,
            subparsers.add_parser(
                "extract",
                help="Print the dependencies pinned in flux manifests",
                description=(
                    "Print the helm charts, images and git repositories pinned in "
                    "flux manifests. With no files, the YAML files tracked in the "
                    "git repository containing --path are read."
                ),
            ),
        )
        args.add_argument(
            "files",
            help="Manifest files to read",
            type=pathlib.Path,
            nargs="*",
        )
        args.add_argument(
            "--path",
            help="Path within a git repository to search for manifest files",
            type=pathlib.Path,
            default=None,
        )
        args.add_argument(
            "--config",
            help="YAML file with extraction configuration e.g. registryAliases",
            type=pathlib.Path,
            default=None,
        )
        args.add_argument(
            "--share-sources",
            default=False,
            action=BooleanOptionalAction,
            help="Resolve references against sources declared in any of the files",
        )
        args.add_argument(
            "--output",
            "-o",
            choices=["table", "yaml", "json"],
            default="table",
            help="Output format of the command",
        )
        args.set_defaults(cls=cls)
        return args

    async def run(  # type: ignore[no-untyped-def]
        self,
        files: list[pathlib.Path],
        path: pathlib.Path | None,
        config: pathlib.Path | None,
        share_sources: bool,
        output: str,
        **kwargs,  # pylint: disable=unused-argument
    ) -> None:
        """Async Action implementation."""
        extract_config = await load_config(config) if config else ExtractConfig()
        if not files:
            files = git_repo.manifest_files(path)
        _LOGGER.debug("Extracting dependencies from %d files", len(files))
        results = await extract_all_package_files(
            extract_config, files, share_sources=share_sources
        )
        if output in {"yaml", "json"}:
            content = [result.to_dict() for result in results or ()]
            formatter: StructFormatter = (
                YamlFormatter() if output == "yaml" else JsonFormatter()
            )
            formatter.print(content)
            return

        if not results:
            print("No dependencies found")
            return

        rows: list[dict[str, Any]] = []
        for result in results:
            for dep in result.deps:
                rows.append(
                    {
                        "file": result.package_file,
                        "name": dep.dep_name,
                        "version": dep.current_value or dep.current_digest,
                        "datasource": dep.datasource,
                        "skip": dep.skip_reason,
                    }
                )
        PrintFormatter(COLUMNS).print(rows)
