"""Entry point for `python -m flux_deps`."""

from flux_deps.tool.flux_deps import main

main()
