"""Command line tool for extracting dependencies from flux manifests."""
