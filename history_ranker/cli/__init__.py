"""Command line interface."""

from history_ranker.cli.main import cli


__all__ = ["cli"]
