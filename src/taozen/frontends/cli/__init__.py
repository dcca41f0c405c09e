"""Command-line interface for taozen."""

from taozen.frontends.cli.main import main

__all__ = ["main"]
