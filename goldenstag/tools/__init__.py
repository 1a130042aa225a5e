"""Command line tools for goldenstag."""
