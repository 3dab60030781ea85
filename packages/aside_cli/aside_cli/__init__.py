"""Command line tools for aside-cache."""
