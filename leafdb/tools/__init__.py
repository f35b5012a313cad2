"""Command-line tools for LeafDB."""
