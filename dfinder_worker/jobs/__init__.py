"""Command-line jobs for the duplicate finder worker."""
