"""CLI subcommands: run, walk-forward, compare."""
