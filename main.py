"""Thin shim for IDEs and direct execution."""

from world_news.cli import main

if __name__ == "__main__":
    import sys

    # Default to debug logging when run directly, unless the caller chose a level.
    if not any(arg.startswith("--log-level") for arg in sys.argv):
        sys.argv[1:1] = ["--log-level", "DEBUG"]

    sys.exit(main())
