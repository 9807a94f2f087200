"""CLI entry point for swarm-memory.

Usage:
    python -m swarmmemory stats
    python -m swarmmemory keys "agent:planner:*"
"""

import sys


def main() -> int:
    """Main entry point for the swarm-memory CLI."""
    from swarmmemory.cli import run_cli

    return run_cli(sys.argv[1:])


if __name__ == "__main__":
    sys.exit(main())
