#!/usr/bin/env python3
"""Main entry point for FinMoE."""

from finmoe.cli import main


if __name__ == "__main__":
    raise SystemExit(main())
