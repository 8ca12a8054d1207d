"""Offline operator tools (`python -m tools <command>`)."""
