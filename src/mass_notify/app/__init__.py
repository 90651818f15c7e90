"""Application wiring for the command-line entry point."""

from mass_notify.app.runner import build_engine, open_engine

__all__ = ["build_engine", "open_engine"]
