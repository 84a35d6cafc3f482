"""Periodic expiry sweep worker."""

from .main import main, run, run_once

__all__ = ["main", "run", "run_once"]
