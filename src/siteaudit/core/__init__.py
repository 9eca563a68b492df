"""Core schema helpers for the site audit."""

from .keys import *  # noqa: F401,F403 re-export stable keys

__all__ = [name for name in globals() if name.startswith("K_")]
