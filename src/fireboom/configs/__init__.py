"""
Configuration: typed registry, environment files, logging and auth key.
"""

from __future__ import annotations

from .env import Environment
from .registry import ConfigRegistry

__all__ = ["ConfigRegistry", "Environment"]
