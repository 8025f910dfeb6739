"""
Core module - constants, error codes and helpers.
"""

from __future__ import annotations

from .errcode import CustomError, ErrCode, is_code, new_custom_error, render_message

__all__ = [
    "CustomError",
    "ErrCode",
    "is_code",
    "new_custom_error",
    "render_message",
]
