"""
Utility functions and helpers for MODINJECT.

This module provides utility functions used across the MODINJECT codebase.
"""

from .formatting import compose_message, flatten, stringify

__all__ = ["compose_message", "flatten", "stringify"]
