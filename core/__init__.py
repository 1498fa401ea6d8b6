"""
Core helpers for the app update gate shared across entry points.
"""

from .exit_codes import TerminalState, exit_code_for  # noqa: F401
from .profile_registry import ProfileRegistry  # noqa: F401
