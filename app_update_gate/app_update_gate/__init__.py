"""
app_update_gate package.

Holds the process-wide helpers for the update gate runtime.
"""

__all__ = [
    "logger",
]
