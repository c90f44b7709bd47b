"""Identifier generation."""

from cuid2 import cuid_wrapper

cuid = cuid_wrapper()


def new_id() -> str:
    """Generate a new CUID for threads, messages, tool calls and sessions."""
    return cuid()
