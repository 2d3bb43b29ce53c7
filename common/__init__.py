"""Common utilities for SEOMaster."""

from common.email import send_email

__all__ = [
    "send_email",
]
