"""Signaling wire protocol."""

from . import protocol  # noqa: F401
from .protocol import ProtocolError  # noqa: F401

__all__ = ["protocol", "ProtocolError"]
