"""Routing module."""

from .router import MessageRouter, decode_headers

__all__ = ["MessageRouter", "decode_headers"]
