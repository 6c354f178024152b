"""Core utilities for the Huddle backend."""

from .storage import LocalMediaHost, decode_image_payload

__all__ = ["LocalMediaHost", "decode_image_payload"]
