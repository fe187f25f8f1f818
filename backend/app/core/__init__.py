"""Core utilities for the Huddle backend."""

from .storage import store_image

__all__ = ["store_image"]
