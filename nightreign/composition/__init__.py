"""Composition root."""

from .container import SearchContainer, build_container

__all__ = ["SearchContainer", "build_container"]
