"""External service integrations -- the coding-agent CLIs."""

from .backends import BackendAdapter, BackendRequest, BackendResult, build_adapters

__all__ = ["BackendAdapter", "BackendRequest", "BackendResult", "build_adapters"]
