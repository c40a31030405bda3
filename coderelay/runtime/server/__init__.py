"""Server module -- aiohttp application factory and HTTP/WS handlers."""

from __future__ import annotations

from .app import AppFactory, create_app, main
from .wiring import Services, create_adapter, create_services

__all__ = ["AppFactory", "Services", "create_adapter", "create_app", "create_services", "main"]
