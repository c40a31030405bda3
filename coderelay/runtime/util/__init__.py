"""Shared utilities."""

from .env_file import EnvFile
from .paths import repo_name, resolve_channel_project, resolve_project_dir
from .result import Result
from .singletons import register_singleton, reset_all_singletons

__all__ = [
    "EnvFile",
    "Result",
    "register_singleton",
    "repo_name",
    "reset_all_singletons",
    "resolve_channel_project",
    "resolve_project_dir",
]
