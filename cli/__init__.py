"""CLI package for operating the PyroGuard dashboard service."""

from importlib import import_module
from types import ModuleType


def __getattr__(name: str) -> ModuleType:
    if name == "app":
        return import_module("cli.app")
    raise AttributeError(name)

# The Typer application lives in ``cli.app``; tests patch ``cli.app.ApiClient``
# so the module path must keep resolving to the module, not the Typer instance.

__all__ = []
