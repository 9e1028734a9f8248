"""Workflow actions shipped with the service."""

from .builtin import BUILTIN_ACTIONS, register_builtin_actions

__all__ = ["BUILTIN_ACTIONS", "register_builtin_actions"]
