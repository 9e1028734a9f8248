"""Action Registry for named workflow actions."""

import inspect
from typing import Any, Callable, Dict, Optional

from .exceptions import ConfigurationError, WorkflowExecutionError
from .logging import get_logger

logger = get_logger(__name__)

# An action receives the request's database session and its step parameters
ActionFunction = Callable[..., Dict[str, Any]]


class ActionRegistry:
    """Registry of callables that workflow steps refer to by name."""

    def __init__(self):
        self._actions: Dict[str, Dict[str, Any]] = {}

    def register_action(self, name: str, function: ActionFunction, description: str = "") -> None:
        """Register a Python function as a workflow action.

        Args:
            name: Unique identifier used in workflow definitions
            function: Callable taking (session, params) and returning a dict
            description: Optional description of what the action does

        Raises:
            ConfigurationError: If the name is empty or taken, or the function has the wrong shape
        """
        if not name or not name.strip():
            raise ConfigurationError("Action name cannot be empty")

        name = name.strip()

        if not callable(function):
            raise ConfigurationError(f"Action '{name}' must be callable")

        try:
            parameters = inspect.signature(function).parameters
        except (ValueError, TypeError) as e:
            raise ConfigurationError(f"Cannot inspect signature of action '{name}': {e}")
        if len(parameters) < 2:
            raise ConfigurationError(f"Action '{name}' must accept (session, params)")

        if name in self._actions:
            raise ConfigurationError(f"Action '{name}' is already registered")

        self._actions[name] = {
            "function": function,
            "description": description.strip() if description else "",
        }
        logger.info(f"Registered action '{name}' from {function.__module__}.{function.__name__}")

    def get_action(self, name: str) -> ActionFunction:
        """Retrieve a registered action.

        Raises:
            WorkflowExecutionError: If no action is registered under that name
        """
        entry = self._actions.get((name or "").strip())
        if entry is None:
            raise WorkflowExecutionError(f"Unknown action type '{name}'", action_type=name)
        return entry["function"]

    def action_exists(self, name: str) -> bool:
        return (name or "").strip() in self._actions

    def list_actions(self) -> Dict[str, str]:
        """Map of action names to descriptions."""
        return {name: entry["description"] for name, entry in self._actions.items()}

    def unregister_action(self, name: str) -> bool:
        """Remove an action; returns False if it was not registered."""
        removed = self._actions.pop((name or "").strip(), None)
        if removed:
            logger.info(f"Unregistered action '{name}'")
        return removed is not None

    def clear(self) -> None:
        self._actions.clear()


_default_registry: Optional[ActionRegistry] = None


def get_action_registry() -> ActionRegistry:
    """Get the process-wide registry, registering the built-in actions on first use."""
    global _default_registry
    if _default_registry is None:
        from ..actions.builtin import register_builtin_actions
        registry = ActionRegistry()
        register_builtin_actions(registry)
        _default_registry = registry
    return _default_registry
