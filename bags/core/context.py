"""
Per-invocation application context shared along the click command chain.

The context lives in a ContextVar so a subcommand can inherit a copy of its
parent's state without touching module-level globals.
"""

from contextvars import ContextVar
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
import logging

logger = logging.getLogger(__name__)


@dataclass
class AppContext:
    """
    State handed from the root ``bags`` group to its subcommands.

    ``services`` holds long-lived collaborators such as the config manager so
    commands do not construct their own.
    """
    config: Dict[str, Any] = field(default_factory=dict)
    services: Dict[str, Any] = field(default_factory=dict)
    debug: bool = False
    verbose: bool = False
    command_stack: List[str] = field(default_factory=list)

    def copy(self) -> 'AppContext':
        """Create a copy of the context for inheritance."""
        return AppContext(
            config=self.config.copy(),
            services=self.services.copy(),
            debug=self.debug,
            verbose=self.verbose,
            command_stack=self.command_stack.copy()
        )

    def push_command(self, command_name: str) -> None:
        self.command_stack.append(command_name)
        logger.debug(f"Command stack: {' -> '.join(self.command_stack)}")

    def pop_command(self) -> Optional[str]:
        if self.command_stack:
            return self.command_stack.pop()
        return None


_app_context: ContextVar[Optional[AppContext]] = ContextVar('app_context', default=None)


def get_current_context() -> AppContext:
    """Get the current application context.

    Raises:
        ValueError: If no context has been set
    """
    context = _app_context.get()
    if context is None:
        raise ValueError("No application context set")
    return context


def set_context(context: AppContext) -> None:
    """Set the application context."""
    _app_context.set(context)


def inherit_context() -> AppContext:
    """
    Create a new context that inherits from the current one.

    Returns:
        Copy of the current context, or a fresh context when none is set
    """
    try:
        return get_current_context().copy()
    except ValueError:
        logger.debug("No current context found, creating new context")
        return AppContext()
