"""
Service interfaces (ports) for the application layer.

These protocols define the contracts for application services.
Following Dependency Inversion Principle (DIP).
"""

from __future__ import annotations

from typing import Any, Protocol

from src.domain.enums import ActionType


class IActionEffects(Protocol):
    """
    Side-effect collaborator the run engine dispatches actions to (DIP).

    Implementations raise ActionExecutionError for recoverable failures and
    UnrecoverableActionError when the rest of the run must be aborted.
    """

    async def perform(
        self,
        action_type: ActionType,
        config: dict[str, Any],
        context: dict[str, Any],
    ) -> dict[str, Any]:
        """Perform one action with its fully substituted config, return its output"""
        ...
