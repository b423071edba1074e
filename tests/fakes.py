"""Test doubles shared across test modules"""

import asyncio
from typing import Any

from src.domain.enums import ActionType


class RecordingEffects:
    """Action effects double that records every call.

    ``failures`` maps an action type to the exception it should raise.
    """

    def __init__(self, failures: dict[str, Exception] | None = None):
        self.calls: list[dict[str, Any]] = []
        self.failures = failures or {}

    async def perform(
        self, action_type: ActionType, config: dict[str, Any], context: dict[str, Any]
    ) -> dict[str, Any]:
        self.calls.append({"type": action_type.value, "config": config, "context": context})
        failure = self.failures.get(action_type.value)
        if failure is not None:
            raise failure
        return {"performed": action_type.value}


class BlockingSleep:
    """Sleep double that signals when a delay starts, then waits until cancelled"""

    def __init__(self):
        self.waiting = asyncio.Event()

    async def __call__(self, seconds: float) -> None:
        self.waiting.set()
        await asyncio.Event().wait()
