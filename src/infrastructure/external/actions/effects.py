"""Action effect collaborators the run engine dispatches to.

Two implementations of ``IActionEffects``:
- ``LoggingActionEffects``: dry run, records what would have happened
- ``HttpActionEffects``: POSTs each action to an effects service

Failure classification for the HTTP transport:
- 4xx: the request itself is wrong, retrying the run will not help (unrecoverable)
- 5xx, timeouts, connection errors: transient (recoverable)
"""

from __future__ import annotations

from typing import Any

import httpx

from src.domain.enums import ActionType
from src.domain.exceptions import ActionExecutionError, UnrecoverableActionError
from src.infrastructure.config.settings import Settings
from src.shared.telemetry.logging import get_logger

logger = get_logger(__name__)


class LoggingActionEffects:
    """Dry-run effects: log the action and report it as performed."""

    async def perform(
        self,
        action_type: ActionType,
        config: dict[str, Any],
        context: dict[str, Any],
    ) -> dict[str, Any]:
        agency = context.get("agency") or {}
        logger.info(
            "Dry run %s for agency %s: %s",
            action_type.value,
            agency.get("id"),
            config,
        )
        return {"dry_run": True, "action_type": action_type.value, "config": config}


class HttpActionEffects:
    """Effects performed by a remote service at ``{base_url}/{action_type}``."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
        headers: dict[str, str] | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout, headers=headers)

    async def perform(
        self,
        action_type: ActionType,
        config: dict[str, Any],
        context: dict[str, Any],
    ) -> dict[str, Any]:
        url = f"{self.base_url}/{action_type.value}"
        try:
            response = await self._client.post(url, json={"config": config, "context": context})
        except httpx.HTTPError as e:
            logger.warning("Effects request for %s failed: %s", action_type.value, e)
            raise ActionExecutionError(
                action_type.value, f"Effects service unreachable: {e.__class__.__name__}"
            ) from e

        if response.status_code >= 500:
            raise ActionExecutionError(
                action_type.value,
                f"Effects service error (HTTP {response.status_code})",
                {"status_code": response.status_code},
            )
        if response.status_code >= 400:
            raise UnrecoverableActionError(
                action_type.value,
                f"Effects service rejected action (HTTP {response.status_code}): "
                f"{response.text[:200]}",
                {"status_code": response.status_code},
            )

        try:
            body = response.json()
        except ValueError:
            return {"status_code": response.status_code}
        return body if isinstance(body, dict) else {"result": body}

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


def build_action_effects(
    settings: Settings, client: httpx.AsyncClient | None = None
) -> LoggingActionEffects | HttpActionEffects:
    """HTTP effects when ``action_effects_url`` is configured, dry run otherwise"""
    if settings.action_effects_url:
        return HttpActionEffects(
            settings.action_effects_url,
            timeout=settings.action_effects_timeout_seconds,
            client=client,
        )
    return LoggingActionEffects()
