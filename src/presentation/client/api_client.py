"""Async HTTP client for the workflow API"""

from typing import Any

import httpx

from src.domain.exceptions import AgencyOpsException
from src.shared.telemetry.logging import get_logger

logger = get_logger(__name__)


class WorkflowApiError(AgencyOpsException):
    """Raised when the workflow API answers with an error status"""

    def __init__(
        self,
        message: str,
        status_code: int,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.status_code = status_code
        super().__init__(message, error_code or "API_ERROR", details)

    @classmethod
    def from_response(cls, response: httpx.Response) -> "WorkflowApiError":
        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}
        message = body.get("message") or body.get("detail") or f"HTTP {response.status_code}"
        return cls(
            str(message),
            response.status_code,
            error_code=body.get("error"),
            details=body.get("details") if isinstance(body.get("details"), dict) else None,
        )


class WorkflowApiClient:
    """
    Thin wrapper over ``httpx.AsyncClient`` for the ``/workflows`` endpoints.

    Pass ``client`` to reuse a configured client (tests pass one bound to an
    ASGI or mock transport); otherwise one is created and owned here.
    """

    def __init__(
        self,
        base_url: str = "",
        token: str | None = None,
        client: httpx.AsyncClient | None = None,
        timeout: float = 10.0,
    ):
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(base_url=base_url, timeout=timeout)
        self._headers = headers

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        try:
            response = await self._client.request(
                method, f"/workflows{path}", headers=self._headers, **kwargs
            )
        except httpx.HTTPError as e:
            logger.error("Workflow API request failed: %s %s: %s", method, path, e)
            raise WorkflowApiError(f"Request failed: {e}", 0, "TRANSPORT_ERROR") from e

        if response.is_error:
            raise WorkflowApiError.from_response(response)
        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    async def list_workflows(self, include_runs: bool = False) -> list[dict[str, Any]]:
        params = {"include_runs": "true"} if include_runs else None
        body = await self._request("GET", "", params=params)
        return body["workflows"]

    async def create_workflow(self, payload: dict[str, Any]) -> dict[str, Any]:
        return await self._request("POST", "", json=payload)

    async def update_workflow(self, workflow_id: str, payload: dict[str, Any]) -> dict[str, Any]:
        return await self._request("PATCH", f"/{workflow_id}", json=payload)

    async def toggle_workflow(self, workflow_id: str, is_active: bool) -> dict[str, Any]:
        return await self._request("PATCH", f"/{workflow_id}/toggle", json={"is_active": is_active})

    async def delete_workflow(self, workflow_id: str) -> None:
        await self._request("DELETE", f"/{workflow_id}")

    async def list_runs(self, workflow_id: str | None = None, limit: int = 50) -> list[dict[str, Any]]:
        path = f"/{workflow_id}/runs" if workflow_id else "/runs"
        body = await self._request("GET", path, params={"limit": limit})
        return body["runs"]

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
