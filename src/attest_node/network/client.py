"""OracleClient — async HTTP client for an oracle node.

Used by task creators, aggregators and challengers. Protocol rejections
come back as ``ClientError`` carrying the remote error name, so callers
can branch on e.g. ``"DuplicateResponse"`` without parsing messages.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Sequence

from aiohttp import ClientSession, ClientTimeout

from attest_node.models.notification import Notification
from attest_node.models.proof import NonSignerStakesAndSignature
from attest_node.models.task import Task, TaskResponse, TaskResponseMetadata

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = ClientTimeout(total=10)


class ClientError(Exception):
    """Raised when the node rejects a request."""

    def __init__(self, status: int, error: str, detail: str, context: dict | None = None) -> None:
        super().__init__(f"{error}: {detail}")
        self.status = status
        self.error = error
        self.detail = detail
        self.context = context or {}


class OracleClient:
    def __init__(self, base_url: str, session: ClientSession | None = None) -> None:
        self.base_url = base_url.rstrip("/")
        self._session = session
        self._owns_session = session is None

    async def __aenter__(self) -> OracleClient:
        if self._session is None:
            self._session = ClientSession(timeout=DEFAULT_TIMEOUT)
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()

    async def close(self) -> None:
        if self._session and self._owns_session:
            await self._session.close()
            self._session = None

    async def _request(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        if self._session is None:
            raise RuntimeError("Client not started; use 'async with OracleClient(...)'")
        url = f"{self.base_url}{path}"
        async with self._session.request(method, url, **kwargs) as resp:
            data = await resp.json()
            if resp.status >= 400:
                logger.debug("%s %s -> %d %s", method, path, resp.status, data.get("error"))
                raise ClientError(
                    resp.status,
                    data.get("error", "HTTPError"),
                    data.get("detail", ""),
                    data.get("context"),
                )
            return data

    async def health(self) -> dict[str, Any]:
        return await self._request("GET", "/health")

    async def current_block(self) -> int:
        data = await self._request("GET", "/api/clock")
        return int(data["block"])

    async def create_task(
        self,
        smart_wallet_address: str,
        owner_address: str,
        quorum_ids: Iterable[int],
        threshold_percentage: int,
    ) -> tuple[int, Task]:
        data = await self._request("POST", "/api/tasks", json={
            "smart_wallet_address": smart_wallet_address,
            "owner_address": owner_address,
            "quorum_ids": list(quorum_ids),
            "threshold_percentage": threshold_percentage,
        })
        return int(data["task_index"]), Task.model_validate(data["task"])

    async def submit_response(
        self,
        task: Task,
        response: TaskResponse,
        proof: NonSignerStakesAndSignature,
    ) -> TaskResponseMetadata:
        data = await self._request("POST", "/api/responses", json={
            "task": task.model_dump(mode="json"),
            "response": response.model_dump(mode="json"),
            "proof": proof.model_dump(mode="json"),
        })
        return TaskResponseMetadata.model_validate(data["metadata"])

    async def raise_challenge(
        self,
        task: Task,
        response: TaskResponse,
        metadata: TaskResponseMetadata,
        non_signer_pubkeys: Sequence[str],
        challenger: str,
    ) -> dict[str, Any]:
        return await self._request("POST", "/api/challenges", json={
            "task": task.model_dump(mode="json"),
            "response": response.model_dump(mode="json"),
            "metadata": metadata.model_dump(mode="json"),
            "non_signer_pubkeys": list(non_signer_pubkeys),
            "challenger": challenger,
        })

    async def get_task(self, task_index: int) -> dict[str, Any]:
        return await self._request("GET", f"/api/tasks/{task_index}")

    async def events(self, since: int = 0, limit: int = 100, event_type: str | None = None) -> list[Notification]:
        params: dict[str, Any] = {"since": since, "limit": limit}
        if event_type:
            params["type"] = event_type
        data = await self._request("GET", "/api/events", params=params)
        return [Notification.model_validate(e) for e in data["events"]]
