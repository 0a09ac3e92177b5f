"""
HTTP client for the remote task/list store.

This is the transport boundary: every response is unwrapped from its
optional ``{data: ...}`` envelope and validated into typed models here,
so callers never branch on response shape.
"""

from __future__ import annotations

from typing import Any, Sequence

import httpx
import structlog
from pydantic import TypeAdapter, ValidationError

from kanban_shared.schemas.common import unwrap_envelope
from kanban_shared.schemas.lists import (
    BoardList,
    BoardListCreate,
    BoardListUpdate,
    ListOrderItem,
    ListReorderRequest,
)
from kanban_shared.schemas.tasks import (
    CommentCreate,
    ReorderItem,
    ReorderRequest,
    StatusPatch,
    Task,
    TaskCreate,
    TaskUpdate,
)

from .errors import RemoteStoreError, RemoteUnavailableError

log = structlog.get_logger()

_TASKS = TypeAdapter(list[Task])
_LISTS = TypeAdapter(list[BoardList])


def _body(model) -> dict[str, Any]:
    return model.model_dump(mode="json", by_alias=True, exclude_unset=True)


class RemoteTaskStore:
    """
    Async client for the task store REST API.

    Failures surface as ``RemoteStoreError`` (HTTP error status) or
    ``RemoteUnavailableError`` (transport). No retries happen here; the
    sync coordinator decides how to recover.
    """

    def __init__(
        self,
        base_url: str,
        api_prefix: str = "/api/tasks",
        verify_tls: bool = True,
        request_timeout: int = 30,
        token: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._prefix = "/" + api_prefix.strip("/")
        self._verify_tls = verify_tls
        self._request_timeout = request_timeout
        self._token = token
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def open(self) -> None:
        headers = {}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=httpx.Timeout(self._request_timeout),
            verify=self._verify_tls,
            headers=headers,
            transport=self._transport,
        )

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "RemoteTaskStore":
        await self.open()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def _request(self, method: str, path: str, json: Any = None) -> Any:
        assert self._client, "RemoteTaskStore.open() was not awaited"
        url = f"{self._prefix}{path}"
        try:
            resp = await self._client.request(method, url, json=json)
            resp.raise_for_status()
        except httpx.HTTPStatusError as exc:
            message = _error_message(exc.response)
            log.warning(
                "remote.http_error",
                method=method,
                path=url,
                status=exc.response.status_code,
                message=message,
            )
            raise RemoteStoreError(message, exc.response.status_code) from exc
        except httpx.TransportError as exc:
            log.warning("remote.unreachable", method=method, path=url, error=str(exc))
            raise RemoteUnavailableError(f"Task store unreachable: {exc}") from exc

        if not resp.content:
            return None
        try:
            return unwrap_envelope(resp.json())
        except ValueError as exc:
            raise RemoteStoreError(f"Non-JSON response from task store: {url}", resp.status_code) from exc

    def _parse(self, adapter_or_model, payload: Any):
        try:
            if isinstance(adapter_or_model, TypeAdapter):
                return adapter_or_model.validate_python(payload or [])
            return adapter_or_model.model_validate(payload)
        except ValidationError as exc:
            raise RemoteStoreError(f"Malformed response from task store: {exc}") from exc

    # --- Tasks ---

    async def list_tasks(self) -> list[Task]:
        return self._parse(_TASKS, await self._request("GET", ""))

    async def get_task(self, task_id: str) -> Task:
        return self._parse(Task, await self._request("GET", f"/{task_id}"))

    async def create_task(self, task_in: TaskCreate) -> Task:
        return self._parse(Task, await self._request("POST", "", _body(task_in)))

    async def update_task(self, task_id: str, changes: TaskUpdate) -> Task:
        return self._parse(Task, await self._request("PUT", f"/{task_id}", _body(changes)))

    async def delete_task(self, task_id: str) -> None:
        await self._request("DELETE", f"/{task_id}")

    async def update_task_status(self, task_id: str, status: str, order: int) -> Task:
        patch = StatusPatch(status=status, order=order)
        return self._parse(
            Task, await self._request("PATCH", f"/{task_id}/status", _body(patch))
        )

    async def reorder_tasks(self, items: Sequence[ReorderItem]) -> None:
        await self._request("PATCH", "/reorder", _body(ReorderRequest(tasks=list(items))))

    async def add_comment(self, task_id: str, text: str, author: str) -> Task:
        comment = CommentCreate(text=text, author=author)
        return self._parse(
            Task, await self._request("POST", f"/{task_id}/comments", _body(comment))
        )

    # --- Board lists ---

    async def list_lists(self) -> list[BoardList]:
        return self._parse(_LISTS, await self._request("GET", "/lists"))

    async def create_list(self, list_in: BoardListCreate) -> BoardList:
        return self._parse(BoardList, await self._request("POST", "/lists", _body(list_in)))

    async def update_list(self, list_id: str, changes: BoardListUpdate) -> BoardList:
        return self._parse(
            BoardList, await self._request("PUT", f"/lists/{list_id}", _body(changes))
        )

    async def delete_list(self, list_id: str) -> None:
        await self._request("DELETE", f"/lists/{list_id}")

    async def reorder_lists(self, items: Sequence[ListOrderItem]) -> None:
        await self._request(
            "PATCH", "/lists/reorder", _body(ListReorderRequest(lists=list(items)))
        )

    # --- Health ---

    async def check_health(self) -> bool:
        if not self._client:
            return False
        try:
            resp = await self._client.get(f"{self._prefix}/lists")
            return resp.status_code == 200
        except httpx.HTTPError:
            return False


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"
    if isinstance(body, dict):
        return str(body.get("message") or body.get("detail") or body)
    return str(body)
