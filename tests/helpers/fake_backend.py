"""In-process fakes for the remote gateway and the fulfillment backend.

FakeGateway implements the RemoteCaller protocol. Responses are scripted
per (method, path): queued results are consumed in order, and a handler
answers anything left over. A queued result can carry an asyncio.Event
gate so a test can hold a request in flight and release it later.
"""

import asyncio
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Any

from src.services.fulfillment_api import FulfillmentDraft
from src.services.picklist import LocationType, PicklistLine


@dataclass
class RecordedCall:
    """One request seen by FakeGateway."""

    path: str
    method: str
    params: dict | None
    body: Any


@dataclass
class _Scripted:
    result: Any
    gate: asyncio.Event | None = None


def page_body(
    items: list[Any],
    page_no: int,
    total_pages: int,
    total_records: int,
) -> dict:
    """Build a paginated response body."""
    return {
        "data": items,
        "pageNo": page_no,
        "totalPages": total_pages,
        "totalRecords": total_records,
    }


def serve_pages(
    total_records: int, make_item: Callable[[int], Any]
) -> Callable[[RecordedCall], dict]:
    """Handler slicing ``total_records`` generated items by pageNo/pageSize."""

    def handler(call: RecordedCall) -> dict:
        page_no = int(call.params["pageNo"])
        page_size = int(call.params["pageSize"])
        start = (page_no - 1) * page_size
        stop = min(start + page_size, total_records)
        total_pages = max(1, -(-total_records // page_size))
        return page_body(
            [make_item(i) for i in range(start, stop)],
            page_no,
            total_pages,
            total_records,
        )

    return handler


class FakeGateway:
    """Scripted RemoteCaller that records every call."""

    def __init__(self) -> None:
        self.calls: list[RecordedCall] = []
        self._queued: dict[tuple[str, str], list[_Scripted]] = {}
        self._handlers: dict[tuple[str, str], Callable[[RecordedCall], Any]] = {}

    async def __aenter__(self) -> "FakeGateway":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        return None

    def queue(
        self,
        path: str,
        result: Any,
        method: str = "GET",
        gate: asyncio.Event | None = None,
    ) -> None:
        """Queue one response. An exception instance is raised instead of returned."""
        self._queued.setdefault((method, path), []).append(_Scripted(result, gate))

    def handle(
        self, path: str, handler: Callable[[RecordedCall], Any], method: str = "GET"
    ) -> None:
        self._handlers[(method, path)] = handler

    def calls_to(self, path: str, method: str = "GET") -> list[RecordedCall]:
        return [c for c in self.calls if c.path == path and c.method == method]

    async def request(
        self,
        path: str,
        method: str = "GET",
        params: dict | None = None,
        body: Any = None,
        headers: dict | None = None,
    ) -> Any:
        call = RecordedCall(path, method, dict(params) if params else None, body)
        self.calls.append(call)
        key = (method, path)
        if self._queued.get(key):
            scripted = self._queued[key].pop(0)
            if scripted.gate is not None:
                await scripted.gate.wait()
            if isinstance(scripted.result, BaseException):
                raise scripted.result
            return scripted.result
        if key in self._handlers:
            return self._handlers[key](call)
        raise AssertionError(f"Unexpected request: {method} {path}")


@dataclass
class FakeFulfillmentBackend:
    """FulfillmentBackend double with per-operation failure injection.

    Set ``fail_<operation>`` to an OrderUpError to make that call raise it.
    """

    simulated_lines: tuple[PicklistLine, ...] = ()
    draft: FulfillmentDraft | None = None
    created_id: str = "F100"
    fail_simulate: Exception | None = None
    fail_create: Exception | None = None
    fail_update: Exception | None = None
    fail_get: Exception | None = None
    fail_finalize: Exception | None = None
    calls: list[tuple[str, tuple]] = field(default_factory=list)

    async def simulate_fulfillment(
        self, order_ids: list[str], location_id: str, location_type: LocationType
    ) -> tuple[PicklistLine, ...]:
        self.calls.append(("simulate", (list(order_ids), location_id, location_type)))
        if self.fail_simulate:
            raise self.fail_simulate
        return self.simulated_lines

    async def create_fulfillment(
        self, order_ids: Iterable[str], location_id: str, lines: Iterable[PicklistLine]
    ) -> str:
        self.calls.append(("create", (sorted(order_ids), location_id, tuple(lines))))
        if self.fail_create:
            raise self.fail_create
        return self.created_id

    async def update_fulfillment(
        self, fulfillment_id: str, lines: Iterable[PicklistLine]
    ) -> str:
        self.calls.append(("update", (fulfillment_id, tuple(lines))))
        if self.fail_update:
            raise self.fail_update
        return fulfillment_id

    async def get_fulfillment(self, fulfillment_id: str) -> FulfillmentDraft:
        self.calls.append(("get", (fulfillment_id,)))
        if self.fail_get:
            raise self.fail_get
        assert self.draft is not None, "no draft configured"
        return self.draft

    async def finalize_fulfillment(self, fulfillment_id: str) -> None:
        self.calls.append(("finalize", (fulfillment_id,)))
        if self.fail_finalize:
            raise self.fail_finalize

    def operations(self) -> list[str]:
        return [name for name, _ in self.calls]
