"""Incremental loader for server-paginated collections.

A PaginatedFetcher owns one live collection backed by an endpoint that
accepts ``pageNo``/``pageSize`` query parameters and answers with
``{data, pageNo, totalPages, totalRecords}``. It accumulates pages,
tracks totals, and publishes an immutable PageState snapshot to every
subscriber after each mutation.

Concurrency model (single asyncio loop):
- At most one request is in flight per fetcher. ``load_next_page`` is a
  no-op while a load is running or when there are no more pages.
- Every request captures a generation token. ``reset`` and query
  changes bump the generation, so a response that lands after its query
  was superseded is dropped instead of clobbering newer state.
- A next-page response whose page number does not exceed the page
  already loaded is dropped, so racing loads can never append twice.

Failures never propagate to the caller. They are stored in
``PageState.last_error`` and previously loaded items stay visible.
Nothing retries automatically; the caller decides.
"""

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field, replace
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from src.errors import OrderUpError, ResponseParseError
from src.services.gateway import RemoteCaller

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_PAGE_SIZE = 20

ParamValue = str | int
Listener = Callable[["PageState[Any]"], None]


@dataclass(frozen=True)
class QuerySpec:
    """Identity of a paginated collection: endpoint plus flat parameters.

    Parameters are stored sorted by name, so two specs built from the
    same mapping in a different order compare (and hash) equal.
    """

    endpoint: str
    params: tuple[tuple[str, ParamValue], ...] = ()

    @classmethod
    def create(
        cls, endpoint: str, params: Mapping[str, ParamValue] | None = None
    ) -> "QuerySpec":
        items = sorted((params or {}).items(), key=lambda kv: kv[0])
        return cls(endpoint=endpoint, params=tuple(items))

    def as_dict(self) -> dict[str, ParamValue]:
        return dict(self.params)

    def merged(self, patch: Mapping[str, ParamValue | None]) -> "QuerySpec":
        """Return a spec with ``patch`` applied. A None value removes the key."""
        params = self.as_dict()
        for key, value in patch.items():
            if value is None:
                params.pop(key, None)
            else:
                params[key] = value
        return QuerySpec.create(self.endpoint, params)


@dataclass(frozen=True)
class PageState(Generic[T]):
    """Snapshot of one paginated collection.

    Invariant: ``has_more == (current_page < total_pages)``.
    """

    items: tuple[T, ...] = ()
    current_page: int = 0  # 0 = nothing loaded yet
    total_pages: int = 1
    total_records: int = 0
    has_more: bool = True
    is_loading: bool = False
    last_error: OrderUpError | None = field(default=None, compare=False)


class PaginatedResponse(BaseModel):
    """Wire shape of one page."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    data: list[Any] = Field(default_factory=list)
    page_no: int | None = Field(None, alias="pageNo")
    total_pages: int = Field(default=1, alias="totalPages")
    total_records: int = Field(default=0, alias="totalRecords")
    next_page_url: str | None = Field(None, alias="nextPageURL")


@dataclass(frozen=True)
class _LoadedPage(Generic[T]):
    page_no: int
    total_pages: int
    total_records: int
    items: tuple[T, ...]


class PaginatedFetcher(Generic[T]):
    """Owns the authoritative PageState for one query.

    Example:
        fetcher = PaginatedFetcher(gateway, QuerySpec.create("/api/orders"))
        unsubscribe = fetcher.subscribe(lambda state: print(len(state.items)))
        await fetcher.load_first_page()
        while fetcher.state.has_more:
            await fetcher.load_next_page()
    """

    def __init__(
        self,
        gateway: RemoteCaller,
        query: QuerySpec,
        page_size: int = DEFAULT_PAGE_SIZE,
        transform: Callable[[Any], T] | None = None,
    ) -> None:
        """Initialize with an empty PageState.

        Args:
            gateway: Remote caller used for page requests.
            query: Initial query identity.
            page_size: Value sent as ``pageSize``.
            transform: Optional mapping applied to each raw item.
        """
        if page_size < 1:
            raise ValueError(f"page_size must be >= 1, got {page_size}")
        self._gateway = gateway
        self._query = query
        self._page_size = page_size
        self._transform = transform
        self._state: PageState[T] = PageState()
        self._listeners: list[Listener] = []
        self._generation = 0
        self._inflight_query: QuerySpec | None = None

    @property
    def state(self) -> PageState[T]:
        return self._state

    @property
    def query(self) -> QuerySpec:
        return self._query

    @property
    def page_size(self) -> int:
        return self._page_size

    # ------------------------------------------------------------------
    # Subscription
    # ------------------------------------------------------------------

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener for every state change.

        Args:
            listener: Called with the new PageState after each mutation.

        Returns:
            Callable that removes the listener. Safe to call twice.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _set_state(self, state: PageState[T]) -> None:
        self._state = state
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception as e:
                logger.error(
                    "Page listener %s failed: %s",
                    getattr(listener, "__name__", type(listener).__name__),
                    e,
                )

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    async def load_first_page(self, query: QuerySpec | None = None) -> None:
        """Load page 1, replacing accumulated items on success.

        A call for the query that is already loading is ignored. A call
        for a different query discards the current pages first.

        Args:
            query: Query to load. Defaults to the current query.
        """
        target = query or self._query
        if self._state.is_loading and self._inflight_query == target:
            logger.debug("First page already loading for %s; skipping", target.endpoint)
            return

        if target != self._query:
            logger.debug("Query changed for %s; discarding loaded pages", target.endpoint)
            self._query = target
            self._generation += 1
            self._state = PageState()

        self._generation += 1
        generation = self._generation
        self._inflight_query = target
        self._set_state(replace(self._state, is_loading=True, last_error=None))

        try:
            page = await self._fetch_page(target, 1)
        except OrderUpError as e:
            self._finish_with_error(generation, e)
            return

        if generation != self._generation:
            logger.debug("Dropping stale first page for %s", target.endpoint)
            return

        self._inflight_query = None
        self._set_state(
            PageState(
                items=page.items,
                current_page=page.page_no,
                total_pages=page.total_pages,
                total_records=page.total_records,
                has_more=page.page_no < page.total_pages,
                is_loading=False,
            )
        )
        logger.info(
            "Loaded page %d/%d of %s (%d records)",
            page.page_no,
            page.total_pages,
            target.endpoint,
            page.total_records,
        )

    async def refresh(self) -> None:
        """Reload from page 1 with the current query."""
        await self.load_first_page()

    async def load_next_page(self) -> None:
        """Append the page after the last loaded one.

        No-op when nothing more is available or a load is in flight.
        """
        state = self._state
        if not state.has_more:
            logger.debug("No more pages for %s", self._query.endpoint)
            return
        if state.is_loading:
            logger.debug("Load in flight for %s; skipping next page", self._query.endpoint)
            return

        query = self._query
        target_page = state.current_page + 1
        generation = self._generation
        self._inflight_query = query
        self._set_state(replace(state, is_loading=True, last_error=None))

        try:
            page = await self._fetch_page(query, target_page)
        except OrderUpError as e:
            self._finish_with_error(generation, e)
            return

        if generation != self._generation:
            logger.debug("Dropping stale page %d for %s", target_page, query.endpoint)
            return

        self._inflight_query = None
        current = self._state
        if page.page_no <= current.current_page:
            logger.warning(
                "Ignoring page %d for %s; page %d already loaded",
                page.page_no,
                query.endpoint,
                current.current_page,
            )
            self._set_state(replace(current, is_loading=False))
            return

        self._set_state(
            PageState(
                items=current.items + page.items,
                current_page=page.page_no,
                total_pages=page.total_pages,
                total_records=page.total_records,
                has_more=page.page_no < page.total_pages,
                is_loading=False,
            )
        )
        logger.info(
            "Loaded page %d/%d of %s (%d items held)",
            page.page_no,
            page.total_pages,
            query.endpoint,
            len(self._state.items),
        )

    def _finish_with_error(self, generation: int, error: OrderUpError) -> None:
        if generation != self._generation:
            logger.debug("Dropping stale failure: %s", error)
            return
        logger.warning("Page load failed for %s: %s", self._query.endpoint, error)
        self._inflight_query = None
        self._set_state(replace(self._state, is_loading=False, last_error=error))

    async def _fetch_page(self, query: QuerySpec, page_no: int) -> _LoadedPage[T]:
        params: dict[str, ParamValue] = {"pageNo": page_no, "pageSize": self._page_size}
        params.update(query.as_dict())
        raw = await self._gateway.request(query.endpoint, params=params)
        return self._parse_page(raw, page_no)

    def _parse_page(self, raw: Any, requested_page: int) -> _LoadedPage[T]:
        """Validate a page body and apply the item transform.

        Raises:
            ResponseParseError: If the body does not match the page shape
                or an item cannot be transformed.
        """
        try:
            response = PaginatedResponse.model_validate(raw)
            items = tuple(
                self._transform(item) if self._transform else item
                for item in response.data
            )
        except (PydanticValidationError, KeyError, TypeError, ValueError) as e:
            raise ResponseParseError.from_exception(e) from e

        page_no = response.page_no if response.page_no is not None else requested_page
        return _LoadedPage(
            page_no=page_no,
            total_pages=max(1, response.total_pages),
            total_records=max(0, response.total_records),
            items=items,
        )

    # ------------------------------------------------------------------
    # Query changes
    # ------------------------------------------------------------------

    async def update_parameters(self, patch: Mapping[str, ParamValue | None]) -> None:
        """Merge ``patch`` into the current parameters.

        Reloads page 1 only if the query actually changed and there is
        something to invalidate (items, progress, or an in-flight load).
        An idle, empty fetcher just adopts the new query.

        Args:
            patch: Parameters to set. A None value removes the parameter.
        """
        await self._apply_query(self._query.merged(patch))

    async def replace_parameters(self, params: Mapping[str, ParamValue]) -> None:
        """Swap the full parameter set, with the same reload rule."""
        await self._apply_query(QuerySpec.create(self._query.endpoint, params))

    async def _apply_query(self, new_query: QuerySpec) -> None:
        if new_query == self._query:
            return
        state = self._state
        needs_reload = bool(state.items) or state.current_page > 0 or state.is_loading
        self._query = new_query
        if not needs_reload:
            logger.debug("Parameters updated on empty collection %s", new_query.endpoint)
            return
        logger.info("Parameters changed for %s; reloading from page 1", new_query.endpoint)
        self.reset()
        await self.load_first_page()

    def reset(self) -> None:
        """Clear to the empty initial state. In-flight responses are ignored."""
        self._generation += 1
        self._inflight_query = None
        self._set_state(PageState())
