"""
Lazy enumeration of paginated PIM list methods.

Every entry point is an async generator: one JSON-RPC call is issued per
page boundary the consumer crosses, so breaking out of an ``async for``
stops fetching. Records are not de-duplicated across pages; if the PIM
mutates between page fetches, gaps or duplicates are possible.

Stop conditions, checked in order after each page:
  1. the page holds fewer records than ``page_size``;
  2. ``return_all`` is false (exactly one page is fetched);
  3. the reported current page has reached ``number_of_pages``. A server
     that reports no page count leaves the short page (1) to end the loop.
"""

from collections.abc import AsyncGenerator, Callable, Mapping
from typing import Any

from skwirrel_sync.config import Settings
from skwirrel_sync.core.exceptions import RpcDecodeException
from skwirrel_sync.core.hooks import SyncEvent, SyncHooks
from skwirrel_sync.core.logging import get_logger
from skwirrel_sync.schemas import Page
from skwirrel_sync.services.rpc_client import JsonRpcClient
from skwirrel_sync.utils.helpers import safe_get

logger = get_logger(__name__)

PRODUCTS_METHOD = "getProducts"
PRODUCTS_BY_FILTER_METHOD = "getProductsByFilter"
GROUPED_PRODUCTS_METHOD = "getGroupedProducts"

FILTER_OPERATORS = (">=", ">", "<=", "<", "==")

_PRODUCT_ITEM_KEYS = ("products",)
_GROUPED_ITEM_KEYS = ("grouped_products", "groups", "products")

# getGroupedProducts without page metadata is a single page
_GROUPED_DEFAULT_PAGES = 1

ParamsBuilder = Callable[[int, int], dict[str, Any]]


def updated_since_filter(since: str, operator: str = ">=") -> dict[str, Any]:
    """Filter object for getProductsByFilter: products modified relative to ``since``."""
    if operator not in FILTER_OPERATORS:
        raise ValueError(f"Unsupported filter operator: {operator!r}")
    return {"updated_on": {"datetime": since, "operator": operator}}


def build_product_params(settings: Settings) -> dict[str, Any]:
    """Include flags sent with every product page request during a sync."""
    params: dict[str, Any] = {
        "include_product_status": True,
        "include_product_translations": True,
        "include_attachments": True,
        "include_trade_items": True,
        "include_trade_item_prices": True,
        "include_etim": True,
        "include_etim_translations": True,
        "include_languages": settings.include_languages,
        "include_contexts": [1],
    }
    if settings.sync_grouped_products:
        params["include_product_groups"] = True
        params["include_grouped_products"] = True
    return params


def build_grouped_params(
    collection_ids: list[int] | None = None,
    include_products: bool = True,
    include_etim_features: bool = True,
) -> dict[str, Any]:
    """Base params for getGroupedProducts."""
    params: dict[str, Any] = {
        "include_products": include_products,
        "include_etim_features": include_etim_features,
    }
    if collection_ids:
        params["collection_ids"] = list(collection_ids)
    return params


class Paginator:
    """
    Drives repeated JSON-RPC calls to enumerate a result set.

    Not shared between runs: ``pages_fetched`` counts the calls made by
    this instance.
    """

    def __init__(self, client: JsonRpcClient, hooks: SyncHooks | None = None) -> None:
        self._client = client
        self._hooks = hooks or SyncHooks()
        self.pages_fetched = 0

    # ── Record sequences ──────────────────────────────────────────────

    async def fetch_all(
        self,
        method: str,
        base_params: Mapping[str, Any],
        page_size: int,
        return_all: bool,
        start_page: int = 1,
    ) -> AsyncGenerator[dict[str, Any], None]:
        """Yield every record of a plain list method (e.g. getProducts)."""

        def params(page: int, limit: int) -> dict[str, Any]:
            return {**base_params, "page": page, "limit": limit}

        async for page in self.fetch_pages(
            method, params, page_size, return_all, start_page, _PRODUCT_ITEM_KEYS
        ):
            for record in page.records:
                yield record

    async def fetch_filtered(
        self,
        method: str,
        query_filter: Mapping[str, Any],
        base_params: Mapping[str, Any],
        page_size: int,
        return_all: bool,
        start_page: int = 1,
    ) -> AsyncGenerator[dict[str, Any], None]:
        """Yield every record matching ``query_filter``; the filter rides on every page request."""

        def params(page: int, limit: int) -> dict[str, Any]:
            return {
                "filter": dict(query_filter),
                "options": dict(base_params),
                "page": page,
                "limit": limit,
            }

        async for page in self.fetch_pages(
            method, params, page_size, return_all, start_page, _PRODUCT_ITEM_KEYS
        ):
            for record in page.records:
                yield record

    async def fetch_grouped(
        self,
        method: str,
        base_params: Mapping[str, Any],
        page_size: int,
        return_all: bool,
        start_page: int = 1,
    ) -> AsyncGenerator[dict[str, Any], None]:
        """Yield every grouped product (a family of variants)."""

        def params(page: int, limit: int) -> dict[str, Any]:
            return {**base_params, "page": page, "limit": limit}

        async for page in self.fetch_pages(
            method, params, page_size, return_all, start_page, _GROUPED_ITEM_KEYS,
            default_number_of_pages=_GROUPED_DEFAULT_PAGES,
        ):
            for record in page.records:
                yield record

    # ── Page sequence ─────────────────────────────────────────────────

    async def fetch_pages(
        self,
        method: str,
        params_for: ParamsBuilder,
        page_size: int,
        return_all: bool,
        start_page: int = 1,
        item_keys: tuple[str, ...] = _PRODUCT_ITEM_KEYS,
        default_number_of_pages: int | None = None,
    ) -> AsyncGenerator[Page, None]:
        """
        Fetch → evaluate → continue/stop, one page per iteration.

        Raises whatever the JSON-RPC client raises; pages already yielded
        are unaffected.
        """
        if page_size < 1:
            raise ValueError("page_size must be at least 1")

        page_number = max(1, start_page)
        while True:
            result = await self._client.call(method, params_for(page_number, page_size))
            page = self._to_page(
                result, page_number, page_size, item_keys, method, default_number_of_pages)
            self.pages_fetched += 1

            logger.info(
                "Page fetched",
                extra={
                    "method": method,
                    "page": page.number,
                    "number_of_pages": page.number_of_pages,
                    "record_count": len(page.records),
                },
            )
            self._hooks.emit(
                SyncEvent.PAGE_FETCHED,
                {
                    "method": method,
                    "page": page.number,
                    "number_of_pages": page.number_of_pages,
                    "record_count": len(page.records),
                },
            )

            stop = self._should_stop(page, return_all)
            yield page
            if stop:
                return
            page_number += 1

    # ── Private helpers ───────────────────────────────────────────────

    @staticmethod
    def _should_stop(page: Page, return_all: bool) -> bool:
        if page.is_short:
            return True
        if not return_all:
            return True
        if page.number_of_pages is None:
            return False
        return page.number >= page.number_of_pages

    @staticmethod
    def _to_page(
        result: Any,
        requested: int,
        page_size: int,
        item_keys: tuple[str, ...],
        method: str,
        default_number_of_pages: int | None = None,
    ) -> Page:
        if result is None:
            result = {}
        if not isinstance(result, Mapping):
            raise RpcDecodeException(
                message=f"Unexpected result shape for '{method}'.",
                details={"method": method, "result_type": type(result).__name__},
            )

        items: Any = []
        for key in item_keys:
            if isinstance(result.get(key), list):
                items = result[key]
                break

        records = [item for item in items if isinstance(item, Mapping)]
        if len(records) != len(items):
            logger.warning(
                "Non-object items dropped from page",
                extra={"method": method, "page": requested,
                       "dropped": len(items) - len(records)},
            )

        return Page(
            records=[dict(r) for r in records],
            item_count=len(items),
            number=_as_int(safe_get(result, "page", "current_page"), requested),
            number_of_pages=_as_int(
                safe_get(result, "page", "number_of_pages"), default_number_of_pages),
            page_size=page_size,
        )


def _as_int(value: Any, default: int | None) -> int | None:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default
