"""
Sync service — orchestrates fetch → project → write for one run.

This is the primary business-logic layer, composing the paginator, the
projection pipeline and a field writer. Every run takes its own options
snapshot and builds its own pipeline and paginator, so concurrent runs
share nothing mutable.
"""

import time
import uuid
from collections.abc import AsyncGenerator, Callable
from typing import Any

from skwirrel_sync.config import Settings, get_settings
from skwirrel_sync.core.exceptions import (
    AuthenticationException,
    SourceAPIException,
    SyncRunException,
)
from skwirrel_sync.core.hooks import SyncEvent, SyncHooks
from skwirrel_sync.core.logging import get_logger, log_context
from skwirrel_sync.mappers.attribute_extractor import AttributeExtractor
from skwirrel_sync.mappers.projection import ProjectionPipeline
from skwirrel_sync.schemas import EntityKind, SyncOptions, SyncSummary
from skwirrel_sync.services.field_writer import FieldWriter, select_field_writer
from skwirrel_sync.services.paginator import (
    GROUPED_PRODUCTS_METHOD,
    PRODUCTS_BY_FILTER_METHOD,
    PRODUCTS_METHOD,
    Paginator,
    build_grouped_params,
    build_product_params,
    updated_since_filter,
)
from skwirrel_sync.services.rpc_client import JsonRpcClient
from skwirrel_sync.utils.helpers import is_empty, utc_now

logger = get_logger(__name__)


def entity_id_for(record: dict[str, Any], kind: EntityKind) -> str | None:
    """Destination entity id: the PIM id, falling back to the internal code."""
    if kind == EntityKind.GROUPED:
        keys = ("grouped_product_id", "id")
    else:
        keys = ("product_id", "internal_product_code")
    for key in keys:
        value = record.get(key)
        if not is_empty(value) and not isinstance(value, (dict, list)):
            return str(value)
    return None


def _is_key(value: Any) -> bool:
    return not is_empty(value) and not isinstance(value, (dict, list))


def member_keys(group: dict[str, Any]) -> list[str]:
    """Lookup keys for the products a group lists: ``<product_id>`` and ``sku:<code>``."""
    members = group.get("_products") or group.get("products") or []
    if not isinstance(members, list):
        return []
    keys: list[str] = []
    for item in members:
        if isinstance(item, dict):
            product_id = item.get("product_id")
            code = item.get("internal_product_code")
        else:
            product_id, code = item, None
        if _is_key(product_id):
            keys.append(str(product_id))
        if _is_key(code):
            keys.append(f"sku:{code}")
    return keys


def kind_for_product(record: dict[str, Any], memberships: dict[str, str]) -> EntityKind:
    """VARIATION when a synced group lists the product, PRODUCT otherwise."""
    product_id = record.get("product_id")
    if _is_key(product_id) and str(product_id) in memberships:
        return EntityKind.VARIATION
    code = record.get("internal_product_code")
    if _is_key(code) and f"sku:{code}" in memberships:
        return EntityKind.VARIATION
    return EntityKind.PRODUCT


class SyncService:
    """Run full or delta syncs from the PIM into a field writer."""

    def __init__(
        self,
        client: JsonRpcClient,
        settings: Settings | None = None,
        writer: FieldWriter | None = None,
        hooks: SyncHooks | None = None,
        attribute_extractor: AttributeExtractor | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._client = client
        self._settings = settings or get_settings()
        self._writer = select_field_writer(writer)
        self._hooks = hooks or SyncHooks()
        self._attribute_extractor = attribute_extractor
        self._clock = clock

    async def run(
        self,
        delta: bool = False,
        updated_since: str | None = None,
        deadline_seconds: float | None = None,
        options: SyncOptions | None = None,
    ) -> SyncSummary:
        """
        End-to-end: fetch pages → project each record → write its fields.

        Grouped products are synced first when enabled. A delta run without
        ``updated_since`` falls back to a full run.

        Args:
            delta:            Fetch only products updated since ``updated_since``.
            updated_since:    ISO 8601 timestamp for the delta filter.
            deadline_seconds: Stop consuming records once the run is this old.
            options:          Options snapshot; taken from settings when omitted.

        Returns:
            SyncSummary with the run counters.

        Raises:
            SyncRunException: A page fetch failed; carries the partial summary.
        """
        run_id = uuid.uuid4().hex[:12]
        with log_context(sync_run_id=run_id):
            return await self._run(run_id, delta, updated_since, deadline_seconds, options)

    async def _run(
        self,
        run_id: str,
        delta: bool,
        updated_since: str | None,
        deadline_seconds: float | None,
        options: SyncOptions | None,
    ) -> SyncSummary:
        settings = self._settings
        if delta and not updated_since:
            logger.warning("Delta sync requested without a timestamp; running full sync")
            delta = False

        summary = SyncSummary(
            run_id=run_id,
            delta=delta,
            updated_since=updated_since if delta else None,
            started_at=utc_now(),
        )
        deadline = self._clock() + deadline_seconds if deadline_seconds else None

        # 1. Snapshot options and build this run's pipeline
        options = options or SyncOptions.from_settings(settings)
        pipeline = ProjectionPipeline.for_run(
            options, settings, hooks=self._hooks,
            attribute_extractor=self._attribute_extractor)

        logger.info(
            "Sync run started",
            extra={"delta": delta, "updated_since": summary.updated_since,
                   "mapped_fields": len(pipeline.field_map)},
        )

        paginator = Paginator(self._client, hooks=self._hooks)
        page_size = settings.pim_batch_size
        # product key -> group entity id, filled while groups are consumed
        memberships: dict[str, str] = {}

        try:
            # 2. Grouped products first, so variants can refer to their group
            if settings.sync_grouped_products:
                groups = paginator.fetch_grouped(
                    GROUPED_PRODUCTS_METHOD, build_grouped_params(), page_size, return_all=True)
                await self._consume(
                    groups, pipeline, EntityKind.GROUPED, summary, deadline, memberships)

            # 3. Products, full or delta
            if not summary.truncated:
                base_params = build_product_params(settings)
                if delta:
                    products = paginator.fetch_filtered(
                        PRODUCTS_BY_FILTER_METHOD,
                        updated_since_filter(updated_since),
                        base_params,
                        page_size,
                        return_all=True,
                    )
                else:
                    products = paginator.fetch_all(
                        PRODUCTS_METHOD, base_params, page_size, return_all=True)
                await self._consume(
                    products, pipeline, EntityKind.PRODUCT, summary, deadline, memberships)

        except (SourceAPIException, AuthenticationException) as exc:
            summary.pages_fetched = paginator.pages_fetched
            summary.status = "failed"
            summary.error = exc.message
            summary.finished_at = utc_now()
            logger.error(
                "Sync run failed",
                extra={"error_code": exc.error_code, "projected": summary.projected,
                       "pages_fetched": summary.pages_fetched},
            )
            self._hooks.emit(SyncEvent.RUN_FAILED, summary.model_dump(mode="json"))
            raise SyncRunException(exc, summary) from exc

        # 4. Summarise
        summary.pages_fetched = paginator.pages_fetched
        summary.status = "ok"
        summary.finished_at = utc_now()
        logger.info(
            "Sync run complete",
            extra={
                "projected": summary.projected,
                "grouped_projected": summary.grouped_projected,
                "variations": summary.variations,
                "skipped": summary.skipped,
                "failed": summary.failed,
                "pages_fetched": summary.pages_fetched,
                "truncated": summary.truncated,
            },
        )
        self._hooks.emit(SyncEvent.RUN_COMPLETED, summary.model_dump(mode="json"))
        return summary

    async def _consume(
        self,
        records: AsyncGenerator[dict[str, Any], None],
        pipeline: ProjectionPipeline,
        kind: EntityKind,
        summary: SyncSummary,
        deadline: float | None,
        memberships: dict[str, str],
    ) -> None:
        """
        Project and write records until the sequence ends or the deadline passes.

        Projected groups register their members in ``memberships``; products
        found there are projected as variations.
        """
        async for record in records:
            if deadline is not None and self._clock() > deadline:
                summary.truncated = True
                logger.warning("Sync run deadline reached; stopping",
                               extra={"projected": summary.projected})
                break

            record_kind = kind
            if kind == EntityKind.PRODUCT:
                record_kind = kind_for_product(record, memberships)
            entity_id = entity_id_for(record, record_kind)
            if entity_id is None:
                summary.skipped += 1
                logger.warning("Record without id skipped",
                               extra={"entity_kind": kind.value})
                continue

            try:
                result = pipeline.project(record, record_kind)
                for field_name, value in result.as_pairs():
                    self._writer.write(entity_id, field_name, value)
            except Exception:
                summary.failed += 1
                logger.exception("Failed to sync record",
                                 extra={"entity_id": entity_id, "entity_kind": record_kind.value})
                continue

            summary.fields_written += len(result.writes)
            if record_kind == EntityKind.GROUPED:
                summary.grouped_projected += 1
                for key in member_keys(record):
                    memberships.setdefault(key, entity_id)
            else:
                summary.projected += 1
                if record_kind == EntityKind.VARIATION:
                    summary.variations += 1

            self._hooks.emit(
                SyncEvent.PROJECTION_COMPLETED,
                {"entity_id": entity_id, "entity_kind": record_kind.value,
                 "fields": result.field_names()},
            )
        await records.aclose()
