"""Tenant-scoped listing query composer.

A ListingSpec declares, per entity, which query parameters exist and which
column each one filters. TenantQueryComposer turns a flat query string into:

1. a predicate list whose first element is always ``tenant_id = :tenant``,
   followed by the entity's base predicates and one predicate per supplied
   filter, all ANDed;
2. a page statement, a count statement and tenant-scoped facet statements;
3. a response: serialized items with derived fields computed against one
   snapshot instant, pagination, applied/available filters and a page summary.

Filters on derived values cannot be pushed into SQL. They run on the fetched
page, which may therefore be under-filled; ``totalCount`` stays the count
before those filters and the response says so via
``pagination.postFilterApplied`` and ``pagination.pageItemCount``.
"""

from __future__ import annotations

import time
import uuid
from collections.abc import AsyncGenerator, Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

import structlog
from sqlalchemy import ColumnElement, Select, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.herdbook.core.errors import ValidationError
from src.herdbook.core.monitoring import list_query_duration_seconds
from src.herdbook.queries.pagination import build_pagination, page_offset
from src.herdbook.queries.params import (
    ListParams,
    parse_bool,
    parse_choices,
    parse_datetime,
    parse_float,
    parse_int,
    parse_paging,
    parse_sort,
)

logger = structlog.get_logger(__name__)


# ── Listing declarations ────────────────────────────────────────────────────


@dataclass(frozen=True)
class Categorical:
    """Multi-valued filter compiled to ``column IN (...)``."""

    column: Any
    choices: tuple[str, ...] | None = None
    coerce: Callable[[str, str], Any] | None = None


@dataclass(frozen=True)
class DateRange:
    """``after``/``before`` parameter pair bounding one timestamp column."""

    after: str
    before: str
    column: Any


@dataclass(frozen=True)
class Flag:
    """Boolean parameter; ``build`` returns the predicate for a parsed value, or None."""

    build: Callable[[bool, ListParams, datetime], ColumnElement[bool] | None]


@dataclass(frozen=True)
class Option:
    """Integer parameter that tunes a flag (e.g. the expiry window)."""

    default: int
    minimum: int = 1
    maximum: int = 3650


@dataclass(frozen=True)
class PostFilter:
    """Filter on a derived field. Without ``choices`` the parameter is boolean."""

    key: str
    choices: tuple[str, ...] | None = None


@dataclass(frozen=True)
class ListingSpec:
    entity: str
    model: Any
    serialize: Callable[[Any], dict[str, Any]]
    derive: Callable[[Any, Any, datetime], dict[str, Any]]
    summarize: Callable[[list[dict[str, Any]]], dict[str, Any]]
    sort_keys: Mapping[str, Any]
    default_sort: str
    default_order: str = "desc"
    search_columns: tuple[Any, ...] = ()
    categorical: Mapping[str, Categorical] = field(default_factory=dict)
    ranges: Mapping[str, Any] = field(default_factory=dict)
    date_ranges: Mapping[str, DateRange] = field(default_factory=dict)
    flags: Mapping[str, Flag] = field(default_factory=dict)
    options: Mapping[str, Option] = field(default_factory=dict)
    post_filters: Mapping[str, PostFilter] = field(default_factory=dict)
    facets: Mapping[str, Any] = field(default_factory=dict)
    base_predicates: Callable[[], list[ColumnElement[bool]]] | None = None
    enrich: Callable[[AsyncSession, uuid.UUID, list[Any], datetime], Awaitable[dict[Any, Any]]] | None = None


@dataclass
class FetchResult:
    rows: list[Any]
    total_count: int
    facets: dict[str, list[Any]]
    extras: dict[Any, Any] = field(default_factory=dict)


# ── Composer ────────────────────────────────────────────────────────────────


def escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class TenantQueryComposer:
    """Builds and runs tenant-scoped listing queries.

    Args:
        session_factory: Async callable that yields AsyncSession instances.
        default_limit: Page size when ``limit`` is absent.
        max_limit: Largest accepted ``limit``.
    """

    def __init__(
        self,
        session_factory: Callable[..., AsyncGenerator[AsyncSession, None]],
        default_limit: int = 20,
        max_limit: int = 100,
    ) -> None:
        self._session_factory = session_factory
        self._default_limit = default_limit
        self._max_limit = max_limit

    # ── Parsing ─────────────────────────────────────────────────────────

    def parse(self, spec: ListingSpec, query: Mapping[str, str]) -> ListParams:
        page, limit = parse_paging(query, self._default_limit, self._max_limit)
        sort_by, sort_order = parse_sort(query, spec.sort_keys, spec.default_sort, spec.default_order)
        params = ListParams(page=page, limit=limit, sort_by=sort_by, sort_order=sort_order)

        search = (query.get("search") or "").strip()
        if search and spec.search_columns:
            params.search = search

        for name, categorical in spec.categorical.items():
            if query.get(name):
                params.categorical[name] = parse_choices(name, query[name], categorical.choices, categorical.coerce)

        for name in spec.ranges:
            low_name, high_name = f"{name}Min", f"{name}Max"
            low = parse_float(low_name, query[low_name]) if query.get(low_name) else None
            high = parse_float(high_name, query[high_name]) if query.get(high_name) else None
            if low is not None and high is not None and low > high:
                raise ValidationError({low_name: f"must not exceed {high_name}"})
            if low is not None or high is not None:
                params.ranges[name] = (low, high)

        for name, date_range in spec.date_ranges.items():
            start = parse_datetime(date_range.after, query[date_range.after]) if query.get(date_range.after) else None
            end = (
                parse_datetime(date_range.before, query[date_range.before], end_of_day=True)
                if query.get(date_range.before)
                else None
            )
            if start is not None and end is not None and start > end:
                raise ValidationError({date_range.after: f"must not be after {date_range.before}"})
            if start is not None or end is not None:
                params.dates[name] = (start, end)

        for name in spec.flags:
            if query.get(name):
                params.flags[name] = parse_bool(name, query[name])

        for name, option in spec.options.items():
            if query.get(name):
                params.options[name] = parse_int(name, query[name], option.minimum, option.maximum)

        for name, post_filter in spec.post_filters.items():
            if not query.get(name):
                continue
            if post_filter.choices is None:
                params.post_filters[name] = parse_bool(name, query[name])
            else:
                params.post_filters[name] = set(parse_choices(name, query[name], post_filter.choices))

        return params

    # ── Statement building ──────────────────────────────────────────────

    def tenant_predicates(self, spec: ListingSpec, tenant_id: uuid.UUID) -> list[ColumnElement[bool]]:
        """The tenant predicate followed by the entity's base predicates."""
        predicates: list[ColumnElement[bool]] = [spec.model.tenant_id == tenant_id]
        if spec.base_predicates is not None:
            predicates.extend(spec.base_predicates())
        return predicates

    def predicates(
        self,
        spec: ListingSpec,
        tenant_id: uuid.UUID,
        params: ListParams,
        now: datetime,
    ) -> list[ColumnElement[bool]]:
        predicates = self.tenant_predicates(spec, tenant_id)

        if params.search:
            pattern = f"%{escape_like(params.search)}%"
            predicates.append(or_(*(column.ilike(pattern, escape="\\") for column in spec.search_columns)))

        for name, values in params.categorical.items():
            predicates.append(spec.categorical[name].column.in_(values))

        for name, (low, high) in params.ranges.items():
            column = spec.ranges[name]
            if low is not None:
                predicates.append(column >= low)
            if high is not None:
                predicates.append(column <= high)

        for name, (start, end) in params.dates.items():
            column = spec.date_ranges[name].column
            if start is not None:
                predicates.append(column >= start)
            if end is not None:
                predicates.append(column <= end)

        for name, value in params.flags.items():
            predicate = spec.flags[name].build(value, params, now)
            if predicate is not None:
                predicates.append(predicate)

        return predicates

    def page_statement(self, spec: ListingSpec, predicates: list[ColumnElement[bool]], params: ListParams) -> Select:
        sort_column = spec.sort_keys[params.sort_by or spec.default_sort]
        order = sort_column.desc() if params.sort_order == "desc" else sort_column.asc()
        return (
            select(spec.model)
            .where(*predicates)
            .order_by(order.nulls_last(), spec.model.id)
            .offset(page_offset(params.page, params.limit))
            .limit(params.limit)
        )

    def count_statement(self, spec: ListingSpec, predicates: list[ColumnElement[bool]]) -> Select:
        return select(func.count()).select_from(spec.model).where(*predicates)

    def facet_statement(self, spec: ListingSpec, tenant_id: uuid.UUID, column: Any) -> Select:
        return (
            select(column)
            .where(*self.tenant_predicates(spec, tenant_id))
            .where(column.is_not(None))
            .distinct()
            .order_by(column)
        )

    # ── Execution ───────────────────────────────────────────────────────

    async def run(
        self,
        spec: ListingSpec,
        tenant_id: str,
        query: Mapping[str, str],
        now: datetime | None = None,
    ) -> dict[str, Any]:
        """Parse, fetch and shape one listing request.

        Raises:
            ValidationError: On any malformed parameter, before touching the store.
        """
        params = self.parse(spec, query)
        now = now or datetime.now(timezone.utc)

        start = time.perf_counter()
        fetched = await self._fetch(spec, uuid.UUID(tenant_id), params, now)
        duration = time.perf_counter() - start
        list_query_duration_seconds.labels(entity=spec.entity).observe(duration)

        logger.info(
            "query.executed",
            entity=spec.entity,
            tenant_id=tenant_id,
            total_count=fetched.total_count,
            page=params.page,
            duration_ms=round(duration * 1000, 2),
        )
        return self.shape(spec, params, fetched, now)

    async def _fetch(
        self,
        spec: ListingSpec,
        tenant_id: uuid.UUID,
        params: ListParams,
        now: datetime,
    ) -> FetchResult:
        async for session in self._session_factory():
            where = self.predicates(spec, tenant_id, params, now)
            total_count = await session.scalar(self.count_statement(spec, where))
            result = await session.execute(self.page_statement(spec, where, params))
            rows = list(result.scalars().all())

            facets: dict[str, list[Any]] = {}
            for name, column in spec.facets.items():
                facet_result = await session.execute(self.facet_statement(spec, tenant_id, column))
                facets[name] = [str(value) for value in facet_result.scalars().all()]

            extras: dict[Any, Any] = {}
            if spec.enrich is not None and rows:
                extras = await spec.enrich(session, tenant_id, rows, now)

            return FetchResult(rows=rows, total_count=total_count or 0, facets=facets, extras=extras)
        raise RuntimeError("session factory yielded no session")

    def shape(self, spec: ListingSpec, params: ListParams, fetched: FetchResult, now: datetime) -> dict[str, Any]:
        items: list[dict[str, Any]] = []
        for row in fetched.rows:
            item = spec.serialize(row)
            item.update(spec.derive(row, fetched.extras.get(row.id), now))
            items.append(item)

        if params.post_filters:
            items = [item for item in items if _matches_post_filters(spec, params.post_filters, item)]

        pagination = build_pagination(params.page, params.limit, fetched.total_count)
        pagination["postFilterApplied"] = bool(params.post_filters)
        pagination["pageItemCount"] = len(items)

        return {
            "items": items,
            "pagination": pagination,
            "filters": {
                "applied": params.applied(),
                "available": fetched.facets,
            },
            "sort": {"sortBy": params.sort_by, "sortOrder": params.sort_order},
            "summary": spec.summarize(items),
            "snapshotAt": now.isoformat(),
        }


def _matches_post_filters(spec: ListingSpec, post_filters: dict[str, Any], item: dict[str, Any]) -> bool:
    for name, wanted in post_filters.items():
        value = item.get(spec.post_filters[name].key)
        if isinstance(wanted, bool):
            if bool(value) is not wanted:
                return False
        elif value not in wanted:
            return False
    return True
