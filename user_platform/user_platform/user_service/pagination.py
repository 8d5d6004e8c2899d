"""
Paginated query resolver.

Translates the raw ``page``, ``limit``, ``sortBy`` and ``filterBy`` query
parameters of a list endpoint into an immutable QueryPlan, runs the plan
against a RecordStore and returns a page envelope:

    {"page": 1, "limit": 10, "totalPages": 1, "totalResults": 3, "results": [...]}

The store is always passed in explicitly; nothing here holds state between
calls.
"""
import json
import logging
import math
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence, Tuple, Union

from fastapi import Query
from sqlalchemy import Boolean, String, asc, cast, desc, inspect
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 10
DEFAULT_ORDER_BY = (("createdAt", "asc"),)

# Largest OFFSET/LIMIT a 64-bit SQL integer can hold
MAX_SQL_INTEGER = 2 ** 63 - 1

OrderBy = Tuple[Tuple[str, str], ...]
Where = Tuple[Tuple[str, str], ...]


class ValidationError(Exception):
    """Query parameters could not be turned into a query plan (client error)."""


class StoreError(Exception):
    """The record store failed while answering a query."""


@dataclass(frozen=True)
class PageParams:
    """Raw, untrusted pagination parameters exactly as received."""

    page: Optional[str] = None
    limit: Optional[str] = None
    sort_by: Optional[str] = None
    filter_by: Optional[str] = None

    @classmethod
    def from_query(cls, query: Mapping[str, Any]) -> "PageParams":
        def raw(key: str) -> Optional[str]:
            value = query.get(key)
            return None if value is None else str(value)

        return cls(
            page=raw("page"),
            limit=raw("limit"),
            sort_by=raw("sortBy"),
            filter_by=raw("filterBy"),
        )


@dataclass(frozen=True)
class QueryPlan:
    page: int
    limit: int
    skip: int
    take: int
    order_by: OrderBy
    where: Where = ()


class RecordStore(Protocol):
    def find(self, skip: int, take: int, order_by: OrderBy, where: Where = ()) -> Sequence[Dict[str, Any]]:
        ...

    def count(self, where: Where = ()) -> int:
        ...


def page_params(
    page: Optional[str] = Query(None, description="Page number, 1-indexed (default 1)"),
    limit: Optional[str] = Query(None, description="Results per page (default 10)"),
    sortBy: Optional[str] = Query(None, description="e.g. role:desc,name:asc"),
    filterBy: Optional[str] = Query(None, description='JSON object, e.g. {"role":"user"}'),
) -> PageParams:
    """FastAPI dependency collecting the raw pagination query parameters."""
    return PageParams(page=page, limit=limit, sort_by=sortBy, filter_by=filterBy)


def parse_int(value: Optional[Union[str, int]], default: int) -> int:
    """Parse a positive integer, falling back to ``default`` for anything else."""
    if value is None:
        return default
    # Leading integer prefix, so "1.5" reads as 1 and "2abc" as 2
    match = re.match(r"\s*([+-]?[0-9]+)", str(value))
    if not match:
        return default
    parsed = int(match.group(1))
    return parsed if parsed > 0 else default


def parse_sort(sort_by: Optional[str]) -> OrderBy:
    """
    Parse ``"field:direction,field:direction"`` into ordered sort keys.

    Direction is ``desc`` only on an exact match of the literal ``"desc"``;
    anything else sorts ascending. Key precedence follows the input order.
    """
    if not sort_by:
        return DEFAULT_ORDER_BY

    order_by = []
    for option in sort_by.split(","):
        parts = option.split(":")
        field = parts[0].strip()
        direction = parts[1] if len(parts) > 1 else ""
        if not field:
            raise ValidationError(f"Invalid sortBy option '{option}'")
        order_by.append((field, "desc" if direction == "desc" else "asc"))
    return tuple(order_by)


def parse_filter(filter_by: Optional[str]) -> Where:
    """
    Decode a JSON object of ``field -> substring`` predicates.

    Raises:
        ValidationError: if the value is not a JSON object of scalar values
    """
    if not filter_by:
        return ()

    try:
        filters = json.loads(filter_by)
    except ValueError as e:
        raise ValidationError(f"filterBy must be a JSON object: {e}") from e

    if not isinstance(filters, dict):
        raise ValidationError("filterBy must be a JSON object")

    where = []
    for field, value in filters.items():
        if isinstance(value, bool) or not isinstance(value, (str, int, float)):
            raise ValidationError(f"filterBy value for '{field}' must be a string or number")
        where.append((field, str(value)))
    return tuple(where)


def build_query_plan(params: PageParams, default_limit: int = DEFAULT_LIMIT) -> QueryPlan:
    limit = parse_int(params.limit, default_limit)
    page = parse_int(params.page, DEFAULT_PAGE)
    skip = (page - 1) * limit
    if limit > MAX_SQL_INTEGER or skip > MAX_SQL_INTEGER:
        raise ValidationError("page or limit is out of range")
    return QueryPlan(
        page=page,
        limit=limit,
        skip=skip,
        take=limit,
        order_by=parse_sort(params.sort_by),
        where=parse_filter(params.filter_by),
    )


def execute_plan(plan: QueryPlan, store: RecordStore) -> Dict[str, Any]:
    # totalResults is always the count of records matching plan.where
    results = list(store.find(plan.skip, plan.take, plan.order_by, plan.where))
    total_results = store.count(plan.where)

    return {
        "page": plan.page,
        "limit": plan.limit,
        "totalPages": math.ceil(total_results / plan.limit),
        "totalResults": total_results,
        "results": results,
    }


def resolve(
    raw_params: Union[PageParams, Mapping[str, Any]],
    store: RecordStore,
    default_limit: int = DEFAULT_LIMIT,
) -> Dict[str, Any]:
    """
    Resolve one page of records.

    Args:
        raw_params: PageParams or a mapping of raw query parameters
        store: record store for the collection being listed
        default_limit: page size used when ``limit`` is absent or invalid

    Returns:
        Page envelope with page, limit, totalPages, totalResults and results

    Raises:
        ValidationError: malformed filterBy or an unknown sort/filter field
        StoreError: the store failed; propagated unchanged
    """
    if not isinstance(raw_params, PageParams):
        raw_params = PageParams.from_query(raw_params)

    plan = build_query_plan(raw_params, default_limit=default_limit)
    envelope = execute_plan(plan, store)

    logger.info(
        "Resolved page: page=%s limit=%s order_by=%s filters=%s total=%s returned=%s",
        plan.page, plan.limit, plan.order_by, dict(plan.where),
        envelope["totalResults"], len(envelope["results"])
    )
    return envelope


class SqlAlchemyRecordStore:
    """
    RecordStore over one mapped model.

    ``fields`` maps public field names to model attributes; it is both the
    projection applied to every returned record and the set of fields that
    may be sorted or filtered on. ``extra_fields`` can be sorted and filtered
    on but are never returned.
    """

    def __init__(
        self,
        db: Session,
        model,
        fields: Mapping[str, str],
        extra_fields: Optional[Mapping[str, str]] = None,
    ):
        self.db = db
        self.model = model
        self.fields = dict(fields)
        self.queryable = {**self.fields, **(extra_fields or {})}

    def _column(self, field: str):
        attribute = self.queryable.get(field)
        if attribute is None:
            raise ValidationError(f"Unknown field '{field}'")
        return getattr(self.model, attribute)

    def _query(self, where: Where):
        conditions = []
        for field, value in where:
            column = self._column(field)
            if isinstance(column.type, Boolean):
                raise ValidationError(f"Field '{field}' does not support substring filtering")
            conditions.append(cast(column, String).contains(value, autoescape=True))
        query = self.db.query(self.model)
        if conditions:
            query = query.filter(*conditions)
        return query

    def _project(self, record) -> Dict[str, Any]:
        return {name: getattr(record, attribute) for name, attribute in self.fields.items()}

    def find(self, skip: int, take: int, order_by: OrderBy, where: Where = ()) -> List[Dict[str, Any]]:
        ordering = [
            desc(self._column(field)) if direction == "desc" else asc(self._column(field))
            for field, direction in order_by
        ]
        # Primary key breaks remaining ties so pages are stable across calls
        ordering.extend(asc(column) for column in inspect(self.model).primary_key)

        query = self._query(where).order_by(*ordering).offset(skip).limit(take)
        try:
            records = query.all()
        except SQLAlchemyError as e:
            logger.error("Record store find failed on %s: %s", self.model.__tablename__, e)
            raise StoreError(f"Failed to query {self.model.__tablename__}") from e

        return [self._project(record) for record in records]

    def count(self, where: Where = ()) -> int:
        query = self._query(where)
        try:
            return query.count()
        except SQLAlchemyError as e:
            logger.error("Record store count failed on %s: %s", self.model.__tablename__, e)
            raise StoreError(f"Failed to count {self.model.__tablename__}") from e
