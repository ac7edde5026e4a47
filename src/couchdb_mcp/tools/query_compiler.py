"""Compile simplified filter/sort requests into CouchDB Mango queries.

The compiler is a pure function: the same clauses always produce the same
CompiledQuery and it never touches the network. ``run_query`` is the thin
execution step that sends the compiled query to CouchDB and shapes the result.

Operator mapping (operator -> selector entry):

    ==       value                     (also the fallback for unknown operators)
    !=       {"$ne": value}
    >  <     {"$gt": value} {"$lt": value}
    >= <=    {"$gte": value} {"$lte": value}
    in nin   {"$in": [...]} {"$nin": [...]}   (a scalar becomes a one element list)
    exists   {"$exists": value}
    type     {"$type": value}
    regex    {"$regex": value}

Example:
    >>> compile_query(
    ...     [FilterClause(field="age", value=18, operator=">=")],
    ...     sort=[SortClause(field="age", order="desc")],
    ... ).to_mango()
    {'selector': {'age': {'$gte': 18}}, 'sort': [{'age': 'desc'}]}
"""

import logging
from collections.abc import Callable, Sequence
from typing import Any

from ..database.client import CouchDBClient
from .models import CompiledQuery, FilterClause, SortClause

logger = logging.getLogger(__name__)

SelectorBuilder = Callable[[Any], Any]


def _as_list(value: Any) -> list[Any]:
    return list(value) if isinstance(value, (list, tuple)) else [value]


def _operator(mango_operator: str) -> SelectorBuilder:
    return lambda value: {mango_operator: value}


def _set_operator(mango_operator: str) -> SelectorBuilder:
    return lambda value: {mango_operator: _as_list(value)}


def _literal(value: Any) -> Any:
    return value


OPERATOR_SELECTORS: dict[str, SelectorBuilder] = {
    "==": _literal,
    "!=": _operator("$ne"),
    ">": _operator("$gt"),
    "<": _operator("$lt"),
    ">=": _operator("$gte"),
    "<=": _operator("$lte"),
    "in": _set_operator("$in"),
    "nin": _set_operator("$nin"),
    "exists": _operator("$exists"),
    "type": _operator("$type"),
    "regex": _operator("$regex"),
}


def selector_entry(operator: str, value: Any) -> Any:
    """Selector value for one clause; unknown operators fall back to equality."""
    return OPERATOR_SELECTORS.get(operator, _literal)(value)


def compile_query(
    filters: Sequence[FilterClause],
    limit: int | float | None = None,
    skip: int | float | None = None,
    fields: Sequence[str] | None = None,
    sort: Sequence[SortClause] | None = None,
) -> CompiledQuery:
    """Translate simplified clauses into a Mango query.

    Repeated fields are resolved last-write-wins: ``[a == 1, a == 2]`` compiles
    to ``{"a": 2}``. ``limit`` and ``skip`` are kept whenever they are given
    (including 0); ``fields`` and ``sort`` only when non-empty.
    """
    selector: dict[str, Any] = {}
    for clause in filters:
        if clause.operator not in OPERATOR_SELECTORS:
            logger.debug(f"Unknown operator '{clause.operator}' on '{clause.field}', using ==")
        selector[clause.field] = selector_entry(clause.operator, clause.value)

    return CompiledQuery(
        selector=selector,
        limit=limit,
        skip=skip,
        fields=list(fields) if fields else None,
        sort=[{clause.field: clause.direction} for clause in sort] if sort else None,
    )


def ids_only(result: dict[str, Any]) -> dict[str, Any]:
    """Replace each document by its _id, keeping order and pagination metadata.

    ``bookmark`` and ``warning`` are always present, None when CouchDB sent none.
    """
    return {
        "docs": [doc.get("_id") for doc in result.get("docs", [])],
        "bookmark": result.get("bookmark"),
        "warning": result.get("warning"),
    }


async def run_query(
    client: CouchDBClient,
    db_name: str,
    filters: Sequence[FilterClause],
    limit: int | float | None = None,
    skip: int | float | None = None,
    fields: Sequence[str] | None = None,
    sort: Sequence[SortClause] | None = None,
    return_ids_only: bool = False,
) -> dict[str, Any]:
    """Compile and execute a simplified query.

    With ``return_ids_only`` a non-empty projection always includes ``_id``.
    Backend failures propagate unchanged.
    """
    if return_ids_only and fields and "_id" not in fields:
        logger.debug("Adding _id to the projection of an ids-only query")
        fields = [*fields, "_id"]

    query = compile_query(filters, limit=limit, skip=skip, fields=fields, sort=sort).to_mango()

    logger.info(
        f"\n{'=' * 70}\n"
        f"EXECUTING MANGO QUERY:\n"
        f"  Database: {db_name}\n"
        f"  Query: {query}\n"
        f"  IDs only: {return_ids_only}\n"
        f"{'=' * 70}"
    )

    result = await client.find(db_name, query)
    if return_ids_only:
        return ids_only(result)
    return result
