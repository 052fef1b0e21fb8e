"""Bucket query-string builder.

Queries follow the Extension:Bucket usage grammar::

    bucket('<name>').select(...).where(...).join(...).limit(n).offset(n).orderBy(...).run()

Clause order is fixed and an omitted clause emits nothing.
"""

from __future__ import annotations

from ..config.models import BucketQuery, JoinConfig, WhereCondition


def _quote(text: str) -> str:
    return f"'{text}'"


def _format_value(value: bool | int | float | str) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, str):
        return _quote(value)
    return str(value)


def _format_condition(condition: WhereCondition) -> str:
    return (
        f"{{{_quote(condition.selector)}, {_quote(condition.operand)}, "
        f"{_format_value(condition.value)}}}"
    )


def _format_join(join: JoinConfig) -> str:
    return (
        f".join({_quote(join.bucket)}, {_quote(join.primary_selector)}, "
        f"{_quote(join.join_selector)})"
    )


def build_bucket_query(options: BucketQuery) -> str:
    """Render ``options`` as a Bucket query string."""

    query = f"bucket({_quote(options.bucket)})"
    if options.select:
        query += ".select(" + ",".join(_quote(field) for field in options.select) + ")"
    if options.where:
        query += ".where(" + ", ".join(_format_condition(c) for c in options.where) + ")"
    for join in options.join:
        query += _format_join(join)
    if options.limit is not None:
        query += f".limit({options.limit})"
    if options.offset is not None:
        query += f".offset({options.offset})"
    if options.order_by is not None:
        query += (
            f".orderBy({_quote(options.order_by.selector)}, "
            f"{_quote(options.order_by.direction)})"
        )
    return query + ".run()"


def paginate(options: BucketQuery, page_size: int = 5000, offset: int = 0) -> BucketQuery:
    """Return a copy of ``options`` limited to one page starting at ``offset``."""

    if page_size < 1:
        raise ValueError("page_size must be >= 1")
    if offset < 0:
        raise ValueError("offset must be >= 0")
    return options.model_copy(update={"limit": page_size, "offset": offset})


__all__ = ["build_bucket_query", "paginate"]
