"""
docapi — Query Filter Builder
===============================

What:  Turns a flat query-string mapping into restrictions on a pending query.
How:   Four chained stages, each mutating the builder's query and returning
       the builder:

           QueryFilter(collection.find(), request_query)
               .filter().sort().project().paginate()

       The caller then awaits `builder.query` for the documents.

Query-string contract:
    page, sort, limit, fields      reserved, never part of the filter
    page, limit                    positive integers up to 2**63-1, else default
    price[gte]=10                  comparison: gt, gte, lt, lte, eq, ne
    featured=true                  anything else is an equality filter
    sort=name,-price               ascending name, then descending price
    fields=name,price              return only these (plus id)

Stage order is fixed (filter → sort → project → paginate); running a stage
out of order, or twice, raises RuntimeError.
"""

import logging
import re
from typing import Any, Dict, Mapping, Optional

from docapi.config import settings
from docapi.exceptions import BadRequestError
from docapi.models.document import INTERNAL_FIELDS
from docapi.services.collection import PendingQuery

logger = logging.getLogger(__name__)

RESERVED_KEYS = ("page", "sort", "limit", "fields")

# "price[gte]" → field="price", op="gte"
OPERATOR_KEY = re.compile(r"^(?P<field>[A-Za-z_][A-Za-z0-9_]*)\[(?P<op>gte|gt|lte|lt|eq|ne)\]$")

STAGES = ("filter", "sort", "project", "paginate")

# SQLite and PostgreSQL bind LIMIT and OFFSET as signed 64-bit integers
MAX_SQL_INT = 2**63 - 1


def _split_list(raw: str) -> list:
    return [part.strip() for part in raw.split(",") if part.strip()]


def _positive_int(raw: Optional[str], default: int) -> int:
    try:
        value = int(raw) if raw is not None else default
    except (TypeError, ValueError):
        return default
    return value if 0 < value <= MAX_SQL_INT else default


class QueryFilter:
    """
    Fluent builder applying filter, sort, projection and pagination.

    Attributes:
        query:     The pending query being restricted (await it for results)
        params:    Private copy of the query-string mapping
        predicate: Query document passed to the data layer by the filter stage
        page, limit, skip: Pagination window once `paginate()` has run
    """

    def __init__(self, query: PendingQuery, params: Mapping[str, Any]):
        self.query = query
        self.params: Dict[str, Any] = dict(params)
        self.predicate: Dict[str, Any] = {}
        self.page: Optional[int] = None
        self.limit: Optional[int] = None
        self.skip: Optional[int] = None
        self._last_stage = -1

    def _enter(self, stage: str) -> None:
        index = STAGES.index(stage)
        if index <= self._last_stage:
            raise RuntimeError(
                f"Query stage '{stage}' cannot run after '{STAGES[self._last_stage]}'"
            )
        self._last_stage = index

    def filter(self) -> "QueryFilter":
        self._enter("filter")
        predicate: Dict[str, Any] = {}
        for key, value in self.params.items():
            if key in RESERVED_KEYS:
                continue
            match = OPERATOR_KEY.match(key)
            if match:
                condition = predicate.setdefault(match.group("field"), {})
                if not isinstance(condition, dict):
                    # field=x and field[gt]=y together: keep equality as $eq
                    condition = predicate[match.group("field")] = {"$eq": condition}
                condition[f"${match.group('op')}"] = value
            elif isinstance(predicate.get(key), dict):
                predicate[key]["$eq"] = value
            else:
                predicate[key] = value

        self.predicate = predicate
        logger.debug("Filter predicate: %s", predicate)
        self.query.filter(predicate)
        return self

    def sort(self) -> "QueryFilter":
        self._enter("sort")
        raw = self.params.get("sort")
        fields = _split_list(raw) if raw else []
        self.query.sort(fields or _split_list(settings.default_sort))
        return self

    def project(self) -> "QueryFilter":
        self._enter("project")
        raw = self.params.get("fields")
        fields = _split_list(raw) if raw else []
        if fields:
            self.query.select(*fields)
        else:
            self.query.select(*(f"-{name}" for name in INTERNAL_FIELDS))
        return self

    def paginate(self) -> "QueryFilter":
        self._enter("paginate")
        self.page = _positive_int(self.params.get("page"), 1)
        self.limit = _positive_int(self.params.get("limit"), settings.default_page_size)
        self.skip = (self.page - 1) * self.limit
        if self.skip > MAX_SQL_INT:
            raise BadRequestError(
                message=f"Page {self.page} of {self.limit} results is out of range",
                field="page",
            )
        self.query.skip(self.skip).limit(self.limit)
        return self
