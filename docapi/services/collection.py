"""
docapi — Document Collections (Data-Layer Contract)
=====================================================

What:  The data-layer contract the request handlers are written against, and
       its SQLAlchemy implementation.
How:   `Collection(entity)` wraps one declarative entity and exposes
       find / find_by_id (chainable, awaitable `PendingQuery`), create,
       find_by_id_and_update and delete_many. Every call opens its own
       short-lived session from `async_session_factory`.
Who:   Handlers see only the `EntityModel` protocol; routes build the
       concrete collections.

Documents:
    Rows come back as plain dicts of column values. Projection decides which
    keys appear: an inclusion list (`id` always kept unless excluded
    explicitly) or an exclusion set (default: the internal `version` field).
    Fields an entity lists in `HIDDEN_FIELDS` (User: password) never appear
    and cannot be filtered, sorted or selected on.

Predicates:
    `PendingQuery.filter` takes the query-document form produced by
    `QueryFilter`:
        {"price": {"$gte": "10", "$lt": "20"}, "featured": "true"}
    Raw string values are coerced to the column's Python type first.

Error translation:
    IntegrityError / model ValueError / uncoercible value → BadRequestError (400)
    any other SQLAlchemyError                              → DatabaseError (500)
"""

import logging
import operator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import (
    Any,
    AsyncIterator,
    Callable,
    Dict,
    Iterable,
    List,
    Mapping,
    Optional,
    Protocol,
    Sequence,
    Set,
    Tuple,
    Union,
)

from sqlalchemy import Column, delete, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.sql import Select

from docapi.database import async_session_factory
from docapi.exceptions import BadRequestError, DatabaseError
from docapi.models.document import INTERNAL_FIELDS, PROTECTED_FIELDS

logger = logging.getLogger(__name__)

Document = Dict[str, Any]

# Query-document comparison operators → SQL expression builders
OPERATORS: Dict[str, Callable[[Any, Any], Any]] = {
    "$eq": operator.eq,
    "$ne": operator.ne,
    "$gt": operator.gt,
    "$gte": operator.ge,
    "$lt": operator.lt,
    "$lte": operator.le,
}

TRUE_VALUES = {"true", "1", "yes", "on"}
FALSE_VALUES = {"false", "0", "no", "off"}


@dataclass
class DeleteSummary:
    """Outcome of a bulk delete. Not a deleted record."""

    requested: List[str]
    deleted_count: int
    missing_ids: List[str] = field(default_factory=list)


def _to_bool(raw: Any) -> bool:
    if isinstance(raw, bool):
        return raw
    if isinstance(raw, int) and raw in (0, 1):
        return bool(raw)
    lowered = str(raw).strip().lower()
    if lowered in TRUE_VALUES:
        return True
    if lowered in FALSE_VALUES:
        return False
    raise ValueError(f"not a boolean: {raw!r}")


def coerce_value(name: str, column: Column, raw: Any) -> Any:
    """
    Convert a client-supplied value to the Python type of `column`.

    Query strings and multipart forms deliver everything as text, so
    "12.5" becomes 12.5 for a Float column and "true" becomes True for a
    Boolean one. Values that cannot be converted raise BadRequestError.
    """
    if raw is None:
        return None
    try:
        python_type = column.type.python_type
    except NotImplementedError:
        return raw

    try:
        if isinstance(raw, (dict, list, tuple, set)):
            raise ValueError("structured values are not supported")
        if python_type is bool:
            return _to_bool(raw)
        if python_type is datetime:
            return raw if isinstance(raw, datetime) else datetime.fromisoformat(str(raw))
        if python_type in (int, float, Decimal):
            if isinstance(raw, bool):
                raise ValueError("booleans are not numbers")
            return python_type(raw)
        if python_type is str:
            return raw if isinstance(raw, str) else str(raw)
    except (TypeError, ValueError, ArithmeticError) as exc:
        raise BadRequestError(
            message=f"Invalid value {raw!r} for field '{name}'",
            field=name,
        ) from exc
    return raw


def shape_document(
    source: Mapping[str, Any],
    include: Sequence[str] = (),
    exclude: Iterable[str] = (),
) -> Document:
    """Apply an inclusion list or an exclusion set to a full document."""
    excluded = set(exclude)
    if include:
        keys = [] if "id" in excluded else ["id"]
        keys.extend(key for key in include if key != "id")
    else:
        keys = [key for key in source if key not in excluded]
    return {key: source.get(key) for key in keys}


class PendingQuery:
    """
    A chainable, awaitable query over one collection.

    Each modifier mutates the underlying SQLAlchemy `Select` and returns the
    same object, so calls compose fluently. Awaiting executes it; a pending
    query can only be consumed once.

        products = await collection.find().filter({"price": {"$lt": 10}}).sort(["-price"])
    """

    def __init__(self, collection: "Collection", statement: Select, single: bool = False):
        self.collection = collection
        self.statement = statement
        self.single = single
        self.include: List[str] = []
        self.exclude: Set[str] = set()
        self._consumed = False

    def filter(self, predicate: Mapping[str, Any]) -> "PendingQuery":
        criteria = []
        for name, condition in predicate.items():
            attribute, column = self.collection.field(name)
            if isinstance(condition, Mapping):
                for op, raw in condition.items():
                    compare = OPERATORS.get(op)
                    if compare is None:
                        raise BadRequestError(
                            message=f"Unsupported operator '{op}' on field '{name}'",
                            field=name,
                        )
                    criteria.append(compare(attribute, coerce_value(name, column, raw)))
            else:
                criteria.append(attribute == coerce_value(name, column, condition))
        if criteria:
            self.statement = self.statement.where(*criteria)
        return self

    def sort(self, fields: Iterable[str]) -> "PendingQuery":
        """Order by field names; a leading '-' sorts that field descending."""
        clauses = []
        for entry in fields:
            entry = entry.strip()
            if not entry:
                continue
            descending = entry.startswith("-")
            attribute, _ = self.collection.field(entry[1:] if descending else entry)
            clauses.append(attribute.desc() if descending else attribute.asc())
        if clauses:
            self.statement = self.statement.order_by(*clauses)
        return self

    def select(self, *fields: str) -> "PendingQuery":
        """
        Restrict returned fields: "name" includes, "-role" excludes.

        Inclusion and exclusion cannot be mixed, except for excluding `id`.
        """
        for entry in fields:
            entry = entry.strip()
            if not entry:
                continue
            if entry.startswith("-"):
                name = entry[1:]
                self.collection.field(name, allow_hidden=True)
                self.exclude.add(name)
            else:
                self.collection.field(entry)
                if entry not in self.include:
                    self.include.append(entry)
        if self.include and self.exclude - {"id"}:
            raise BadRequestError(
                message="Projection cannot both include and exclude fields",
                field="fields",
            )
        return self

    def skip(self, count: int) -> "PendingQuery":
        self.statement = self.statement.offset(count)
        return self

    def limit(self, count: int) -> "PendingQuery":
        self.statement = self.statement.limit(count)
        return self

    async def execute(self) -> Union[List[Document], Optional[Document]]:
        if self._consumed:
            raise RuntimeError("A pending query can only be awaited once")
        self._consumed = True

        entities = await self.collection.fetch(self.statement)
        exclude = self.exclude if (self.include or self.exclude) else set(INTERNAL_FIELDS)
        documents = [
            self.collection.to_document(entity, include=self.include, exclude=exclude)
            for entity in entities
        ]
        if self.single:
            return documents[0] if documents else None
        return documents

    def __await__(self):
        return self.execute().__await__()


class EntityModel(Protocol):
    """
    Anything the CRUD handler factory can serve.

    `Collection` satisfies this structurally; tests and alternative stores
    only need these five operations plus a display name.
    """

    name: str

    def find(self) -> PendingQuery: ...

    def find_by_id(self, doc_id: str) -> PendingQuery: ...

    async def create(self, values: Mapping[str, Any]) -> Document: ...

    async def find_by_id_and_update(
        self,
        doc_id: str,
        values: Mapping[str, Any],
        *,
        new: bool = True,
        run_validators: bool = True,
        projection: Sequence[str] = (),
    ) -> Optional[Document]: ...

    async def delete_many(self, ids: Sequence[str]) -> DeleteSummary: ...


class Collection:
    """
    SQLAlchemy-backed collection of documents for one declarative entity.

    Args:
        entity:          Declarative class mixing in `DocumentMixin`
        session_factory: Override the global session factory (tests)
        name:            Display name used in messages (default: class name)
    """

    def __init__(
        self,
        entity: type,
        session_factory: Optional[async_sessionmaker] = None,
        name: Optional[str] = None,
    ):
        self.entity = entity
        self.name = name or entity.__name__.lower()
        self.session_factory = session_factory or async_session_factory
        self.columns: Dict[str, Column] = {
            column.key: column for column in entity.__table__.columns
        }
        self.hidden: Set[str] = set(getattr(entity, "HIDDEN_FIELDS", ()))

    # ── Field helpers ─────────────────────────────────────────────────────

    def field(self, name: str, allow_hidden: bool = False) -> Tuple[Any, Column]:
        """
        Attribute and column for a client-supplied field name.

        Hidden fields count as unknown unless `allow_hidden` is set, which
        only exclusions do.
        """
        column = self.columns.get(name)
        if column is None or (name in self.hidden and not allow_hidden):
            raise BadRequestError(
                message=f"Unknown field '{name}' for {self.name}",
                field=name,
            )
        return getattr(self.entity, name), column

    def to_document(
        self,
        entity: Any,
        include: Sequence[str] = (),
        exclude: Iterable[str] = INTERNAL_FIELDS,
    ) -> Document:
        full = {key: getattr(entity, key) for key in self.columns}
        return self.shape(full, include, exclude)

    def shape(
        self,
        source: Mapping[str, Any],
        include: Sequence[str] = (),
        exclude: Iterable[str] = INTERNAL_FIELDS,
    ) -> Document:
        """`shape_document` that never lets a hidden field through."""
        return shape_document(source, include, set(exclude) | self.hidden)

    def _projection(self, fields: Sequence[str]) -> Tuple[List[str], Set[str]]:
        if not fields:
            return [], set(INTERNAL_FIELDS)
        probe = PendingQuery(self, select(self.entity)).select(*fields)
        return probe.include, probe.exclude

    def _prepare(self, values: Mapping[str, Any]) -> Dict[str, Any]:
        """Coerce writable fields; drop protected and unknown ones."""
        prepared: Dict[str, Any] = {}
        for name, raw in values.items():
            if name in PROTECTED_FIELDS:
                logger.debug("Ignoring protected field '%s' on %s write", name, self.name)
                continue
            column = self.columns.get(name)
            if column is None:
                logger.debug("Ignoring unknown field '%s' on %s write", name, self.name)
                continue
            prepared[name] = coerce_value(name, column, raw)
        return prepared

    @staticmethod
    def _validate(entity: Any) -> None:
        try:
            entity.validate()
        except ValueError as exc:
            raise BadRequestError(message=str(exc)) from exc

    @asynccontextmanager
    async def _transaction(self) -> AsyncIterator[AsyncSession]:
        async with self.session_factory() as session:
            try:
                yield session
            except IntegrityError as exc:
                await session.rollback()
                logger.warning("Integrity error on %s: %s", self.name, exc.orig)
                raise BadRequestError(
                    message="Invalid input data: a required or unique field was violated",
                    context={"collection": self.name, "error": str(exc.orig)},
                ) from exc
            except SQLAlchemyError as exc:
                await session.rollback()
                logger.error("Database error on %s: %s", self.name, str(exc))
                raise DatabaseError(
                    context={"collection": self.name, "error": str(exc)},
                ) from exc

    async def fetch(self, statement: Select) -> List[Any]:
        async with self._transaction() as session:
            result = await session.execute(statement)
            return list(result.scalars().all())

    # ── Data-layer contract ───────────────────────────────────────────────

    def find(self) -> PendingQuery:
        return PendingQuery(self, select(self.entity))

    def find_by_id(self, doc_id: str) -> PendingQuery:
        return PendingQuery(
            self,
            select(self.entity).where(self.entity.id == doc_id),
            single=True,
        )

    async def create(self, values: Mapping[str, Any]) -> Document:
        entity = self.entity(**self._prepare(values))
        self._validate(entity)
        async with self._transaction() as session:
            session.add(entity)
            await session.commit()
        logger.info("Created %s %s", self.name, entity.id)
        return self.to_document(entity)

    async def find_by_id_and_update(
        self,
        doc_id: str,
        values: Mapping[str, Any],
        *,
        new: bool = True,
        run_validators: bool = True,
        projection: Sequence[str] = (),
    ) -> Optional[Document]:
        """
        Apply `values` to one document.

        Args:
            new:            Return the document after the update (else before)
            run_validators: Run the model's `validate()` on the updated state
            projection:     Field specs as accepted by `PendingQuery.select`

        Returns None when no document has `doc_id`.
        """
        include, exclude = self._projection(projection)
        changes = self._prepare(values)

        async with self._transaction() as session:
            entity = await session.get(self.entity, doc_id)
            if entity is None:
                return None
            before = {key: getattr(entity, key) for key in self.columns}

            for key, value in changes.items():
                setattr(entity, key, value)
            entity.version = (entity.version or 0) + 1
            if run_validators:
                self._validate(entity)
            await session.commit()

        logger.info("Updated %s %s (%s)", self.name, doc_id, ", ".join(changes) or "no fields")
        if new:
            return self.to_document(entity, include=include, exclude=exclude)
        return self.shape(before, include, exclude)

    async def delete_many(self, ids: Sequence[str]) -> DeleteSummary:
        """Delete every document whose id is in `ids` with one DELETE statement."""
        requested = list(dict.fromkeys(doc_id for doc_id in ids if doc_id))
        found: Set[str] = set()

        if requested:
            async with self._transaction() as session:
                result = await session.execute(
                    select(self.entity.id).where(self.entity.id.in_(requested))
                )
                found = set(result.scalars().all())
                if found:
                    await session.execute(
                        delete(self.entity).where(self.entity.id.in_(found))
                    )
                await session.commit()

        summary = DeleteSummary(
            requested=requested,
            deleted_count=len(found),
            missing_ids=[doc_id for doc_id in requested if doc_id not in found],
        )
        logger.info(
            "Deleted %d of %d requested %s document(s)",
            summary.deleted_count, len(requested), self.name,
        )
        return summary
