"""Generic repository for criteria-based data access.

A single engine parameterized by a mapped model. Resource repositories
either subclass it and set the class attributes, or instantiate it
directly with keyword arguments:

    products = Repository(
        database,
        Product,
        search_columns=("name", "description"),
        sort_columns=("created_at", "name"),
    )

Every list/count/exists path builds its WHERE clause through
``_build_predicate`` so identical criteria always select identical rows.
"""

import asyncio
import math
from collections.abc import AsyncIterator, Mapping, Sequence
from contextlib import asynccontextmanager
from dataclasses import dataclass
from enum import StrEnum
from typing import Any, ClassVar, Generic, TypeVar

import structlog
from sqlalchemy import ColumnElement, Select, and_, exists, func, or_, select, true, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import InstrumentedAttribute

from keystone.core.constants import MAX_PAGE_SIZE
from keystone.core.database.base import Base
from keystone.core.database.session import Database
from keystone.core.errors import (
    AppException,
    ConflictError,
    InfrastructureError,
    ValidationError,
)


logger = structlog.get_logger()

ModelT = TypeVar("ModelT", bound=Base)

LIKE_ESCAPE = "\\"


class SortOrder(StrEnum):
    """Sort direction accepted by ``paginate``."""

    ASC = "asc"
    DESC = "desc"


@dataclass(frozen=True)
class Page(Generic[ModelT]):
    """One page of records plus the total-count contract.

    ``total`` counts every row matching the filter/search predicate,
    before limit and offset are applied.
    """

    data: list[ModelT]
    total: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit)


def escape_like(term: str) -> str:
    """Escape LIKE wildcards so a search term matches literally."""
    return (
        term.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", f"{LIKE_ESCAPE}%")
        .replace("_", f"{LIKE_ESCAPE}_")
    )


UNIQUE_VIOLATION_SQLSTATE = "23505"
UNIQUE_VIOLATION_MESSAGES = ("unique constraint failed", "duplicate key value")


def is_unique_violation(exc: IntegrityError) -> bool:
    """Whether an integrity error was raised by a uniqueness constraint.

    PostgreSQL drivers expose the SQLSTATE; SQLite only says so in the
    message.
    """
    orig = exc.orig
    sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if sqlstate:
        return str(sqlstate) == UNIQUE_VIOLATION_SQLSTATE
    message = str(orig).lower()
    return any(marker in message for marker in UNIQUE_VIOLATION_MESSAGES)


class Repository(Generic[ModelT]):
    """Create/read/update/soft-delete, filtering, search and pagination.

    Attributes:
        model: Mapped class this repository serves
        search_columns: Text columns ORed together by free-text search
        sort_columns: Columns a caller may sort by
        default_sort: Fallback sort column for unknown ``sort_by`` values
        default_order: Fallback sort direction
    """

    model: ClassVar[type[Any]]
    search_columns: ClassVar[tuple[str, ...]] = ()
    sort_columns: ClassVar[tuple[str, ...]] = ("created_at",)
    default_sort: ClassVar[str] = "created_at"
    default_order: ClassVar[SortOrder] = SortOrder.DESC

    def __init__(
        self,
        database: Database,
        model: type[ModelT] | None = None,
        *,
        search_columns: Sequence[str] | None = None,
        sort_columns: Sequence[str] | None = None,
        default_sort: str | None = None,
        default_order: SortOrder | None = None,
        timeout: float | None = None,
    ) -> None:
        self.database = database
        self.model = model or type(self).model
        self.search_columns = tuple(
            search_columns if search_columns is not None else type(self).search_columns
        )
        self.sort_columns = tuple(
            sort_columns if sort_columns is not None else type(self).sort_columns
        )
        self.default_sort = default_sort or type(self).default_sort
        self.default_order = default_order or type(self).default_order
        self.timeout = timeout if timeout is not None else database.timeout

        mapper = self.model.__mapper__
        self._columns = set(mapper.columns.keys())
        self._primary_key: InstrumentedAttribute[Any] = getattr(
            self.model, mapper.primary_key[0].key
        )
        self.resource_name = self.model.__tablename__

        # Whitelists are checked once, here, so a typo fails at startup
        for name in (*self.search_columns, *self.sort_columns, self.default_sort):
            if name not in self._columns:
                raise ValueError(
                    f"{self.model.__name__} has no column {name!r} "
                    "(check search_columns/sort_columns)"
                )

    # ------------------------------------------------------------------
    # Session handling
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def session(self, operation: str) -> AsyncIterator[AsyncSession]:
        """Acquire a session for one operation, bounded by ``timeout``.

        Backing-store exceptions never escape raw. Unique violations become
        ``ConflictError`` and other integrity violations (NOT NULL, foreign
        key, check) become ``ValidationError``. Timeouts and every other
        store failure become ``InfrastructureError``.
        """
        try:
            async with asyncio.timeout(self.timeout):
                async with self.database.session() as session:
                    yield session
        except AppException:
            raise
        except IntegrityError as exc:
            if not is_unique_violation(exc):
                logger.info(
                    "repository_constraint_violation",
                    resource=self.resource_name,
                    operation=operation,
                )
                raise ValidationError(
                    f"{self.resource_name} record violates a data constraint",
                    error_code="constraint_violation",
                ) from exc
            logger.info(
                "repository_conflict",
                resource=self.resource_name,
                operation=operation,
            )
            raise ConflictError(
                f"{self.resource_name} record conflicts with an existing record",
                error_code="duplicate_record",
            ) from exc
        except TimeoutError as exc:
            logger.warning(
                "repository_timeout",
                resource=self.resource_name,
                operation=operation,
                timeout=self.timeout,
            )
            raise InfrastructureError(
                "Backing store did not respond in time",
                error_code="store_timeout",
            ) from exc
        except SQLAlchemyError as exc:
            logger.error(
                "repository_store_error",
                resource=self.resource_name,
                operation=operation,
                error_type=type(exc).__name__,
            )
            raise InfrastructureError(
                "Backing store is unavailable",
                error_code="store_unavailable",
            ) from exc

    def transaction(self) -> Any:
        """Atomic scope shared by every repository on the same database."""
        return self.database.transaction()

    # ------------------------------------------------------------------
    # Predicate building
    # ------------------------------------------------------------------

    def _column(self, name: str) -> InstrumentedAttribute[Any]:
        if name not in self._columns:
            raise ValidationError(
                f"Unknown field for {self.resource_name}: {name}",
                errors=[{"field": name, "message": "Unknown field"}],
            )
        return getattr(self.model, name)

    def active_predicate(self) -> ColumnElement[bool]:
        """The single definition of "not soft-deleted" for this model."""
        if "deleted_at" not in self._columns:
            return true()
        return self.model.deleted_at.is_(None)

    def _build_predicate(
        self,
        criteria: Mapping[str, Any] | None = None,
        search: str | None = None,
        exclude_deleted: bool = False,
    ) -> ColumnElement[bool]:
        clauses: list[ColumnElement[bool]] = []

        for key, value in (criteria or {}).items():
            column = self._column(key)
            clauses.append(column.is_(None) if value is None else column == value)

        if search and self.search_columns:
            pattern = f"%{escape_like(search)}%"
            clauses.append(
                or_(
                    *(
                        getattr(self.model, name).ilike(pattern, escape=LIKE_ESCAPE)
                        for name in self.search_columns
                    )
                )
            )

        if exclude_deleted:
            clauses.append(self.active_predicate())

        return and_(true(), *clauses)

    def _order_by(
        self, sort_by: str | None, sort_order: SortOrder | str | None
    ) -> list[Any]:
        name = sort_by if sort_by in self.sort_columns else self.default_sort
        try:
            order = SortOrder(sort_order) if sort_order else self.default_order
        except ValueError:
            order = self.default_order
        column = getattr(self.model, name)
        primary = column.asc() if order is SortOrder.ASC else column.desc()
        # Primary key tiebreaker keeps offsets stable across pages
        return [primary, self._primary_key.asc()]

    def _select(self, predicate: ColumnElement[bool]) -> Select[Any]:
        return select(self.model).where(predicate)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def find_by_id(self, record_id: Any, exclude_deleted: bool = False) -> ModelT | None:
        """Get a record by primary key, or None."""
        predicate = self._primary_key == record_id
        if exclude_deleted:
            predicate = and_(predicate, self.active_predicate())
        async with self.session("find_by_id") as session:
            result = await session.execute(self._select(predicate))
            return result.scalar_one_or_none()

    async def find_one(
        self, criteria: Mapping[str, Any], exclude_deleted: bool = False
    ) -> ModelT | None:
        """Get the first record matching every criterion, or None."""
        stmt = self._select(
            self._build_predicate(criteria, exclude_deleted=exclude_deleted)
        ).limit(1)
        async with self.session("find_one") as session:
            result = await session.execute(stmt)
            return result.scalars().first()

    async def find_all(
        self,
        criteria: Mapping[str, Any] | None = None,
        exclude_deleted: bool = False,
    ) -> list[ModelT]:
        """List records matching every criterion (conjunctive exact match)."""
        stmt = self._select(
            self._build_predicate(criteria, exclude_deleted=exclude_deleted)
        ).order_by(*self._order_by(None, None))
        async with self.session("find_all") as session:
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def count(
        self,
        criteria: Mapping[str, Any] | None = None,
        search: str | None = None,
        exclude_deleted: bool = False,
    ) -> int:
        """Count records matching the criteria (and optional search)."""
        predicate = self._build_predicate(criteria, search, exclude_deleted)
        stmt = select(func.count()).select_from(self.model).where(predicate)
        async with self.session("count") as session:
            result = await session.execute(stmt)
            return int(result.scalar_one())

    async def exists(
        self,
        criteria: Mapping[str, Any] | None = None,
        exclude_deleted: bool = False,
    ) -> bool:
        """Whether at least one record matches the criteria."""
        predicate = self._build_predicate(criteria, exclude_deleted=exclude_deleted)
        stmt = select(exists().select_from(self.model).where(predicate))
        async with self.session("exists") as session:
            result = await session.execute(stmt)
            return bool(result.scalar())

    async def paginate(
        self,
        page: int,
        limit: int,
        criteria: Mapping[str, Any] | None = None,
        search: str | None = None,
        sort_by: str | None = None,
        sort_order: SortOrder | str | None = None,
        exclude_deleted: bool = False,
    ) -> Page[ModelT]:
        """Return one page of matching records.

        Args:
            page: 1-indexed page number
            limit: Page size, 1..MAX_PAGE_SIZE
            criteria: Exact-match filters
            search: Case-insensitive substring matched against ``search_columns``
            sort_by: Column name; anything outside ``sort_columns`` falls back
                to ``default_sort``
            sort_order: "asc" or "desc"; invalid values fall back to ``default_order``
            exclude_deleted: Hide soft-deleted rows

        Raises:
            ValidationError: If page or limit is out of range
        """
        if page < 1:
            raise ValidationError(
                "Page must be at least 1",
                errors=[{"field": "page", "message": "Must be >= 1"}],
            )
        if not 1 <= limit <= MAX_PAGE_SIZE:
            raise ValidationError(
                f"Limit must be between 1 and {MAX_PAGE_SIZE}",
                errors=[{"field": "limit", "message": f"Must be 1..{MAX_PAGE_SIZE}"}],
            )

        predicate = self._build_predicate(criteria, search, exclude_deleted)
        count_stmt = select(func.count()).select_from(self.model).where(predicate)
        data_stmt = (
            self._select(predicate)
            .order_by(*self._order_by(sort_by, sort_order))
            .offset((page - 1) * limit)
            .limit(limit)
        )

        async with self.session("paginate") as session:
            total = int((await session.execute(count_stmt)).scalar_one())
            result = await session.execute(data_stmt)
            data = list(result.scalars().all())

        return Page(data=data, total=total, page=page, limit=limit)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def _clean(self, data: Mapping[str, Any]) -> dict[str, Any]:
        values = {key: value for key, value in data.items() if key != "updated_at"}
        for key in values:
            self._column(key)
        return values

    async def create(self, data: Mapping[str, Any]) -> ModelT:
        """Insert a record, then re-read it by its generated key.

        The returned instance reflects server-assigned defaults (id,
        timestamps), not just the input.
        """
        instance = self.model(**self._clean(data))
        async with self.session("create") as session:
            session.add(instance)
            await session.flush()
            await session.refresh(instance)
            return instance

    async def update_by_id(self, record_id: Any, data: Mapping[str, Any]) -> ModelT | None:
        """Partially update a record and return the re-read row.

        ``updated_at`` is always stamped by the store; a caller-supplied
        value is ignored. Returns None when no row has that key.
        """
        values = self._clean(data)
        if "updated_at" in self._columns:
            values["updated_at"] = func.now()
        if not values:
            return await self.find_by_id(record_id)
        stmt = (
            update(self.model)
            .where(self._primary_key == record_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        async with self.session("update_by_id") as session:
            result = await session.execute(stmt)
            if result.rowcount == 0:
                return None
            reread = await session.execute(
                self._select(self._primary_key == record_id).execution_options(
                    populate_existing=True
                )
            )
            return reread.scalar_one()

    async def soft_delete_by_id(self, record_id: Any) -> bool:
        """Stamp the deletion marker on a live record.

        Returns:
            True if a live row was marked, False if absent or already deleted
        """
        if "deleted_at" not in self._columns:
            raise TypeError(f"{self.model.__name__} does not support soft delete")
        values: dict[str, Any] = {"deleted_at": func.now()}
        if "updated_at" in self._columns:
            values["updated_at"] = func.now()
        stmt = (
            update(self.model)
            .where(self._primary_key == record_id, self.active_predicate())
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        async with self.session("soft_delete_by_id") as session:
            result = await session.execute(stmt)
            return bool(result.rowcount)
