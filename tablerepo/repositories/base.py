"""
Generic async repository over a single table.

A ``Repository[T]`` is parameterised at construction time by a database
handle, a table name, a ``build`` callable producing domain objects and two
optional data-shaping callables (``serialize`` for writes, ``deserialize``
for reads).  Every public operation is a single SQLAlchemy Core statement
executed on the handle; nothing is cached and nothing is retried.

Design notes:
- The table is addressed with a lightweight ``sqlalchemy.table()`` clause, so
  no ``MetaData``/ORM mapping is needed.  Reads select ``*``.
- The primary-key column is ``id`` (``id_column`` on the class).
- ``load()`` raises :class:`NotFoundException` when no row matches;
  ``find()`` returns ``None`` instead.
- ``create()`` mutates the caller's object in place by assigning the
  generated id, then returns that same object.
- ``update()``/``delete()`` return ``True`` once the statement completes,
  whether or not a row matched.  ``update_count()``/``delete_count()`` expose
  the affected-row count for callers that need to tell the cases apart.
- A failed write rolls the handle back and re-raises the original error.
  **OperationalError** is additionally logged; **IntegrityError** and the
  rest reach the caller unchanged for it to translate.
"""

import dataclasses
import logging
from collections.abc import Mapping, MutableMapping
from typing import (
    Any,
    Callable,
    Dict,
    Generic,
    List,
    Optional,
    Type,
    TypeVar,
    Union,
)

from pydantic import BaseModel
from sqlalchemy import Executable, Result, column, literal_column, select, table
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncSession
from sqlalchemy.sql.expression import TableClause
from sqlmodel import SQLModel

from tablerepo.core.exceptions import NotFoundException

logger = logging.getLogger(__name__)

T = TypeVar("T")
ModelType = TypeVar("ModelType", bound=SQLModel)

Row = Dict[str, Any]
Handle = Union[AsyncSession, AsyncConnection]


def identity(data: Any) -> Any:
    """Default ``serialize``/``deserialize``: return the input unchanged."""
    return data


def to_row(value: Any) -> Row:
    """
    Coerce the output of ``serialize`` into a column → value dict.

    Mappings are copied, pydantic/SQLModel models are dumped, dataclasses are
    converted with ``asdict`` and plain objects contribute their public
    instance attributes.
    """
    if isinstance(value, Mapping):
        return dict(value)
    if isinstance(value, BaseModel):
        return value.model_dump()
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return dataclasses.asdict(value)
    if hasattr(value, "__dict__"):
        return {k: v for k, v in vars(value).items() if not k.startswith("_")}
    raise TypeError(
        f"Cannot persist object of type {type(value).__name__!r}: "
        "serialize must return a mapping, a model, a dataclass or a plain object"
    )


# ── Result extractors (run before commit) ──


def _returned_id(result: Result) -> Any:
    return result.scalar_one()


def _last_row_id(result: Result) -> Any:
    return result.lastrowid


def _rowcount(result: Result) -> int:
    return result.rowcount


class Repository(Generic[T]):
    """
    CRUD access to one table, returning domain objects.

    Parameters
    ----------
    db : AsyncSession | AsyncConnection
        Handle every statement is executed on.  Borrowed, never closed.
    table : str
        Name of the SQL table.
    build : Callable[[Row], T]
        Builds a domain object from (deserialized) row data.
    serialize : Callable[[T], Any], optional
        Tells which data should be persisted for a given object.
        Defaults to identity; the result is coerced with :func:`to_row`.
    deserialize : Callable[[Row], Any], optional
        Reshapes a row before it reaches ``build``
        (e.g. ``start_date`` → ``startDate``).  Defaults to identity.
    """

    id_column = "id"

    def __init__(
        self,
        db: Handle,
        table: str,
        build: Callable[[Any], T],
        serialize: Callable[[T], Any] = identity,
        deserialize: Callable[[Row], Any] = identity,
    ):
        self.db = db
        self.table = table
        self.build = build
        self.serialize = serialize
        self.deserialize = deserialize

    @classmethod
    def for_model(cls, db: Handle, model: Type[ModelType]) -> "Repository[ModelType]":
        """
        Build a repository for a SQLModel table class.

        Rows are validated into ``model`` on the way out and dumped with
        ``model_dump()`` on the way in.
        """
        return cls(
            db,
            model.__tablename__,
            build=model.model_validate,
            serialize=lambda obj: obj.model_dump(),
        )

    # ── Internal helpers ──

    def _clause(self, *columns: str) -> TableClause:
        return table(self.table, *(column(name) for name in dict.fromkeys(columns)))

    def _make(self, row: Mapping) -> T:
        return self.build(self.deserialize(dict(row)))

    def _supports_insert_returning(self) -> bool:
        if isinstance(self.db, AsyncConnection):
            dialect = self.db.dialect
        else:
            dialect = self.db.get_bind().dialect
        return bool(dialect.insert_returning)

    async def _select(self, where: Mapping[str, Any]) -> List[Mapping]:
        clause = self._clause(*where)
        stmt = select(literal_column("*")).select_from(clause).where(
            *(clause.c[name] == value for name, value in where.items())
        )
        result = await self.db.execute(stmt)
        return list(result.mappings().all())

    async def _write(
        self,
        stmt: Executable,
        operation: str,
        row_id: Any,
        extract: Callable[[Result], Any],
    ) -> Any:
        """
        Execute a write, read what is needed from its result, then commit.

        ``extract`` runs before the commit so RETURNING rows are still
        available.  Any failure rolls the handle back before re-raising, so
        no transaction is left open behind the caller.
        """
        try:
            result = await self.db.execute(stmt)
            value = extract(result)
            await self.db.commit()
        except OperationalError:
            await self.db.rollback()
            logger.error(
                "OperationalError during %s on %s id=%s",
                operation,
                self.table,
                row_id,
                extra={"table": self.table, "operation": operation, "row_id": row_id},
            )
            raise
        except Exception:
            await self.db.rollback()
            raise
        return value

    # ── Queries ──

    async def find(self, id: Any) -> Optional[T]:
        """Load the entity with the given id, or ``None`` if there is none."""
        logger.debug(
            "load %s id=%s",
            self.table,
            id,
            extra={"table": self.table, "operation": "load", "row_id": id},
        )
        rows = await self._select({self.id_column: id})
        if not rows:
            return None
        return self._make(rows[0])

    async def load(self, id: Any) -> T:
        """
        Load the entity with the given id.

        Raises :class:`NotFoundException` if no row has that id.
        """
        entity = await self.find(id)
        if entity is None:
            raise NotFoundException(self.table, id)
        return entity

    async def list(self, filter: Optional[Mapping[str, Any]] = None) -> List[T]:
        """
        List the entities whose columns equal every value in ``filter``.

        An empty or missing filter lists the whole table.  Order is the
        store's.
        """
        where = dict(filter or {})
        logger.debug(
            "list %s where=%s",
            self.table,
            where,
            extra={"table": self.table, "operation": "list"},
        )
        rows = await self._select(where)
        return [self._make(row) for row in rows]

    # ── Commands ──

    async def create(self, obj: T) -> T:
        """
        Persist a new entity and give it the database-generated id.

        The id is assigned onto ``obj`` itself, which is returned.
        """
        row = to_row(self.serialize(obj))
        if row.get(self.id_column) is None:
            row.pop(self.id_column, None)

        clause = self._clause(*row, self.id_column)
        stmt = clause.insert().values(row)
        if self._supports_insert_returning():
            stmt = stmt.returning(clause.c[self.id_column])
            new_id = await self._write(stmt, "create", None, _returned_id)
        else:
            new_id = await self._write(stmt, "create", None, _last_row_id)

        if isinstance(obj, MutableMapping):
            obj[self.id_column] = new_id
        else:
            setattr(obj, self.id_column, new_id)
        logger.debug(
            "created %s id=%s",
            self.table,
            new_id,
            extra={"table": self.table, "operation": "create", "row_id": new_id},
        )
        return obj

    async def update_count(self, obj: T) -> int:
        """Write ``obj`` over the row sharing its id; return the affected-row count."""
        row = to_row(self.serialize(obj))
        if isinstance(obj, Mapping):
            row_id = obj[self.id_column]
        else:
            row_id = getattr(obj, self.id_column)

        clause = self._clause(*row, self.id_column)
        stmt = clause.update().where(clause.c[self.id_column] == row_id).values(row)
        count = await self._write(stmt, "update", row_id, _rowcount)
        logger.debug(
            "updated %s id=%s rows=%s",
            self.table,
            row_id,
            count,
            extra={
                "table": self.table,
                "operation": "update",
                "row_id": row_id,
                "rowcount": count,
            },
        )
        return count

    async def update(self, obj: T) -> bool:
        """
        Update an entity in the database.

        Returns ``True`` even when no row had the object's id; use
        :meth:`update_count` to tell the two apart.
        """
        await self.update_count(obj)
        return True

    async def delete_count(self, id: Any) -> int:
        """Delete the row with the given id; return the affected-row count."""
        clause = self._clause(self.id_column)
        stmt = clause.delete().where(clause.c[self.id_column] == id)
        count = await self._write(stmt, "delete", id, _rowcount)
        logger.debug(
            "deleted %s id=%s rows=%s",
            self.table,
            id,
            count,
            extra={
                "table": self.table,
                "operation": "delete",
                "row_id": id,
                "rowcount": count,
            },
        )
        return count

    async def delete(self, id: Any) -> bool:
        """
        Delete an entity from the database.

        Returns ``True`` even when the id did not exist.
        """
        await self.delete_count(id)
        return True
