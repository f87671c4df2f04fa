"""SQLAlchemy-backed record store."""

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from sqlalchemy import create_engine, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from staking_pool_metrics.core.exceptions import StoreError
from staking_pool_metrics.core.models import Record
from staking_pool_metrics.storage.store import R, check_key, id_sort_key, validate_row
from staking_pool_metrics.storage.tables import Base, row_table

logger = logging.getLogger(__name__)


class SqlRecordStore:
    """
    Record store backed by a SQL database.

    Each record kind has its own table keyed by record id, and every save is a
    single-row upsert. ``transaction()`` opens one session whose
    ``Session.begin()`` block commits all saves made inside it, or rolls them
    back if the block raises. Loads inside a transaction see its own saves.
    Nested transactions join the outermost one.

    Parameters
    ----------
    url : str
        SQLAlchemy database URL, e.g. ``sqlite:///state.db``

    Raises
    ------
    StoreError
        If the database cannot be opened or its tables created

    """

    def __init__(self, url: str) -> None:
        self.url = url
        try:
            self.engine = create_engine(url, future=True)
            Base.metadata.create_all(self.engine)
        except SQLAlchemyError as e:
            msg = f"Failed to open record store {url}: {e}"
            raise StoreError(msg) from e

        self._session_factory = sessionmaker(bind=self.engine, autoflush=False, expire_on_commit=False)
        self._session: Session | None = None

    @classmethod
    def for_path(cls, path: str | Path) -> "SqlRecordStore":
        """
        Open a SQLite store at a file path, creating parent directories.

        Parameters
        ----------
        path : str | Path
            SQLite database file

        Returns
        -------
        SqlRecordStore
            Store bound to the file

        """
        path = Path(path)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            msg = f"Failed to create directory for record store {path}: {e}"
            raise StoreError(msg) from e
        return cls(f"sqlite:///{path}")

    def load(self, model: type[R], record_id: str) -> R | None:
        """
        Load a record by id.

        Parameters
        ----------
        model : type[Record]
            Record class to load
        record_id : str
            Record id

        Returns
        -------
        Record | None
            The stored record, or None if no row exists

        Raises
        ------
        MalformedAggregateError
            If the stored row fails validation
        StoreError
            If the database query fails

        """
        table = row_table(model.kind)
        with self._session_scope() as session:
            row = session.get(table, record_id)
            data = None if row is None else row.data

        if data is None:
            return None
        return validate_row(model, record_id, data)

    def save(self, record: Record) -> None:
        """
        Upsert a record, inside the open transaction if there is one.

        Raises
        ------
        StoreError
            If the record has no kind or id, or the write fails

        """
        check_key(record)
        table = row_table(record.kind)
        data = record.model_dump(mode="json")

        with self._session_scope() as session:
            row = session.get(table, record.id)
            if row is None:
                session.add(table(id=record.id, data=data))
            else:
                row.data = data
            session.flush()

    @contextmanager
    def transaction(self) -> Iterator[None]:
        """Run the block in one session and commit its saves together."""
        if self._session is not None:
            yield
            return

        with self._session_scope() as session:
            self._session = session
            try:
                yield
            except BaseException:
                logger.debug("Rolling back transaction on %s", self.url)
                raise
            finally:
                self._session = None

    def records(self, model: type[R]) -> list[R]:
        """
        Load every committed record of a kind.

        Parameters
        ----------
        model : type[Record]
            Record class to list

        Returns
        -------
        list[Record]
            Records ordered by id (numerically when ids are integers)

        """
        table = row_table(model.kind)
        with self._session_scope() as session:
            rows = [(row.id, row.data) for row in session.scalars(select(table))]

        rows.sort(key=lambda item: id_sort_key(item[0]))
        return [validate_row(model, record_id, data) for record_id, data in rows]

    def close(self) -> None:
        """Release database connections."""
        self.engine.dispose()

    def __enter__(self) -> "SqlRecordStore":
        """Context manager entry."""
        return self

    def __exit__(self, exc_type: type, exc_val: Exception, exc_tb: object) -> None:
        """Context manager exit."""
        self.close()

    @contextmanager
    def _session_scope(self) -> Iterator[Session]:
        if self._session is not None:
            yield self._session
            return

        try:
            with self._session_factory() as session, session.begin():
                yield session
        except SQLAlchemyError as e:
            msg = f"Record store {self.url} failed: {e}"
            raise StoreError(msg) from e
