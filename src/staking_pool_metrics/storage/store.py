"""Record stores keyed by record kind and id, with atomic transactions."""

import logging
from collections.abc import Iterator
from contextlib import AbstractContextManager, contextmanager
from typing import Any, Protocol, TypeVar

from pydantic import ValidationError

from staking_pool_metrics.core.exceptions import MalformedAggregateError, StoreError
from staking_pool_metrics.core.models import Record

logger = logging.getLogger(__name__)

R = TypeVar("R", bound=Record)

RowKey = tuple[str, str]


class RecordStore(Protocol):
    """
    Interface the metrics engine needs from durable storage.

    Methods
    -------
    load(model, record_id)
        Fetch a record by id, or None if absent
    save(record)
        Create or replace the whole row for a record
    transaction()
        Group saves so they become visible together or not at all
    records(model)
        List every committed record of a kind

    """

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

        """
        ...

    def save(self, record: Record) -> None:
        """
        Upsert a record.

        Parameters
        ----------
        record : Record
            Record to persist

        """
        ...

    def transaction(self) -> AbstractContextManager[None]:
        """Return a context manager committing all saves made inside it atomically."""
        ...

    def records(self, model: type[R]) -> list[R]:
        """List every committed record of a kind, ordered by id."""
        ...


class InMemoryRecordStore:
    """
    Dictionary-backed record store.

    Rows are stored as plain dicts and re-validated on load, so callers never
    share mutable state with the store. Saves made inside ``transaction()`` are
    staged and only committed when the block exits without an exception. Loads
    inside a transaction see the staged rows. Nested transactions join the
    outermost one.

    """

    def __init__(self) -> None:
        self._rows: dict[RowKey, dict[str, Any]] = {}
        self._staged: dict[RowKey, dict[str, Any]] | None = None

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

        """
        row = self._lookup((model.kind, record_id))
        if row is None:
            return None
        return validate_row(model, record_id, row)

    def save(self, record: Record) -> None:
        """
        Upsert a record, staging it if a transaction is open.

        Parameters
        ----------
        record : Record
            Record to persist

        Raises
        ------
        StoreError
            If the record has no kind or id

        """
        check_key(record)

        key = (record.kind, record.id)
        row = record.model_dump(mode="python")

        if self._staged is not None:
            self._staged[key] = row
        else:
            self._commit({key: row})

    @contextmanager
    def transaction(self) -> Iterator[None]:
        """Stage saves and commit them together when the block succeeds."""
        if self._staged is not None:
            yield
            return

        self._staged = {}
        try:
            yield
        except BaseException:
            logger.debug("Discarding %d staged rows after error", len(self._staged))
            self._staged = None
            raise

        staged, self._staged = self._staged, None
        self._commit(staged)

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
        ids = [record_id for kind, record_id in self._rows if kind == model.kind]
        ids.sort(key=id_sort_key)
        return [self.load(model, record_id) for record_id in ids]

    def _lookup(self, key: RowKey) -> dict[str, Any] | None:
        if self._staged is not None and key in self._staged:
            return self._staged[key]
        return self._rows.get(key)

    def _commit(self, rows: dict[RowKey, dict[str, Any]]) -> None:
        self._rows.update(rows)


def check_key(record: Record) -> None:
    """Reject a record that cannot be keyed by ``(kind, id)``."""
    if not record.kind or not record.id:
        msg = f"Cannot save {type(record).__name__} without a kind and id"
        raise StoreError(msg)


def validate_row(model: type[R], record_id: str, row: dict[str, Any]) -> R:
    """
    Rebuild a record from a stored row.

    Raises
    ------
    MalformedAggregateError
        If the row fails validation

    """
    try:
        return model.model_validate(row)
    except ValidationError as e:
        msg = f"Stored {model.kind} {record_id!r} is malformed: {e}"
        raise MalformedAggregateError(msg) from e


def id_sort_key(record_id: str) -> tuple[int, int, str]:
    """Order integer bucket ids numerically, ahead of any other ids."""
    if record_id.isdigit():
        return (0, int(record_id), "")
    return (1, 0, record_id)
