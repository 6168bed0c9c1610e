"""In-memory asset record store.

The store holds the ordered record list, the operator's selection, and the
set of ids with an AI rename in flight.  Every mutation is a synchronous
method, so under the single-threaded event loop no caller ever observes a
half-applied change: :meth:`AssetRecordStore.replace_all` swaps the whole
list in one assignment.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from typing import Any

from catalogstudio.models import ImageRecord


class AssetRecordStore:
    """Ordered collection of :class:`ImageRecord` plus selection state."""

    def __init__(self) -> None:
        self._records: list[ImageRecord] = []
        self._selected: set[str] = set()
        self._analyzing: set[str] = set()

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    @property
    def records(self) -> tuple[ImageRecord, ...]:
        return tuple(self._records)

    @property
    def selected_ids(self) -> frozenset[str]:
        return frozenset(self._selected)

    @property
    def analyzing_ids(self) -> frozenset[str]:
        return frozenset(self._analyzing)

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[ImageRecord]:
        return iter(tuple(self._records))

    def __contains__(self, record_id: object) -> bool:
        return self._index_of(record_id) is not None

    def get(self, record_id: str) -> ImageRecord | None:
        idx = self._index_of(record_id)
        return None if idx is None else self._records[idx]

    def scope(self) -> list[ImageRecord]:
        """Records a batch action applies to.

        The selected records in list order when anything is selected,
        otherwise every record.
        """
        if self._selected:
            return [r for r in self._records if r.id in self._selected]
        return list(self._records)

    # ------------------------------------------------------------------
    # Record mutations
    # ------------------------------------------------------------------

    def replace_all(self, records: Iterable[ImageRecord]) -> list[ImageRecord]:
        """Swap the whole record list and clear selection and analyzing sets.

        Returns the records that were replaced.
        """
        new_records = list(records)
        ids = [r.id for r in new_records]
        if len(set(ids)) != len(ids):
            raise ValueError("replace_all received duplicate record ids")

        previous = self._records
        self._records = new_records
        self._selected = set()
        self._analyzing = set()
        return previous

    def upsert_field(self, record_id: str, **patch: Any) -> ImageRecord | None:
        """Apply *patch* to one record in place of the list.

        Returns the updated record, or ``None`` when *record_id* is not in
        the store (for example because a newer batch replaced it).
        """
        if "id" in patch:
            raise ValueError("A record's id cannot be changed")
        idx = self._index_of(record_id)
        if idx is None:
            return None
        updated = self._records[idx].evolve(**patch)
        self._records[idx] = updated
        return updated

    def prepend(self, record: ImageRecord) -> None:
        if self._index_of(record.id) is not None:
            raise ValueError(f"Record id {record.id} already present")
        self._records.insert(0, record)

    def remove(self, record_id: str) -> ImageRecord | None:
        idx = self._index_of(record_id)
        if idx is None:
            return None
        self._selected.discard(record_id)
        self._analyzing.discard(record_id)
        return self._records.pop(idx)

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    def toggle_select(self, record_id: str) -> bool:
        """Flip selection of *record_id*; returns whether it is now selected.

        Unknown ids are ignored and reported as not selected.
        """
        if record_id in self._selected:
            self._selected.discard(record_id)
            return False
        if self._index_of(record_id) is None:
            return False
        self._selected.add(record_id)
        return True

    def select_all_or_none(self) -> None:
        """Select every record, or clear the selection if all are selected."""
        all_ids = {r.id for r in self._records}
        if all_ids and self._selected == all_ids:
            self._selected = set()
        else:
            self._selected = all_ids

    def clear_selection(self) -> None:
        self._selected = set()

    # ------------------------------------------------------------------
    # Analyzing set
    # ------------------------------------------------------------------

    def mark_analyzing(self, record_id: str) -> None:
        self._analyzing.add(record_id)

    def clear_analyzing(self, record_id: str) -> None:
        self._analyzing.discard(record_id)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _index_of(self, record_id: object) -> int | None:
        for idx, record in enumerate(self._records):
            if record.id == record_id:
                return idx
        return None
