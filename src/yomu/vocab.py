from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Callable, Iterable, Iterator, Mapping

__all__ = [
    "VocabularyRecord",
    "TermSet",
    "VocabularyNotifier",
    "VocabularyStoreAdapter",
    "serialize_records",
    "deserialize_records",
    "dedupe_records",
]

logger = logging.getLogger(__name__)

RecordId = int | str


@dataclass(frozen=True)
class VocabularyRecord:
    """
    A saved term together with its provenance.

    ``original`` keeps the casing of the selection the reader made; matching
    against document text is case-insensitive, so ``key`` is the form used for
    deduplication.
    """

    id: RecordId
    original: str
    translation: str = ""
    context: str = ""
    document_id: RecordId | None = None
    created_at: str | None = None
    book_title: str | None = None

    @property
    def key(self) -> str:
        return self.original.lower()

    def belongs_to(self, document_id: RecordId) -> bool:
        if self.document_id is None:
            return False
        return str(self.document_id) == str(document_id)


def _id_sort_key(value: RecordId) -> tuple[int, int, str]:
    if isinstance(value, int) and not isinstance(value, bool):
        return (0, value, "")
    text = str(value)
    if text.strip().lstrip("-").isdigit():
        return (0, int(text), "")
    return (1, 0, text)


def _coerce_id(value: object) -> RecordId | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip():
        stripped = value.strip()
        if stripped.lstrip("-").isdigit():
            return int(stripped)
        return stripped
    return None


def serialize_records(records: Iterable[VocabularyRecord]) -> list[dict[str, object]]:
    payload: list[dict[str, object]] = []
    for record in records:
        payload.append(
            {
                "id": record.id,
                "original": record.original,
                "translation": record.translation,
                "context": record.context,
                "documentId": record.document_id,
                "bookId": record.document_id,
                "bookTitle": record.book_title,
                "createdAt": record.created_at,
            }
        )
    return payload


def deserialize_records(data: Iterable[Mapping[str, object]]) -> list[VocabularyRecord]:
    """Parse wire rows, skipping entries without a usable id or original."""
    records: list[VocabularyRecord] = []
    for entry in data:
        if not isinstance(entry, Mapping):
            continue
        record_id = _coerce_id(entry.get("id"))
        original = entry.get("original")
        if record_id is None or not isinstance(original, str):
            continue
        translation = entry.get("translation")
        if not isinstance(translation, str):
            translation = ""
        context = entry.get("context")
        if not isinstance(context, str):
            context = ""
        document_id = entry.get("documentId")
        if document_id is None:
            document_id = entry.get("bookId")
        created_at = entry.get("createdAt")
        if not isinstance(created_at, str):
            created_at = None
        book_title = entry.get("bookTitle")
        if not isinstance(book_title, str):
            book_title = None
        records.append(
            VocabularyRecord(
                id=record_id,
                original=original,
                translation=translation,
                context=context,
                document_id=_coerce_id(document_id),
                created_at=created_at,
                book_title=book_title,
            )
        )
    return records


def dedupe_records(records: Iterable[VocabularyRecord]) -> list[VocabularyRecord]:
    """Keep one record per lowercase original; the lowest id wins."""
    winners: dict[str, VocabularyRecord] = {}
    for record in records:
        if not record.original.strip():
            continue
        current = winners.get(record.key)
        if current is None or _id_sort_key(record.id) < _id_sort_key(current.id):
            winners[record.key] = record
    return list(winners.values())


class TermSet:
    """Deduplicated records in matching order (longest original first)."""

    __slots__ = ("_records", "_by_id")

    def __init__(self, records: Iterable[VocabularyRecord] = ()) -> None:
        unique = dedupe_records(records)
        unique.sort(key=lambda rec: (-len(rec.original), rec.key, _id_sort_key(rec.id)))
        self._records: tuple[VocabularyRecord, ...] = tuple(unique)
        self._by_id = {str(rec.id): rec for rec in self._records}

    def __iter__(self) -> Iterator[VocabularyRecord]:
        return iter(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def __bool__(self) -> bool:
        return bool(self._records)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TermSet):
            return NotImplemented
        return self._records == other._records

    def __repr__(self) -> str:
        return f"TermSet({[rec.original for rec in self._records]!r})"

    @property
    def records(self) -> tuple[VocabularyRecord, ...]:
        return self._records

    def get(self, record_id: RecordId | None) -> VocabularyRecord | None:
        if record_id is None:
            return None
        return self._by_id.get(str(record_id))

    def find_term(self, term: str) -> VocabularyRecord | None:
        needle = term.strip().lower()
        if not needle:
            return None
        for record in self._records:
            if record.key == needle:
                return record
        return None


class VocabularyNotifier:
    """Explicit "vocabulary changed" signal shared by the store and its readers."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._callbacks: list[Callable[[], None]] = []

    def subscribe(self, callback: Callable[[], None]) -> Callable[[], None]:
        with self._lock:
            self._callbacks.append(callback)

        def _unsubscribe() -> None:
            with self._lock:
                try:
                    self._callbacks.remove(callback)
                except ValueError:
                    pass

        return _unsubscribe

    def notify(self) -> None:
        with self._lock:
            callbacks = list(self._callbacks)
        for callback in callbacks:
            try:
                callback()
            except Exception:
                logger.exception("Vocabulary change subscriber failed")


FetchRecords = Callable[[], Iterable[VocabularyRecord]]


class VocabularyStoreAdapter:
    """
    Loads the term set for one document from an external vocabulary source.

    The source returns every record it knows about, so filtering by document
    happens here. Fetch failures degrade to an empty term set. When a newer
    load has started before an older one finishes, the older result is
    dropped instead of overwriting the newer one.
    """

    def __init__(
        self,
        fetch_records: FetchRecords,
        notifier: VocabularyNotifier | None = None,
    ) -> None:
        self._fetch_records = fetch_records
        self._lock = threading.Lock()
        self._generation = 0
        self._document_id: RecordId | None = None
        self._terms = TermSet()
        self._listeners: list[Callable[[TermSet], None]] = []
        self._unsubscribe: Callable[[], None] | None = None
        if notifier is not None:
            self._unsubscribe = notifier.subscribe(self.invalidate)

    @property
    def terms(self) -> TermSet:
        with self._lock:
            return self._terms

    @property
    def document_id(self) -> RecordId | None:
        return self._document_id

    def load(self, document_id: RecordId) -> TermSet:
        with self._lock:
            self._generation += 1
            ticket = self._generation
            self._document_id = document_id
        try:
            rows = list(self._fetch_records())
        except Exception as exc:
            logger.warning("Vocabulary fetch failed for document %s: %s", document_id, exc)
            rows = []
        terms = TermSet(rec for rec in rows if rec.belongs_to(document_id))
        with self._lock:
            if ticket != self._generation:
                logger.debug("Discarding superseded vocabulary load #%s", ticket)
                return self._terms
            self._terms = terms
            listeners = list(self._listeners)
        for listener in listeners:
            # A listener may have started a newer load; its own dispatch wins.
            if ticket != self._generation:
                logger.debug("Stopping dispatch of superseded vocabulary load #%s", ticket)
                break
            try:
                listener(terms)
            except Exception:
                logger.exception("Term set listener failed")
        return self.terms

    def invalidate(self) -> None:
        """Reload the current document after a vocabulary-changed signal."""
        document_id = self._document_id
        if document_id is None:
            return
        self.load(document_id)

    def lookup(self, record_id: RecordId | None) -> VocabularyRecord | None:
        return self.terms.get(record_id)

    def subscribe(self, listener: Callable[[TermSet], None]) -> Callable[[], None]:
        with self._lock:
            self._listeners.append(listener)

        def _unsubscribe() -> None:
            with self._lock:
                try:
                    self._listeners.remove(listener)
                except ValueError:
                    pass

        return _unsubscribe

    def close(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        with self._lock:
            self._listeners.clear()
