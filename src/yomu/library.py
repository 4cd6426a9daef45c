from __future__ import annotations

import contextlib
import logging
import sqlite3
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, Mapping
from uuid import uuid4

from .vocab import VocabularyNotifier, VocabularyRecord

__all__ = [
    "DATABASE_FILENAME",
    "UPLOADS_DIRNAME",
    "EXPORT_VERSION",
    "Book",
    "Library",
    "LibraryError",
    "BookNotFoundError",
]

logger = logging.getLogger(__name__)

DATABASE_FILENAME = "library.sqlite3"
UPLOADS_DIRNAME = "uploads"
EXPORT_VERSION = "1.0"
_SORT_MODES = {"recent", "title"}
_INVALID_FILENAME_CHARS = set('<>:"/\\|?*')

_SCHEMA = """
CREATE TABLE IF NOT EXISTS books (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    title       TEXT NOT NULL,
    filename    TEXT NOT NULL,
    upload_date TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS vocabulary (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    original    TEXT NOT NULL,
    translation TEXT,
    context     TEXT,
    book_id     INTEGER REFERENCES books(id),
    created_at  TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_vocabulary_book_id ON vocabulary(book_id);
"""


class LibraryError(RuntimeError):
    """Raised when the library cannot read or write its files."""


class BookNotFoundError(LookupError):
    """Raised when a book id does not exist in the library."""


@dataclass(slots=True)
class Book:
    id: int
    title: str
    filename: str
    upload_date: str

    def to_payload(self) -> dict[str, object]:
        return {
            "id": self.id,
            "title": self.title,
            "filename": self.filename,
            "uploadDate": self.upload_date,
        }


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def normalize_sort_mode(value: str | None) -> str:
    if not value:
        return "recent"
    normalized = value.strip().lower()
    if normalized in _SORT_MODES:
        return normalized
    raise ValueError(f"Invalid sort mode: {value}")


def _safe_upload_name(filename: str | None) -> str:
    base = Path(filename or "").name.strip()
    cleaned_chars: list[str] = []
    for ch in base:
        if ch in _INVALID_FILENAME_CHARS:
            cleaned_chars.append("_")
        elif ord(ch) < 32:
            continue
        else:
            cleaned_chars.append(ch)
    cleaned = "".join(cleaned_chars).strip(" .")
    if not cleaned:
        cleaned = "book.txt"
    if not cleaned.lower().endswith(".txt"):
        cleaned = f"{cleaned}.txt"
    return cleaned[-120:]


def title_from_filename(filename: str | None) -> str:
    name = Path(filename or "").name
    if name.lower().endswith(".txt"):
        name = name[:-4]
    return name.strip() or "Untitled"


def _row_to_book(row: sqlite3.Row) -> Book:
    return Book(
        id=int(row["id"]),
        title=row["title"],
        filename=row["filename"],
        upload_date=row["upload_date"],
    )


def _row_to_record(row: sqlite3.Row) -> VocabularyRecord:
    return VocabularyRecord(
        id=int(row["id"]),
        original=row["original"],
        translation=row["translation"] or "",
        context=row["context"] or "",
        document_id=row["book_id"],
        created_at=row["created_at"],
        book_title=row["book_title"],
    )


class Library:
    """
    Documents and vocabulary kept under one root directory.

    Book bodies live as text files in ``uploads/``; metadata and vocabulary
    live in ``library.sqlite3``. Every change to vocabulary, including the
    cascade from deleting a book, is announced on ``notifier``.
    """

    def __init__(self, root: Path, notifier: VocabularyNotifier | None = None) -> None:
        self.root = root.expanduser().resolve()
        self.root.mkdir(parents=True, exist_ok=True)
        self.uploads_dir = self.root / UPLOADS_DIRNAME
        self.uploads_dir.mkdir(parents=True, exist_ok=True)
        self.database_path = self.root / DATABASE_FILENAME
        self.notifier = notifier or VocabularyNotifier()
        self._write_lock = threading.Lock()
        with self._connect() as conn:
            conn.executescript(_SCHEMA)

    @contextlib.contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        try:
            conn = sqlite3.connect(self.database_path)
        except sqlite3.Error as exc:
            raise LibraryError(f"Failed to open {self.database_path}: {exc}") from exc
        conn.row_factory = sqlite3.Row
        try:
            with conn:
                yield conn
        finally:
            conn.close()

    # Books

    def list_books(self, sort: str | None = None) -> list[Book]:
        mode = normalize_sort_mode(sort)
        with self._connect() as conn:
            rows = conn.execute("SELECT * FROM books").fetchall()
        books = [_row_to_book(row) for row in rows]
        if mode == "title":
            books.sort(key=lambda book: (book.title.casefold(), book.id))
        else:
            books.sort(key=lambda book: (book.upload_date, book.id), reverse=True)
        return books

    def get_book(self, book_id: int) -> Book:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM books WHERE id = ?", (book_id,)).fetchone()
        if row is None:
            raise BookNotFoundError(f"Book not found: {book_id}")
        return _row_to_book(row)

    def add_book(
        self,
        filename: str | None,
        content: str,
        *,
        title: str | None = None,
        upload_date: str | None = None,
        stored_name: str | None = None,
    ) -> Book:
        safe_name = _safe_upload_name(filename)
        if stored_name is None:
            stored_name = f"{uuid4().hex[:12]}-{safe_name}"
        else:
            stored_name = _safe_upload_name(stored_name)
        clean_title = (title or "").strip() or title_from_filename(filename)
        path = self.uploads_dir / stored_name
        try:
            path.write_text(content, encoding="utf-8")
        except OSError as exc:
            raise LibraryError(f"Failed to save upload: {exc}") from exc
        with self._write_lock, self._connect() as conn:
            cursor = conn.execute(
                "INSERT INTO books (title, filename, upload_date) VALUES (?, ?, ?)",
                (clean_title, stored_name, upload_date or _now()),
            )
            book_id = int(cursor.lastrowid)
        logger.info("Added book %s (%s)", book_id, clean_title)
        return self.get_book(book_id)

    def book_path(self, book: Book) -> Path:
        return self.uploads_dir / book.filename

    def read_content(self, book_id: int) -> str:
        book = self.get_book(book_id)
        path = self.book_path(book)
        try:
            return path.read_text(encoding="utf-8")
        except UnicodeDecodeError:
            return path.read_text(encoding="utf-8", errors="ignore")
        except OSError as exc:
            raise LibraryError(f"Error reading {book.filename}: {exc}") from exc

    def write_content(self, book_id: int, content: str) -> None:
        book = self.get_book(book_id)
        try:
            self.book_path(book).write_text(content, encoding="utf-8")
        except OSError as exc:
            raise LibraryError(f"Error writing {book.filename}: {exc}") from exc

    def rename_book(self, book_id: int, title: str) -> Book:
        clean = title.strip()
        if not clean:
            raise ValueError("Title is required")
        with self._write_lock, self._connect() as conn:
            cursor = conn.execute("UPDATE books SET title = ? WHERE id = ?", (clean, book_id))
            if cursor.rowcount == 0:
                raise BookNotFoundError(f"Book not found: {book_id}")
        return self.get_book(book_id)

    def delete_book(self, book_id: int) -> Book:
        book = self.get_book(book_id)
        with self._write_lock, self._connect() as conn:
            removed = conn.execute("DELETE FROM vocabulary WHERE book_id = ?", (book_id,)).rowcount
            conn.execute("DELETE FROM books WHERE id = ?", (book_id,))
        try:
            self.book_path(book).unlink()
        except OSError as exc:
            logger.warning("Could not delete %s: %s", book.filename, exc)
        if removed:
            self.notifier.notify()
        return book

    # Vocabulary

    def list_vocabulary(self) -> list[VocabularyRecord]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT v.*, b.title AS book_title FROM vocabulary v "
                "LEFT JOIN books b ON v.book_id = b.id "
                "ORDER BY v.created_at DESC, v.id DESC"
            ).fetchall()
        return [_row_to_record(row) for row in rows]

    def add_vocabulary(
        self,
        original: str,
        translation: str = "",
        context: str = "",
        book_id: int | None = None,
        *,
        created_at: str | None = None,
        notify: bool = True,
    ) -> int:
        if not isinstance(original, str) or not original.strip():
            raise ValueError("Original text is required")
        with self._write_lock, self._connect() as conn:
            cursor = conn.execute(
                "INSERT INTO vocabulary (original, translation, context, book_id, created_at) "
                "VALUES (?, ?, ?, ?, ?)",
                (original, translation or "", context or "", book_id, created_at or _now()),
            )
            record_id = int(cursor.lastrowid)
        if notify:
            self.notifier.notify()
        return record_id

    def delete_vocabulary(self, record_id: int) -> bool:
        with self._write_lock, self._connect() as conn:
            deleted = conn.execute("DELETE FROM vocabulary WHERE id = ?", (record_id,)).rowcount
        if deleted:
            self.notifier.notify()
        return bool(deleted)

    # Backup

    def export_data(self) -> dict[str, object]:
        books_payload: list[dict[str, object]] = []
        for book in self.list_books("recent"):
            entry = book.to_payload()
            try:
                entry["content"] = self.read_content(book.id)
            except LibraryError as exc:
                logger.error("Export: %s", exc)
                entry["content"] = ""
            books_payload.append(entry)
        vocabulary = [
            {
                "id": record.id,
                "original": record.original,
                "translation": record.translation,
                "context": record.context,
                "bookId": record.document_id,
                "createdAt": record.created_at,
            }
            for record in self.list_vocabulary()
        ]
        logger.info("Export: %s books, %s vocabulary entries", len(books_payload), len(vocabulary))
        return {
            "version": EXPORT_VERSION,
            "exportDate": _now(),
            "books": books_payload,
            "vocabulary": vocabulary,
        }

    def import_data(self, payload: Mapping[str, object]) -> dict[str, int]:
        """Import an export payload, remapping old book ids to the new ones."""
        books = payload.get("books")
        if not isinstance(books, list):
            raise ValueError("Invalid import data")
        imported = {"books": 0, "vocabulary": 0, "files": 0}
        id_map: dict[str, int] = {}
        for entry in books:
            if not isinstance(entry, Mapping):
                continue
            title = entry.get("title")
            filename = entry.get("filename")
            content = entry.get("content")
            upload_date = entry.get("uploadDate")
            try:
                book = self.add_book(
                    filename if isinstance(filename, str) else None,
                    content if isinstance(content, str) else "",
                    title=title if isinstance(title, str) else None,
                    upload_date=upload_date if isinstance(upload_date, str) else None,
                )
            except LibraryError as exc:
                logger.error("Import: skipping book %r: %s", title, exc)
                continue
            imported["books"] += 1
            if isinstance(content, str) and content:
                imported["files"] += 1
            old_id = entry.get("id")
            if old_id is not None:
                id_map[str(old_id)] = book.id
        vocabulary = payload.get("vocabulary")
        if isinstance(vocabulary, list):
            for entry in vocabulary:
                if not isinstance(entry, Mapping):
                    continue
                original = entry.get("original")
                if not isinstance(original, str) or not original.strip():
                    continue
                old_book = entry.get("bookId")
                book_id = id_map.get(str(old_book)) if old_book is not None else None
                if book_id is None and isinstance(old_book, int):
                    book_id = old_book
                translation = entry.get("translation")
                context = entry.get("context")
                created_at = entry.get("createdAt")
                self.add_vocabulary(
                    original,
                    translation if isinstance(translation, str) else "",
                    context if isinstance(context, str) else "",
                    book_id,
                    created_at=created_at if isinstance(created_at, str) else None,
                    notify=False,
                )
                imported["vocabulary"] += 1
        logger.info(
            "Import complete: %s books, %s files, %s vocabulary entries",
            imported["books"],
            imported["files"],
            imported["vocabulary"],
        )
        if imported["vocabulary"]:
            self.notifier.notify()
        return imported
