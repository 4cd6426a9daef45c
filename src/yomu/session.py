from __future__ import annotations

import logging
import threading
from typing import Callable, Iterable, Protocol

from .highlight import AnnotatedRendering, compile_rendering
from .interaction import (
    SELECTION,
    VOCAB_HIT,
    HoverTip,
    PointerEvent,
    RenderNode,
    Resolution,
    build_render_tree,
    resolve,
    resolve_hover,
)
from .library import Library
from .locator import JUMP_RETRY_DELAY, JumpRequest, LocateResult, OccurrenceLocator, Scheduler, thread_scheduler
from .selection import Capture, smart_truncate_context
from .vocab import RecordId, TermSet, VocabularyNotifier, VocabularyRecord, VocabularyStoreAdapter

__all__ = [
    "ReaderBackend",
    "LocalBackend",
    "ReaderSession",
]

logger = logging.getLogger(__name__)


class ReaderBackend(Protocol):
    def list_vocabulary(self) -> Iterable[VocabularyRecord]: ...

    def fetch_content(self, book_id: RecordId) -> str: ...

    def save_vocabulary(self, original: str, translation: str, context: str, book_id: RecordId) -> RecordId: ...

    def delete_vocabulary(self, record_id: RecordId) -> bool: ...


class LocalBackend:
    """Reader backend over an in-process ``Library``."""

    publishes_changes = True

    def __init__(self, library: Library) -> None:
        self.library = library

    @property
    def notifier(self) -> VocabularyNotifier:
        return self.library.notifier

    def list_vocabulary(self) -> list[VocabularyRecord]:
        return self.library.list_vocabulary()

    def fetch_content(self, book_id: RecordId) -> str:
        return self.library.read_content(int(book_id))

    def save_vocabulary(self, original: str, translation: str, context: str, book_id: RecordId) -> RecordId:
        return self.library.add_vocabulary(original, translation, context, int(book_id))

    def delete_vocabulary(self, record_id: RecordId) -> bool:
        return self.library.delete_vocabulary(int(record_id))


class ReaderSession:
    """
    Everything the reading view owns for one open document.

    The session keeps the document text, the term set and the compiled
    rendering in step: whenever the adapter delivers a new term set the
    rendering is rebuilt in one go, so callers never see a rendering compiled
    from a half-updated vocabulary.
    """

    def __init__(
        self,
        backend: ReaderBackend,
        book_id: RecordId,
        *,
        notifier: VocabularyNotifier | None = None,
        locator: OccurrenceLocator | None = None,
        scheduler: Scheduler = thread_scheduler,
        retry_delay: float = JUMP_RETRY_DELAY,
    ) -> None:
        self.backend = backend
        self.book_id = book_id
        if notifier is None:
            notifier = getattr(backend, "notifier", None)
        self.notifier = notifier
        self.locator = locator or OccurrenceLocator()
        self._scheduler = scheduler
        self.retry_delay = retry_delay
        self._lock = threading.Lock()
        self._text = ""
        self._jump_term: str | None = None
        self._rendering = compile_rendering("", TermSet())
        self._tree = build_render_tree(self._rendering)
        self.selected: VocabularyRecord | None = None
        self.pending_capture: Capture | None = None
        self.adapter = VocabularyStoreAdapter(backend.list_vocabulary, notifier)
        self._unsubscribe_terms = self.adapter.subscribe(self._on_terms)

    @property
    def text(self) -> str:
        return self._text

    @property
    def terms(self) -> TermSet:
        return self.adapter.terms

    @property
    def rendering(self) -> AnnotatedRendering:
        with self._lock:
            return self._rendering

    @property
    def tree(self) -> RenderNode:
        with self._lock:
            return self._tree

    def open(self) -> AnnotatedRendering:
        try:
            text = self.backend.fetch_content(self.book_id)
        except Exception as exc:
            logger.warning("Failed to load content for book %s: %s", self.book_id, exc)
            text = self._text
        with self._lock:
            self._text = text
        self._recompile(self.adapter.terms)
        self.adapter.load(self.book_id)
        return self.rendering

    def refresh(self) -> TermSet:
        return self.adapter.load(self.book_id)

    def _on_terms(self, terms: TermSet) -> None:
        # The adapter always holds the newest set, even if this call is late.
        self._recompile(self.adapter.terms)

    def _recompile(self, terms: TermSet) -> None:
        with self._lock:
            rendering = compile_rendering(self._text, terms, self._jump_term)
            self._rendering = rendering
            self._tree = build_render_tree(rendering)
            if self.selected is not None and terms.get(self.selected.id) is None:
                self.selected = None

    # Navigation

    def jump_to(
        self,
        term: str,
        on_result: Callable[[LocateResult], None] | None = None,
    ) -> JumpRequest:
        with self._lock:
            self._jump_term = term
        self._recompile(self.adapter.terms)
        request = JumpRequest(
            self.locator,
            term,
            lambda: self.rendering,
            on_result=on_result,
            scheduler=self._scheduler,
            retry_delay=self.retry_delay,
        )
        request.start()
        return request

    def active_jump_index(self) -> int | None:
        transient = self.locator.active_transient()
        return transient.segment_index if transient is not None else None

    # Interaction

    def handle_pointer(self, event: PointerEvent) -> Resolution:
        resolution = resolve(event, self.tree)
        if resolution.kind == VOCAB_HIT:
            self.selected = self.record_detail(resolution.record_id)
            self.pending_capture = None
        elif resolution.kind == SELECTION:
            self.selected = None
            self.pending_capture = resolution.capture
        else:
            self.selected = None
        return resolution

    def record_detail(self, record_id: RecordId | None) -> VocabularyRecord | None:
        record = self.adapter.lookup(record_id)
        if record is None and record_id is not None:
            logger.debug("Vocabulary %s is no longer available", record_id)
        return record

    def detail_payload(self, record_id: RecordId | None) -> dict[str, object] | None:
        record = self.record_detail(record_id)
        if record is None:
            return None
        return {
            "id": record.id,
            "original": record.original,
            "translation": record.translation,
            "context": smart_truncate_context(record.context, record.original),
            "bookTitle": record.book_title,
            "createdAt": record.created_at,
        }

    def hover(self, segment_index: int) -> HoverTip | None:
        for node in self.tree.children:
            if node.segment_index == segment_index:
                return resolve_hover(node)
        return None

    # Saving

    def save_capture(self, translation: str, capture: Capture | None = None) -> bool:
        capture = capture or self.pending_capture
        if capture is None or not translation or not translation.strip():
            return False
        try:
            self.backend.save_vocabulary(capture.text, translation.strip(), capture.context, self.book_id)
        except Exception as exc:
            logger.warning("Saving %r failed: %s", capture.text, exc)
            return False
        self.pending_capture = None
        self._after_change()
        return True

    def delete_record(self, record_id: RecordId) -> bool:
        try:
            removed = self.backend.delete_vocabulary(record_id)
        except Exception as exc:
            logger.warning("Deleting vocabulary %s failed: %s", record_id, exc)
            return False
        if not removed:
            logger.debug("Vocabulary %s was already deleted", record_id)
            self.refresh()
            return True
        self._after_change()
        return True

    def _after_change(self) -> None:
        if getattr(self.backend, "publishes_changes", False) and self.notifier is not None:
            return
        if self.notifier is not None:
            self.notifier.notify()
        else:
            self.refresh()

    def close(self) -> None:
        self._unsubscribe_terms()
        self.adapter.close()
        self.locator.clear()
