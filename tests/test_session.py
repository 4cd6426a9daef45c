from __future__ import annotations

from yomu.client import ReaderClientError
from yomu.interaction import SELECTION, VOCAB_HIT, PointerEvent
from yomu.library import Library
from yomu.selection import Rect, TextSelection
from yomu.session import LocalBackend, ReaderSession
from yomu.vocab import VocabularyRecord


class ImmediateScheduler:
    def __init__(self) -> None:
        self.delays: list[float] = []

    def __call__(self, delay, callback):
        self.delays.append(delay)
        callback()


class StubBackend:
    """Remote-style backend without change notifications."""

    def __init__(self, text: str, records: list[VocabularyRecord]) -> None:
        self.text = text
        self.records = records
        self.fail_saves = False
        self.fetches = 0

    def list_vocabulary(self):
        self.fetches += 1
        return list(self.records)

    def fetch_content(self, book_id):
        return self.text

    def save_vocabulary(self, original, translation, context, book_id):
        if self.fail_saves:
            raise ReaderClientError("/api/vocab save failed with status 500")
        record_id = max((int(r.id) for r in self.records), default=0) + 1
        self.records.append(
            VocabularyRecord(record_id, original, translation, context, document_id=book_id)
        )
        return record_id

    def delete_vocabulary(self, record_id):
        before = len(self.records)
        self.records = [r for r in self.records if str(r.id) != str(record_id)]
        return len(self.records) != before


def _local_session(tmp_path):
    library = Library(tmp_path / "library")
    book = library.add_book("zoo.txt", "The elephant ran. The Elephant slept.")
    library.add_vocabulary("elephant", "象", "The elephant ran.", book.id)
    session = ReaderSession(LocalBackend(library), book.id, scheduler=ImmediateScheduler())
    session.open()
    return library, book, session


def _highlight_texts(session) -> list[str]:
    return [segment.text for _, segment in session.rendering.highlights()]


def test_open_compiles_document_with_terms(tmp_path) -> None:
    _, _, session = _local_session(tmp_path)

    assert session.rendering.text == session.text
    assert _highlight_texts(session) == ["elephant", "Elephant"]


def test_store_changes_recompile_rendering(tmp_path) -> None:
    library, book, session = _local_session(tmp_path)

    library.add_vocabulary("slept", "dormía", "", book.id)

    assert _highlight_texts(session) == ["elephant", "Elephant", "slept"]
    session.close()
    library.add_vocabulary("ran", "", "", book.id)
    assert "ran" not in _highlight_texts(session)


def test_click_selects_record_and_stale_id_is_tolerated(tmp_path) -> None:
    library, _, session = _local_session(tmp_path)
    mark = next(node for node in session.tree.walk() if node.is_highlight)

    resolution = session.handle_pointer(PointerEvent(target=mark.children[0]))

    assert resolution.kind == VOCAB_HIT
    assert session.selected is not None and session.selected.original == "elephant"
    detail = session.detail_payload(resolution.record_id)
    assert detail["translation"] == "象"

    library.delete_vocabulary(int(resolution.record_id))
    assert session.selected is None
    assert session.record_detail(resolution.record_id) is None
    assert session.detail_payload(resolution.record_id) is None


def test_capture_and_save_adds_highlight(tmp_path) -> None:
    _, _, session = _local_session(tmp_path)
    selection = TextSelection(text="ran", node_text="The elephant ran.", rect=Rect())

    resolution = session.handle_pointer(PointerEvent(button=2, movement_px=12, selection=selection))

    assert resolution.kind == SELECTION
    assert session.pending_capture is not None
    assert session.save_capture("corrió")
    assert session.pending_capture is None
    assert "ran" in _highlight_texts(session)
    assert not session.save_capture("again")


def test_jump_finds_term_and_reports_active_segment(tmp_path) -> None:
    _, _, session = _local_session(tmp_path)
    results = []

    request = session.jump_to("Elephant", results.append)

    assert request.result.found
    assert session.rendering.jump_index == request.result.segment_index
    assert session.active_jump_index() == request.result.segment_index
    assert len(results) == 1


def test_hover_returns_translation(tmp_path) -> None:
    _, _, session = _local_session(tmp_path)
    index, _ = next(session.rendering.highlights())

    tip = session.hover(index)

    assert tip is not None and tip.translation == "象"
    assert session.hover(0) is None


def test_failed_save_leaves_terms_unchanged() -> None:
    backend = StubBackend("a quick fox", [VocabularyRecord(1, "fox", document_id=5)])
    session = ReaderSession(backend, 5, scheduler=ImmediateScheduler())
    session.open()
    before = session.terms
    backend.fail_saves = True
    selection = TextSelection(text="quick", node_text="a quick fox")
    session.handle_pointer(PointerEvent(pointer="touch", duration_ms=900, selection=selection))

    assert not session.save_capture("rápido")
    assert session.terms == before
    assert session.pending_capture is not None


def test_backend_without_notifier_refreshes_after_save() -> None:
    backend = StubBackend("a quick fox", [VocabularyRecord(1, "fox", document_id=5)])
    session = ReaderSession(backend, 5, scheduler=ImmediateScheduler())
    session.open()
    selection = TextSelection(text="quick", node_text="a quick fox")
    session.handle_pointer(PointerEvent(button=2, selection=selection))

    assert session.save_capture("rápido")
    assert [segment.text for _, segment in session.rendering.highlights()] == ["quick", "fox"]


def test_delete_of_missing_record_counts_as_done() -> None:
    backend = StubBackend("a quick fox", [VocabularyRecord(1, "fox", document_id=5)])
    session = ReaderSession(backend, 5, scheduler=ImmediateScheduler())
    session.open()
    fetches = backend.fetches

    assert session.delete_record(42)
    assert backend.fetches == fetches + 1
    assert session.delete_record(1)
    assert len(session.terms) == 0


def test_content_failure_keeps_session_usable() -> None:
    class Offline(StubBackend):
        def fetch_content(self, book_id):
            raise ConnectionError("offline")

    session = ReaderSession(Offline("", []), 1, scheduler=ImmediateScheduler())

    rendering = session.open()

    assert len(rendering) == 0
    assert session.text == ""


def test_nested_refresh_from_listener_leaves_newest_rendering() -> None:
    backend = StubBackend("alpha and beta", [VocabularyRecord(1, "alpha", document_id=5)])
    session = ReaderSession(backend, 5, scheduler=ImmediateScheduler())
    refreshed = []

    def _add_beta_and_refresh(terms) -> None:
        if refreshed:
            return
        refreshed.append(True)
        backend.records.append(VocabularyRecord(2, "beta", document_id=5))
        session.refresh()

    # run the refreshing listener before the session's own one
    session._unsubscribe_terms()
    session.adapter.subscribe(_add_beta_and_refresh)
    session._unsubscribe_terms = session.adapter.subscribe(session._on_terms)

    session.open()

    assert sorted(record.original for record in session.terms) == ["alpha", "beta"]
    assert [segment.text for _, segment in session.rendering.highlights()] == ["alpha", "beta"]
