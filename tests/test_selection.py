from __future__ import annotations

from yomu.highlight import compile_rendering
from yomu.selection import (
    RIGHT_DRAG,
    Rect,
    TextSelection,
    capture_selection,
    selection_from_offsets,
    smart_truncate_context,
)
from yomu.vocab import TermSet, VocabularyRecord


def _rendering():
    terms = TermSet([VocabularyRecord(id=1, original="brave", document_id=1)])
    return compile_rendering("Hello brave world", terms)


def test_blank_selection_is_not_captured() -> None:
    assert capture_selection(None) is None
    assert capture_selection(TextSelection(text=" \n ")) is None


def test_capture_trims_text_and_anchors_to_page() -> None:
    selection = TextSelection(text="  dragon ", node_text="a dragon slept", rect=Rect(top=4, left=8, width=30, height=10))

    capture = capture_selection(selection, RIGHT_DRAG, scroll_x=5, scroll_y=50)

    assert capture is not None
    assert capture.text == "dragon"
    assert capture.context == "a dragon slept"
    assert capture.anchor_rect == Rect(top=54, left=13, width=30, height=10)
    assert capture.suppress_context_menu


def test_plain_drag_keeps_context_menu() -> None:
    capture = capture_selection(TextSelection(text="dragon"), "drag")

    assert capture is not None
    assert not capture.suppress_context_menu


def test_selection_context_is_start_segment() -> None:
    rendering = _rendering()

    inside = selection_from_offsets(rendering, 6, 11)
    assert inside is not None
    assert inside.text == "brave"
    assert inside.node_text == "brave"

    before = selection_from_offsets(rendering, 0, 5)
    assert before.node_text == "Hello "
    assert selection_from_offsets(rendering, 5, 5) is None
    assert selection_from_offsets(rendering, 0, 100) is None


def test_short_context_is_untouched() -> None:
    assert smart_truncate_context("short sentence", "short") == "short sentence"
    assert smart_truncate_context(None, "word") == ""


def test_long_context_is_centered_on_word() -> None:
    context = "a " * 100 + "target " + "b " * 100

    result = smart_truncate_context(context, "target")

    assert "target" in result
    assert result.startswith("...")
    assert result.endswith("...")
    assert len(result) <= 130


def test_long_context_without_word_is_cut() -> None:
    context = "x" * 200

    assert smart_truncate_context(context, "missing") == "x" * 120 + "..."
