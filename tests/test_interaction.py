from __future__ import annotations

from yomu.highlight import compile_rendering
from yomu.interaction import (
    NONE,
    SELECTION,
    VOCAB_HIT,
    PointerEvent,
    RenderNode,
    build_render_tree,
    classify_gesture,
    node_at,
    resolve,
    resolve_hover,
)
from yomu.selection import Rect, TextSelection
from yomu.vocab import TermSet, VocabularyRecord


def _tree(boxes=None):
    terms = TermSet([VocabularyRecord(id=7, original="brave", translation="valiente", document_id=1)])
    rendering = compile_rendering("Hello brave world", terms)
    return build_render_tree(rendering, boxes)


def _mark(root: RenderNode) -> RenderNode:
    return next(node for node in root.walk() if node.is_highlight)


def _selection(text: str = "world") -> TextSelection:
    return TextSelection(text=text, node_text=" world", rect=Rect(top=10, left=20, width=40, height=12))


def test_tree_mirrors_segments() -> None:
    root = _tree()

    assert [child.tag for child in root.children] == ["#text", "mark", "#text"]
    assert root.text_content == "Hello brave world"
    mark = _mark(root)
    assert mark.record_id == 7
    assert mark.children[0].text == "brave"


def test_click_on_highlight_text_opens_record() -> None:
    root = _tree()
    text_node = _mark(root).children[0]

    resolution = resolve(PointerEvent(target=text_node), root)

    assert resolution.kind == VOCAB_HIT
    assert resolution.record_id == 7
    assert resolution.suppress_default
    assert resolution.segment_index == 1


def test_click_on_plain_text_does_nothing() -> None:
    root = _tree()

    resolution = resolve(PointerEvent(target=root.children[0]), root)

    assert resolution.kind == NONE
    assert not resolution.suppress_default


def _nested_target(wrappers: int) -> RenderNode:
    root = RenderNode("div", classes=frozenset({"text-content"}))
    node = root.append(RenderNode("mark", classes=frozenset({"vocab-highlight"}), record_id=3))
    for _ in range(wrappers):
        node = node.append(RenderNode("span"))
    return node.append(RenderNode("#text", text="deep"))


def test_marker_within_depth_bound_is_found() -> None:
    target = _nested_target(3)

    assert resolve(PointerEvent(target=target)).kind == VOCAB_HIT


def test_marker_beyond_depth_bound_is_ignored() -> None:
    target = _nested_target(4)

    assert resolve(PointerEvent(target=target)).kind == NONE


def test_walk_stops_at_container() -> None:
    root = RenderNode("div", classes=frozenset({"vocab-highlight"}))
    child = root.append(RenderNode("#text", text="x"))

    assert resolve(PointerEvent(target=child), root).kind == NONE


def test_touch_gestures_are_classified() -> None:
    assert classify_gesture(PointerEvent(pointer="touch", duration_ms=120, movement_px=3)) == "tap"
    assert classify_gesture(PointerEvent(pointer="touch", duration_ms=700)) == "long-press"
    assert classify_gesture(PointerEvent(pointer="touch", duration_ms=200, movement_px=40)) == "long-press"
    assert classify_gesture(PointerEvent(pointer="touch", duration_ms=400)) == "ambiguous"
    assert classify_gesture(PointerEvent(button=2)) == "right-drag"


def test_tap_on_highlight_opens_record() -> None:
    root = _tree()
    event = PointerEvent(target=_mark(root), pointer="touch", duration_ms=100, movement_px=2)

    assert resolve(event, root).kind == VOCAB_HIT


def test_long_press_with_selection_starts_capture() -> None:
    event = PointerEvent(pointer="touch", duration_ms=800, selection=_selection())

    resolution = resolve(event)

    assert resolution.kind == SELECTION
    assert resolution.capture is not None
    assert resolution.capture.text == "world"
    assert not resolution.capture.suppress_context_menu


def test_ambiguous_touch_does_nothing() -> None:
    event = PointerEvent(pointer="touch", duration_ms=400, selection=_selection())

    assert resolve(event).kind == NONE


def test_right_drag_capture_suppresses_context_menu() -> None:
    event = PointerEvent(button=2, movement_px=30, selection=_selection(), scroll_y=100)

    resolution = resolve(event)

    assert resolution.kind == SELECTION
    assert resolution.suppress_default
    assert resolution.capture.suppress_context_menu
    assert resolution.capture.anchor_rect.top == 110


def test_right_drag_without_selection_does_nothing() -> None:
    assert resolve(PointerEvent(button=2, selection=_selection("   "))).kind == NONE


def test_geometric_hit_when_target_is_unknown() -> None:
    boxes = {
        0: Rect(top=0, left=0, width=50, height=20),
        1: Rect(top=0, left=50, width=40, height=20),
        2: Rect(top=0, left=90, width=50, height=20),
    }
    root = _tree(boxes)

    assert node_at(root, 60, 10).tag == "#text"
    assert resolve(PointerEvent(x=60, y=10), root).record_id == 7
    assert resolve(PointerEvent(x=10, y=10), root).kind == NONE


def test_hover_reports_translation_and_page_rect() -> None:
    root = _tree({1: Rect(top=5, left=50, width=40, height=20)})
    text_node = _mark(root).children[0]

    tip = resolve_hover(text_node, scroll_x=3, scroll_y=200)

    assert tip is not None
    assert tip.translation == "valiente"
    assert tip.rect == Rect(top=205, left=53, width=40, height=20)
    assert resolve_hover(root.children[0]) is None
