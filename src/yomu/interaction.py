from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator

from .highlight import AnnotatedRendering
from .selection import RIGHT_DRAG, Capture, Rect, TextSelection, capture_selection
from .vocab import RecordId

__all__ = [
    "MAX_ANCESTOR_DEPTH",
    "TAP_MAX_DURATION_MS",
    "TAP_MAX_MOVEMENT_PX",
    "LONG_PRESS_MIN_MS",
    "RenderNode",
    "PointerEvent",
    "Resolution",
    "HoverTip",
    "build_render_tree",
    "node_at",
    "classify_gesture",
    "resolve",
    "resolve_hover",
]

MAX_ANCESTOR_DEPTH = 5
TAP_MAX_DURATION_MS = 300
TAP_MAX_MOVEMENT_PX = 10
LONG_PRESS_MIN_MS = 500

HIGHLIGHT_CLASS = "vocab-highlight"

CLICK = "click"
TAP = "tap"
DRAG = "drag"
LONG_PRESS = "long-press"
AMBIGUOUS = "ambiguous"

VOCAB_HIT = "vocab_hit"
SELECTION = "selection"
NONE = "none"


@dataclass(eq=False)
class RenderNode:
    """One node of the materialized view: an element or a text run."""

    tag: str
    text: str = ""
    classes: frozenset[str] = frozenset()
    segment_index: int | None = None
    record_id: RecordId | None = None
    translation: str | None = None
    box: Rect | None = None
    parent: RenderNode | None = field(default=None, repr=False)
    children: list[RenderNode] = field(default_factory=list, repr=False)

    def append(self, child: RenderNode) -> RenderNode:
        child.parent = self
        self.children.append(child)
        return child

    @property
    def is_highlight(self) -> bool:
        return HIGHLIGHT_CLASS in self.classes

    @property
    def text_content(self) -> str:
        if self.tag == "#text":
            return self.text
        return "".join(child.text_content for child in self.children)

    def ancestors(self) -> Iterator[RenderNode]:
        node: RenderNode | None = self
        while node is not None:
            yield node
            node = node.parent

    def walk(self) -> Iterator[RenderNode]:
        yield self
        for child in self.children:
            yield from child.walk()


def build_render_tree(
    rendering: AnnotatedRendering,
    boxes: dict[int, Rect] | None = None,
) -> RenderNode:
    """
    Materialize ``rendering`` as a node tree.

    Plain segments become text nodes under the container; highlight segments
    become ``mark`` elements carrying the record id and translation, each
    wrapping one text node. ``boxes`` optionally maps segment indexes to
    layout rectangles for geometric hit testing.
    """
    boxes = boxes or {}
    root = RenderNode("div", classes=frozenset({"text-content"}))
    for index, segment in enumerate(rendering):
        box = boxes.get(index)
        if not segment.is_highlight:
            root.append(RenderNode("#text", text=segment.text, segment_index=index, box=box))
            continue
        classes = {HIGHLIGHT_CLASS}
        if segment.jump:
            classes.add("jump-highlight")
        mark = root.append(
            RenderNode(
                "mark",
                classes=frozenset(classes),
                segment_index=index,
                record_id=segment.record_id,
                translation=segment.translation,
                box=box,
            )
        )
        mark.append(RenderNode("#text", text=segment.text, segment_index=index, box=box))
    return root


def node_at(root: RenderNode, x: float, y: float) -> RenderNode | None:
    """Deepest node whose box contains the point."""
    found: RenderNode | None = None
    for node in root.walk():
        if node.box is not None and node.box.contains(x, y):
            found = node
    return found


@dataclass(frozen=True)
class PointerEvent:
    target: RenderNode | None = None
    pointer: str = "mouse"
    button: int = 0
    duration_ms: float = 0.0
    movement_px: float = 0.0
    x: float | None = None
    y: float | None = None
    selection: TextSelection | None = None
    scroll_x: float = 0.0
    scroll_y: float = 0.0


@dataclass(frozen=True)
class Resolution:
    kind: str
    record_id: RecordId | None = None
    suppress_default: bool = False
    capture: Capture | None = None
    segment_index: int | None = None


@dataclass(frozen=True)
class HoverTip:
    translation: str
    rect: Rect | None


NO_ACTION = Resolution(NONE)


def classify_gesture(event: PointerEvent) -> str:
    if event.pointer == "touch":
        moved = event.movement_px > TAP_MAX_MOVEMENT_PX
        if event.duration_ms < TAP_MAX_DURATION_MS and not moved:
            return TAP
        if event.duration_ms > LONG_PRESS_MIN_MS or moved:
            return LONG_PRESS
        return AMBIGUOUS
    if event.button == 2:
        return RIGHT_DRAG
    if event.movement_px > 0 and event.selection is not None:
        return DRAG
    return CLICK


def _find_marker(target: RenderNode | None, root: RenderNode | None = None) -> RenderNode | None:
    if target is None:
        return None
    for depth, node in enumerate(target.ancestors()):
        if depth >= MAX_ANCESTOR_DEPTH or node is root:
            break
        if node.is_highlight:
            return node
    return None


def resolve(event: PointerEvent, root: RenderNode | None = None) -> Resolution:
    """
    Decide what a pointer gesture on the rendering means.

    Clicks and taps look for a highlight marker on the target or its nearest
    ancestors; anything that produced a real selection becomes a capture;
    everything else is ``none``.
    """
    gesture = classify_gesture(event)
    if gesture in {CLICK, TAP}:
        target = event.target
        if target is None and root is not None and event.x is not None and event.y is not None:
            target = node_at(root, event.x, event.y)
        marker = _find_marker(target, root)
        if marker is not None:
            return Resolution(
                VOCAB_HIT,
                record_id=marker.record_id,
                suppress_default=True,
                segment_index=marker.segment_index,
            )
        return NO_ACTION
    if gesture in {DRAG, LONG_PRESS, RIGHT_DRAG}:
        capture = capture_selection(
            event.selection,
            gesture,
            scroll_x=event.scroll_x,
            scroll_y=event.scroll_y,
        )
        if capture is not None:
            return Resolution(SELECTION, capture=capture, suppress_default=capture.suppress_context_menu)
    return NO_ACTION


def resolve_hover(node: RenderNode | None, *, scroll_x: float = 0.0, scroll_y: float = 0.0) -> HoverTip | None:
    if node is not None and node.tag == "#text":
        node = node.parent
    if node is None or not node.is_highlight:
        return None
    rect = node.box.translated(scroll_x, scroll_y) if node.box is not None else None
    return HoverTip(node.translation or "", rect)
