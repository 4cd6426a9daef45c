from __future__ import annotations

from dataclasses import dataclass

from .highlight import AnnotatedRendering

__all__ = [
    "Rect",
    "TextSelection",
    "Capture",
    "capture_selection",
    "selection_from_offsets",
    "smart_truncate_context",
]

RIGHT_DRAG = "right-drag"


@dataclass(frozen=True)
class Rect:
    top: float = 0.0
    left: float = 0.0
    width: float = 0.0
    height: float = 0.0

    @property
    def bottom(self) -> float:
        return self.top + self.height

    @property
    def right(self) -> float:
        return self.left + self.width

    def contains(self, x: float, y: float) -> bool:
        return self.left <= x <= self.right and self.top <= y <= self.bottom

    def translated(self, dx: float, dy: float) -> Rect:
        return Rect(self.top + dy, self.left + dx, self.width, self.height)


@dataclass(frozen=True)
class TextSelection:
    """A finalized selection range as the view reports it."""

    text: str
    node_text: str = ""
    rect: Rect = Rect()
    start: int | None = None
    end: int | None = None


@dataclass(frozen=True)
class Capture:
    text: str
    context: str
    anchor_rect: Rect
    suppress_context_menu: bool = False
    start: int | None = None
    end: int | None = None


def capture_selection(
    selection: TextSelection | None,
    gesture: str | None = None,
    *,
    scroll_x: float = 0.0,
    scroll_y: float = 0.0,
) -> Capture | None:
    """Turn a selection into a capture candidate, or ``None`` if nothing was selected."""
    if selection is None:
        return None
    text = selection.text.strip()
    if not text:
        return None
    return Capture(
        text=text,
        context=selection.node_text,
        anchor_rect=selection.rect.translated(scroll_x, scroll_y),
        suppress_context_menu=gesture == RIGHT_DRAG,
        start=selection.start,
        end=selection.end,
    )


def selection_from_offsets(
    rendering: AnnotatedRendering,
    start: int,
    end: int,
    *,
    rect: Rect = Rect(),
) -> TextSelection | None:
    """
    Build a selection over ``[start, end)`` of the rendered document.

    The context node is the segment holding ``start``, which is what a
    browser range reports as its start container.
    """
    text = rendering.text
    if start < 0 or end <= start or end > len(text):
        return None
    index = rendering.segment_at(start)
    node_text = rendering[index].text if index is not None else ""
    return TextSelection(text=text[start:end], node_text=node_text, rect=rect, start=start, end=end)


def smart_truncate_context(context: str | None, word: str, max_length: int = 120) -> str:
    if not context or len(context) <= max_length:
        return context or ""
    word_index = context.lower().find(word.lower()) if word else -1
    if word_index == -1:
        return context[:max_length] + "..."
    half = (max_length - len(word)) // 2
    start = max(0, word_index - half)
    end = min(len(context), word_index + len(word) + half)
    if start > 0:
        space = context.rfind(" ", 0, start + 1)
        if space > 0 and space > start - 10:
            start = space + 1
    if end < len(context):
        space = context.find(" ", end)
        if 0 < space < end + 10:
            end = space
    result = context[start:end]
    if start > 0:
        result = "..." + result
    if end < len(context):
        result = result + "..."
    return result
