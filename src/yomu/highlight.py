from __future__ import annotations

import bisect
import logging
import re
from dataclasses import dataclass
from typing import Iterable, Iterator, Mapping

from .vocab import RecordId, TermSet, VocabularyRecord

__all__ = [
    "Segment",
    "AnnotatedRendering",
    "compile_rendering",
    "build_term_pattern",
    "serialize_segments",
    "deserialize_segments",
]

logger = logging.getLogger(__name__)

PLAIN = "plain"
HIGHLIGHT = "highlight"


@dataclass(frozen=True)
class Segment:
    kind: str
    text: str
    start: int
    end: int
    record_id: RecordId | None = None
    translation: str | None = None
    jump: bool = False

    @property
    def is_highlight(self) -> bool:
        return self.kind == HIGHLIGHT


@dataclass(frozen=True)
class AnnotatedRendering:
    """Ordered plain/highlight segments covering a document exactly once."""

    segments: tuple[Segment, ...]

    def __iter__(self) -> Iterator[Segment]:
        return iter(self.segments)

    def __len__(self) -> int:
        return len(self.segments)

    def __getitem__(self, index: int) -> Segment:
        return self.segments[index]

    @property
    def text(self) -> str:
        return "".join(segment.text for segment in self.segments)

    def highlights(self) -> Iterator[tuple[int, Segment]]:
        for index, segment in enumerate(self.segments):
            if segment.is_highlight:
                yield index, segment

    @property
    def jump_index(self) -> int | None:
        for index, segment in self.highlights():
            if segment.jump:
                return index
        return None

    def segment_at(self, offset: int) -> int | None:
        """Index of the segment containing the character at ``offset``."""
        starts = [segment.start for segment in self.segments]
        index = bisect.bisect_right(starts, offset) - 1
        if index < 0 or index >= len(self.segments):
            return None
        segment = self.segments[index]
        if segment.start <= offset < segment.end:
            return index
        return None


def build_term_pattern(original: str) -> re.Pattern[str]:
    """Literal, case-insensitive matcher that refuses to touch word characters."""
    return re.compile(rf"(?<!\w){re.escape(original)}(?!\w)", re.IGNORECASE)


class _ClaimedRanges:
    """Sorted, disjoint half-open ranges already owned by a longer term."""

    def __init__(self) -> None:
        self._starts: list[int] = []
        self._ends: list[int] = []
        self._owners: list[VocabularyRecord] = []

    def overlaps(self, start: int, end: int) -> bool:
        index = bisect.bisect_left(self._starts, end)
        # Only the range starting just before ``end`` can reach into [start, end).
        return index > 0 and self._ends[index - 1] > start

    def claim(self, start: int, end: int, owner: VocabularyRecord) -> None:
        index = bisect.bisect_left(self._starts, start)
        self._starts.insert(index, start)
        self._ends.insert(index, end)
        self._owners.insert(index, owner)

    def __iter__(self) -> Iterator[tuple[int, int, VocabularyRecord]]:
        return iter(zip(self._starts, self._ends, self._owners))


def compile_rendering(
    text: str,
    terms: TermSet | Iterable[VocabularyRecord],
    jump_target: str | None = None,
) -> AnnotatedRendering:
    """
    Annotate ``text`` with every whole-word, case-insensitive occurrence of
    the saved terms.

    Terms are processed longest first; a match that intersects text already
    claimed by an earlier term is skipped, so highlights never nest or
    overlap. If ``jump_target`` names one of the terms, the first highlight
    of that term in document order is flagged with ``jump``.
    """
    term_set = terms if isinstance(terms, TermSet) else TermSet(terms)
    if not text:
        return AnnotatedRendering(())
    if not term_set:
        return AnnotatedRendering((Segment(PLAIN, text, 0, len(text)),))

    claimed = _ClaimedRanges()
    for record in term_set:
        try:
            pattern = build_term_pattern(record.original)
        except re.error as exc:
            logger.debug("Skipping term %r: %s", record.original, exc)
            continue
        for match in pattern.finditer(text):
            start, end = match.span()
            if start == end or claimed.overlaps(start, end):
                continue
            claimed.claim(start, end, record)

    jump_record = term_set.find_term(jump_target) if jump_target else None
    segments: list[Segment] = []
    cursor = 0
    jump_flagged = False
    for start, end, record in claimed:
        if start > cursor:
            segments.append(Segment(PLAIN, text[cursor:start], cursor, start))
        is_jump = False
        if jump_record is not None and not jump_flagged and record.id == jump_record.id:
            is_jump = True
            jump_flagged = True
        segments.append(
            Segment(
                HIGHLIGHT,
                text[start:end],
                start,
                end,
                record_id=record.id,
                translation=record.translation,
                jump=is_jump,
            )
        )
        cursor = end
    if cursor < len(text):
        segments.append(Segment(PLAIN, text[cursor:], cursor, len(text)))
    return AnnotatedRendering(tuple(segments))


def serialize_segments(rendering: AnnotatedRendering) -> list[dict[str, object]]:
    payload: list[dict[str, object]] = []
    for segment in rendering:
        entry: dict[str, object] = {
            "kind": segment.kind,
            "text": segment.text,
            "start": segment.start,
            "end": segment.end,
        }
        if segment.is_highlight:
            entry["recordId"] = segment.record_id
            entry["translation"] = segment.translation
            entry["jump"] = segment.jump
        payload.append(entry)
    return payload


def deserialize_segments(data: Iterable[Mapping[str, object]]) -> AnnotatedRendering:
    segments: list[Segment] = []
    for entry in data:
        if not isinstance(entry, Mapping):
            continue
        kind = entry.get("kind")
        text = entry.get("text")
        start = entry.get("start")
        end = entry.get("end")
        if kind not in {PLAIN, HIGHLIGHT} or not isinstance(text, str):
            continue
        if not isinstance(start, int) or not isinstance(end, int):
            continue
        if kind == PLAIN:
            segments.append(Segment(PLAIN, text, start, end))
            continue
        record_id = entry.get("recordId")
        translation = entry.get("translation")
        segments.append(
            Segment(
                HIGHLIGHT,
                text,
                start,
                end,
                record_id=record_id if isinstance(record_id, (int, str)) else None,
                translation=translation if isinstance(translation, str) else None,
                jump=bool(entry.get("jump")),
            )
        )
    return AnnotatedRendering(tuple(segments))
