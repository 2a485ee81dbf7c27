"""Annotation span resolution.

Maps persisted annotations onto a run of text. The result is a list of
spans whose concatenation is the original text, with matched regions
tagged by annotation id. Renderers consume spans and never search the
text themselves.
"""

import re
from dataclasses import dataclass
from typing import Iterable, List, Optional

from ..storage import Annotation


@dataclass(frozen=True)
class Span:
    """A contiguous run of text, optionally owned by one annotation."""

    text: str
    annotation_id: Optional[str] = None

    @property
    def highlighted(self) -> bool:
        """Whether this span belongs to an annotation."""
        return self.annotation_id is not None


def resolve_spans(text: str, annotations: Iterable[Annotation]) -> List[Span]:
    """Split text into plain and highlighted spans.

    Annotations are applied longest first (ties keep their given order).
    Each one claims its first case-insensitive occurrence inside every
    segment that is not yet highlighted. Highlighted segments are never
    searched again, so a region belongs to at most one annotation.
    Annotations whose text is missing contribute nothing.

    Args:
        text: The text run to search
        annotations: Annotations attached to the message

    Returns:
        Ordered spans covering `text` exactly
    """
    ordered = sorted(
        (a for a in annotations if a.text),
        key=lambda a: len(a.text),
        reverse=True,
    )

    spans = [Span(text)] if text else []
    for annotation in ordered:
        pattern = re.compile(re.escape(annotation.text), re.IGNORECASE)
        split: List[Span] = []
        for span in spans:
            if span.highlighted:
                split.append(span)
                continue

            match = pattern.search(span.text)
            if match is None:
                split.append(span)
                continue

            start, end = match.span()
            if start > 0:
                split.append(Span(span.text[:start]))
            split.append(Span(span.text[start:end], annotation.id))
            if end < len(span.text):
                split.append(Span(span.text[end:]))
        spans = split

    return spans


def contains_case_insensitive(haystack: str, needle: str) -> bool:
    """Check whether `needle` occurs in `haystack` ignoring case."""
    return bool(needle) and re.search(re.escape(needle), haystack, re.IGNORECASE) is not None
