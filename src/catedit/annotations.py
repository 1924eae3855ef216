from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import ClassVar, Iterable, Union

from .rules import SpellcheckValidation

__all__ = [
    "Annotation",
    "GlossaryAnnotation",
    "HighlightSegment",
    "LinkAnnotation",
    "MentionAnnotation",
    "QuoteAnnotation",
    "RawRange",
    "SpecialCharAnnotation",
    "SpellcheckAnnotation",
    "TagAnnotation",
    "annotation_type_name",
    "is_atomic_annotation",
    "serialize_annotation",
    "serialize_segments",
]


@dataclass(frozen=True)
class SpellcheckAnnotation:
    kind: ClassVar[str] = "spellcheck"

    id: str
    validation: SpellcheckValidation


@dataclass(frozen=True)
class GlossaryAnnotation:
    kind: ClassVar[str] = "glossary"

    id: str
    label: str
    term: str
    description: str | None = None
    atomic: bool = False


@dataclass(frozen=True)
class SpecialCharAnnotation:
    kind: ClassVar[str] = "special-char"

    id: str
    name: str
    char: str
    code_point: str
    atomic: bool = False
    display_symbol: str | None = None


@dataclass(frozen=True)
class TagAnnotation:
    kind: ClassVar[str] = "tag"

    id: str
    tag_number: int
    tag_name: str
    is_closing: bool
    is_self_closing: bool
    original_text: str
    display_text: str
    is_html: bool
    collapsed: bool = False


@dataclass(frozen=True)
class QuoteAnnotation:
    kind: ClassVar[str] = "quote"

    id: str
    quote_type: str
    position: str
    original_char: str
    replacement_char: str


@dataclass(frozen=True)
class LinkAnnotation:
    kind: ClassVar[str] = "link"

    id: str
    url: str
    href: str


@dataclass(frozen=True)
class MentionAnnotation:
    kind: ClassVar[str] = "mention"

    id: str
    mention_id: str
    mention_name: str


Annotation = Union[
    SpellcheckAnnotation,
    GlossaryAnnotation,
    SpecialCharAnnotation,
    TagAnnotation,
    QuoteAnnotation,
    LinkAnnotation,
    MentionAnnotation,
]


@dataclass(frozen=True)
class RawRange:
    start: int
    end: int
    annotation: Annotation


@dataclass
class HighlightSegment:
    start: int
    end: int
    annotations: list[Annotation]

    @property
    def annotation_ids(self) -> list[str]:
        return [annotation.id for annotation in self.annotations]


def annotation_type_name(annotation: Annotation) -> str:
    """Renderer-facing type name (e.g. ``glossary-tb-target``)."""
    if isinstance(annotation, GlossaryAnnotation):
        return f"glossary-{annotation.label}"
    if isinstance(annotation, SpellcheckAnnotation):
        return f"spellcheck-{annotation.validation.category_id}"
    return annotation.kind


def is_atomic_annotation(annotation: Annotation) -> bool:
    if isinstance(annotation, TagAnnotation):
        return annotation.collapsed
    if isinstance(annotation, QuoteAnnotation):
        return True
    if isinstance(annotation, (SpecialCharAnnotation, GlossaryAnnotation)):
        return annotation.atomic
    return isinstance(annotation, MentionAnnotation)


def serialize_annotation(annotation: Annotation) -> dict[str, object]:
    payload = asdict(annotation)
    entry: dict[str, object] = {"type": annotation.kind, "id": payload.pop("id")}
    entry["data"] = payload
    return entry


def serialize_segments(segments: Iterable[HighlightSegment]) -> list[dict[str, object]]:
    return [
        {
            "start": segment.start,
            "end": segment.end,
            "annotations": segment.annotation_ids,
        }
        for segment in segments
    ]
