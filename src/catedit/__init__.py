from .annotate import AnnotationResult, annotate
from .config import EngineConfig, dump_rules, load_rules
from .display import CODEPOINT_DISPLAY_MAP, DisplayConfig
from .document import Document, HighlightRun, LineBreakMarker, MentionRun, Paragraph, TextRun
from .editor import ChangeEvent, EditorEngine, ReplacedRange
from .offsets import OffsetMappingError, TreePosition, offset_to_position, position_to_offset
from .quotes import DetectQuotesOptions, QuoteRange, detect_quotes
from .rules import RuleConfigError
from .scheduler import RebuildScheduler
from .segments import compose_segments
from .sync import DocumentSynchronizer, build_document, collect_text

__all__ = [
    "annotate",
    "AnnotationResult",
    "compose_segments",
    "detect_quotes",
    "DetectQuotesOptions",
    "QuoteRange",
    "Document",
    "Paragraph",
    "TextRun",
    "HighlightRun",
    "MentionRun",
    "LineBreakMarker",
    "build_document",
    "collect_text",
    "DocumentSynchronizer",
    "offset_to_position",
    "position_to_offset",
    "TreePosition",
    "OffsetMappingError",
    "RebuildScheduler",
    "EditorEngine",
    "ChangeEvent",
    "ReplacedRange",
    "EngineConfig",
    "DisplayConfig",
    "CODEPOINT_DISPLAY_MAP",
    "load_rules",
    "dump_rules",
    "RuleConfigError",
]
