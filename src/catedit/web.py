from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Sequence

from fastapi import Body, FastAPI, HTTPException
from fastapi.responses import JSONResponse

from .annotate import annotate
from .annotations import serialize_annotation, serialize_segments
from .config import EngineConfig, load_engine_config, parse_escape_patterns, parse_rules, serialize_rules
from .document import serialize_document
from .editor import EditorEngine
from .logging_utils import debug_log
from .mentions import detect_new_mentions, find_mention_rule, mask_mention_ranges
from .quotes import DetectQuotesOptions, detect_quotes, serialize_quote_ranges
from .rules import Rule, RuleConfigError


@dataclass(slots=True)
class WebConfig:
    rules_path: Path | None = None
    rules: Sequence[Rule] = ()
    engine: EngineConfig = field(default_factory=EngineConfig)


def _require_text(payload: Any) -> str:
    if not isinstance(payload, dict):
        raise HTTPException(status_code=400, detail="Invalid payload.")
    text = payload.get("text")
    if not isinstance(text, str):
        raise HTTPException(status_code=400, detail="text must be a string.")
    return text


def _quote_options(payload: dict[str, Any]) -> DetectQuotesOptions:
    options = DetectQuotesOptions(
        escape_contractions=bool(payload.get("escape_contractions", True)),
        escape_patterns=parse_escape_patterns(payload.get("escape_patterns", "english"), "request"),
        allow_nesting=bool(payload.get("allow_nesting", False)),
        detect_inner_quotes=bool(payload.get("detect_inner_quotes", True)),
    )
    return options


def create_app(config: WebConfig) -> FastAPI:
    app = FastAPI(title="catedit")

    default_rules: list[Rule] = list(config.rules)
    engine_config = config.engine
    if config.rules_path is not None:
        try:
            file_rules, engine_config = load_engine_config(config.rules_path)
        except RuleConfigError as exc:
            raise ValueError(str(exc)) from exc
        default_rules.extend(file_rules)

    def _rules_for(payload: dict[str, Any]) -> list[Rule]:
        if "rules" not in payload:
            return default_rules
        try:
            return parse_rules(payload["rules"], source="request")
        except RuleConfigError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc

    @app.get("/api/health")
    def api_health() -> JSONResponse:
        return JSONResponse({"status": "ok", "rules": len(default_rules)})

    @app.get("/api/rules")
    def api_rules() -> JSONResponse:
        return JSONResponse(serialize_rules(default_rules))

    @app.post("/api/annotate")
    def api_annotate(payload: dict[str, Any] = Body(...)) -> JSONResponse:
        text = _require_text(payload)
        rules = _rules_for(payload)
        mentions = detect_new_mentions(text, find_mention_rule(rules), ())
        masked = mask_mention_ranges(text, mentions, engine_config.mask_char)
        result = annotate(masked, rules, mentions=mentions)
        debug_log(f"web: annotate {len(text)} chars -> {len(result.segments)} segments")
        return JSONResponse(
            {
                "segments": serialize_segments(result.segments),
                "annotations": [
                    serialize_annotation(annotation)
                    for annotation in result.annotation_index.values()
                ],
            }
        )

    @app.post("/api/document")
    def api_document(payload: dict[str, Any] = Body(...)) -> JSONResponse:
        text = _require_text(payload)
        rules = _rules_for(payload)
        engine = EditorEngine(text, rules, engine_config)
        selection = payload.get("selection")
        if selection is not None:
            if not isinstance(selection, dict):
                raise HTTPException(status_code=400, detail="selection must be an object.")
            anchor = selection.get("anchor")
            focus = selection.get("focus", anchor)
            if not isinstance(anchor, int) or not isinstance(focus, int):
                raise HTTPException(status_code=400, detail="selection offsets must be integers.")
            engine.set_selection(anchor, focus)
            engine.apply_highlights()
        current = engine.get_selection()
        return JSONResponse(
            {
                "text": engine.get_text(),
                "segments": serialize_segments(engine.result.segments),
                "annotations": [
                    serialize_annotation(annotation)
                    for annotation in engine.result.annotation_index.values()
                ],
                "document": serialize_document(engine.document, engine.sync.display),
                "selection": (
                    {"anchor": current.anchor, "focus": current.focus}
                    if current is not None
                    else None
                ),
            }
        )

    @app.post("/api/quotes")
    def api_quotes(payload: dict[str, Any] = Body(...)) -> JSONResponse:
        text = _require_text(payload)
        try:
            quotes = detect_quotes(text, _quote_options(payload))
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        return JSONResponse({"quotes": serialize_quote_ranges(quotes)})

    return app
