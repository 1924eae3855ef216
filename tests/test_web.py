from __future__ import annotations

import json

import pytest
from fastapi import HTTPException

from catedit.config import dump_rules
from catedit.rules import GlossaryEntry, GlossaryRule, MentionRule, MentionUser
from catedit.web import WebConfig, create_app


def _find_route(app, path: str, method: str):
    method = method.upper()
    for route in app.router.routes:
        if getattr(route, "path", None) == path and method in getattr(route, "methods", set()):
            return route.endpoint
    raise RuntimeError(f"Route {method} {path} not found")


def _glossary() -> GlossaryRule:
    return GlossaryRule(label="tb", entries=(GlossaryEntry("cat", atomic=True),))


def test_health_and_rules_report_loaded_rules(tmp_path) -> None:
    rules_path = dump_rules([_glossary()], tmp_path / "rules.json")
    app = create_app(WebConfig(rules_path=rules_path))
    health = json.loads(_find_route(app, "/api/health", "GET")().body)
    assert health == {"status": "ok", "rules": 1}
    payload = json.loads(_find_route(app, "/api/rules", "GET")().body)
    assert payload["rules"][0]["label"] == "tb"


def test_broken_rules_file_fails_app_creation(tmp_path) -> None:
    broken = tmp_path / "rules.json"
    broken.write_text("[", encoding="utf-8")
    with pytest.raises(ValueError, match="Failed to parse rules file"):
        create_app(WebConfig(rules_path=broken))


def test_annotate_endpoint_returns_segments() -> None:
    app = create_app(WebConfig(rules=[_glossary()]))
    route = _find_route(app, "/api/annotate", "POST")
    payload = json.loads(route({"text": "a cat"}).body)
    assert payload["segments"] == [{"start": 2, "end": 5, "annotations": ["gl-tb-2-5"]}]
    assert payload["annotations"][0]["type"] == "glossary"


def test_annotate_accepts_request_rules() -> None:
    app = create_app(WebConfig())
    route = _find_route(app, "/api/annotate", "POST")
    rules = {"rules": [{"type": "mention", "users": [{"id": "5", "name": "Ann"}]}]}
    payload = json.loads(route({"text": "hi @{5}", "rules": rules}).body)
    assert payload["segments"] == [{"start": 3, "end": 7, "annotations": ["mention-3-7"]}]
    assert payload["annotations"][0]["data"]["mention_name"] == "Ann"


def test_annotate_rejects_bad_payloads() -> None:
    app = create_app(WebConfig())
    route = _find_route(app, "/api/annotate", "POST")
    with pytest.raises(HTTPException) as excinfo:
        route({"text": 3})
    assert excinfo.value.status_code == 400
    with pytest.raises(HTTPException) as excinfo:
        route({"text": "x", "rules": {"rules": [{"type": "bogus"}]}})
    assert excinfo.value.status_code == 400
    assert "unknown rule type" in excinfo.value.detail


def test_document_endpoint_builds_runs_and_selection() -> None:
    rule = MentionRule(users=(MentionUser("5", "Ann"),))
    app = create_app(WebConfig(rules=[rule]))
    route = _find_route(app, "/api/document", "POST")
    payload = json.loads(route({"text": "hi @{5}\nok", "selection": {"anchor": 4}}).body)
    assert payload["text"] == "hi @{5}\nok"
    first_line = payload["document"][0]
    assert [run["type"] for run in first_line] == ["text", "mention", "line-break"]
    assert first_line[1]["display"] == "@Ann"
    assert payload["selection"] == {"anchor": 7, "focus": 7}


def test_document_endpoint_without_selection() -> None:
    app = create_app(WebConfig())
    route = _find_route(app, "/api/document", "POST")
    payload = json.loads(route({"text": "plain"}).body)
    assert payload["selection"] is None
    assert payload["document"] == [[{"type": "text", "text": "plain", "display": "plain"}]]
    with pytest.raises(HTTPException):
        route({"text": "x", "selection": {"anchor": "0"}})


def test_quotes_endpoint() -> None:
    app = create_app(WebConfig())
    route = _find_route(app, "/api/quotes", "POST")
    payload = json.loads(route({"text": 'say "hi"'}).body)
    assert payload["quotes"] == [
        {"start": 4, "end": 7, "quote_type": "double", "content": "hi", "closed": True}
    ]
    with pytest.raises(HTTPException) as excinfo:
        route({"text": "it's", "escape_patterns": "klingon"})
    assert excinfo.value.status_code == 400


def test_quotes_endpoint_rejects_malformed_escape_patterns() -> None:
    app = create_app(WebConfig())
    route = _find_route(app, "/api/quotes", "POST")
    for value in (["n't"], 5, {"default": "n't"}):
        with pytest.raises(HTTPException) as excinfo:
            route({"text": "it's 'x'", "escape_patterns": value})
        assert excinfo.value.status_code == 400
        assert "escape_patterns" in excinfo.value.detail
    payload = json.loads(route({"text": "it's 'x'", "escape_patterns": {"default": ["'s"]}}).body)
    assert [quote["content"] for quote in payload["quotes"]] == ["x"]
