from __future__ import annotations

import argparse
import json
import sys
from importlib import metadata
from pathlib import Path

import tomllib
import uvicorn
from rich.console import Console
from rich.table import Table

from .annotations import annotation_type_name, serialize_annotation, serialize_segments
from .config import EngineConfig, load_engine_config
from .document import serialize_document
from .editor import EditorEngine
from .logging_utils import build_uvicorn_log_config, set_debug_logging
from .quotes import DetectQuotesOptions, detect_quotes, serialize_quote_ranges
from .rules import Rule, RuleConfigError
from .watch import TextFileWatcher
from .web import WebConfig, create_app

_CONSOLE = Console()


def _read_local_version() -> str | None:
    try:
        pyproject_path = Path(__file__).resolve().parents[2] / "pyproject.toml"
    except IndexError:  # pragma: no cover
        return None
    try:
        with pyproject_path.open("rb") as fh:
            data = tomllib.load(fh)
    except (FileNotFoundError, tomllib.TOMLDecodeError):
        return None
    return data.get("project", {}).get("version")


try:
    __version__ = metadata.version("catedit")
except metadata.PackageNotFoundError:
    __version__ = _read_local_version() or "0.0.0+unknown"


def _add_version_flag(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "-v",
        "--version",
        action="version",
        version=f"catedit {__version__}",
    )


def _add_common_flags(parser: argparse.ArgumentParser, *, rules: bool = True) -> None:
    _add_version_flag(parser)
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Print debug logging to stderr.",
    )
    if rules:
        parser.add_argument(
            "--rules",
            help="JSON rules file ({\"rules\": [...]}, optional \"display\" section).",
        )


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="catedit",
        description=(
            "Annotate translation segments with spellcheck, glossary, tag, quote, link and "
            "mention highlights. Subcommands: annotate, quotes, watch, web."
        ),
    )
    _add_version_flag(ap)
    ap.add_argument(
        "command",
        nargs="?",
        choices=["annotate", "quotes", "watch", "web"],
        help="Subcommand to run.",
    )
    return ap


def build_annotate_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="catedit annotate",
        description="Annotate a text file and print the resulting segments.",
    )
    _add_common_flags(ap)
    ap.add_argument("file", help="UTF-8 text file to annotate.")
    ap.add_argument(
        "--json",
        action="store_true",
        help="Emit segments, annotations and the document tree as JSON.",
    )
    return ap


def build_quotes_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="catedit quotes",
        description="Detect quote ranges in a string or file.",
    )
    _add_common_flags(ap, rules=False)
    ap.add_argument("text", nargs="?", help="Text to scan (omit when using --file).")
    ap.add_argument("--file", help="Read the text from a UTF-8 file instead.")
    ap.add_argument(
        "--allow-nesting",
        action="store_true",
        help="Let single and double ranges close independently, even when they cross.",
    )
    ap.add_argument(
        "--no-inner",
        action="store_true",
        help="Ignore quotes of the other type opened inside an open range.",
    )
    ap.add_argument(
        "--no-contractions",
        action="store_true",
        help="Treat apostrophes in contractions (don't, it's) as quote delimiters.",
    )
    ap.add_argument(
        "--escape-patterns",
        default="english",
        help="Built-in contraction pattern set (default: english).",
    )
    return ap


def build_watch_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="catedit watch",
        description="Re-annotate a text file whenever it changes on disk.",
    )
    _add_common_flags(ap)
    ap.add_argument("file", help="UTF-8 text file to watch.")
    ap.add_argument(
        "--interval",
        type=float,
        default=0.5,
        help="Polling interval in seconds (default: 0.5).",
    )
    return ap


def build_web_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="catedit web",
        description="Serve the annotation engine as a JSON API.",
    )
    _add_common_flags(ap)
    ap.add_argument(
        "--host",
        default="127.0.0.1",
        help="Host interface for the web server (default: 127.0.0.1).",
    )
    ap.add_argument(
        "--port",
        type=int,
        default=2047,
        help="Port for the web server (default: 2047).",
    )
    return ap


def _load_rules_arg(value: str | None) -> tuple[list[Rule], EngineConfig]:
    if not value:
        return [], EngineConfig()
    path = Path(value).expanduser()
    if not path.is_file():
        raise SystemExit(f"Rules file not found: {path}")
    try:
        return load_engine_config(path)
    except RuleConfigError as exc:
        raise SystemExit(str(exc)) from exc


def _read_text_file(value: str) -> str:
    path = Path(value).expanduser()
    if not path.is_file():
        raise SystemExit(f"Input file not found: {path}")
    return path.read_text(encoding="utf-8")


def _segments_table(engine: EditorEngine) -> Table:
    text = engine.get_text()
    table = Table(title=f"{len(engine.result.segments)} segment(s)")
    table.add_column("Range", justify="right", no_wrap=True)
    table.add_column("Text")
    table.add_column("Types")
    table.add_column("Ids")
    for segment in engine.result.segments:
        types = dict.fromkeys(annotation_type_name(a) for a in segment.annotations)
        table.add_row(
            f"{segment.start}-{segment.end}",
            repr(text[segment.start : segment.end]),
            ", ".join(types),
            ", ".join(segment.annotation_ids),
        )
    return table


def _engine_payload(engine: EditorEngine) -> dict[str, object]:
    return {
        "segments": serialize_segments(engine.result.segments),
        "annotations": [
            serialize_annotation(annotation)
            for annotation in engine.result.annotation_index.values()
        ],
        "document": serialize_document(engine.document, engine.sync.display),
    }


def _run_annotate(args: argparse.Namespace) -> int:
    rules, config = _load_rules_arg(args.rules)
    text = _read_text_file(args.file)
    engine = EditorEngine(text, rules, config)
    if args.json:
        print(json.dumps(_engine_payload(engine), ensure_ascii=False, indent=2))
    else:
        _CONSOLE.print(_segments_table(engine))
    return 0


def _run_quotes(args: argparse.Namespace) -> int:
    if args.file:
        text = _read_text_file(args.file)
    elif args.text is not None:
        text = args.text
    else:
        raise SystemExit("Provide TEXT or --file.")
    options = DetectQuotesOptions(
        escape_contractions=not args.no_contractions,
        escape_patterns=args.escape_patterns,
        allow_nesting=args.allow_nesting,
        detect_inner_quotes=not args.no_inner,
    )
    try:
        quotes = detect_quotes(text, options)
    except ValueError as exc:
        raise SystemExit(str(exc)) from exc
    print(json.dumps(serialize_quote_ranges(quotes), ensure_ascii=False, indent=2))
    return 0


def _run_watch(args: argparse.Namespace) -> int:
    rules, config = _load_rules_arg(args.rules)
    path = Path(args.file).expanduser()
    engine = EditorEngine(_read_text_file(args.file), rules, config)

    def _report(current: EditorEngine, token: int) -> None:
        _CONSOLE.print(_segments_table(current))

    _report(engine, 0)
    watcher = TextFileWatcher(path, engine, on_update=_report, interval=args.interval)
    _CONSOLE.print(f"Watching {path}. Press Ctrl+C to stop.")
    try:
        watcher.run()
    except KeyboardInterrupt:
        pass
    return 0


def _run_web(args: argparse.Namespace) -> int:
    rules, config = _load_rules_arg(args.rules)
    app = create_app(WebConfig(rules=rules, engine=config))
    print(f"Serving catedit API on http://{args.host}:{args.port}/api/health")
    print("Press Ctrl+C to stop.\n")
    uvicorn.run(
        app,
        host=args.host,
        port=args.port,
        log_config=build_uvicorn_log_config(args.debug),
    )
    return 0


_SUBCOMMANDS = {
    "annotate": (build_annotate_parser, _run_annotate),
    "quotes": (build_quotes_parser, _run_quotes),
    "watch": (build_watch_parser, _run_watch),
    "web": (build_web_parser, _run_web),
}


def main(argv: list[str] | None = None) -> int:
    if argv is None:
        argv = sys.argv[1:]

    debug = False
    if argv and argv[0] == "--debug":
        debug = True
        argv = argv[1:]

    if argv and argv[0] in _SUBCOMMANDS:
        build, run = _SUBCOMMANDS[argv[0]]
        args = build().parse_args(argv[1:])
        args.debug = args.debug or debug
        set_debug_logging(args.debug)
        return run(args)

    parser = build_parser()
    if not argv:
        parser.print_help()
        return 0
    parser.parse_args(argv)
    parser.print_help()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
