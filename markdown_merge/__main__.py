"""Command-line entrypoint: merge files, repair files or run the HTTP service."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional, Sequence

from .config import BACKEND_NAMES, PREFERENCE_VALUES, get_settings
from .services.repair import repair_markdown
from .services.smart_merger import SmartMerger
from .services.table_match import TableMatchRefiner
from .utils.errors import MergeError
from .utils.logging import configure_logging

LOGGER = logging.getLogger(__name__)


def _read(path: str) -> str:
    return Path(path).read_text(encoding="utf-8")


def _write(path: str, content: str) -> None:
    Path(path).write_text(content, encoding="utf-8")


def build_parser() -> argparse.ArgumentParser:
    settings = get_settings()
    parser = argparse.ArgumentParser(
        prog="markdown-merge", description="Structural merge of markdown documents."
    )
    commands = parser.add_subparsers(dest="command", required=True)

    merge = commands.add_parser("merge", help="merge TEMPLATE into DEST")
    merge.add_argument("template")
    merge.add_argument("destination")
    merge.add_argument("-o", "--output", help="write the result here instead of stdout")
    merge.add_argument("--preference", choices=PREFERENCE_VALUES, default=settings.preference)
    merge.add_argument("--backend", choices=BACKEND_NAMES, default=settings.backend)
    merge.add_argument("--freeze-token", default=settings.freeze_token)
    merge.add_argument("--add-template-only", action="store_true")
    merge.add_argument("--remove-template-missing", action="store_true")
    merge.add_argument("--inner-merge-code-blocks", action="store_true")
    merge.add_argument("--match-tables", action="store_true")
    merge.add_argument(
        "--code-block-signature", choices=("content", "position"), default="content"
    )
    merge.add_argument("--repair", action="store_true", help="repair both inputs before merging")
    merge.add_argument(
        "--check",
        action="store_true",
        help="exit with status 1 when the merge would change DEST; write nothing",
    )

    repair = commands.add_parser("repair", help="fix common markdown formatting damage")
    repair.add_argument("file")
    repair.add_argument("--write", action="store_true", help="rewrite FILE in place")

    serve = commands.add_parser("serve", help="run the HTTP API")
    serve.add_argument("--host", default=settings.host)
    serve.add_argument("--port", type=int, default=settings.port)
    return parser


def _run_merge(args: argparse.Namespace) -> int:
    destination = _read(args.destination)
    merger = SmartMerger(
        _read(args.template),
        destination,
        backend=args.backend,
        preference=args.preference,
        freeze_token=args.freeze_token,
        add_template_only_nodes=args.add_template_only,
        remove_template_missing_nodes=args.remove_template_missing,
        inner_merge_code_blocks=args.inner_merge_code_blocks,
        match_refiner=(
            TableMatchRefiner(threshold=get_settings().table_match_threshold)
            if args.match_tables
            else None
        ),
        code_block_signature=args.code_block_signature,
        repair_input=args.repair,
    )
    result = merger.merge_result()
    LOGGER.info("Merged %s into %s: %s", args.template, args.destination, result.stats.to_dict())
    if args.check:
        if result.content != destination:
            print(f"{args.destination} is out of date", file=sys.stderr)
            return 1
        return 0
    if args.output:
        _write(args.output, result.content)
    else:
        sys.stdout.write(result.content)
    return 0


def _run_repair(args: argparse.Namespace) -> int:
    report = repair_markdown(_read(args.file))
    for name, issues in report.issues.items():
        for issue in issues:
            print(f"{args.file}:{issue.line}: {name}: {issue.description}", file=sys.stderr)
    if args.write:
        if report.changed:
            _write(args.file, report.text)
    else:
        sys.stdout.write(report.text)
    return 0


def _run_serve(args: argparse.Namespace) -> int:
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "markdown_merge.main:app",
        host=args.host,
        port=args.port,
        log_level=settings.log_level,
    )
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Parse ``argv`` and dispatch to the chosen sub-command."""

    configure_logging(default_level="WARNING")
    args = build_parser().parse_args(argv)
    handlers = {"merge": _run_merge, "repair": _run_repair, "serve": _run_serve}
    try:
        return handlers[args.command](args)
    except MergeError as exc:
        print(f"error [{exc.code}]: {exc.message}", file=sys.stderr)
        return 2
    except OSError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
