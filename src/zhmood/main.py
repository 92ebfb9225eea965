# -*- coding: utf-8 -*-
# src/zhmood/main.py
"""
zhmood command line.

    zhmood detect "今天代码写得很开心" [--json]
    zhmood batch texts.txt                 # one text per line → JSON lines
    zhmood categories | info 高兴 | insights | reset-learning
    zhmood merge-lexicon external.json out.json
    zhmood serve [--host 0.0.0.0 --port 8000]
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, List, Optional


from . import config
from .data_utils import ZhMoodError

logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())


def _dump(obj: Any) -> str:
    return json.dumps(obj, ensure_ascii=False, indent=2)


def _format_result(result) -> str:
    lines = [f"{result.emoji} {result.main.value}  (置信度 {result.confidence}%)"]
    if result.secondary:
        lines.append("次要情绪: " + "、".join(c.value for c in result.secondary))
    if result.hits:
        lines.append("匹配词汇: " + "、".join(result.hits))
    lines.append(f"五行: {result.element}  语气: {result.tone}")
    group = result.emotion_group or {}
    if group.get("summary"):
        lines.append(f"情绪组: {group['summary']}")
    for note in result.learning_notes.values():
        lines.append(f"· {note}")
    return "\n".join(lines)


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser("zhmood", description="Chinese mood detection")
    ap.add_argument("--log-level", default=None, help="override ZHMOOD_LOG_LEVEL")
    sub = ap.add_subparsers(dest="command", required=True)

    p = sub.add_parser("detect", help="detect the mood of one text")
    p.add_argument("text")
    p.add_argument("--json", action="store_true", help="print the full result as JSON")

    p = sub.add_parser("batch", help="detect every line of a UTF-8 text file")
    p.add_argument("file")

    sub.add_parser("categories", help="list supported categories")

    p = sub.add_parser("info", help="metadata of one category")
    p.add_argument("category")

    sub.add_parser("insights", help="personal mood insights from the learning store")
    sub.add_parser("reset-learning", help="clear the learning store")

    p = sub.add_parser("merge-lexicon", help="merge an external word list into the lexicon")
    p.add_argument("external")
    p.add_argument("out")

    p = sub.add_parser("serve", help="run the HTTP service")
    p.add_argument("--host", default=config.SERVER_HOST)
    p.add_argument("--port", type=int, default=config.SERVER_PORT)
    return ap


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    config.setup_logging(args.log_level)

    from .detector import get_detector

    try:
        if args.command == "detect":
            result = get_detector().detect(args.text)
            print(_dump(result.to_dict()) if args.json else _format_result(result))

        elif args.command == "batch":
            lines = Path(args.file).read_text(encoding="utf-8").splitlines()
            for result in get_detector().batch_detect([ln for ln in lines if ln.strip()]):
                print(json.dumps(result.to_dict(), ensure_ascii=False))

        elif args.command == "categories":
            for cat in get_detector().list_categories():
                print(cat.value)

        elif args.command == "info":
            info = get_detector().get_category_info(args.category)
            if info is None:
                print(f"unknown category: {args.category}", file=sys.stderr)
                return 1
            print(_dump(info))

        elif args.command == "insights":
            print(_dump(get_detector().get_personal_insights()))

        elif args.command == "reset-learning":
            if not get_detector().reset_learning():
                print("failed to reset learning data", file=sys.stderr)
                return 1
            print("learning data reset")

        elif args.command == "merge-lexicon":
            from .emotion_analysis.lexicon_merger import merge_lexicon_files

            report = merge_lexicon_files(args.external, args.out)
            print(_dump(report["summary"]))

        elif args.command == "serve":
            from .serving.app import run_server

            run_server(host=args.host, port=args.port)
    except (ZhMoodError, OSError) as e:
        logger.error("%s failed: %s", args.command, e)
        print(f"error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
