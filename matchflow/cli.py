"""
Command line interface for matchflow.

Subcommands:

* ``analyze`` – score a profile JSON file against a scorecard stored in
  a directory of YAML/JSON scorecard files and print or write the
  result as JSON.
* ``chunk`` – print the evidence chunks extracted from a profile.
* ``report`` – print a human‑readable summary of a saved result.

Provider selection (OpenAI, Gemini or the offline fallbacks) follows
the environment and the optional ``llm`` section of the config file.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Any, Dict, List

from .config import load_settings
from .embed.gateway import EmbeddingGateway
from .errors import MatchError
from .match import MatchEngine
from .profile.chunker import chunk_profile
from .scorecard.repository import FileScorecardRepository

logger = logging.getLogger("matchflow.cli")


def _load_json(path: str) -> Dict[str, Any]:
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def cmd_analyze(args: argparse.Namespace) -> int:
    """Match a profile against a scorecard and emit the result JSON."""
    try:
        settings = load_settings(args.config)
        profile = _load_json(args.profile)
    except (OSError, ValueError) as exc:
        logger.error("Cannot start match: %s", exc)
        return 1
    gateway = EmbeddingGateway()
    repository = FileScorecardRepository(args.scorecards, gateway=gateway)
    engine = MatchEngine(repository, embedder=gateway, settings=settings)
    try:
        result = engine.analyze_sync(args.scorecard_id, profile, timeout=args.timeout)
    except MatchError as exc:
        logger.error("Match failed (%s): %s", exc.kind, exc)
        return 1
    payload = json.dumps(result.to_dict(), indent=2, ensure_ascii=False)
    if args.out:
        with open(args.out, "w", encoding="utf-8") as f:
            f.write(payload + "\n")
        logger.info("Wrote match result to %s (overall %d)", args.out, result.overall_score)
    else:
        print(payload)
    return 0


def cmd_chunk(args: argparse.Namespace) -> int:
    """Print the evidence chunks of a profile, one per line."""
    try:
        chunks = chunk_profile(_load_json(args.profile))
    except (MatchError, OSError, ValueError) as exc:
        logger.error("%s", exc)
        return 1
    for chunk in chunks:
        print(chunk)
    return 0


def cmd_report(args: argparse.Namespace) -> int:
    """Print a simple report from a saved result JSON."""
    try:
        result = _load_json(args.result)
    except (OSError, ValueError) as exc:
        logger.error("Cannot read result: %s", exc)
        return 1
    name = result.get("profile_name") or "Unknown candidate"
    headline = result.get("profile_headline")
    print(f"{name}" + (f" ({headline})" if headline else ""))
    print(f"Overall score: {result.get('overall_score', 0)}/100")
    print()
    for category in result.get("categories", []):
        print(f"{category['name']}: {category['score']}/100")
        for criterion in category.get("criteria", []):
            print(f"   [{criterion['score']}/5] {criterion['criterion_name']} – {criterion['justification']}")
        print()
    return 0


def main(argv: List[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="matchflow", description="Profile to scorecard matching")
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    analyze_cmd = subparsers.add_parser("analyze", parents=[common], help="Score a profile against a scorecard")
    analyze_cmd.add_argument("--scorecards", required=True, help="Directory containing scorecard YAML/JSON files")
    analyze_cmd.add_argument("--scorecard-id", dest="scorecard_id", required=True, help="Scorecard id (file name without suffix)")
    analyze_cmd.add_argument("--profile", required=True, help="Path to profile JSON")
    analyze_cmd.add_argument("--config", help="YAML config file")
    analyze_cmd.add_argument("--timeout", type=float, help="Time budget in seconds for the whole match")
    analyze_cmd.add_argument("--out", help="Write the result JSON here instead of stdout")
    analyze_cmd.set_defaults(func=cmd_analyze)

    chunk_cmd = subparsers.add_parser("chunk", parents=[common], help="Print the evidence chunks of a profile")
    chunk_cmd.add_argument("--profile", required=True, help="Path to profile JSON")
    chunk_cmd.set_defaults(func=cmd_chunk)

    report_cmd = subparsers.add_parser("report", parents=[common], help="Print a text report from a result JSON")
    report_cmd.add_argument("--result", required=True, help="Path to result JSON written by analyze")
    report_cmd.set_defaults(func=cmd_report)

    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="[%(levelname)s] %(message)s",
    )
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
