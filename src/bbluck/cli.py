from __future__ import annotations

import argparse
import sys
from pathlib import Path

from bbluck.contracts import ReplayValidationError
from bbluck.core import AnalysisIntegrityError, configure_logging, default_limits, persist_forensic_artifact
from bbluck.export import LuckEventExporter
from bbluck.luck import RollContractAuditor, render_text_report
from bbluck.services import analyze_replay_input, parse_replay_input, to_json

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_INVALID_REPLAY = 2


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="bbluck", description="Blood Bowl replay luck analyzer")
    parser.add_argument("--log-level", default="WARNING", help="logging level (DEBUG, INFO, WARNING, ERROR)")
    sub = parser.add_subparsers(dest="command", required=True)

    analyze = sub.add_parser("analyze", help="score a replay and print the luck report")
    analyze.add_argument("replay_file", type=Path)
    analyze.add_argument("--format", choices=("json", "text"), default="text")
    analyze.add_argument("--max-decoded-chars", type=int, default=None, help="override the decoded replay budget")
    analyze.add_argument("--export-dir", type=Path, default=None, help="write luck events as csv and parquet")
    analyze.add_argument("--forensics-dir", type=Path, default=None, help="persist forensic artifacts on failure")

    parse = sub.add_parser("parse", help="print the parsed replay model as json")
    parse.add_argument("replay_file", type=Path)
    parse.add_argument("--team", default=None, help="scope the model to one team id")

    sub.add_parser("contracts", help="audit the roll-type contract registry")
    return parser


def _read_replay(path: Path) -> bytes:
    return path.read_bytes()


def _run_analyze(args: argparse.Namespace) -> int:
    limits = default_limits().with_overrides(max_decoded_replay_chars=args.max_decoded_chars)
    try:
        report = analyze_replay_input(_read_replay(args.replay_file), limits=limits)
    except AnalysisIntegrityError as exc:
        print(f"[bbluck] {exc}", file=sys.stderr)
        if args.forensics_dir is not None:
            path = persist_forensic_artifact(exc.artifact, args.forensics_dir)
            print(f"[bbluck] forensic artifact written to {path}", file=sys.stderr)
        return EXIT_FAILURE

    if args.format == "json":
        print(to_json(report))
    else:
        print(render_text_report(report))

    if args.export_dir is not None:
        outputs = LuckEventExporter().export(report, args.export_dir)
        print("Exported datasets:", file=sys.stderr)
        for path in outputs:
            print(f"- {path}", file=sys.stderr)
    return EXIT_OK


def _run_parse(args: argparse.Namespace) -> int:
    replay = parse_replay_input(_read_replay(args.replay_file), team_id=args.team)
    print(to_json(replay))
    return EXIT_OK


def _run_contracts() -> int:
    report = RollContractAuditor().run()
    print(f"Contract audit {report.scope}:")
    for check in report.checks:
        print(f"- [{'ok' if check.passed else 'FAIL'}] {check.check_id}: {check.description} ({check.evidence})")
    return EXIT_OK if report.passed else EXIT_FAILURE


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    configure_logging(args.log_level)
    try:
        if args.command == "analyze":
            return _run_analyze(args)
        if args.command == "parse":
            return _run_parse(args)
        return _run_contracts()
    except ReplayValidationError as exc:
        print(f"[bbluck] invalid replay: {exc}", file=sys.stderr)
        return EXIT_INVALID_REPLAY
    except OSError as exc:
        print(f"[bbluck] cannot read replay: {exc}", file=sys.stderr)
        return EXIT_FAILURE


if __name__ == "__main__":
    sys.exit(main())
