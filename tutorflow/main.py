#!/usr/bin/env python3
"""Tutor flow tools - Command line entry point.

Usage:
    python -m tutorflow.main seed curriculum/unknown-letter.json --flow
    python -m tutorflow.main seed FILE --store firestore   # uses FIRESTORE_* settings
    python -m tutorflow.main flow FILE                      # print compiled flow JSON
    python -m tutorflow.main check "The answer is 42" --intent give_hint
    python -m tutorflow.main sanitize "  idk   <b>??</b> "
    python -m tutorflow.main walk FILE s1 answered "ready"    # one turn of session s1
"""

import argparse
import json
import logging
import sys
from pathlib import Path

from tutorflow.config import settings
from tutorflow.flow_builder import as_document, build_flow, curriculum_path_to_topic_key
from tutorflow.safety import SafetyFilter
from tutorflow.seeder import CurriculumError, load_curriculum, upsert_from_file
from tutorflow.services.document_store import DocumentStoreError, get_document_store
from tutorflow.session import FlowError, FlowSession

log = logging.getLogger(__name__)


def store_for(args: argparse.Namespace):
    config = settings.model_copy(update={"DOCUMENT_STORE": args.store}) if args.store else settings
    return get_document_store(config)


def cmd_seed(args: argparse.Namespace) -> int:
    store = store_for(args)
    result = upsert_from_file(args.file, store, seed_flow=args.flow)
    print(result["path"])
    if result["flow_path"]:
        print(result["flow_path"])
    return 0


def cmd_flow(args: argparse.Namespace) -> int:
    flow = build_flow(load_curriculum(args.file))
    problems = flow.validate_graph()
    for problem in problems:
        log.warning(f"Flow problem: {problem}")
    print(json.dumps(flow.to_document(), indent=2, ensure_ascii=False))
    return 1 if problems else 0


def cmd_check(args: argparse.Namespace) -> int:
    result = SafetyFilter().check(args.message, args.intent)
    print(json.dumps(result.model_dump(by_alias=True, exclude_none=True), indent=2))
    return 0 if result.passed else 1


def cmd_sanitize(args: argparse.Namespace) -> int:
    text = SafetyFilter.sanitize_student_input(args.text)
    print(text)
    print(f"frustrated={SafetyFilter.detect_frustration(text)}")
    return 0


def cmd_walk(args: argparse.Namespace) -> int:
    doc = as_document(load_curriculum(args.file))
    if doc.path is not None and doc.path.is_complete():
        topic_key = curriculum_path_to_topic_key(doc.path)
    else:
        topic_key = Path(args.file).stem.replace("-", "_")
    walk = FlowSession.resume(build_flow(doc), args.session_id, topic_key, store=store_for(args))
    turn = walk.take_turn(args.message, args.event)
    print(f"{turn.state_id}: {turn.tutor_message}")
    if walk.completed:
        print("completed")
    return 0


def add_store_option(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--store",
        choices=["json", "firestore"],
        default=None,
        help=f"Document store (default: {settings.DOCUMENT_STORE})",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Socratic tutor flow and safety tools")
    sub = parser.add_subparsers(dest="command", required=True)

    seed = sub.add_parser("seed", help="Write a curriculum document (and its flow) to the store")
    seed.add_argument("file")
    seed.add_argument("--flow", action="store_true", help="Also compile and write flows/main")
    add_store_option(seed)
    seed.set_defaults(func=cmd_seed)

    flow = sub.add_parser("flow", help="Print the compiled conversation flow")
    flow.add_argument("file")
    flow.set_defaults(func=cmd_flow)

    check = sub.add_parser("check", help="Run the safety filter on a tutor message")
    check.add_argument("message")
    check.add_argument("--intent", default="ask_probe")
    check.set_defaults(func=cmd_check)

    sanitize = sub.add_parser("sanitize", help="Sanitize student input")
    sanitize.add_argument("text")
    sanitize.set_defaults(func=cmd_sanitize)

    walk = sub.add_parser("walk", help="Take one turn of a stored tutoring session")
    walk.add_argument("file")
    walk.add_argument("session_id")
    walk.add_argument("event", choices=["answered", "good_answer", "stuck", "correct", "wrong", "next"])
    walk.add_argument("message", nargs="?", default="")
    add_store_option(walk)
    walk.set_defaults(func=cmd_walk)

    return parser


def main(argv: list[str] | None = None) -> int:
    logging.basicConfig(level=settings.LOG_LEVEL, format="%(levelname)s: %(message)s")
    args = build_parser().parse_args(argv)
    try:
        return args.func(args)
    except (CurriculumError, DocumentStoreError, FlowError) as e:
        log.error(str(e))
        return 2


if __name__ == "__main__":
    sys.exit(main())
