"""Compile simplified curriculum documents into Socratic conversation flows."""

from __future__ import annotations

import logging
from typing import Any, Union

from tutorflow.models import (
    ConversationFlow,
    CurriculumDocument,
    CurriculumPath,
    State,
    Transition,
)

log = logging.getLogger(__name__)

HINT_PROMPT = "Translate each phrase into +, -, ×, or ÷ with the letter."
REFLECT_PROMPT = "What pattern did you use to turn words into algebra?"
DEFAULT_SUMMARY = (
    "You represented unknowns with letters and formed expressions like 3p+2 and 2n+5."
)
CHECKPOINT_REF = "checkpoint_1"
FLOW_SUFFIX = "flows/main"


def as_document(raw: Union[CurriculumDocument, dict]) -> CurriculumDocument:
    if isinstance(raw, CurriculumDocument):
        return raw
    return CurriculumDocument.model_validate(raw if isinstance(raw, dict) else {})


def build_flow(raw: Union[CurriculumDocument, dict]) -> ConversationFlow:
    """Build the probe -> hint -> checkpoint -> reflect -> summary script.

    Probe ids follow array position in `step_probes` (probe{idx+2}), so an
    empty probe leaves a gap in the numbering. Every `stuck` edge and the
    checkpoint's `wrong` edge lead into the single shared `hint1` state.
    """
    doc = as_document(raw)
    states: list[State] = []
    transitions: list[Transition] = []

    def edge(src: str, on: str, dst: str) -> None:
        transitions.append(Transition(from_=src, on=on, to=dst))

    states.append(State(id="start", intent="start"))

    if doc.first_probe:
        states.append(State(id="probe1", intent="ask_probe", prompt=doc.first_probe))
        edge("start", "answered", "probe1")
        last_probe_id = "probe1"
    else:
        edge("start", "answered", "checkpoint")
        last_probe_id = "start"

    for idx, step in enumerate(doc.step_probes):
        if not step.probe:
            continue
        probe_id = f"probe{idx + 2}"
        states.append(State(id=probe_id, intent="ask_probe", prompt=step.probe))
        edge(last_probe_id, "good_answer", probe_id)
        edge(last_probe_id, "stuck", "hint1")
        edge("hint1", "answered", probe_id)
        last_probe_id = probe_id

    states.append(State(id="hint1", intent="give_hint", prompt=HINT_PROMPT))

    states.append(State(id="checkpoint", intent="checkpoint", checkpoint_ref=CHECKPOINT_REF))
    edge(last_probe_id, "good_answer", "checkpoint")
    edge("hint1", "answered", "checkpoint")
    edge("checkpoint", "correct", "reflect")
    edge("checkpoint", "wrong", "hint1")

    summary = doc.summary_templates[0] if doc.summary_templates else DEFAULT_SUMMARY
    states.append(State(id="reflect", intent="reflect", prompt=REFLECT_PROMPT))
    states.append(State(id="summary", intent="summarize", prompt=summary))
    edge("reflect", "next", "summary")

    log.debug(f"Built flow: {len(states)} states, {len(transitions)} transitions")
    return ConversationFlow(states=states, transitions=transitions)


def curriculum_path_to_topic_key(path: CurriculumPath) -> str:
    """primary-6/mathematics/algebra/unknown-letter -> primary_6_mathematics_algebra_unknown_letter"""
    key = f"{path.grade}_{path.subject}_{path.topic}_{path.subtopic}"
    return key.replace("-", "_")


def topic_key_to_curriculum_path(topic_key: str) -> CurriculumPath:
    """Best-effort inverse of curriculum_path_to_topic_key.

    Hyphens and underscores collapse into the same key, so the split is a
    guess: the first three parts are grade/subject/topic, the rest is the
    subtopic.
    """
    if "_" in topic_key:
        parts = topic_key.split("_")
        if len(parts) >= 4:
            return CurriculumPath(
                grade=parts[0],
                subject=parts[1],
                topic=parts[2],
                subtopic="-".join(parts[3:]),
            )
        if len(parts) == 2:
            return CurriculumPath(
                grade="primary-6",
                subject="mathematics",
                topic=parts[0],
                subtopic=parts[1],
            )
    return CurriculumPath(
        grade="primary-6",
        subject="mathematics",
        topic="algebra",
        subtopic=topic_key.replace("_", "-"),
    )


def subtopic_doc_path(path: CurriculumPath) -> str:
    return f"curriculum/{curriculum_path_to_topic_key(path)}"


def flow_doc_path(path: CurriculumPath) -> str:
    return f"{subtopic_doc_path(path)}/{FLOW_SUFFIX}"


def to_subtopic_content(raw: Union[CurriculumDocument, dict], path: CurriculumPath) -> dict[str, Any]:
    """Expand a simplified document into the full subtopic content shape."""
    doc = as_document(raw)

    objectives = [{"id": "obj1", "description": doc.objective}] if doc.objective else []

    ladder = []
    if doc.first_probe:
        ladder.append({"level": "L0", "type": "probe", "prompt": doc.first_probe})
    for i, step in enumerate(doc.step_probes):
        if step.probe:
            ladder.append({"level": "L1" if i < 2 else "L2", "type": "probe", "prompt": step.probe})

    item_bank = [
        {
            "id": f"qc_{i + 1}",
            "type": "word_problem",
            "difficulty": qc.difficulty or "E",
            "stem": qc.prompt,
            "answer": qc.answer,
            "worked": [],
            "conceptTags": [],
        }
        for i, qc in enumerate(doc.quick_checks)
    ]

    extra = doc.model_extra or {}
    metadata = doc.metadata or {
        "name": extra.get("name") or path.subtopic.replace("-", " "),
        "description": extra.get("intro_blurb", ""),
        "difficulty": "M",
        "estimatedTime": 20,
        "conceptTags": [],
    }

    return {
        "id": extra.get("id") or path.subtopic,
        "path": path.model_dump(),
        "metadata": metadata,
        "objectives": objectives,
        "prerequisites": [],
        "misconceptions": [],
        "socraticLadder": ladder,
        "conversationFlow": build_flow(doc).to_document(),
        "itemBank": item_bank,
        "checkpoints": [],
    }
