"""Tests for conversation flow construction."""

import pytest
from pydantic import ValidationError

from tutorflow.flow_builder import (
    DEFAULT_SUMMARY,
    HINT_PROMPT,
    build_flow,
    curriculum_path_to_topic_key,
    flow_doc_path,
    subtopic_doc_path,
    to_subtopic_content,
    topic_key_to_curriculum_path,
)
from tutorflow.models import CurriculumDocument, CurriculumPath

UNKNOWN_LETTER = {
    "path": {
        "grade": "primary-6",
        "subject": "mathematics",
        "topic": "algebra",
        "subtopic": "unknown-letter",
    },
    "objective": "Use letters to represent unknown numbers.",
    "first_probe": "If p stands for pens, what does 3p mean?",
    "step_probes": [
        {"probe": "How would you write 2 more than 3p?", "concept_tag": "expression"},
        {"probe": ""},
        {"probe": "What does 2n + 5 mean?", "concept_tag": "expression"},
    ],
    "summary_templates": ["You turned words into algebra."],
    "quick_checks": [{"prompt": "Write 4 less than k.", "answer": "k - 4"}],
}


def edges(flow):
    return [(t.from_, t.on, t.to) for t in flow.transitions]


def test_build_flow_full_document_states_and_edges():
    flow = build_flow(UNKNOWN_LETTER)

    assert [s.id for s in flow.states] == [
        "start",
        "probe1",
        "probe2",
        "probe4",
        "hint1",
        "checkpoint",
        "reflect",
        "summary",
    ]
    assert edges(flow) == [
        ("start", "answered", "probe1"),
        ("probe1", "good_answer", "probe2"),
        ("probe1", "stuck", "hint1"),
        ("hint1", "answered", "probe2"),
        ("probe2", "good_answer", "probe4"),
        ("probe2", "stuck", "hint1"),
        ("hint1", "answered", "probe4"),
        ("probe4", "good_answer", "checkpoint"),
        ("hint1", "answered", "checkpoint"),
        ("checkpoint", "correct", "reflect"),
        ("checkpoint", "wrong", "hint1"),
        ("reflect", "next", "summary"),
    ]
    assert flow.validate_graph() == []


def test_build_flow_prompts_and_checkpoint_ref():
    flow = build_flow(UNKNOWN_LETTER)

    assert flow.state("probe1").prompt == UNKNOWN_LETTER["first_probe"]
    assert flow.state("probe4").prompt == "What does 2n + 5 mean?"
    assert flow.state("hint1").intent == "give_hint"
    assert flow.state("hint1").prompt == HINT_PROMPT
    assert flow.state("checkpoint").checkpoint_ref == "checkpoint_1"
    assert flow.state("summary").intent == "summarize"
    assert flow.state("summary").prompt == "You turned words into algebra."
    assert flow.outgoing("summary") == []


def test_build_flow_minimal_document():
    flow = build_flow({})

    assert [s.id for s in flow.states] == ["start", "hint1", "checkpoint", "reflect", "summary"]
    assert ("start", "answered", "checkpoint") in edges(flow)
    assert [e for e in edges(flow) if e[0] == "hint1"] == [("hint1", "answered", "checkpoint")]
    assert flow.state("summary").prompt == DEFAULT_SUMMARY
    assert flow.validate_graph() == []


def test_build_flow_step_probes_without_first_probe_start_from_start():
    flow = build_flow({"step_probes": [{"probe": "What could n be?"}]})

    assert "probe1" not in [s.id for s in flow.states]
    assert ("start", "answered", "checkpoint") in edges(flow)
    assert ("start", "good_answer", "probe2") in edges(flow)
    assert ("start", "stuck", "hint1") in edges(flow)
    assert ("probe2", "good_answer", "checkpoint") in edges(flow)


def test_build_flow_counts_only_non_empty_probes():
    probes = [{"probe": "A?"}, {}, {"probe": None}, {"probe": "B?"}, {"probe": "C?"}]
    flow = build_flow({"first_probe": "Start?", "step_probes": probes})

    probe_ids = [s.id for s in flow.states if s.intent == "ask_probe" and s.id != "probe1"]
    assert probe_ids == ["probe2", "probe5", "probe6"]
    previous = "probe1"
    for probe_id in probe_ids:
        assert (previous, "good_answer", probe_id) in edges(flow)
        assert ("hint1", "answered", probe_id) in edges(flow)
        previous = probe_id


def test_build_flow_emits_single_hint_state():
    probes = [{"probe": f"Question {i}?"} for i in range(6)]
    flow = build_flow({"first_probe": "Start?", "step_probes": probes})

    assert [s.id for s in flow.states].count("hint1") == 1
    assert len([e for e in edges(flow) if e[1] == "stuck"]) == 6
    assert all(e[2] == "hint1" for e in edges(flow) if e[1] == "stuck")


def test_checkpoint_wrong_then_answered_returns_to_checkpoint():
    flow = build_flow(UNKNOWN_LETTER)

    hint = flow.next_state("checkpoint", "wrong")
    assert hint == "hint1"
    assert flow.next_state(hint, "answered") == "checkpoint"


def test_build_flow_tolerates_malformed_optional_fields():
    flow = build_flow(
        {"step_probes": "not a list", "summary_templates": "nope", "quick_checks": 3}
    )

    assert [s.id for s in flow.states] == ["start", "hint1", "checkpoint", "reflect", "summary"]
    assert flow.state("summary").prompt == DEFAULT_SUMMARY


def test_build_flow_non_object_probe_keeps_array_position():
    flow = build_flow({"first_probe": "Start?", "step_probes": [None, 3, {"probe": "Q?"}]})

    assert flow.state("probe4").prompt == "Q?"


def test_build_flow_tolerates_wrongly_typed_fields():
    path = {"grade": 6, "subject": "mathematics", "topic": "algebra", "subtopic": ["x"]}
    flow = build_flow(
        {
            "path": path,
            "metadata": "draft",
            "objective": {"text": "Add"},
            "first_probe": 5,
            "step_probes": [{"probe": 42}, {"probe": None}, {"probe": ["Q?"]}, {"probe": "R?"}],
        }
    )

    assert flow.state("probe1").prompt == "5"
    assert flow.state("probe2").prompt == "42"
    assert flow.state("probe5").prompt == "R?"
    assert flow.state("probe3") is None
    assert flow.validate_graph() == []


def test_wrongly_typed_path_and_metadata_read_as_absent():
    doc = CurriculumDocument.model_validate(
        {"path": {"grade": 6, "subject": None}, "metadata": "draft", "first_probe": None}
    )

    assert doc.path == CurriculumPath(grade="6")
    assert doc.path.is_complete() is False
    assert doc.metadata is None
    assert doc.first_probe is None
    assert CurriculumDocument.model_validate({"path": "p6/maths"}).path is None


def test_build_flow_non_object_document_is_empty():
    assert build_flow(["not", "a", "document"]) == build_flow({})
    assert build_flow(None) == build_flow({})


def test_built_flow_cannot_be_mutated():
    flow = build_flow(UNKNOWN_LETTER)

    assert isinstance(flow.states, tuple)
    assert isinstance(flow.transitions, tuple)
    with pytest.raises(AttributeError):
        flow.states.append(flow.states[0])
    with pytest.raises(ValidationError):
        flow.states = ()


def test_build_flow_accepts_model_and_is_deterministic():
    doc = CurriculumDocument.model_validate(UNKNOWN_LETTER)

    assert build_flow(doc) == build_flow(UNKNOWN_LETTER)


def test_flow_document_uses_stored_field_names():
    document = build_flow(UNKNOWN_LETTER).to_document()

    assert document["transitions"][0] == {"from": "start", "on": "answered", "to": "probe1"}
    checkpoint = next(s for s in document["states"] if s["id"] == "checkpoint")
    assert checkpoint == {"id": "checkpoint", "intent": "checkpoint", "checkpointRef": "checkpoint_1"}
    start = document["states"][0]
    assert start == {"id": "start", "intent": "start"}


def test_validate_graph_reports_dangling_edges():
    flow = build_flow({}).model_copy(update={"states": []})

    problems = flow.validate_graph()

    assert "missing start state" in problems
    assert "transition to unknown state 'checkpoint'" in problems


def test_topic_key_and_document_paths():
    path = CurriculumPath(**UNKNOWN_LETTER["path"])

    assert curriculum_path_to_topic_key(path) == "primary_6_mathematics_algebra_unknown_letter"
    assert subtopic_doc_path(path) == "curriculum/primary_6_mathematics_algebra_unknown_letter"
    assert flow_doc_path(path) == "curriculum/primary_6_mathematics_algebra_unknown_letter/flows/main"


def test_topic_key_to_curriculum_path_formats():
    full = topic_key_to_curriculum_path("p6_mathematics_fractions_dividing_by_whole")
    assert full == CurriculumPath(
        grade="p6", subject="mathematics", topic="fractions", subtopic="dividing-by-whole"
    )

    short = topic_key_to_curriculum_path("fractions_division")
    assert short.grade == "primary-6"
    assert short.topic == "fractions"
    assert short.subtopic == "division"

    bare = topic_key_to_curriculum_path("ratio")
    assert bare.topic == "algebra"
    assert bare.subtopic == "ratio"


def test_to_subtopic_content_from_simplified():
    path = CurriculumPath(**UNKNOWN_LETTER["path"])

    content = to_subtopic_content(UNKNOWN_LETTER, path)

    assert content["id"] == "unknown-letter"
    assert content["objectives"] == [
        {"id": "obj1", "description": "Use letters to represent unknown numbers."}
    ]
    assert [rung["level"] for rung in content["socraticLadder"]] == ["L0", "L1", "L2"]
    assert content["itemBank"][0]["id"] == "qc_1"
    assert content["itemBank"][0]["difficulty"] == "E"
    assert content["itemBank"][0]["answer"] == "k - 4"
    assert content["metadata"]["name"] == "unknown letter"
    assert content["conversationFlow"] == build_flow(UNKNOWN_LETTER).to_document()
