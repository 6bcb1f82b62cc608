"""Pydantic models for type safety."""

from typing import Any, List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

Intent = Literal["start", "ask_probe", "give_hint", "checkpoint", "reflect", "summarize"]
EventLabel = Literal["answered", "good_answer", "stuck", "correct", "wrong", "next"]


def _text_or_none(value: Any) -> Optional[str]:
    """Authored text: numbers read as their digits, other non-strings as absent."""
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return None


class CurriculumPath(BaseModel):
    """Where a subtopic lives in the curriculum tree."""
    grade: str = ""
    subject: str = ""
    topic: str = ""
    subtopic: str = ""

    @field_validator("grade", "subject", "topic", "subtopic", mode="before")
    @classmethod
    def _as_text(cls, value: Any) -> str:
        return _text_or_none(value) or ""

    def is_complete(self) -> bool:
        return all([self.grade, self.subject, self.topic, self.subtopic])


class StepProbe(BaseModel):
    model_config = ConfigDict(extra="allow")

    probe: Optional[str] = None
    concept_tag: Optional[str] = None

    @field_validator("probe", "concept_tag", mode="before")
    @classmethod
    def _as_text(cls, value: Any) -> Optional[str]:
        return _text_or_none(value)


class QuickCheck(BaseModel):
    model_config = ConfigDict(extra="allow")

    prompt: Optional[str] = None
    answer: Any = None
    difficulty: Optional[str] = None

    @field_validator("prompt", "difficulty", mode="before")
    @classmethod
    def _as_text(cls, value: Any) -> Optional[str]:
        return _text_or_none(value)


class CurriculumDocument(BaseModel):
    """Simplified curriculum JSON as authored. Every field is optional.

    Authored content is untrusted: a field of the wrong type reads as absent
    (or as its digits, for numeric text) instead of failing validation.
    """
    model_config = ConfigDict(extra="allow")

    path: Optional[CurriculumPath] = None
    first_probe: Optional[str] = None
    step_probes: List[StepProbe] = []
    summary_templates: List[str] = []
    quick_checks: List[QuickCheck] = []
    objective: Optional[str] = None
    metadata: Optional[dict] = None

    @field_validator("path", mode="before")
    @classmethod
    def _keep_path(cls, value: Any) -> Any:
        return value if isinstance(value, (dict, CurriculumPath)) else None

    @field_validator("metadata", mode="before")
    @classmethod
    def _keep_metadata(cls, value: Any) -> Optional[dict]:
        return value if isinstance(value, dict) else None

    @field_validator("first_probe", "objective", mode="before")
    @classmethod
    def _as_text(cls, value: Any) -> Optional[str]:
        return _text_or_none(value)

    @field_validator("step_probes", "quick_checks", mode="before")
    @classmethod
    def _keep_mappings(cls, value: Any) -> list:
        # A non-list degrades to "absent", a non-object entry to an empty one
        # (entries keep their array position).
        if not isinstance(value, list):
            return []
        return [item if isinstance(item, (dict, BaseModel)) else {} for item in value]

    @field_validator("summary_templates", mode="before")
    @classmethod
    def _keep_strings(cls, value: Any) -> list:
        if not isinstance(value, list):
            return []
        return [item for item in value if isinstance(item, str)]


class State(BaseModel):
    """One node of a ConversationFlow."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    intent: Intent
    prompt: Optional[str] = None
    checkpoint_ref: Optional[str] = Field(default=None, alias="checkpointRef")


class Transition(BaseModel):
    """Labeled edge: in state `from_`, event `on` moves the conversation to `to`."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    from_: str = Field(alias="from")
    on: EventLabel
    to: str


class ConversationFlow(BaseModel):
    """Finite state machine for one Socratic teaching script.

    Immutable: the model is frozen and states/transitions are stored as tuples.
    """
    model_config = ConfigDict(frozen=True)

    states: Tuple[State, ...] = ()
    transitions: Tuple[Transition, ...] = ()

    def state(self, state_id: str) -> Optional[State]:
        for state in self.states:
            if state.id == state_id:
                return state
        return None

    def outgoing(self, state_id: str) -> List[Transition]:
        return [t for t in self.transitions if t.from_ == state_id]

    def next_state(self, state_id: str, event: str) -> Optional[str]:
        """Target of the last edge leaving `state_id` on `event`, or None.

        hint1 carries one `answered` edge per probe plus one to the checkpoint;
        the most recently added edge wins.
        """
        target = None
        for t in self.transitions:
            if t.from_ == state_id and t.on == event:
                target = t.to
        return target

    def validate_graph(self) -> List[str]:
        """Return a list of structural problems (empty when the flow is well formed)."""
        problems: List[str] = []
        ids = [s.id for s in self.states]
        known = set(ids)
        if len(known) != len(ids):
            problems.append("duplicate state ids")
        if "start" not in known:
            problems.append("missing start state")
        elif not self.outgoing("start"):
            problems.append("start state has no outgoing transition")
        for t in self.transitions:
            if t.from_ not in known:
                problems.append(f"transition from unknown state '{t.from_}'")
            if t.to not in known:
                problems.append(f"transition to unknown state '{t.to}'")
        return problems

    def to_document(self) -> dict:
        """JSON-ready dict in the stored shape (`from`, `checkpointRef`)."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class SafetyCheckResult(BaseModel):
    """Outcome of checking one candidate tutor message."""
    model_config = ConfigDict(populate_by_name=True)

    passed: bool
    violations: List[str] = []
    filtered_text: Optional[str] = Field(default=None, alias="filteredText")


class TutorTurn(BaseModel):
    turn_number: int
    student_message: str
    tutor_message: str
    state_id: str
    event: Optional[str] = None
    frustrated: bool = False
    violations: List[str] = []


class TutorSession(BaseModel):
    """Session state for one student walking one flow."""
    session_id: str
    topic_key: str
    current_state: str = "start"
    turns: List[TutorTurn] = []
    frustrated_turns: int = 0
    completed: bool = False
    # State the student left when entering a hint, so the hint can lead back there.
    return_to: Optional[str] = None
