"""Walks a ConversationFlow turn by turn and gates every tutor message through the safety filter."""

from __future__ import annotations

import logging
from typing import Optional

from tutorflow.models import ConversationFlow, SafetyCheckResult, State, TutorSession, TutorTurn
from tutorflow.safety import SafetyFilter, default_filter
from tutorflow.services.document_store import DocumentStore

log = logging.getLogger(__name__)

# Events a frustrated reply is redirected from, when the current state offers a `stuck` edge.
REDIRECTABLE_EVENTS = ("answered", "good_answer")


class FlowError(ValueError):
    """Flow cannot be walked (fails structural validation)."""


def session_doc_path(session_id: str) -> str:
    return f"sessions/{session_id}"


class FlowSession:
    """One student's position in a flow, plus the turn history.

    Not thread-safe: a session is owned by the request handling its turn.
    """

    def __init__(
        self,
        flow: ConversationFlow,
        session: TutorSession,
        store: Optional[DocumentStore] = None,
        safety: Optional[SafetyFilter] = None,
        topic: Optional[str] = None,
    ):
        problems = flow.validate_graph()
        if problems:
            raise FlowError(f"Invalid flow: {'; '.join(problems)}")
        if flow.state(session.current_state) is None:
            raise FlowError(f"Session state '{session.current_state}' is not in the flow")
        self.flow = flow
        self.session = session
        self.store = store
        self.safety = safety or default_filter
        self.topic = topic or session.topic_key.replace("_", " ")

    @classmethod
    def resume(
        cls,
        flow: ConversationFlow,
        session_id: str,
        topic_key: str,
        store: Optional[DocumentStore] = None,
        **kwargs,
    ) -> "FlowSession":
        """Load a stored session, or start a new one at `start`."""
        data = store.read(session_doc_path(session_id)) if store else None
        if data:
            session = TutorSession.model_validate(data)
            log.info(f"[{session_id}] Resumed at '{session.current_state}' ({len(session.turns)} turns)")
        else:
            session = TutorSession(session_id=session_id, topic_key=topic_key)
            log.info(f"[{session_id}] New session for {topic_key}")
        return cls(flow, session, store=store, **kwargs)

    @property
    def current(self) -> State:
        return self.flow.state(self.session.current_state)

    @property
    def completed(self) -> bool:
        return self.session.completed

    def advance(self, event: str) -> State:
        """Follow `event` from the current state. Unknown events leave the state unchanged."""
        src = self.session.current_state
        target = self._resolve(src, event)
        if target is None:
            log.warning(f"[{self.session.session_id}] No '{event}' transition from '{src}'")
            return self.current
        if self.flow.state(target).intent == "give_hint":
            self.session.return_to = src
        self.session.current_state = target
        if not self.flow.outgoing(target):
            self.session.completed = True
        log.debug(f"[{self.session.session_id}] {src} --{event}--> {target}")
        return self.current

    def _resolve(self, src: str, event: str) -> Optional[str]:
        # The shared hint has one exit per probe; pick the one continuing
        # from where the student got stuck.
        return_to = self.session.return_to
        if self.flow.state(src).intent == "give_hint" and return_to:
            targets = [t.to for t in self.flow.outgoing(src) if t.on == event]
            resume = self.flow.next_state(return_to, "good_answer")
            if resume in targets:
                return resume
            if return_to in targets:
                return return_to
        return self.flow.next_state(src, event)

    def deliver(self, message: str, intent: str) -> tuple[str, SafetyCheckResult]:
        """Return the text that may be shown to the student, and the check behind it.

        A rewrite from the check replaces the message; a failed check with no
        rewrite falls back to a generic Socratic redirect that passes the check.
        """
        result = self.safety.check(message, intent)
        if result.filtered_text:
            text = result.filtered_text
        elif not result.passed:
            text = self.safety.generate_checked_fallback(self.topic, intent)
        else:
            text = message
        if not result.passed:
            log.warning(f"[{self.session.session_id}] Tutor message blocked: {result.violations}")
        return text, result

    def prompt_for(self, state: State) -> str:
        """Tutor text for a state. States without a prompt (checkpoints) get a redirect."""
        return state.prompt or self.safety.generate_checked_fallback(self.topic, state.intent)

    def take_turn(self, student_message: str, event: str) -> TutorTurn:
        """Record a student reply, move along `event`, and produce the next tutor message.

        A frustrated reply takes the `stuck` edge instead, where one exists.
        """
        text = self.safety.sanitize_student_input(student_message)
        frustrated = self.safety.detect_frustration(text)
        src = self.session.current_state
        if frustrated:
            self.session.frustrated_turns += 1
            if event in REDIRECTABLE_EVENTS and self.flow.next_state(src, "stuck"):
                event = "stuck"

        state = self.advance(event)
        tutor_message, result = self.deliver(self.prompt_for(state), state.intent)

        turn = TutorTurn(
            turn_number=len(self.session.turns) + 1,
            student_message=text,
            tutor_message=tutor_message,
            state_id=state.id,
            event=event,
            frustrated=frustrated,
            violations=result.violations,
        )
        self.session.turns.append(turn)
        self.save()
        return turn

    def save(self) -> None:
        if self.store is not None:
            self.store.write(session_doc_path(self.session.session_id), self.session.model_dump())
