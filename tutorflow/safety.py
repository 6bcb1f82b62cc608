"""Rule-based safety checks for tutor messages and student input."""

from __future__ import annotations

import logging
import random
import re
from re import Pattern
from typing import Callable, Optional, Sequence

from tutorflow import policies
from tutorflow.models import SafetyCheckResult

log = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")


class SafetyFilter:
    """Checks a candidate tutor message against the pattern batteries.

    Stateless after construction; one instance can serve any number of
    concurrent turns.
    """

    def __init__(
        self,
        batteries: Optional[dict[str, list[Pattern]]] = None,
        choose: Callable[[Sequence[str]], str] = random.choice,
    ) -> None:
        self.batteries = batteries if batteries is not None else policies.PATTERN_BATTERIES
        self.choose = choose

    def check(self, message: str, intent: str) -> SafetyCheckResult:
        """Run every check and collect all violations, in fixed order.

        `filteredText` is only set when the direct-answer check fires.
        """
        violations: list[str] = []
        filtered_text = None

        for kind in policies.CHECK_ORDER:
            if self._violates(kind, message):
                violations.append(policies.VIOLATION_MESSAGES[kind])
                if kind == policies.DIRECT_ANSWER:
                    filtered_text = self.to_socratic_question(message)

        if violations:
            log.debug(f"[{intent}] {len(violations)} violation(s): {violations}")

        return SafetyCheckResult(
            passed=not violations,
            violations=violations,
            filtered_text=filtered_text,
        )

    def _violates(self, kind: str, message: str) -> bool:
        if kind == policies.MULTIPLE_QUESTIONS:
            return message.count("?") > policies.MAX_QUESTIONS
        if kind == policies.TOO_LONG:
            lines = len(message.split("\n"))
            words = len(message.split())
            return lines > policies.MAX_LINES or words > policies.MAX_WORDS
        return any(p.search(message) for p in self.batteries.get(kind, []))

    @staticmethod
    def to_socratic_question(message: str) -> str:
        """Canned question replacing a message that gives the answer away."""
        lowered = message.lower()
        for trigger, rewrite in policies.SOCRATIC_REWRITES:
            if trigger in lowered:
                return rewrite
        return policies.DEFAULT_REWRITE

    @staticmethod
    def sanitize_student_input(text: str) -> str:
        """Normalize incoming student text: collapse whitespace, drop <>{}, cap length."""
        # Strip first so removed characters never leave a double space behind.
        sanitized = policies.STRIPPED_INPUT_CHARS.sub("", text)
        sanitized = _WHITESPACE.sub(" ", sanitized.strip())
        if len(sanitized) > policies.MAX_INPUT_CHARS:
            sanitized = sanitized[: policies.MAX_INPUT_CHARS] + policies.ELLIPSIS
        return sanitized

    @staticmethod
    def detect_frustration(message: str) -> bool:
        lowered = message.lower()
        if any(phrase in lowered for phrase in policies.FRUSTRATION_PHRASES):
            return True
        if len(message.strip()) <= policies.SHORT_REPLY_CHARS:
            return True
        return message.count("?") >= policies.CONFUSED_QUESTION_MARKS

    def generate_safe_fallback(self, topic: str, student_message: str = "") -> str:
        """Pick a generic Socratic redirect for `topic`."""
        return self.choose(policies.FALLBACK_TEMPLATES).format(topic=topic)

    def generate_checked_fallback(self, topic: str, intent: str) -> str:
        """Pick a redirect for `topic` among those that pass check() themselves.

        Substring rules can reject a template ("art" in "part") or the topic
        text. When every candidate fails, any of them is used.
        """
        candidates = [t.format(topic=topic) for t in policies.FALLBACK_TEMPLATES]
        passing = [c for c in candidates if self.check(c, intent).passed]
        if not passing:
            log.warning(f"No fallback passes the filter for topic {topic!r}")
        return self.choose(passing or candidates)

    @staticmethod
    def is_educationally_appropriate(content: str) -> bool:
        return not any(p.search(content) for p in policies.NON_EDUCATIONAL_PATTERNS)


default_filter = SafetyFilter()


def check(message: str, intent: str) -> SafetyCheckResult:
    return default_filter.check(message, intent)


def sanitize_student_input(text: str) -> str:
    return SafetyFilter.sanitize_student_input(text)


def detect_frustration(message: str) -> bool:
    return SafetyFilter.detect_frustration(message)


def generate_safe_fallback(topic: str, student_message: str = "") -> str:
    return default_filter.generate_safe_fallback(topic, student_message)


def is_educationally_appropriate(content: str) -> bool:
    return SafetyFilter.is_educationally_appropriate(content)
