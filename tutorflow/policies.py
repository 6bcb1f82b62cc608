"""
Rule batteries for the tutor safety filter.

Each battery maps a violation kind to the patterns that trigger it. All
matching is case-insensitive substring/regex matching, in English.
"""

import re
from re import Pattern
from typing import Dict, List

# Violation kinds, in the order checks run and violations are reported.
DIRECT_ANSWER = "direct_answer"
TOO_COMPLEX = "too_complex"
OFF_TOPIC = "off_topic"
JUDGMENTAL = "judgmental"
MULTIPLE_QUESTIONS = "multiple_questions"
TOO_LONG = "too_long"

CHECK_ORDER = [
    DIRECT_ANSWER,
    TOO_COMPLEX,
    OFF_TOPIC,
    JUDGMENTAL,
    MULTIPLE_QUESTIONS,
    TOO_LONG,
]

VIOLATION_MESSAGES: Dict[str, str] = {
    DIRECT_ANSWER: "Contains direct answer or solution",
    TOO_COMPLEX: "Response too complex for Primary 6 level",
    OFF_TOPIC: "Content not related to Primary 6 mathematics",
    JUDGMENTAL: "Contains judgmental or discouraging language",
    MULTIPLE_QUESTIONS: "Contains multiple questions - should be one per turn",
    TOO_LONG: "Response too long - should be under 6 lines",
}


def _compile(patterns: List[str]) -> List[Pattern]:
    return [re.compile(p, re.IGNORECASE) for p in patterns]


def _terms(words: List[str]) -> List[Pattern]:
    # Plain substrings, so "art" also hits "part".
    return _compile([re.escape(w) for w in words])


PATTERN_BATTERIES: Dict[str, List[Pattern]] = {
    DIRECT_ANSWER: _compile([
        # Mathematical answers
        r"the answer is",
        r"the solution is",
        r"equals? \d+",
        r"= \d+",
        r"is \d+",
        # Direct instructions
        r"just (multiply|divide|add|subtract)",
        r"simply (multiply|divide|add|subtract)",
        r"you need to (multiply|divide|add|subtract)",
        # Formula reveals
        r"the formula is",
        r"use this formula",
        # Worked solutions
        r"first.*then.*finally",
        r"step 1.*step 2.*step 3",
    ]),
    TOO_COMPLEX: _terms([
        "algorithm", "coefficient", "polynomial", "derivative", "integral",
        "logarithm", "exponential", "quadratic", "simultaneous equations",
        "trigonometry", "calculus", "differentiation", "integration",
    ]),
    OFF_TOPIC: _terms([
        "physics", "chemistry", "biology", "history", "geography",
        "literature", "english", "art", "music", "sports",
    ]),
    JUDGMENTAL: _compile([
        r"that's wrong",
        r"incorrect",
        r"you should know",
        r"obviously",
        r"clearly",
        r"simple",
        r"easy",
        r"just",  # as in "just do this"
        r"stupid",
        r"silly",
        r"bad",
    ]),
}

MAX_QUESTIONS = 1
MAX_LINES = 6
MAX_WORDS = 50

# Socratic rewrites for a leaked answer: (trigger substring, replacement).
# First trigger found in the lowercased message wins.
SOCRATIC_REWRITES = [
    ("the answer is", "What do you think the answer might be? Can you walk me through your thinking?"),
    ("just multiply", "What operation do you think we should use here? Why?"),
    ("the formula is", "Can you think of what formula might help us here?"),
]
DEFAULT_REWRITE = "What's your thinking on this problem? What would you try first?"


# Student input
MAX_INPUT_CHARS = 500
ELLIPSIS = "..."
STRIPPED_INPUT_CHARS = re.compile(r"[<>{}]")

FRUSTRATION_PHRASES = [
    # Direct expressions of frustration
    "i don't know",
    "i don't get it",
    "i'm confused",
    "this is confusing",
    "this is hard",
    "this is difficult",
    "i'm stuck",
    "i give up",
    "i quit",
    "help me",
    "i need help",
    # Emotional
    "frustrated",
    "annoying",
    "stupid",
    "dumb",
    "hate this",
    "boring",
    # Disengagement
    "idk",
    "dunno",
    "whatever",
    "ok",
    "fine",
]
SHORT_REPLY_CHARS = 3
CONFUSED_QUESTION_MARKS = 2


FALLBACK_TEMPLATES = [
    "I notice you're working on {topic}. What part of this problem would you like to tackle first?",
    "Let's break this down step by step. What do you think the question is asking you to find?",
    "That's a good question about {topic}. What have you tried so far?",
    "I can help you think through this. What information do we have in the problem?",
    "Let's approach this together. What's the first thing you notice about this problem?",
]

NON_EDUCATIONAL_PATTERNS: List[Pattern] = _compile([
    r"personal information",
    r"contact details",
    r"social media",
    r"games?",
    r"entertainment",
    r"jokes?",
    r"stories",
])
