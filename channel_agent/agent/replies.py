"""Affirmative / negative reply matching for pending confirmations."""

from __future__ import annotations

import re
from enum import Enum

AFFIRMATIVE_PHRASES: frozenset[str] = frozenset(
    {
        "yes",
        "y",
        "yeah",
        "yep",
        "yup",
        "ok",
        "okay",
        "confirm",
        "confirmed",
        "approve",
        "approved",
        "proceed",
        "go ahead",
        "do it",
    }
)

NEGATIVE_PHRASES: frozenset[str] = frozenset(
    {
        "no",
        "n",
        "nope",
        "nah",
        "cancel",
        "stop",
        "abort",
        "don't",
        "dont",
        "never mind",
        "nevermind",
    }
)

# Any of these turn an otherwise affirmative reply into a hesitant one.
HESITANT_WORDS: frozenset[str] = frozenset(
    {
        "not",
        "isn't",
        "isnt",
        "can't",
        "cant",
        "won't",
        "wont",
        "unsure",
        "maybe",
        "wait",
        "hold",
    }
)

_TOKEN_RE = re.compile(r"[a-z0-9']+")


class ReplyKind(str, Enum):
    AFFIRMATIVE = "affirmative"
    NEGATIVE = "negative"
    UNCLEAR = "unclear"


def tokenize(text: str) -> list[str]:
    return _TOKEN_RE.findall(text.lower().replace("’", "'"))


def _contains_phrase(tokens: list[str], phrase: str) -> bool:
    words = phrase.split()
    width = len(words)
    return any(tokens[i : i + width] == words for i in range(len(tokens) - width + 1))


def _matches_any(tokens: list[str], phrases: frozenset[str]) -> bool:
    return any(_contains_phrase(tokens, phrase) for phrase in phrases)


def classify_reply(text: str) -> ReplyKind:
    """Match whole words/phrases only; a reply matching both sets is unclear.

    A question or a hedge ("not ok", "I'm not sure", "ok?") never counts as
    a yes, so it leaves the pending action in place.
    """
    tokens = tokenize(text)
    hesitant = "?" in text or any(token in HESITANT_WORDS for token in tokens)
    affirmative = not hesitant and _matches_any(tokens, AFFIRMATIVE_PHRASES)
    negative = _matches_any(tokens, NEGATIVE_PHRASES)
    if affirmative and not negative:
        return ReplyKind.AFFIRMATIVE
    if negative and not affirmative:
        return ReplyKind.NEGATIVE
    return ReplyKind.UNCLEAR


def is_bare_reply(text: str) -> bool:
    """True when the whole message is just a yes/no phrase, e.g. "ok!" or "go ahead"."""
    normalized = " ".join(tokenize(text))
    return normalized in AFFIRMATIVE_PHRASES or normalized in NEGATIVE_PHRASES
