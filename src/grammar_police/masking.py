"""
Protected-word masking for Grammar Police.

Occurrences of user-protected words are swapped for opaque tokens before text is
sent to a language model, and swapped back afterwards, so the model cannot
"correct" names, jargon or product spellings.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Pattern, Sequence, Tuple

from grammar_police.words import ProtectedWord

__all__ = [
    "TOKEN_PREFIX",
    "TOKEN_SUFFIX",
    "MaskingResult",
    "make_token",
    "token_index",
    "mask",
    "unmask",
    "validate_no_collisions",
    "detect_tokens",
]

logger = logging.getLogger(__name__)

TOKEN_PREFIX = "__CWORD_"
TOKEN_SUFFIX = "__"

TOKEN_PATTERN = re.compile(re.escape(TOKEN_PREFIX) + r"(\d+)" + re.escape(TOKEN_SUFFIX))


@dataclass(frozen=True)
class MaskingResult:
    """Masked text plus everything needed to undo the masking."""

    masked_text: str
    mapping: List[Tuple[str, str]] = field(default_factory=list)
    tokens_used_in_order: List[str] = field(default_factory=list)

    @property
    def token_count(self) -> int:
        """Number of tokens inserted."""
        return len(self.mapping)


def make_token(index: int) -> str:
    """Build the token for the given index."""
    return f"{TOKEN_PREFIX}{index}{TOKEN_SUFFIX}"


def token_index(token: str) -> Optional[int]:
    """Return the index encoded in a token, or None if it is not token-shaped."""
    match = TOKEN_PATTERN.fullmatch(token)
    if match is None:
        return None
    return int(match.group(1))


def _build_matcher(text: str, case_sensitive: bool, whole_word_only: bool) -> Pattern[str]:
    """Compile the matcher for one protected word."""
    pattern = re.escape(text)
    if whole_word_only:
        # Lookarounds instead of \b so words starting or ending in punctuation still anchor
        pattern = rf"(?<!\w){pattern}(?!\w)"
    flags = 0 if case_sensitive else re.IGNORECASE
    return re.compile(pattern, flags)


def _overlaps_token(start: int, end: int, token_spans: List[Tuple[int, int]]) -> bool:
    return any(start < span_end and span_start < end for span_start, span_end in token_spans)


def mask(text: str, protected_words: Sequence[ProtectedWord]) -> MaskingResult:
    """Replace every protected-word occurrence in ``text`` with a unique token.

    Words are applied longest first so a protected phrase wins over a shorter
    protected word it contains. Each word scans the partially masked text left
    by the previous ones; matches that would cut into an existing token are
    skipped. Matches of one word are replaced back to front so earlier offsets
    stay valid.
    """
    if not text or not protected_words:
        return MaskingResult(masked_text=text)

    masked_text = text
    mapping: List[Tuple[str, str]] = []
    tokens_used: List[str] = []
    token_counter = 0
    matchers: Dict[Tuple[str, bool, bool], Pattern[str]] = {}

    # Python's sort is stable, so equal-length words keep their configured order
    ordered_words = sorted(
        (word for word in protected_words if word.text),
        key=lambda word: len(word.text),
        reverse=True,
    )

    for word in ordered_words:
        key = (word.text, word.case_sensitive, word.whole_word_only)
        matcher = matchers.get(key)
        if matcher is None:
            matcher = _build_matcher(*key)
            matchers[key] = matcher

        token_spans = [m.span() for m in TOKEN_PATTERN.finditer(masked_text)]
        matches = [
            m for m in matcher.finditer(masked_text) if not _overlaps_token(m.start(), m.end(), token_spans)
        ]

        for match in reversed(matches):
            original = match.group(0)
            token = make_token(token_counter)
            mapping.append((token, original))
            tokens_used.append(original)
            masked_text = masked_text[: match.start()] + token + masked_text[match.end() :]
            token_counter += 1

    if mapping:
        logger.debug("Masked %d protected word occurrence(s)", len(mapping))

    return MaskingResult(masked_text=masked_text, mapping=mapping, tokens_used_in_order=tokens_used)


def unmask(masked_text: str, mapping: Sequence[Tuple[str, str]]) -> str:
    """Swap tokens back to the substrings they stood in for.

    Substitution is a single left-to-right pass over ``masked_text``, so a
    restored substring that happens to look like a later token is never
    substituted again. Tokens with no mapping entry, e.g. ones the model
    invented, are left as they are.
    """
    if not masked_text or not mapping:
        return masked_text

    originals = dict(sorted(mapping, key=lambda pair: token_index(pair[0]) or 0))
    missing: List[str] = []

    def _restore(match: "re.Match[str]") -> str:
        token = match.group(0)
        original = originals.get(token)
        if original is None:
            missing.append(token)
            return token
        return original

    unmasked_text = TOKEN_PATTERN.sub(_restore, masked_text)

    if missing:
        logger.warning("Left %d unknown token(s) in place: %s", len(missing), ", ".join(missing))
    logger.debug("Unmasked %d token(s)", len(mapping))

    return unmasked_text


def validate_no_collisions(text: str) -> bool:
    """Return False if ``text`` already contains something shaped like a token."""
    return TOKEN_PATTERN.search(text) is None


def detect_tokens(text: str) -> List[str]:
    """Return every token-shaped substring of ``text`` in order of appearance."""
    return [match.group(0) for match in TOKEN_PATTERN.finditer(text)]
