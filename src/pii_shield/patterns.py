"""Pattern matcher — labeled regexes for structured PII.

Each pattern runs independently over the full text.  Matches from
different kinds are NOT deduplicated here: a ZIP+4 like "12345-6789"
also looks like an SSN and both matches are returned.  Overlap handling
is the rewriter's call (see rewriter.resolve_overlaps).
"""

from __future__ import annotations
import re

from .types import PIIKind, PIIMatch

# kind → (compiled_regex, confidence), iterated in declared order
_PATTERNS: dict[PIIKind, tuple[re.Pattern, float]] = {
    PIIKind.EMAIL: (re.compile(
        r"\b[A-Za-z0-9._%+\-]+@[A-Za-z0-9.\-]+\.[A-Za-z]{2,}\b"
    ), 0.95),

    # ###-##-#### with optional dashes
    PIIKind.SSN: (re.compile(
        r"\b\d{3}-?\d{2}-?\d{4}\b"
    ), 0.90),

    # North-American: optional +1 / 1 prefix, optional (area), - . or space
    PIIKind.PHONE: (re.compile(
        r"(?<![\w+(])"
        r"(?:\+?1[\-.\s]?)?"
        r"(?:\(\d{3}\)|\d{3})[\-.\s]?"
        r"\d{3}[\-.\s]?\d{4}\b"
    ), 0.85),

    # 16 digits in groups of four
    PIIKind.CREDIT_CARD: (re.compile(
        r"\b(?:\d{4}[\-\s]?){3}\d{4}\b"
    ), 0.90),

    # 5 or 5+4
    PIIKind.ZIP_CODE: (re.compile(
        r"\b\d{5}(?:-\d{4})?\b"
    ), 0.70),
}


def kinds() -> list[PIIKind]:
    """Kinds in the order they are scanned."""
    return list(_PATTERNS)


def scan_regex(text: str) -> list[PIIMatch]:
    """Run every pattern against text.  Returns all matches by start offset."""
    matches: list[PIIMatch] = []
    for kind, (pattern, confidence) in _PATTERNS.items():
        for m in pattern.finditer(text):
            matches.append(PIIMatch(
                kind=kind,
                value=m.group(),
                start=m.start(),
                end=m.end(),
                confidence=confidence,
            ))
    # stable: equal starts keep table order
    return sorted(matches, key=lambda m: m.start)
