"""Placeholder rewriter — swaps matched spans for encrypted tokens.

Token format: [ENCRYPTED_PII_<index>:<base64 nonce‖ciphertext‖tag>]

Offsets always point into the original text.  Replacements are applied
right-to-left so a splice never shifts a span that is still pending.
"""

from __future__ import annotations
import logging
import re
from enum import Enum
from typing import Iterator, Sequence

from .crypto import decrypt
from .errors import OverlapError
from .types import EncryptedMatch, PIIMatch

logger = logging.getLogger(__name__)

_PLACEHOLDER_FMT = "[ENCRYPTED_PII_{index}:{blob}]"
_PLACEHOLDER_RE = re.compile(r"\[ENCRYPTED_PII_(\d+):([A-Za-z0-9+/]+={0,2})\]")


class OverlapPolicy(str, Enum):
    """What to do when two matches cover intersecting spans."""

    KEEP_BEST = "keep_best"    # keep highest confidence, then longest
    REJECT = "reject"          # raise OverlapError


def placeholder(index: int, blob: str) -> str:
    return _PLACEHOLDER_FMT.format(index=index, blob=blob)


def find_overlaps(matches: Sequence[PIIMatch | EncryptedMatch]) -> list[tuple[int, int]]:
    """Index pairs (into matches) whose spans intersect."""
    pairs: list[tuple[int, int]] = []
    order = sorted(range(len(matches)), key=lambda i: matches[i].start)
    for pos, i in enumerate(order):
        for j in order[pos + 1:]:
            if matches[j].start >= matches[i].end:
                break
            pairs.append((i, j))
    return pairs


def resolve_overlaps(
    matches: Sequence[PIIMatch],
    policy: OverlapPolicy = OverlapPolicy.KEEP_BEST,
) -> list[PIIMatch]:
    """Return a non-overlapping list sorted by start, or raise under REJECT."""
    overlaps = find_overlaps(matches)
    if not overlaps:
        return sorted(matches, key=lambda m: m.start)

    if policy is OverlapPolicy.REJECT:
        i, j = overlaps[0]
        raise OverlapError(
            f"{len(overlaps)} overlapping match pair(s), first: "
            f"{matches[i].kind.value}[{matches[i].start}:{matches[i].end}] and "
            f"{matches[j].kind.value}[{matches[j].start}:{matches[j].end}]"
        )

    # Rank by confidence desc, span length desc, then position/order for ties
    ranked = sorted(
        enumerate(matches),
        key=lambda im: (-im[1].confidence, -(im[1].end - im[1].start), im[1].start, im[0]),
    )
    taken: list[PIIMatch] = []
    for _, m in ranked:
        if any(m.start < t.end and m.end > t.start for t in taken):
            logger.debug("dropping overlapping %s match at %d:%d", m.kind.value, m.start, m.end)
            continue
        taken.append(m)
    logger.info("resolved overlaps: kept %d of %d matches", len(taken), len(matches))
    return sorted(taken, key=lambda m: m.start)


def rewrite(text: str, matches: Sequence[EncryptedMatch]) -> str:
    """Replace every matched span in text with its placeholder token."""
    if find_overlaps(matches):
        raise OverlapError("Cannot rewrite overlapping spans")

    result = text
    for match in sorted(matches, key=lambda m: m.start, reverse=True):
        token = placeholder(match.index, match.encrypted)
        result = result[:match.start] + token + result[match.end:]
    return result


def find_placeholders(text: str) -> Iterator[tuple[int, str, tuple[int, int]]]:
    """Yield (index, blob, span) for each placeholder token in text."""
    for m in _PLACEHOLDER_RE.finditer(text):
        yield int(m.group(1)), m.group(2), m.span()


def restore(text: str, key: bytes) -> str:
    """Decrypt every placeholder back to its original value.

    Raises IntegrityError on the first token that does not verify.
    """
    parts: list[str] = []
    last = 0
    for _, blob, (start, end) in find_placeholders(text):
        parts.append(text[last:start])
        parts.append(decrypt(key, blob).decode("utf-8"))
        last = end
    parts.append(text[last:])
    return "".join(parts)
