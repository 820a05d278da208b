from __future__ import annotations

"""Inline `[n]` citation checks against the retrieved source list."""

import re
from dataclasses import dataclass

_CITATION_RE = re.compile(r"\[(\d+)\]")
_MARKER_WITH_SPACE_RE = re.compile(r"[ \t]*\[(\d+)\]")

CITATION_POLICIES = frozenset({"keep", "flag", "strip"})


@dataclass(frozen=True)
class CitationCheck:
    """Answer text after policy handling plus the markers with no source."""
    answer: str
    dangling: list[int]


def cited_numbers(answer: str) -> list[int]:
    """Return citation numbers in order of first appearance."""
    seen: list[int] = []
    for match in _CITATION_RE.finditer(answer):
        number = int(match.group(1))
        if number not in seen:
            seen.append(number)
    return seen


def find_dangling_citations(answer: str, source_count: int) -> list[int]:
    """Return cited numbers that do not map to a source position 1..source_count."""
    return [number for number in cited_numbers(answer) if not 1 <= number <= source_count]


def strip_citations(answer: str, numbers: list[int]) -> str:
    """Remove the given `[n]` markers from the answer."""
    if not numbers:
        return answer
    targets = set(numbers)
    stripped = _MARKER_WITH_SPACE_RE.sub(
        lambda match: "" if int(match.group(1)) in targets else match.group(0), answer
    )
    return stripped.strip()


def apply_citation_policy(answer: str, source_count: int, policy: str = "keep") -> CitationCheck:
    """Check citations and, under the "strip" policy, drop dangling markers."""
    if policy not in CITATION_POLICIES:
        raise ValueError(f"Unknown citation policy: {policy}")
    dangling = find_dangling_citations(answer, source_count)
    if policy == "strip":
        return CitationCheck(answer=strip_citations(answer, dangling), dangling=dangling)
    return CitationCheck(answer=answer, dangling=dangling)
