"""Parse SVCMS-formatted commit messages.

Header:   ``<type>[(<scope>)]: <summary>``
Body:     free text after one blank line, up to the first footer
Footers:  ``Context:``, ``Refs:``/``Ref:``, ``Memory:``, ``Location:``,
          ``Tags:``/``Tag:``

Messages that don't match the grammar, or use a type outside the fixed
allow-list, are not errors: :func:`parse_commit_message` returns ``None``.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Iterable

if TYPE_CHECKING:
    from synaptic.git import RawCommit

logger = logging.getLogger(__name__)

# Governs whether a commit qualifies at all. The classifier's configurable
# categories are advisory and never widen or narrow this set.
SVCMS_TYPES = frozenset(
    {
        # Conventional commits
        "feat", "fix", "fixed", "docs", "style", "refactor",
        "perf", "test", "build", "ci", "chore",
        # Knowledge
        "learned", "insight", "context", "decision", "decided", "memory",
        # Collaboration
        "discussed", "explored", "attempted",
        # Meta
        "workflow", "preference", "pattern",
    }
)

HEADER_PATTERN = re.compile(r"^(\w+)(?:\(([^)]+)\))?:\s*(.+)")

FOOTER_LABELS = ("Context:", "Refs:", "Ref:", "Memory:", "Location:", "Tags:", "Tag:")

CONTEXT_PATTERN = re.compile(r"^Context:(.*)$", re.MULTILINE)
REFS_PATTERN = re.compile(r"^Refs?:(.*)$", re.MULTILINE)
MEMORY_PATTERN = re.compile(r"^Memory:(.*)$", re.MULTILINE)
LOCATION_PATTERN = re.compile(r"^Location:(.*)$", re.MULTILINE)
TAGS_PATTERN = re.compile(r"^Tags?:(.*)$", re.MULTILINE)


@dataclass(frozen=True)
class CommitRecord:
    """One qualifying commit, created once by the parser."""

    sha: str
    type: str
    summary: str
    timestamp: datetime
    scope: str | None = None
    body: str | None = None
    memory: str | None = None
    location: str | None = None
    context: str | None = None
    refs: tuple[str, ...] = ()
    tags: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if not self.type or not self.summary:
            raise ValueError("CommitRecord requires a type and a summary")


class ScanState(Enum):
    HEADER = "header"
    BODY = "body"
    FOOTERS = "footers"


def is_footer_line(line: str) -> bool:
    return line.startswith(FOOTER_LABELS)


def next_state(state: ScanState, line: str) -> ScanState:
    """Per-line transition of the body scanner.

    HEADER waits for the blank separator; BODY runs until the first footer;
    FOOTERS is terminal.
    """
    # A footer ends the scan from any state, including before the separator,
    # so no body is collected after footers that directly follow the header.
    if state is ScanState.FOOTERS or is_footer_line(line):
        return ScanState.FOOTERS
    if state is ScanState.HEADER and not line.strip():
        return ScanState.BODY
    return state


def extract_body(lines: list[str]) -> str | None:
    """Collect body lines between the header separator and the footers."""
    state = ScanState.HEADER
    body_lines: list[str] = []
    for line in lines[1:]:
        previous, state = state, next_state(state, line)
        if state is ScanState.FOOTERS:
            break
        # The separator line itself only switches state.
        if previous is ScanState.BODY:
            body_lines.append(line)

    body = "\n".join(body_lines).strip()
    return body or None


def _extract_field(message: str, pattern: re.Pattern[str]) -> str | None:
    match = pattern.search(message)
    if not match:
        return None
    return match.group(1).strip() or None


def _extract_list(message: str, pattern: re.Pattern[str]) -> list[str]:
    value = _extract_field(message, pattern)
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


def parse_commit_message(sha: str, message: str, timestamp: datetime) -> CommitRecord | None:
    """Parse one raw commit message. Returns None when it doesn't qualify."""
    lines = message.splitlines()
    if not lines:
        return None

    match = HEADER_PATTERN.match(lines[0])
    if not match:
        return None

    commit_type, scope, summary = match.group(1), match.group(2), match.group(3).strip()
    if commit_type not in SVCMS_TYPES or not summary:
        return None

    full_message = "\n".join(lines)
    tags = _extract_list(full_message, TAGS_PATTERN)
    return CommitRecord(
        sha=sha,
        type=commit_type,
        scope=scope,
        summary=summary,
        body=extract_body(lines),
        memory=_extract_field(full_message, MEMORY_PATTERN),
        location=_extract_field(full_message, LOCATION_PATTERN),
        context=_extract_field(full_message, CONTEXT_PATTERN),
        refs=tuple(_extract_list(full_message, REFS_PATTERN)),
        tags=tuple(dict.fromkeys(tags)),
        timestamp=timestamp,
    )


def parse_commits(raw_commits: Iterable[RawCommit]) -> list[CommitRecord]:
    """Parse a commit history, keeping only qualifying records (order kept)."""
    records: list[CommitRecord] = []
    skipped = 0
    for raw in raw_commits:
        record = parse_commit_message(raw.sha, raw.message, raw.timestamp)
        if record is None:
            logger.debug("Skipping commit %s: not SVCMS format", raw.sha)
            skipped += 1
            continue
        records.append(record)
    logger.info("Parsed %d SVCMS commits (%d skipped)", len(records), skipped)
    return records
