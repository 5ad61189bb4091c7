"""Memory extraction: route commit records to target documents.

Only records carrying a ``Memory:`` footer become entries. Routing is
deterministic: explicit ``Location:`` first, then scope, then the project
root document.
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Iterable

from synaptic.parser import CommitRecord

logger = logging.getLogger(__name__)

DEFAULT_DOC_NAME = "CLAUDE.md"
DEFAULT_MODULE_ROOT = "src"

PROJECT_WIDE_SCOPES = frozenset(
    {
        "global", "project", "build", "ci", "chore", "docs", "test", "tests",
        "testing", "cleanup", "workflow", "development", "architecture",
        "authors", "roadmap", "memory", "mvp", "milestone",
    }
)

MIN_CONTENT_LENGTH = 10
MAX_CONTENT_LENGTH = 500
VAGUE_PATTERNS = [
    re.compile(r"^(update|fix|change|improve)", re.IGNORECASE),
    re.compile(r"^(add|remove|delete)", re.IGNORECASE),
    re.compile(r"^(refactor|cleanup)", re.IGNORECASE),
]


@dataclass(frozen=True)
class MemoryEntry:
    """What gets rendered into a document for one commit."""

    content: str
    sha: str
    type: str
    summary: str
    timestamp: datetime
    path: Path
    scope: str | None = None
    tags: tuple[str, ...] = ()

    def render(self) -> str:
        header = f"{self.type}({self.scope})" if self.scope else self.type
        tags = f" [{', '.join(self.tags)}]" if self.tags else ""
        return f"- {self.content}: {self.type} `{header}: {self.summary}` ({self.sha}){tags}"


@dataclass(frozen=True)
class MemoryRouter:
    """Resolve the target document for a commit record."""

    root: Path
    doc_name: str = DEFAULT_DOC_NAME
    module_root: str = DEFAULT_MODULE_ROOT

    @property
    def root_document(self) -> Path:
        return self.root / self.doc_name

    def resolve(self, record: CommitRecord) -> Path:
        if record.location:
            target = self._resolve_location(record.location)
            if target is not None:
                return target
            logger.warning(
                "Ignoring Location %r of commit %s: outside the project root",
                record.location,
                record.sha,
            )
        scope = record.scope
        if not scope or scope in PROJECT_WIDE_SCOPES:
            return self.root_document
        relative = scope if "/" in scope else f"{self.module_root}/{scope}"
        target = self._within_root(f"{relative}/{self.doc_name}")
        if target is None:
            logger.warning(
                "Scope %r of commit %s points outside the project root", scope, record.sha
            )
            return self.root_document
        return target

    def _resolve_location(self, location: str) -> Path | None:
        location = location.strip()
        if location.startswith("~/"):
            location = location[2:]
        # Absolute-looking locations are still taken relative to the root.
        location = location.lstrip("/")
        # A trailing slash names a directory: target its document.
        if not location or location.endswith("/"):
            location += self.doc_name
        return self._within_root(location)

    def _within_root(self, relative: str) -> Path | None:
        """Normalized ``root / relative``, or None if it leaves the root."""
        target = self.root / os.path.normpath(relative)
        if not target.resolve().is_relative_to(self.root.resolve()):
            return None
        return target


def extract_memories(records: Iterable[CommitRecord], router: MemoryRouter) -> list[MemoryEntry]:
    """Project records with a memory note into entries (others are skipped)."""
    entries: list[MemoryEntry] = []
    for record in records:
        if not record.memory:
            logger.debug("Skipping commit %s: no memory field", record.sha)
            continue
        entries.append(
            MemoryEntry(
                content=record.memory,
                sha=record.sha,
                type=record.type,
                scope=record.scope,
                summary=record.summary,
                timestamp=record.timestamp,
                tags=record.tags,
                path=router.resolve(record),
            )
        )
    logger.info("Extracted %d memories", len(entries))
    return entries


def group_by_location(entries: Iterable[MemoryEntry]) -> dict[Path, list[MemoryEntry]]:
    """Bucket entries by target path, newest first within each bucket."""
    grouped: dict[Path, list[MemoryEntry]] = {}
    for entry in entries:
        grouped.setdefault(entry.path, []).append(entry)
    for bucket in grouped.values():
        bucket.sort(key=lambda e: e.timestamp, reverse=True)
    logger.debug("Grouped memories into %d target files", len(grouped))
    return grouped


def validate_memory(entry: MemoryEntry) -> list[str]:
    """Advisory quality warnings for one memory. Empty means it looks fine."""
    warnings: list[str] = []
    if len(entry.content) < MIN_CONTENT_LENGTH:
        warnings.append("Memory content is very short - may not be useful")
    if len(entry.content) > MAX_CONTENT_LENGTH:
        warnings.append("Memory content is very long - consider breaking into smaller insights")
    if any(p.search(entry.content) for p in VAGUE_PATTERNS):
        warnings.append("Memory content may be too vague - consider more specific insights")
    return warnings


@dataclass
class MemoryStats:
    total: int = 0
    by_location: dict[str, int] = field(default_factory=dict)
    by_type: dict[str, int] = field(default_factory=dict)
    earliest: str = ""
    latest: str = ""


def memory_stats(entries: list[MemoryEntry], root: Path | None = None) -> MemoryStats:
    """Counts by location and type plus the covered date range."""
    stats = MemoryStats(total=len(entries))
    if not entries:
        return stats

    for entry in entries:
        location = entry.path
        if root and location.is_relative_to(root):
            location = location.relative_to(root)
        stats.by_location[str(location)] = stats.by_location.get(str(location), 0) + 1
        stats.by_type[entry.type] = stats.by_type.get(entry.type, 0) + 1

    dates = sorted(entry.timestamp for entry in entries)
    stats.earliest = dates[0].date().isoformat()
    stats.latest = dates[-1].date().isoformat()
    return stats
