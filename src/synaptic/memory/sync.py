"""Memory sync engine: splice commit memories into target documents.

Each target document owns at most one managed section, started by
``## SVCMS Memories`` (or the legacy ``## Memories from SVCMS``) and ending
at the next level-1/level-2 heading or end of file. New entries go to the
top of that section; earlier entry lines are kept verbatim and everything
outside the section is preserved byte-for-byte.

Sync is idempotent: a memory counts as already present when the document
text contains both its exact content and its commit identifier.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Iterable

from frontmatter.default_handlers import YAMLHandler

from synaptic.memory.entries import (
    DEFAULT_DOC_NAME,
    DEFAULT_MODULE_ROOT,
    MemoryEntry,
    MemoryRouter,
    extract_memories,
    group_by_location,
)
from synaptic.parser import CommitRecord

logger = logging.getLogger(__name__)

SECTION_HEADING = "## SVCMS Memories"
LEGACY_SECTION_HEADING = "## Memories from SVCMS"
SYNC_MARKER = "*Automatically synced by Synaptic*"

SECTION_PATTERN = re.compile(
    rf"^(?:{re.escape(SECTION_HEADING)}|{re.escape(LEGACY_SECTION_HEADING)})[ \t]*\r?$",
    re.MULTILINE,
)
TOP_HEADING_PATTERN = re.compile(r"^#{1,2}(?:[ \t]|\r?$)", re.MULTILINE)

VERSIONS_DIR = Path(".synaptic") / "versions"
MAX_VERSIONS = 10

_yaml_handler = YAMLHandler()


class SyncError(RuntimeError):
    """A target document couldn't be read or written. Aborts the run."""

    def __init__(self, path: Path, message: str) -> None:
        super().__init__(f"{path}: {message}")
        self.path = path


@dataclass
class SyncOptions:
    dry_run: bool = False
    backup: bool = False
    max_memories_per_file: int | None = None


@dataclass
class SyncResult:
    dry_run: bool = False
    files_processed: int = 0
    files_created: int = 0
    files_updated: int = 0
    memories_synced: int = 0
    memories_skipped: int = 0
    warnings: list[str] = field(default_factory=list)
    previews: dict[Path, str] = field(default_factory=dict)


@dataclass(frozen=True)
class ManagedSection:
    """Offsets of the managed section inside a document's text."""

    start: int
    body_start: int
    end: int
    heading: str


# ── Document text operations ─────────────────────────────────


def frontmatter_end(text: str) -> int:
    """Offset just past a leading YAML front-matter block (0 if none)."""
    if not _yaml_handler.detect(text):
        return 0
    try:
        _, content = _yaml_handler.split(text)
    except ValueError:
        # Opening fence without a closing one: not front matter.
        return 0
    return len(text) - len(content)


def find_section(text: str) -> ManagedSection | None:
    match = SECTION_PATTERN.search(text, frontmatter_end(text))
    if not match:
        return None
    body_start = match.end()
    for newline in ("\r\n", "\n"):
        if text.startswith(newline, body_start):
            body_start += len(newline)
            break
    following = TOP_HEADING_PATTERN.search(text, body_start)
    end = following.start() if following else len(text)
    return ManagedSection(
        start=match.start(),
        body_start=body_start,
        end=end,
        heading=match.group(0).rstrip(),
    )


def existing_entry_lines(text: str, section: ManagedSection) -> list[str]:
    """Previously rendered lines of a section, verbatim and in order."""
    return [
        line
        for line in text[section.body_start : section.end].splitlines()
        if line.strip() and line.strip() != SYNC_MARKER
    ]


def render_section(
    entry_lines: list[str], heading: str = SECTION_HEADING, newline: str = "\n"
) -> str:
    return newline.join([heading, "", SYNC_MARKER, "", *entry_lines]) + newline


def line_ending(text: str) -> str:
    """The document's own line terminator; LF for new or LF-only text."""
    return "\r\n" if "\r\n" in text else "\n"


def is_already_present(text: str, entry: MemoryEntry) -> bool:
    return entry.content in text and entry.sha in text


def merge_document(text: str, entries: list[MemoryEntry], doc_name: str = DEFAULT_DOC_NAME) -> str:
    """Return ``text`` with ``entries`` rendered into its managed section.

    ``entries`` are assumed new and already ordered for rendering.
    """
    new_lines = [entry.render() for entry in entries]
    newline = line_ending(text)

    if not text.strip():
        return f"# {doc_name}{newline}{newline}" + render_section(new_lines, newline=newline)

    section = find_section(text)
    if section is None:
        prefix = text if text.endswith("\n") else text + newline
        return prefix + newline + render_section(new_lines, newline=newline)

    lines = new_lines + existing_entry_lines(text, section)
    rest = text[section.end :]
    replacement = render_section(lines, heading=section.heading, newline=newline)
    if rest:
        replacement += newline
    return text[: section.start] + replacement + rest


# ── Sync engine ──────────────────────────────────────────────


class MemorySync:
    """Sync commit memories into per-scope documents under a project root."""

    def __init__(
        self,
        root: Path,
        doc_name: str = DEFAULT_DOC_NAME,
        module_root: str = DEFAULT_MODULE_ROOT,
    ) -> None:
        self.root = root
        self.router = MemoryRouter(root=root, doc_name=doc_name, module_root=module_root)

    @property
    def doc_name(self) -> str:
        return self.router.doc_name

    def sync(
        self, records: Iterable[CommitRecord], options: SyncOptions | None = None
    ) -> SyncResult:
        """Route records with memories and merge them into their documents."""
        entries = extract_memories(records, self.router)
        return self.sync_entries(group_by_location(entries), options)

    def sync_entries(
        self,
        memories_by_location: dict[Path, list[MemoryEntry]],
        options: SyncOptions | None = None,
    ) -> SyncResult:
        options = options or SyncOptions()
        result = SyncResult(dry_run=options.dry_run)
        logger.info(
            "Starting memory sync to %d files (dry_run=%s)",
            len(memories_by_location),
            options.dry_run,
        )

        # Strictly sequential; a SyncError aborts here and earlier writes stay.
        for path, entries in memories_by_location.items():
            self._sync_document(path, entries, options, result)

        logger.info(
            "Memory sync completed: %d files, %d new memories, %d skipped",
            result.files_processed,
            result.memories_synced,
            result.memories_skipped,
        )
        return result

    def _sync_document(
        self,
        path: Path,
        entries: list[MemoryEntry],
        options: SyncOptions,
        result: SyncResult,
    ) -> None:
        exists, text = self._read(path)
        result.files_processed += 1

        new_entries: list[MemoryEntry] = []
        seen: set[tuple[str, str]] = set()
        for entry in entries:
            key = (entry.content, entry.sha)
            if key in seen or is_already_present(text, entry):
                logger.debug("Skipping duplicate memory from commit %s", entry.sha)
                result.memories_skipped += 1
                continue
            seen.add(key)
            new_entries.append(entry)

        if not new_entries:
            logger.debug("No new memories for %s", path)
            return

        if options.max_memories_per_file:
            section = find_section(text)
            existing = len(existing_entry_lines(text, section)) if section else 0
            if existing + len(new_entries) > options.max_memories_per_file:
                result.warnings.append(
                    f"{path} would exceed max memories limit ({options.max_memories_per_file})"
                )

        updated = merge_document(text, new_entries, doc_name=self.doc_name)

        if options.dry_run:
            result.previews[path] = updated
            logger.info("[DRY RUN] Would sync %d memories to %s", len(new_entries), path)
        else:
            if options.backup and exists:
                self._backup(path, text)
            self._write(path, updated)
            logger.info("Synced %d memories to %s", len(new_entries), path)

        result.memories_synced += len(new_entries)
        if exists:
            result.files_updated += 1
        else:
            result.files_created += 1

    # ── File access ──────────────────────────────────────────

    def _read(self, path: Path) -> tuple[bool, str]:
        if not path.exists():
            return False, ""
        try:
            with path.open(encoding="utf-8", newline="") as f:
                return True, f.read()
        except (OSError, UnicodeDecodeError) as e:
            raise SyncError(path, f"failed to read document: {e}") from e

    def _write(self, path: Path, content: str) -> None:
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content, encoding="utf-8", newline="")
        except OSError as e:
            raise SyncError(path, f"failed to write document: {e}") from e

    def _version_stem(self, path: Path) -> str:
        try:
            rel = path.relative_to(self.root)
        except ValueError:
            rel = Path(path.name)
        slug = re.sub(r'[<>:"\\|?*\n\r\t]', "", rel.as_posix()).replace("/", "-")
        return slug.rsplit(".", 1)[0] or "document"

    def _backup(self, path: Path, content: str) -> None:
        """Backup to .synaptic/versions/, keep at most 10 versions per document."""
        versions_dir = self.root / VERSIONS_DIR
        stem = self._version_stem(path)
        ts = datetime.now().strftime("%Y%m%dT%H%M%S%f")
        try:
            versions_dir.mkdir(parents=True, exist_ok=True)
            (versions_dir / f"{stem}-{ts}.md").write_text(content, encoding="utf-8", newline="")
            old = sorted(versions_dir.glob(f"{stem}-*.md"))
            for f in old[:-MAX_VERSIONS]:
                f.unlink()
        except OSError as e:
            raise SyncError(path, f"failed to back up document: {e}") from e
        logger.debug("Backed up %s", path)
