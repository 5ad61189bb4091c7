"""Read raw commit history from a git repository via the ``git`` CLI."""

from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

logger = logging.getLogger(__name__)

SHORT_SHA_LENGTH = 7

# Unit/record separators keep multi-line messages intact in one stdout stream.
_FIELD_SEP = "\x1f"
_RECORD_SEP = "\x1e"
_LOG_FORMAT = f"%H{_FIELD_SEP}%ct{_FIELD_SEP}%B{_RECORD_SEP}"


class GitError(RuntimeError):
    """Raised when git history can't be read."""


@dataclass(frozen=True)
class RawCommit:
    sha: str
    message: str
    timestamp: datetime


def read_commits(
    repo: Path,
    depth: int = 100,
    since: str | None = None,
    timeout: int = 60,
) -> list[RawCommit]:
    """Return up to ``depth`` commits reachable from HEAD, newest first.

    ``since`` is a ``YYYY-MM-DD`` date; older commits are not returned.
    """
    cmd = ["git", "log", f"--format={_LOG_FORMAT}", f"--max-count={depth}"]
    if since:
        try:
            datetime.strptime(since, "%Y-%m-%d")
        except ValueError as e:
            raise GitError(f"Invalid date '{since}'. Use YYYY-MM-DD") from e
        cmd.append(f"--since={since}T00:00:00")

    try:
        result = subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            cwd=repo,
            timeout=timeout,
        )
    except FileNotFoundError as e:
        raise GitError("`git` CLI not found. Is it installed?") from e
    except subprocess.TimeoutExpired as e:
        raise GitError(f"git log timed out after {timeout}s") from e

    if result.returncode != 0:
        stderr = result.stderr.strip()
        logger.error("git log failed (rc=%d): %s", result.returncode, stderr)
        raise GitError(f"Failed to read git history in {repo}: {stderr or 'unknown error'}")

    commits = parse_log_output(result.stdout)
    logger.debug("Read %d commits from %s", len(commits), repo)
    return commits


def parse_log_output(output: str) -> list[RawCommit]:
    """Split ``git log`` output produced with our format string."""
    commits: list[RawCommit] = []
    for chunk in output.split(_RECORD_SEP):
        chunk = chunk.lstrip("\n")
        if not chunk.strip():
            continue
        parts = chunk.split(_FIELD_SEP, 2)
        if len(parts) != 3:
            logger.warning("Ignoring malformed git log record: %r", chunk[:80])
            continue
        sha, epoch, message = parts
        try:
            timestamp = datetime.fromtimestamp(int(epoch), tz=timezone.utc)
        except ValueError:
            timestamp = datetime.now(tz=timezone.utc)
        commits.append(
            RawCommit(sha=sha[:SHORT_SHA_LENGTH], message=message.rstrip("\n"), timestamp=timestamp)
        )
    return commits
