"""Memory sync: commit memories into per-scope documents.

Layout (default ``doc_name`` and ``module_root``):
    <root>/
    ├── CLAUDE.md                      # Project-wide scopes, unscoped commits
    ├── src/<scope>/CLAUDE.md          # Module scopes
    ├── <a>/<b>/CLAUDE.md              # Path-like scopes ("a/b")
    └── .synaptic/versions/            # Timestamped backups (10 per document)
"""

from synaptic.memory.entries import MemoryEntry, MemoryRouter
from synaptic.memory.sync import MemorySync, SyncError, SyncOptions, SyncResult

__all__ = [
    "MemoryEntry",
    "MemoryRouter",
    "MemorySync",
    "SyncError",
    "SyncOptions",
    "SyncResult",
]
