"""Entry point: python -m synaptic <command>

- sync:   Sync commit memories into CLAUDE.md files
- stats:  Show statistics about SVCMS commits with memories
- types:  List valid commit types for a scope
- check:  Validate a commit type (optionally for a scope)
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from synaptic.commit_types import CommitTypeClassifier
from synaptic.config import ConfigError, SynapticConfig, load_config
from synaptic.git import GitError, read_commits
from synaptic.memory.entries import MemoryRouter, extract_memories, memory_stats, validate_memory
from synaptic.memory.sync import MemorySync, SyncError, SyncOptions
from synaptic.parser import parse_commits

logger = logging.getLogger("synaptic")


def _setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def _run_sync(args: argparse.Namespace, config: SynapticConfig) -> int:
    """Read history, parse, and merge memories into documents."""
    root = args.root.resolve()
    raw = read_commits(root, depth=args.depth or config.sync.depth, since=args.since)
    records = parse_commits(raw)

    engine = MemorySync(root, doc_name=config.sync.doc_name, module_root=config.sync.module_root)
    options = SyncOptions(
        dry_run=args.dry_run or config.sync.dry_run,
        backup=args.backup or config.sync.backup,
        max_memories_per_file=config.sync.max_memories_per_file,
    )
    result = engine.sync(records, options)

    for path, preview in result.previews.items():
        print(f"--- {path} (preview) ---")
        print(preview)
    for warning in result.warnings:
        print(f"warning: {warning}")

    verb = "Would sync" if result.dry_run else "Synced"
    print(
        f"{verb} {result.memories_synced} new memories "
        f"({result.memories_skipped} already present) across {result.files_processed} files"
    )
    return 0


def _run_stats(args: argparse.Namespace, config: SynapticConfig) -> int:
    root = args.root.resolve()
    records = parse_commits(read_commits(root, depth=args.depth or config.sync.depth))
    router = MemoryRouter(root, doc_name=config.sync.doc_name, module_root=config.sync.module_root)
    entries = extract_memories(records, router)
    stats = memory_stats(entries, root=root)
    classifier = CommitTypeClassifier(config.commit_types)

    print(f"SVCMS commits: {len(records)}")
    print(f"Memories: {stats.total}")
    if stats.total:
        print(f"Date range: {stats.earliest} .. {stats.latest}")
        print("By location:")
        for location, count in sorted(stats.by_location.items()):
            print(f"  {location}: {count}")
        print("By type:")
        for commit_type, count in sorted(stats.by_type.items()):
            print(f"  {commit_type}: {count}")

    for record in records:
        if not classifier.is_valid(record.type, record.scope):
            print(f"warning: {record.sha} uses type '{record.type}' unknown to configured categories")
    for entry in entries:
        for warning in validate_memory(entry):
            print(f"warning: {entry.sha}: {warning}")
    return 0


def _run_types(args: argparse.Namespace, config: SynapticConfig) -> int:
    classifier = CommitTypeClassifier(config.commit_types)
    if args.scope:
        for token in classifier.valid_types_for_scope(args.scope):
            print(token)
    else:
        for name, types in sorted(classifier.categories.items()):
            print(f"{name}: {', '.join(sorted(types))}")
    return 0


def _run_check(args: argparse.Namespace, config: SynapticConfig) -> int:
    classifier = CommitTypeClassifier(config.commit_types)
    if classifier.is_valid(args.type, args.scope):
        print(f"'{args.type}' is valid")
        return 0
    print(f"'{args.type}' is not valid" + (f" for scope '{args.scope}'" if args.scope else ""))
    suggestions = classifier.suggest_alternatives(args.type, args.scope)
    if suggestions:
        print(f"Did you mean: {', '.join(suggestions)}")
    return 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="synaptic",
        description="Transform SVCMS commits into project memory documents",
    )
    parser.add_argument("--root", type=Path, default=Path.cwd(), help="project root (git repo)")
    parser.add_argument("--config", type=Path, default=None, help="explicit config.toml")
    sub = parser.add_subparsers(dest="command", required=True)

    p_sync = sub.add_parser("sync", help="sync commit memories to documents")
    p_sync.add_argument("-d", "--depth", type=int, default=None, help="number of commits to scan")
    p_sync.add_argument("--since", default=None, help="only commits since YYYY-MM-DD")
    p_sync.add_argument("--dry-run", action="store_true", help="preview without writing files")
    p_sync.add_argument("--backup", action="store_true", help="back up documents before writing")
    p_sync.set_defaults(func=_run_sync)

    p_stats = sub.add_parser("stats", help="show memory statistics")
    p_stats.add_argument("-d", "--depth", type=int, default=None)
    p_stats.set_defaults(func=_run_stats)

    p_types = sub.add_parser("types", help="list valid commit types")
    p_types.add_argument("scope", nargs="?", default=None)
    p_types.set_defaults(func=_run_types)

    p_check = sub.add_parser("check", help="validate a commit type")
    p_check.add_argument("type")
    p_check.add_argument("scope", nargs="?", default=None)
    p_check.set_defaults(func=_run_check)
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        config = load_config(root=args.root, config_path=args.config)
    except ConfigError as e:
        _setup_logging("INFO")
        logger.error("Invalid configuration: %s", e)
        return 1
    _setup_logging(config.log_level)

    try:
        return args.func(args, config)
    except (GitError, SyncError) as e:
        logger.error("%s", e)
        return 1


if __name__ == "__main__":
    sys.exit(main())
