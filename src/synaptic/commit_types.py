"""Two-tier commit type classifier.

A commit type is either a legacy bare token (``learned``) or a qualified
``category.type`` token (``knowledge.learned``). Categories and per-scope
rules come from an immutable :class:`ClassifierConfig`; with no
configuration the four built-in SVCMS categories apply.

The classifier never raises: unknown scopes fall back to the default
category set and unknown categories simply fail validation.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Mapping


ALL_CATEGORIES = "all"
SUGGESTION_LIMIT = 5

DEFAULT_CATEGORIES: dict[str, tuple[str, tuple[str, ...]]] = {
    "standard": (
        "Conventional commit types",
        ("feat", "fix", "docs", "style", "refactor", "perf", "test", "build", "ci", "chore"),
    ),
    "knowledge": (
        "Learned facts, insights and decisions",
        ("learned", "insight", "context", "decision", "memory"),
    ),
    "collaboration": (
        "Discussions and explorations",
        ("discussed", "explored", "attempted"),
    ),
    "meta": (
        "Workflow and working preferences",
        ("workflow", "preference", "pattern"),
    ),
}


class ScopeClass(Enum):
    """Scope rule tables, in lookup precedence order."""

    MODULE = "modules"
    CROSS_CUTTING = "cross_cutting"
    TOOLING = "tooling"
    PROJECT_WIDE = "project_wide"


SCOPE_PRECEDENCE = (
    ScopeClass.MODULE,
    ScopeClass.CROSS_CUTTING,
    ScopeClass.TOOLING,
    ScopeClass.PROJECT_WIDE,
)


@dataclass(frozen=True)
class TypeCategory:
    name: str
    description: str = ""
    types: frozenset[str] = frozenset()


@dataclass(frozen=True)
class ScopeRule:
    name: str
    categories: frozenset[str] = frozenset()
    custom_types: frozenset[str] = frozenset()

    def allows(self, category: str) -> bool:
        return ALL_CATEGORIES in self.categories or category in self.categories


@dataclass(frozen=True)
class ParsedType:
    """A raw type token split into optional category and base type."""

    base: str
    category: str | None = None
    original: str = ""

    @property
    def is_two_tier(self) -> bool:
        return self.category is not None


@dataclass(frozen=True)
class ClassifierConfig:
    """Immutable classifier configuration, built once and passed in."""

    categories: Mapping[str, TypeCategory] = field(default_factory=dict)
    scopes: Mapping[tuple[ScopeClass, str], ScopeRule] = field(default_factory=dict)
    additional: tuple[str, ...] = ()
    override: tuple[str, ...] | None = None
    aliases: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        # Stored as read-only views.
        object.__setattr__(self, "categories", MappingProxyType(dict(self.categories)))
        object.__setattr__(self, "scopes", MappingProxyType(dict(self.scopes)))
        object.__setattr__(self, "aliases", MappingProxyType(dict(self.aliases)))

    @classmethod
    def default(cls) -> ClassifierConfig:
        return cls(categories=default_categories())

    def legacy_types(self) -> frozenset[str]:
        """Legacy allow-list: ``override`` replaces, ``additional`` extends."""
        if self.override is not None:
            return frozenset(self.override)
        return frozenset(self.additional)


def default_categories() -> dict[str, TypeCategory]:
    return {
        name: TypeCategory(name=name, description=desc, types=frozenset(types))
        for name, (desc, types) in DEFAULT_CATEGORIES.items()
    }


class CommitTypeClassifier:
    """Validate and suggest commit types against categories and scope rules."""

    def __init__(self, config: ClassifierConfig | None = None) -> None:
        config = config or ClassifierConfig.default()
        # Configured categories are layered over the built-in ones by name.
        categories = default_categories()
        categories.update(config.categories)
        self.config = config
        self._categories: dict[str, frozenset[str]] = {
            name: cat.types for name, cat in categories.items()
        }
        self._legacy = config.legacy_types()

    @property
    def categories(self) -> dict[str, frozenset[str]]:
        return dict(self._categories)

    # ── Parsing ───────────────────────────────────────────────

    def parse(self, token: str) -> ParsedType:
        """Split a token into category + base type, resolving aliases first."""
        normalized = self.config.aliases.get(token, token)
        category, sep, base = normalized.partition(".")
        if sep:
            return ParsedType(base=base, category=category, original=token)
        return ParsedType(base=normalized, original=token)

    # ── Validation ────────────────────────────────────────────

    def is_valid(self, token: str, scope: str | None = None) -> bool:
        parsed = self.parse(token)
        if parsed.category is None:
            return self._is_valid_legacy(parsed.base)
        if not self._in_category(parsed.category, parsed.base):
            return False
        if scope is None:
            return True
        return self._scope_allows(scope, parsed.category)

    def _in_category(self, category: str, base: str) -> bool:
        return base in self._categories.get(category, frozenset())

    def _is_valid_legacy(self, base: str) -> bool:
        if base in self._legacy:
            return True
        # Bare tokens from any category stay valid for backwards compatibility.
        return any(base in types for types in self._categories.values())

    def _scope_allows(self, scope: str, category: str) -> bool:
        rule = self.find_scope_rule(scope)
        if rule is None:
            return category in DEFAULT_CATEGORIES
        return rule.allows(category)

    def find_scope_rule(self, scope: str) -> ScopeRule | None:
        """Probe the four scope tables in precedence order."""
        for scope_class in SCOPE_PRECEDENCE:
            rule = self.config.scopes.get((scope_class, scope))
            if rule is not None:
                return rule
        return None

    # ── Listing & suggestions ────────────────────────────────

    def valid_types_for_scope(self, scope: str) -> list[str]:
        """All legacy and qualified tokens a scope may use, sorted."""
        rule = self.find_scope_rule(scope)
        if rule is None:
            names = list(self._categories)
            custom: frozenset[str] = frozenset()
        elif ALL_CATEGORIES in rule.categories:
            names = list(self._categories)
            custom = rule.custom_types
        else:
            names = [name for name in rule.categories if name in self._categories]
            custom = rule.custom_types

        valid: set[str] = set(custom)
        for name in names:
            for base in self._categories[name]:
                valid.add(base)
                valid.add(f"{name}.{base}")
        return sorted(valid)

    def suggest_alternatives(self, token: str, scope: str | None = None) -> list[str]:
        suggestions = {
            f"{name}.{token}" for name, types in self._categories.items() if token in types
        }
        if scope is not None:
            suggestions.update(self.valid_types_for_scope(scope)[:SUGGESTION_LIMIT])
        return sorted(suggestions)
