"""
Structured field paths, exact/subtree rules, and nested mapping helpers.
"""

from dataclasses import dataclass
from typing import Any, Iterable, Mapping, MutableMapping, Optional, Tuple, Union

SUBTREE_MARKER = "*"


@dataclass(frozen=True)
class FieldPath:
    """A dotted field name split into its segments."""
    segments: Tuple[str, ...]

    @classmethod
    def parse(cls, value: Union[str, "FieldPath", None]) -> Optional["FieldPath"]:
        """Parse a dotted string. Returns None for anything malformed."""
        if isinstance(value, FieldPath):
            segments = value.segments
        elif isinstance(value, str):
            segments = tuple(value.split("."))
        else:
            return None
        if not segments or any(not isinstance(s, str) or not s for s in segments):
            return None
        return value if isinstance(value, FieldPath) else cls(segments)

    def child(self, key: str) -> "FieldPath":
        return FieldPath(self.segments + (key,))

    def is_within(self, other: "FieldPath") -> bool:
        """True if *self* equals *other* or is one of its descendants."""
        n = len(other.segments)
        return self.segments[:n] == other.segments

    def __len__(self) -> int:
        return len(self.segments)

    def __str__(self) -> str:
        return ".".join(self.segments)


ROOT = FieldPath(())


@dataclass(frozen=True)
class FieldRule:
    """An exact path, or a subtree marker covering a path and its descendants."""
    path: FieldPath
    subtree: bool = False

    @classmethod
    def parse(cls, pattern: str) -> "FieldRule":
        subtree = pattern.endswith("." + SUBTREE_MARKER)
        base = pattern[: -len(SUBTREE_MARKER) - 1] if subtree else pattern
        path = FieldPath.parse(base)
        if path is None:
            raise ValueError(f"Invalid field rule pattern: {pattern!r}")
        return cls(path=path, subtree=subtree)

    def matches(self, path: FieldPath) -> bool:
        if self.subtree:
            return path.is_within(self.path)
        return path == self.path

    def __str__(self) -> str:
        return f"{self.path}.{SUBTREE_MARKER}" if self.subtree else str(self.path)


@dataclass(frozen=True)
class RuleSet:
    rules: Tuple[FieldRule, ...] = ()

    @classmethod
    def of(cls, *patterns: str) -> "RuleSet":
        return cls(tuple(FieldRule.parse(p) for p in patterns))

    def matches(self, path: FieldPath) -> bool:
        return any(rule.matches(path) for rule in self.rules)

    def has_rules_beneath(self, path: FieldPath) -> bool:
        """True if some rule sits strictly below *path*."""
        return any(
            len(rule.path) > len(path) and rule.path.is_within(path)
            for rule in self.rules
        )

    def __iter__(self):
        return iter(self.rules)

    def __len__(self) -> int:
        return len(self.rules)


EMPTY_RULES = RuleSet()


# ── Nested mapping helpers ───────────────────────────────────────────

def get_path(data: Any, path: FieldPath, default: Any = None) -> Any:
    """Walk *data* along *path*; return *default* when any step is missing."""
    current = data
    for key in path.segments:
        if not isinstance(current, Mapping) or key not in current:
            return default
        current = current[key]
    return current


def set_path(data: MutableMapping, path: FieldPath, value: Any) -> None:
    """Set *value* at *path*, creating intermediate dicts as needed."""
    current = data
    for key in path.segments[:-1]:
        nxt = current.get(key)
        if not isinstance(nxt, MutableMapping):
            nxt = {}
            current[key] = nxt
        current = nxt
    current[path.segments[-1]] = value


def iter_leaf_paths(data: Mapping, prefix: FieldPath = ROOT) -> Iterable[FieldPath]:
    """Yield the path of every non-mapping value in *data*."""
    for key, value in data.items():
        path = prefix.child(str(key))
        if isinstance(value, Mapping) and value:
            yield from iter_leaf_paths(value, path)
        else:
            yield path
