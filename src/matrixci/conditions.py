# conditions.py
"""
Step conditions as plain predicates over a platform's attribute mapping.

Each condition is a small frozen value, so plans stay hashable and conditions
can be printed (`describe()`) and tested without running anything.

Example:
    install = sh("Install deps", "sudo apt-get install -y libgtk-3-dev", when=family("linux"))
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterable, Tuple

if TYPE_CHECKING:
    from .model import PlatformDescriptor


class Condition:
    def __call__(self, platform: "PlatformDescriptor") -> bool:
        return self.evaluate(platform)

    def evaluate(self, platform: "PlatformDescriptor") -> bool:
        raise NotImplementedError

    def describe(self) -> str:
        raise NotImplementedError


@dataclass(frozen=True)
class Always(Condition):
    def evaluate(self, platform: "PlatformDescriptor") -> bool:
        return True

    def describe(self) -> str:
        return "always"


@dataclass(frozen=True)
class Equals(Condition):
    key: str
    value: str

    def evaluate(self, platform: "PlatformDescriptor") -> bool:
        return platform.get(self.key) == self.value

    def describe(self) -> str:
        return f"{self.key} == {self.value!r}"


@dataclass(frozen=True)
class OneOf(Condition):
    key: str
    values: Tuple[str, ...]

    def evaluate(self, platform: "PlatformDescriptor") -> bool:
        current = platform.get(self.key)
        return current is not None and current in self.values

    def describe(self) -> str:
        return f"{self.key} in {list(self.values)!r}"


@dataclass(frozen=True)
class Not(Condition):
    inner: Condition

    def evaluate(self, platform: "PlatformDescriptor") -> bool:
        return not self.inner.evaluate(platform)

    def describe(self) -> str:
        return f"not ({self.inner.describe()})"


@dataclass(frozen=True)
class AllOf(Condition):
    items: Tuple[Condition, ...]

    def evaluate(self, platform: "PlatformDescriptor") -> bool:
        return all(c.evaluate(platform) for c in self.items)

    def describe(self) -> str:
        return " and ".join(f"({c.describe()})" for c in self.items) or "always"


@dataclass(frozen=True)
class AnyOf(Condition):
    items: Tuple[Condition, ...]

    def evaluate(self, platform: "PlatformDescriptor") -> bool:
        return any(c.evaluate(platform) for c in self.items)

    def describe(self) -> str:
        return " or ".join(f"({c.describe()})" for c in self.items) or "never"


# ---------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------

ALWAYS = Always()


def always() -> Condition:
    return ALWAYS


def equals(key: str, value: str) -> Condition:
    return Equals(key, str(value))


def one_of(key: str, values: Iterable[str]) -> Condition:
    return OneOf(key, tuple(str(v) for v in values))


def family(name: str) -> Condition:
    """Shorthand for equals("family", name)."""
    return Equals("family", name)


def negate(condition: Condition) -> Condition:
    return Not(condition)


def all_of(*conditions: Condition) -> Condition:
    return AllOf(tuple(conditions))


def any_of(*conditions: Condition) -> Condition:
    return AnyOf(tuple(conditions))
