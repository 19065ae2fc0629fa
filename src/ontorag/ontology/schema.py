"""Record types stored in the learning ontology.

Schema:
    Concept {id, label, level, prerequisites, extra, added_at}
    Relation {from_id, relation_type, to_id, strength}

    (Concept)-[:<relation_type> {strength}]->(Concept)

A concept has a fixed core (label, level, prerequisites) plus an ``extra``
map holding any definition-specific fields (``keywords``, ``description``,
...). Relations are keyed by ``(from_id, relation_type, to_id)``.
"""

from __future__ import annotations

import copy
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any

# Known difficulty levels; other values are accepted as domain equivalents
LEVELS: tuple[str, ...] = ("beginner", "intermediate", "advanced")

DEFAULT_RELATION_STRENGTH = 1.0

# Keys managed by the graph itself, never taken from a properties mapping
RESERVED_KEYS: frozenset[str] = frozenset({"id", "addedAt"})

CORE_KEYS: tuple[str, ...] = ("label", "level", "prerequisites")


@dataclass(frozen=True)
class Concept:
    """A named unit of domain knowledge.

    ``extra`` belongs to the record. Readers that hand a concept out of the
    graph use :meth:`detached` so callers never share it.
    """

    id: str
    label: str | None = None
    level: str | None = None
    prerequisites: tuple[str, ...] | None = None
    extra: dict[str, Any] = field(default_factory=dict)
    added_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    core_keys: frozenset[str] = field(default=frozenset(), repr=False)
    """Core keys given explicitly, including ones set to None."""

    @classmethod
    def from_properties(cls, concept_id: str, properties: Mapping[str, Any] | None) -> Concept:
        """Build a concept record from a loose properties mapping (deep-copied)."""
        props = copy.deepcopy({k: v for k, v in (properties or {}).items() if k not in RESERVED_KEYS})
        core_keys = frozenset(k for k in CORE_KEYS if k in props)
        prerequisites = props.pop("prerequisites", None)
        return cls(
            id=concept_id,
            label=props.pop("label", None),
            level=props.pop("level", None),
            prerequisites=tuple(prerequisites) if prerequisites is not None else None,
            extra=props,
            core_keys=core_keys,
        )

    @property
    def display_label(self) -> str:
        """Label to show to humans (falls back to the id)."""
        return str(self.label) if self.label is not None and self.label != "" else self.id

    def detached(self) -> Concept:
        """Copy whose ``extra`` shares nothing with this record."""
        return replace(self, extra=copy.deepcopy(self.extra))

    def to_properties(self) -> dict[str, Any]:
        """Return the properties this record was built from."""
        props: dict[str, Any] = {}
        if self.label is not None or "label" in self.core_keys:
            props["label"] = self.label
        if self.level is not None or "level" in self.core_keys:
            props["level"] = self.level
        if self.prerequisites is not None:
            props["prerequisites"] = list(self.prerequisites)
        elif "prerequisites" in self.core_keys:
            props["prerequisites"] = None
        props.update(copy.deepcopy(self.extra))
        return props


@dataclass(frozen=True)
class Relation:
    """A typed, weighted directed edge between two concepts."""

    from_id: str
    relation_type: str
    to_id: str
    strength: float = DEFAULT_RELATION_STRENGTH

    @property
    def key(self) -> tuple[str, str, str]:
        """De-duplication key ``(from, type, to)``."""
        return (self.from_id, self.relation_type, self.to_id)
