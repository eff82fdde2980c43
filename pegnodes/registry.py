"""Node registry — generated node definitions keyed by name, first write wins."""

from __future__ import annotations

import logging
from collections.abc import Iterator

from .nodes import NodeDef

logger = logging.getLogger(__name__)


class Registry:
    """Insertion-ordered map from node name to node definition.

    insert() never overwrites: re-deriving a name keeps the first definition,
    which is what lets recursive and mutually recursive rules terminate.
    """

    def __init__(self) -> None:
        self._nodes: dict[str, NodeDef] = {}

    def insert(self, node: NodeDef) -> NodeDef:
        """Insert node unless its name is taken. Returns the stored node."""
        existing = self._nodes.get(node.name)
        if existing is None:
            self._nodes[node.name] = node
            return node
        if existing != node:
            logger.warning(
                "ignoring redefinition of node %s (%s) as %s",
                node.name,
                type(existing).__name__,
                type(node).__name__,
            )
        return existing

    def merge(self, other: Registry) -> list[str]:
        """Insert every node of other. Returns names whose definitions diverged."""
        conflicts: list[str] = []
        for node in other:
            existing = self._nodes.get(node.name)
            if existing is not None and existing != node:
                conflicts.append(node.name)
                continue
            self.insert(node)
        return conflicts

    def get(self, name: str) -> NodeDef | None:
        return self._nodes.get(name)

    def __getitem__(self, name: str) -> NodeDef:
        return self._nodes[name]

    def __contains__(self, name: object) -> bool:
        return name in self._nodes

    def __iter__(self) -> Iterator[NodeDef]:
        return iter(list(self._nodes.values()))

    def __len__(self) -> int:
        return len(self._nodes)

    def names(self) -> list[str]:
        return list(self._nodes.keys())

    def dangling(self) -> list[str]:
        """Child references with no definition, in first-seen order."""
        missing: list[str] = []
        for node in self._nodes.values():
            for child in node.children():
                if child not in self._nodes and child not in missing:
                    missing.append(child)
        return missing

    def to_dict(self) -> dict[str, dict[str, object]]:
        """Shape of every node, keyed by name."""
        return {name: node.describe() for name, node in self._nodes.items()}
