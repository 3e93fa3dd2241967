"""Ordered registry of top-level candidates and the embeds discovered under them."""
from __future__ import annotations
from dataclasses import dataclass
from typing import Iterable, Optional

from .errors import DuplicateCandidate, UnknownParent


@dataclass(frozen=True)
class TreeItem:
    id: str
    children: tuple[str, ...] = ()

    def to_dict(self):
        return {"id": self.id, "children": list(self.children)}


class CandidateTree:
    def __init__(self):
        self._roots: list[str] = []
        self._children: dict[str, list[str]] = {}
        self._parents: dict[str, Optional[str]] = {}

    def register_roots(self, ids: Iterable[str]) -> None:
        """Replace the whole tree with a fresh, ordered set of roots.

        A repeated id is rejected before the current tree is touched.
        """
        ids = list(ids)
        seen = set()
        for candidate_id in ids:
            if candidate_id in seen:
                raise DuplicateCandidate(candidate_id)
            seen.add(candidate_id)
        self.clear()
        for candidate_id in ids:
            self._roots.append(candidate_id)
            self._children[candidate_id] = []
            self._parents[candidate_id] = None

    def attach_children(self, parent_id: str, child_ids: Iterable[str]) -> None:
        """Append children under a known candidate.

        Discovery can happen incrementally, so repeated calls for the same
        parent extend its list instead of replacing it.
        """
        if parent_id not in self._parents:
            raise UnknownParent(parent_id)
        child_ids = list(child_ids)
        seen = set()
        for child_id in child_ids:
            if child_id in self._parents or child_id in seen:
                raise DuplicateCandidate(child_id)
            seen.add(child_id)
        for child_id in child_ids:
            self._children[parent_id].append(child_id)
            self._children[child_id] = []
            self._parents[child_id] = parent_id

    @property
    def roots(self) -> tuple[str, ...]:
        return tuple(self._roots)

    def children(self, candidate_id: str) -> tuple[str, ...]:
        return tuple(self._children.get(candidate_id, ()))

    def parent_of(self, candidate_id: str) -> Optional[str]:
        return self._parents.get(candidate_id)

    def snapshot(self) -> tuple[TreeItem, ...]:
        return tuple(TreeItem(id=r, children=tuple(self._children[r])) for r in self._roots)

    def clear(self) -> None:
        self._roots = []
        self._children = {}
        self._parents = {}

    def __contains__(self, candidate_id: str) -> bool:
        return candidate_id in self._parents

    def __len__(self) -> int:
        return len(self._parents)
