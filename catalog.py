"""
In-memory catalog snapshot.

The composite's `component_ids` list is the single source of truth for
composition links. The reverse index (component -> owning composite) is
derived from those lists every time a snapshot is built, so the two
directions cannot drift apart inside the engine.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Iterator, Optional

from item import ChangeSet, InventoryItem

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LinkIssue:
    """A composition link that does not line up (reported, never raised)."""

    composite_id: str
    component_id: str
    problem: str


class Catalog:
    def __init__(self, items: Iterable[InventoryItem] = ()) -> None:
        self._items: dict[str, InventoryItem] = {}
        for item in items:
            self._items[item.id] = item
        self._parent_of: dict[str, str] = {}
        self._issues: list[LinkIssue] = []
        self._rebuild_index()

    def _rebuild_index(self) -> None:
        self._parent_of.clear()
        self._issues.clear()
        for composite in self._items.values():
            for component_id in composite.component_ids:
                if component_id not in self._items:
                    self._issues.append(LinkIssue(composite.id, component_id, "missing component"))
                    continue
                owner = self._parent_of.setdefault(component_id, composite.id)
                if owner != composite.id:
                    self._issues.append(LinkIssue(composite.id, component_id, f"already owned by {owner}"))

        # Legacy records may carry only the back-reference; adopt them when the
        # parent exists and nobody else lists the component.
        for item in self._items.values():
            parent_id = item.parent_container_id
            if not parent_id:
                continue
            owner = self._parent_of.get(item.id)
            if owner is None:
                if parent_id in self._items:
                    self._parent_of[item.id] = parent_id
                    self._issues.append(LinkIssue(parent_id, item.id, "back-reference only"))
                else:
                    self._issues.append(LinkIssue(parent_id, item.id, "parent missing"))
            elif owner != parent_id:
                self._issues.append(LinkIssue(owner, item.id, f"back-reference points to {parent_id}"))

        for issue in self._issues:
            logger.debug(
                "Link issue: composite=%s component=%s (%s)",
                issue.composite_id,
                issue.component_id,
                issue.problem,
            )

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[InventoryItem]:
        return iter(self._items.values())

    def __contains__(self, item_id: object) -> bool:
        return item_id in self._items

    def get(self, item_id: str) -> Optional[InventoryItem]:
        return self._items.get(item_id)

    def require(self, item_id: str) -> InventoryItem:
        item = self._items.get(item_id)
        if item is None:
            raise ValueError(f"Item id '{item_id}' not found.")
        return item

    def items(self) -> list[InventoryItem]:
        return list(self._items.values())

    def parent_of(self, item_id: str) -> Optional[str]:
        return self._parent_of.get(item_id)

    def components_of(self, composite_id: str) -> list[InventoryItem]:
        """
        Linked components in list order, followed by any adopted back-reference
        components. Dangling ids are skipped.
        """
        composite = self._items.get(composite_id)
        if composite is None:
            return []
        result: list[InventoryItem] = []
        seen: set[str] = set()
        for component_id in composite.component_ids:
            component = self._items.get(component_id)
            if component is None or component_id in seen:
                continue
            if self._parent_of.get(component_id) != composite_id:
                continue
            seen.add(component_id)
            result.append(component)
        for component_id, owner in self._parent_of.items():
            if owner == composite_id and component_id not in seen:
                seen.add(component_id)
                result.append(self._items[component_id])
        return result

    def link_issues(self) -> list[LinkIssue]:
        return list(self._issues)

    def apply(self, changes: ChangeSet) -> "Catalog":
        """Returns a new snapshot with the batch applied; this snapshot is untouched."""
        items = dict(self._items)
        for item_id in changes.deleted:
            items.pop(item_id, None)
        for item in changes.created + changes.updated:
            items[item.id] = item
        return Catalog(items.values())
