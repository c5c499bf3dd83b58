"""Subtree loading and traversal over the item table.

The hierarchy is stored as rows with a parent id. Recursive operations
load the subtree below an item level by level into an id -> children
map and walk that map, so no object graph is ever built.
"""

from collections.abc import Iterable, Iterator
from typing import Final, final

from server.apps.drive.models import Item

# Max ids per IN (...) clause, stays below SQLite's variable limit
_CHUNK_SIZE: Final = 500


def chunked(ids: list[int], size: int = _CHUNK_SIZE) -> Iterator[list[int]]:
    """Split ids into lists of at most ``size`` elements."""
    for start in range(0, len(ids), size):
        yield ids[start:start + size]


@final
class Subtree:
    """An item together with every row below it.

    Built by ``load_subtree``. The index holds trashed and active rows
    alike, callers filter on ``is_deleted`` while walking.
    """

    def __init__(self, root: Item, children: dict[int, list[Item]]) -> None:
        self.root = root
        self._children = children

    def children_of(self, item_id: int) -> list[Item]:
        """Direct children of an item inside the subtree."""
        return self._children.get(item_id, [])

    def walk(self) -> Iterator[Item]:
        """Yield the root and its descendants in pre-order."""
        seen: set[int] = set()
        stack = [self.root]
        while stack:
            node = stack.pop()
            if node.pk in seen:
                continue
            seen.add(node.pk)
            yield node
            # Reverse so children come out in their stored order
            stack.extend(reversed(self.children_of(node.pk)))

    def descendants(self) -> Iterator[Item]:
        """Yield every node below the root in pre-order."""
        nodes = self.walk()
        next(nodes)
        yield from nodes

    def ids(self) -> list[int]:
        """Ids of all nodes, parents before children."""
        return [node.pk for node in self.walk()]

    def files(self) -> Iterator[Item]:
        """Yield every file node, trashed or not."""
        for node in self.walk():
            if node.is_file:
                yield node

    def total_file_bytes(self) -> int:
        """Sum of file sizes in the subtree, folders count as zero."""
        return sum(node.size_bytes for node in self.files())

    def active_file_bytes(self) -> int:
        """Sum of file sizes reachable through active nodes only."""
        total = 0
        stack = [self.root]
        while stack:
            node = stack.pop()
            if node.is_deleted:
                continue
            if node.is_file:
                total += node.size_bytes
            stack.extend(self.children_of(node.pk))
        return total

    def __len__(self) -> int:
        return sum(1 for _ in self.walk())


def _load_children(owner_id: int, parent_ids: Iterable[int]) -> list[Item]:
    rows: list[Item] = []
    for chunk in chunked(list(parent_ids)):
        rows.extend(
            Item.all_objects.filter(
                owner_id=owner_id,
                parent_id__in=chunk,
            ).order_by('kind', 'name', 'pk'),
        )
    return rows


def load_subtree(root: Item) -> Subtree:
    """Load every row below ``root`` into a subtree index.

    One query per tree level (per chunk of parent ids). Rows are
    restricted to the root's owner.

    Args:
        root: Item at the top of the subtree.

    Returns:
        Subtree index rooted at ``root``.
    """
    children: dict[int, list[Item]] = {}
    seen = {root.pk}
    frontier = [root.pk] if root.is_folder else []

    while frontier:
        next_frontier: list[int] = []
        for child in _load_children(root.owner_id, frontier):
            if child.pk in seen:
                continue
            seen.add(child.pk)
            children.setdefault(child.parent_id, []).append(child)
            if child.is_folder:
                next_frontier.append(child.pk)
        frontier = next_frontier

    return Subtree(root, children)


def is_same_or_descendant(candidate: Item | None, ancestor_id: int) -> bool:
    """Check whether ``candidate`` is ``ancestor_id`` or lies below it.

    Walks parent links from the candidate up to the root, trashed
    ancestors included.

    Args:
        candidate: Item to start the walk from (None means root level).
        ancestor_id: Id of the potential ancestor.

    Returns:
        True if the walk reaches ``ancestor_id``.
    """
    seen: set[int] = set()
    current_id = candidate.pk if candidate is not None else None
    parent_id = candidate.parent_id if candidate is not None else None

    while current_id is not None:
        if current_id == ancestor_id:
            return True
        if current_id in seen:
            # Corrupted data, refuse to loop forever
            return False
        seen.add(current_id)
        current_id = parent_id
        if current_id is not None:
            parent_id = (
                Item.all_objects.filter(pk=current_id)
                .values_list('parent_id', flat=True)
                .first()
            )
    return False
