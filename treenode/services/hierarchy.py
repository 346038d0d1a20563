"""
The hierarchy engine: validates and applies changes to the node forest and
materializes nodes into views and export snapshots.
"""
import logging
from typing import List, Optional, Tuple

from treenode.services.exceptions import CyclicReferenceError, DuplicateNameError, NotFoundError
from treenode.services.models import TreeNode, TreeNodeView, TreeSnapshot, utc_now
from treenode.services.persistence import NodeStore


class HierarchyEngine:
    """Create, read, update, move, delete and export operations over a NodeStore.

    Every mutation runs its checks and its write inside one write transaction,
    so a failed check leaves the stored tree untouched.
    """

    def __init__(self, store: NodeStore):
        self.store = store

    # --- Reads ---
    def get_node(self, node_id: int) -> TreeNodeView:
        """Returns a node with its whole subtree expanded."""
        logging.info(f"Fetching node {node_id}")
        with self.store.transaction(write=False):
            node = self.store.find_with_children(node_id)
            if node is None:
                raise NotFoundError(f"Node {node_id} not found")
            view, _ = self._expand(node)
        return view

    def get_roots(self) -> List[TreeNodeView]:
        logging.info("Fetching root nodes")
        return [TreeNodeView.shallow(node) for node in self.store.find_roots()]

    # --- Mutations ---
    def create_node(self, name: str, parent_id: Optional[int] = None) -> TreeNodeView:
        """Adds a node under parent_id (None for a root) and returns its shallow view.

        Name length is not checked here; the request models and the database CHECK
        reject an empty or over-long name, the latter as StoreFailureError(conflict=True).
        """
        logging.info(f"Creating node '{name}' under parent {parent_id}")
        with self.store.transaction():
            if self.store.find_by_name_and_parent(name, parent_id) is not None:
                raise DuplicateNameError(f"A node named '{name}' already exists under parent {parent_id}")

            if parent_id is not None and not self.store.exists(parent_id):
                raise NotFoundError(f"Parent node {parent_id} not found")

            node = TreeNode(name=name, parent_id=parent_id, created_at=utc_now())
            self.store.add(node)
            self.store.commit()

        logging.info(f"Node {node.id} created")
        return TreeNodeView.shallow(node)

    def update_node(self, node_id: int, name: str, new_parent_id: Optional[int] = None) -> TreeNodeView:
        """Renames a node and/or re-parents it. new_parent_id=None means the root set."""
        logging.info(f"Updating node {node_id}")
        with self.store.transaction():
            node = self._require(node_id)

            if node.name != name:
                existing = self.store.find_by_name_and_parent(name, node.parent_id)
                if existing is not None and existing.id != node.id:
                    raise DuplicateNameError(f"A node named '{name}' already exists under this parent")
                node.name = name
                self.store.update(node)

            if new_parent_id != node.parent_id:
                self._validate_and_move(node, new_parent_id)

            self.store.commit()

        logging.info(f"Node {node_id} updated")
        return TreeNodeView.shallow(node)

    def move_node(self, node_id: int, new_parent_id: Optional[int] = None) -> TreeNodeView:
        logging.info(f"Moving node {node_id} under parent {new_parent_id}")
        with self.store.transaction():
            node = self._require(node_id)
            self._validate_and_move(node, new_parent_id)
            self.store.commit()

        logging.info(f"Node {node_id} moved")
        return TreeNodeView.shallow(node)

    def delete_node(self, node_id: int):
        """Deletes a node together with all of its descendants."""
        logging.info(f"Deleting node {node_id} with its subtree")
        with self.store.transaction():
            node = self._require(node_id)
            if self.store.has_children(node_id):
                logging.info(f"Node {node_id} has descendants; they are deleted with it")
            self.store.remove(node)
            self.store.commit()
        logging.info(f"Node {node_id} and its subtree deleted")

    # --- Export ---
    def export_tree(self) -> TreeSnapshot:
        logging.info("Exporting tree")
        roots: List[TreeNodeView] = []
        total_nodes = 0
        with self.store.transaction(write=False):
            for root in self.store.find_roots():
                full_node = self.store.find_with_children(root.id)
                if full_node is None:
                    continue
                view, count = self._expand(full_node)
                roots.append(view)
                total_nodes += count
        return TreeSnapshot(roots=roots, total_nodes=total_nodes, export_date=utc_now())

    # --- Cycle detection ---
    def check_for_cycle(self, node_id: int, candidate_parent_id: Optional[int]) -> bool:
        """True when putting node_id under candidate_parent_id would make it its own ancestor."""
        if candidate_parent_id is None:
            return False
        if candidate_parent_id == node_id:
            return True
        return node_id in self.store.ancestor_ids(candidate_parent_id)

    def _validate_and_move(self, node: TreeNode, new_parent_id: Optional[int]):
        if self.check_for_cycle(node.id, new_parent_id):
            raise CyclicReferenceError("Cannot move node: the move would create a cyclic reference")

        if new_parent_id is not None and not self.store.exists(new_parent_id):
            raise NotFoundError(f"Parent node {new_parent_id} not found")

        existing = self.store.find_by_name_and_parent(node.name, new_parent_id)
        if existing is not None and existing.id != node.id:
            raise DuplicateNameError(f"A node named '{node.name}' already exists under the new parent")

        node.parent_id = new_parent_id
        self.store.update(node)

    # --- Helpers ---
    def _require(self, node_id: int) -> TreeNode:
        node = self.store.find_by_id(node_id)
        if node is None:
            raise NotFoundError(f"Node {node_id} not found")
        return node

    def _expand(self, node: TreeNode) -> Tuple[TreeNodeView, int]:
        """Builds the deep view of a node with an explicit stack; returns it with its node count.

        Uses the node's preloaded children for the first level and queries the
        store for every level below.
        """
        root_view = TreeNodeView.shallow(node)
        count = 1
        stack = [(root_view, node.children)]
        while stack:
            parent_view, children = stack.pop()
            for child in children:
                child_view = TreeNodeView.shallow(child)
                parent_view.children.append(child_view)
                count += 1
                stack.append((child_view, self.store.find_children(child.id)))
        return root_view, count
