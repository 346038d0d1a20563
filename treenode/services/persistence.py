"""
Handles all database interactions for the node hierarchy.
"""
import logging
import os
import sqlite3
from contextlib import contextmanager
from datetime import datetime
from typing import List, Optional, Tuple

from treenode.services.exceptions import StoreFailureError
from treenode.services.models import TreeNode

DB_FILE = os.getenv("TREENODE_DB_FILE", "treenode.db")
DB_TIMEOUT = float(os.getenv("TREENODE_DB_TIMEOUT", "5"))

_NODE_COLUMNS = "id, name, parent_id, created_at"


def _row_to_node(row) -> TreeNode:
    node_id, name, parent_id, created_at = row
    return TreeNode(id=node_id, name=name, parent_id=parent_id,
                    created_at=datetime.fromisoformat(created_at))


class NodeStore:
    """Manages SQLite storage of tree nodes.

    Writes are staged with add/update/remove and written by commit(), inside
    the transaction opened by transaction() when there is one.
    """

    def __init__(self, db_file=DB_FILE, timeout: float = DB_TIMEOUT):
        try:
            # Transactions are issued explicitly, so the driver must not open its own
            self.conn = sqlite3.connect(db_file, timeout=timeout, isolation_level=None,
                                        check_same_thread=False)
            self.conn.execute("PRAGMA foreign_keys = ON")
            self._create_tables()
            logging.debug(f"Database connection established: {db_file}")
        except Exception as e:
            logging.error(f"Failed to initialize database: {e}", exc_info=True)
            raise
        self._pending: List[Tuple[str, TreeNode]] = []
        self._in_transaction = False

    def _create_tables(self):
        """Creates the nodes table and its constraints if they don't already exist."""
        cursor = self.conn.cursor()
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS nodes (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                name TEXT NOT NULL CHECK (length(name) BETWEEN 1 AND 50),
                parent_id INTEGER,
                created_at TEXT NOT NULL,
                FOREIGN KEY (parent_id) REFERENCES nodes (id) ON DELETE CASCADE
            )
        """)
        # Roots share the parent value 0, which AUTOINCREMENT never hands out
        cursor.execute("""
            CREATE UNIQUE INDEX IF NOT EXISTS ux_nodes_parent_name
            ON nodes (IFNULL(parent_id, 0), name)
        """)
        cursor.execute("CREATE INDEX IF NOT EXISTS ix_nodes_parent ON nodes (parent_id)")

    # --- Lookups ---
    def find_by_id(self, node_id: int) -> Optional[TreeNode]:
        cursor = self.conn.cursor()
        cursor.execute(f"SELECT {_NODE_COLUMNS} FROM nodes WHERE id = ?", (node_id,))
        row = cursor.fetchone()
        return _row_to_node(row) if row else None

    def find_children(self, parent_id: int) -> List[TreeNode]:
        """Returns the direct children of a node, oldest first."""
        cursor = self.conn.cursor()
        cursor.execute(f"SELECT {_NODE_COLUMNS} FROM nodes WHERE parent_id = ? ORDER BY id", (parent_id,))
        return [_row_to_node(row) for row in cursor.fetchall()]

    def find_roots(self) -> List[TreeNode]:
        cursor = self.conn.cursor()
        cursor.execute(f"SELECT {_NODE_COLUMNS} FROM nodes WHERE parent_id IS NULL ORDER BY id")
        return [_row_to_node(row) for row in cursor.fetchall()]

    def find_with_children(self, node_id: int) -> Optional[TreeNode]:
        """Loads a node with its direct children populated."""
        node = self.find_by_id(node_id)
        if node is not None:
            node.children = self.find_children(node.id)
        return node

    def exists(self, node_id: int) -> bool:
        cursor = self.conn.cursor()
        cursor.execute("SELECT 1 FROM nodes WHERE id = ? LIMIT 1", (node_id,))
        return cursor.fetchone() is not None

    def has_children(self, node_id: int) -> bool:
        cursor = self.conn.cursor()
        cursor.execute("SELECT 1 FROM nodes WHERE parent_id = ? LIMIT 1", (node_id,))
        return cursor.fetchone() is not None

    def find_by_name_and_parent(self, name: str, parent_id: Optional[int]) -> Optional[TreeNode]:
        """Looks up a sibling by name. parent_id=None searches the roots."""
        cursor = self.conn.cursor()
        if parent_id is None:
            cursor.execute(f"SELECT {_NODE_COLUMNS} FROM nodes WHERE name = ? AND parent_id IS NULL", (name,))
        else:
            cursor.execute(f"SELECT {_NODE_COLUMNS} FROM nodes WHERE name = ? AND parent_id = ?",
                           (name, parent_id))
        row = cursor.fetchone()
        return _row_to_node(row) if row else None

    def ancestor_ids(self, node_id: int) -> List[int]:
        """Returns the ids above a node, immediate parent first.

        The walk ends at a root, at a parent reference with no row behind it,
        or when an id repeats.
        """
        ancestor_ids: List[int] = []
        node = self.find_by_id(node_id)
        if node is None:
            return ancestor_ids

        seen = {node_id}
        current_parent_id = node.parent_id
        while current_parent_id is not None and current_parent_id not in seen:
            ancestor_ids.append(current_parent_id)
            seen.add(current_parent_id)
            parent = self.find_by_id(current_parent_id)
            current_parent_id = parent.parent_id if parent else None
        return ancestor_ids

    def count_nodes(self) -> int:
        cursor = self.conn.cursor()
        cursor.execute("SELECT COUNT(*) FROM nodes")
        return cursor.fetchone()[0]

    # --- Staged writes ---
    def add(self, node: TreeNode):
        self._pending.append(("add", node))
        logging.debug(f"Node '{node.name}' staged for insert")

    def update(self, node: TreeNode):
        self._pending.append(("update", node))
        logging.debug(f"Node {node.id} staged for update")

    def remove(self, node: TreeNode):
        self._pending.append(("remove", node))
        logging.debug(f"Node {node.id} staged for removal")

    def commit(self) -> int:
        """Writes all staged changes and returns the number of rows touched directly."""
        if not self._pending:
            return 0
        if self._in_transaction:
            return self._flush()
        with self.transaction():
            return self._flush()

    def _flush(self) -> int:
        cursor = self.conn.cursor()
        affected = 0
        try:
            for action, node in self._pending:
                if action == "add":
                    cursor.execute(
                        "INSERT INTO nodes (name, parent_id, created_at) VALUES (?, ?, ?)",
                        (node.name, node.parent_id, node.created_at.isoformat())
                    )
                    node.id = cursor.lastrowid
                elif action == "update":
                    cursor.execute(
                        "UPDATE nodes SET name = ?, parent_id = ? WHERE id = ?",
                        (node.name, node.parent_id, node.id)
                    )
                else:
                    # Descendants go with it through ON DELETE CASCADE
                    cursor.execute("DELETE FROM nodes WHERE id = ?", (node.id,))
                affected += cursor.rowcount
        except sqlite3.IntegrityError as e:
            logging.error(f"Constraint violation while writing nodes: {e}", exc_info=True)
            raise StoreFailureError(f"Constraint violation: {e}", conflict=True) from e
        except sqlite3.Error as e:
            logging.error(f"Failed to write nodes: {e}", exc_info=True)
            raise StoreFailureError(f"Failed to write nodes: {e}") from e
        finally:
            self._pending.clear()
        return affected

    # --- Transactions ---
    @contextmanager
    def transaction(self, write: bool = True):
        """Runs the enclosed block in one database transaction.

        Write transactions take SQLite's reserved lock up front, so concurrent
        writers queue behind each other for the whole check-then-write
        sequence. Nested calls join the outer transaction.
        """
        if self._in_transaction:
            yield self
            return

        try:
            self.conn.execute("BEGIN IMMEDIATE" if write else "BEGIN")
        except sqlite3.Error as e:
            logging.error(f"Failed to begin transaction: {e}", exc_info=True)
            raise StoreFailureError(f"Failed to begin transaction: {e}") from e

        self._in_transaction = True
        try:
            yield self
            if self._pending:
                self._flush()
            self.conn.execute("COMMIT")
        except sqlite3.Error as e:
            self._rollback()
            logging.error(f"Failed to commit transaction: {e}", exc_info=True)
            raise StoreFailureError(f"Failed to commit transaction: {e}") from e
        except BaseException:
            self._rollback()
            raise
        finally:
            self._in_transaction = False

    def _rollback(self):
        self._pending.clear()
        if self.conn.in_transaction:
            self.conn.execute("ROLLBACK")

    def close(self):
        """Closes the database connection."""
        self.conn.close()
