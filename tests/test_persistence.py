"""Tests for NodeStore."""

import sqlite3

import pytest

from treenode.services.exceptions import StoreFailureError
from treenode.services.models import TreeNode
from treenode.services.persistence import NodeStore


def add_node(store, name, parent_id=None):
    node = TreeNode(name=name, parent_id=parent_id)
    store.add(node)
    store.commit()
    return node


class TestLookups:

    def test_add_assigns_id_and_round_trips(self, store):
        node = add_node(store, "root")
        assert node.id is not None

        loaded = store.find_by_id(node.id)
        assert loaded.name == "root"
        assert loaded.parent_id is None
        assert loaded.created_at == node.created_at

    def test_find_by_id_missing(self, store):
        assert store.find_by_id(999) is None
        assert store.exists(999) is False

    def test_children_and_roots(self, store):
        a = add_node(store, "A")
        b = add_node(store, "B")
        c1 = add_node(store, "C1", a.id)
        c2 = add_node(store, "C2", a.id)

        assert [n.id for n in store.find_roots()] == [a.id, b.id]
        assert [n.id for n in store.find_children(a.id)] == [c1.id, c2.id]
        assert store.has_children(a.id) is True
        assert store.has_children(b.id) is False

    def test_find_with_children_loads_one_level(self, store):
        a = add_node(store, "A")
        b = add_node(store, "B", a.id)
        add_node(store, "C", b.id)

        loaded = store.find_with_children(a.id)
        assert [child.name for child in loaded.children] == ["B"]
        assert loaded.children[0].children == []
        assert store.find_with_children(999) is None

    def test_find_by_name_and_parent_distinguishes_roots(self, store):
        a = add_node(store, "A")
        child = add_node(store, "X", a.id)

        assert store.find_by_name_and_parent("X", a.id).id == child.id
        assert store.find_by_name_and_parent("X", None) is None
        assert store.find_by_name_and_parent("A", None).id == a.id


class TestAncestors:

    def test_chain_immediate_parent_first(self, store):
        a = add_node(store, "A")
        b = add_node(store, "B", a.id)
        c = add_node(store, "C", b.id)

        assert store.ancestor_ids(c.id) == [b.id, a.id]
        assert store.ancestor_ids(a.id) == []
        assert store.ancestor_ids(999) == []

    def test_dangling_parent_ends_walk(self, store):
        a = add_node(store, "A")
        b = add_node(store, "B", a.id)
        # Break the chain behind the store's back
        store.conn.execute("PRAGMA foreign_keys = OFF")
        store.conn.execute("UPDATE nodes SET parent_id = 424242 WHERE id = ?", (a.id,))

        assert store.ancestor_ids(b.id) == [a.id, 424242]

    def test_corrupt_loop_terminates(self, store):
        a = add_node(store, "A")
        b = add_node(store, "B", a.id)
        store.conn.execute("UPDATE nodes SET parent_id = ? WHERE id = ?", (b.id, a.id))

        assert store.ancestor_ids(b.id) == [a.id]


class TestWrites:

    def test_unique_index_rejects_duplicate_roots(self, store):
        add_node(store, "A")
        with pytest.raises(StoreFailureError) as excinfo:
            add_node(store, "A")
        assert excinfo.value.conflict is True
        assert len(store.find_roots()) == 1

    def test_same_name_allowed_under_different_parents(self, store):
        a = add_node(store, "A")
        b = add_node(store, "B")
        add_node(store, "X", a.id)
        add_node(store, "X", b.id)
        assert store.count_nodes() == 4

    def test_foreign_key_rejects_unknown_parent(self, store):
        with pytest.raises(StoreFailureError) as excinfo:
            add_node(store, "orphan", 999)
        assert excinfo.value.conflict is True
        assert store.count_nodes() == 0

    def test_name_length_check(self, store):
        with pytest.raises(StoreFailureError):
            add_node(store, "x" * 51)
        with pytest.raises(StoreFailureError):
            add_node(store, "")

    def test_remove_cascades_to_subtree(self, store):
        a = add_node(store, "A")
        b = add_node(store, "B", a.id)
        add_node(store, "C", b.id)
        other = add_node(store, "Other")

        store.remove(a)
        assert store.commit() == 1

        assert store.count_nodes() == 1
        assert store.find_by_id(other.id) is not None

    def test_update_writes_name_and_parent(self, store):
        a = add_node(store, "A")
        b = add_node(store, "B")
        b.name = "B2"
        b.parent_id = a.id
        store.update(b)
        assert store.commit() == 1

        loaded = store.find_by_id(b.id)
        assert (loaded.name, loaded.parent_id) == ("B2", a.id)

    def test_commit_without_changes(self, store):
        assert store.commit() == 0


class TestTransactions:

    def test_exception_rolls_back_everything(self, store):
        add_node(store, "kept")
        with pytest.raises(RuntimeError):
            with store.transaction():
                store.add(TreeNode(name="lost"))
                store.commit()
                raise RuntimeError("boom")

        assert [n.name for n in store.find_roots()] == ["kept"]

    def test_staged_changes_flushed_on_exit(self, store):
        with store.transaction():
            store.add(TreeNode(name="A"))
        assert store.count_nodes() == 1

    def test_nested_transaction_joins_outer(self, store):
        with pytest.raises(RuntimeError):
            with store.transaction():
                with store.transaction():
                    store.add(TreeNode(name="inner"))
                    store.commit()
                raise RuntimeError("outer fails")
        assert store.count_nodes() == 0

    def test_write_transaction_blocks_second_writer(self, db_path):
        first = NodeStore(db_path)
        second = NodeStore(db_path, timeout=0.1)
        try:
            with first.transaction():
                with pytest.raises(StoreFailureError):
                    with second.transaction():
                        pass
        finally:
            first.close()
            second.close()

    def test_rollback_leaves_connection_usable(self, store):
        with pytest.raises(StoreFailureError):
            with store.transaction():
                store.add(TreeNode(name="bad", parent_id=12345))
                store.commit()

        assert store.conn.in_transaction is False
        add_node(store, "good")
        assert store.count_nodes() == 1

    def test_schema_creation_is_idempotent(self, db_path):
        NodeStore(db_path).close()
        NodeStore(db_path).close()
        conn = sqlite3.connect(db_path)
        try:
            tables = conn.execute("SELECT name FROM sqlite_master WHERE type = 'table' AND name = 'nodes'").fetchall()
        finally:
            conn.close()
        assert tables == [("nodes",)]
