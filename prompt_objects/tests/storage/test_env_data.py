"""
Unit tests for the thread-scoped environment data store.
"""

import pytest

from prompt_objects.src.storage import SessionStore


@pytest.fixture
def repo():
    s = SessionStore(":memory:")
    yield s
    s.close()


@pytest.fixture
def tree(repo):
    """A root thread T1 for 'coordinator' with a delegation T2 to 'solver'."""
    t1 = repo.create_thread("coordinator")
    t2 = repo.create_thread(
        "solver", parent_thread_id=t1, parent_agent="coordinator", thread_type="delegation"
    )
    return t1, t2


class TestEnvData:
    """Tests for env data CRUD and scoping."""

    def test_store_and_get(self, repo, tree):
        t1, _ = tree
        repo.store_env_data(t1, "task", "The task to solve", {"grid": [[1, 2], [3, 4]]}, stored_by="coordinator")

        entry = repo.get_env_data(t1, "task")
        assert entry.value == {"grid": [[1, 2], [3, 4]]}
        assert entry.short_description == "The task to solve"
        assert entry.stored_by == "coordinator"

    def test_store_is_an_upsert(self, repo, tree):
        t1, _ = tree
        repo.store_env_data(t1, "k", "first", 1)
        first = repo.get_env_data(t1, "k")
        repo.store_env_data(t1, "k", "second", 2)

        entry = repo.get_env_data(t1, "k")
        assert entry.value == 2
        assert entry.short_description == "second"
        assert entry.created_at == first.created_at
        assert len(repo.list_env_data(t1)) == 1

    def test_delegation_tree_shares_the_root_scope(self, repo, tree):
        t1, t2 = tree
        root = repo.resolve_root_thread(t2)
        assert root == t1
        repo.store_env_data(root, "task", "Shared task", {"goal": "sum"}, stored_by="solver")

        t3 = repo.create_thread("checker", parent_thread_id=t1, thread_type="delegation")
        entry = repo.get_env_data(repo.resolve_root_thread(t3), "task")
        assert entry.value == {"goal": "sum"}

    def test_unrelated_roots_are_isolated(self, repo, tree):
        t1, _ = tree
        other = repo.create_thread("coordinator")
        repo.store_env_data(t1, "secret", "only for T1", "value")

        assert repo.get_env_data(other, "secret") is None
        assert repo.list_env_data(other) == []

    def test_list_omits_values_and_sorts_by_key(self, repo, tree):
        t1, _ = tree
        repo.store_env_data(t1, "zeta", "last", "z")
        repo.store_env_data(t1, "alpha", "first", "a")

        entries = repo.list_env_data(t1)
        assert [e["key"] for e in entries] == ["alpha", "zeta"]
        assert all("value" not in e for e in entries)
        assert entries[0]["short_description"] == "first"

    def test_update_requires_existing_key(self, repo, tree):
        t1, _ = tree
        assert repo.update_env_data(t1, "missing", value=1) is False
        assert repo.get_env_data(t1, "missing") is None

    def test_update_keeps_omitted_fields(self, repo, tree):
        t1, _ = tree
        repo.store_env_data(t1, "k", "description", {"v": 1}, stored_by="a")

        assert repo.update_env_data(t1, "k", value={"v": 2})
        entry = repo.get_env_data(t1, "k")
        assert entry.value == {"v": 2}
        assert entry.short_description == "description"

        assert repo.update_env_data(t1, "k", short_description="new description", stored_by="b")
        entry = repo.get_env_data(t1, "k")
        assert entry.value == {"v": 2}
        assert entry.short_description == "new description"
        assert entry.stored_by == "b"

    def test_update_to_null_and_omitted_value(self, repo, tree):
        t1, _ = tree
        repo.store_env_data(t1, "k", "description", {"v": 1})

        assert repo.update_env_data(t1, "k", short_description="kept value")
        assert repo.get_env_data(t1, "k").value == {"v": 1}

        assert repo.update_env_data(t1, "k", value=None)
        entry = repo.get_env_data(t1, "k")
        assert entry is not None
        assert entry.value is None
        assert entry.short_description == "kept value"

    def test_deleting_the_root_thread_drops_its_env_data(self, repo, tree):
        t1, t2 = tree
        other = repo.create_thread("coordinator")
        repo.store_env_data(t1, "task", "shared", {"goal": "sum"})
        repo.store_env_data(other, "task", "separate", "kept")

        assert repo.delete_thread(t1)
        assert repo.get_env_data(t1, "task") is None
        assert repo.list_env_data(t1) == []
        assert repo.get_env_data(other, "task").value == "kept"

        # the delegation thread went with its root
        assert repo.resolve_root_thread(t2) is None

    def test_delete(self, repo, tree):
        t1, _ = tree
        repo.store_env_data(t1, "k", "d", 1)

        assert repo.delete_env_data(t1, "k") is True
        assert repo.delete_env_data(t1, "k") is False
        assert repo.get_env_data(t1, "k") is None

    def test_scalar_and_string_values(self, repo, tree):
        t1, _ = tree
        repo.store_env_data(t1, "n", "a number", 42)
        repo.store_env_data(t1, "s", "a string", "hello")
        repo.store_env_data(t1, "l", "a list", [1, "two"])

        assert repo.get_env_data(t1, "n").value == 42
        assert repo.get_env_data(t1, "s").value == "hello"
        assert repo.get_env_data(t1, "l").value == [1, "two"]
