# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""Tests for delegation threads and the delegation preamble."""
from prompt_objects.src.agents.delegation import (
    create_delegation_thread,
    build_delegation_chain,
    build_delegation_preamble,
    env_data_available,
)
from prompt_objects.src.types.agent_types import DelegationInfo


class TestDelegationThread:

    def test_thread_records_lineage(self, store):
        root = store.create_thread("coordinator")
        call_id = store.add_message(root, "assistant", tool_calls=[{"id": "c1", "name": "solver", "arguments": {}}])
        info = DelegationInfo(
            caller="coordinator", parent_thread_id=root, parent_message_id=call_id, tool_call_id="c1"
        )

        child = store.get_thread(create_delegation_thread(store, "solver", info))

        assert child.agent_name == "solver"
        assert child.thread_type == "delegation"
        assert child.source == "delegation"
        assert child.parent_thread_id == root
        assert child.parent_message_id == call_id
        assert child.parent_agent == "coordinator"
        assert child.metadata == {"tool_call_id": "c1"}

    def test_no_store(self):
        assert create_delegation_thread(None, "solver", DelegationInfo(caller="a")) is None


class TestPreamble:

    def test_chain_from_lineage(self, store):
        t1 = store.create_thread("coordinator")
        t2 = store.create_thread("solver", parent_thread_id=t1, thread_type="delegation")
        t3 = store.create_thread("observer", parent_thread_id=t2, thread_type="delegation")

        assert build_delegation_chain(store, t3, "observer") == "human -> coordinator -> solver -> you (observer)"

    def test_chain_from_call_stack(self):
        assert build_delegation_chain(None, None, "solver", fallback=["coordinator"]) == "human -> coordinator -> you (solver)"
        assert build_delegation_chain(None, None, "solver") == "human -> you (solver)"

    def test_preamble_without_env_data(self):
        info = DelegationInfo(caller="coordinator", caller_description="Splits up work", chain=["coordinator"])
        preamble = build_delegation_preamble("solver", info)

        assert preamble == "\n".join([
            "---",
            "[Delegation Context]",
            "Called by: coordinator",
            'coordinator is: "Splits up work"',
            "Delegation chain: human -> coordinator -> you (solver)",
            "---",
        ])

    def test_preamble_mentions_env_data(self, store):
        t1 = store.create_thread("coordinator")
        t2 = store.create_thread("solver", parent_thread_id=t1, thread_type="delegation")
        assert not env_data_available(store, t2)

        store.store_env_data(t1, "k", "d", 1)
        assert env_data_available(store, t2)

        preamble = build_delegation_preamble("solver", DelegationInfo(caller="coordinator"), store, t2)
        assert "list_env_data()" in preamble
        assert " is: " not in preamble
