# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""Functions for making agent-to-agent calls"""

from __future__ import annotations

import logging

from typing import Optional, TYPE_CHECKING

from ..types.agent_types import ThreadType, DelegationInfo

if TYPE_CHECKING:
    from ..storage.session_store import SessionStore

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)


def create_delegation_thread(
    store: Optional[SessionStore],
    target: str,
    delegation: DelegationInfo,
) -> Optional[str]:
    """
    Open the child thread a delegated call runs in.

    The thread records the caller's thread, the assistant message holding the
    tool call, the calling agent and the tool call id, so the tree can later
    be rendered with each child inlined at its triggering call.

    Returns:
        The new thread id, or None when running without a store
    """
    if store is None:
        return None

    metadata = {}
    if delegation.tool_call_id:
        metadata["tool_call_id"] = delegation.tool_call_id

    thread_id = store.create_thread(
        target,
        name=f"Delegation from {delegation.caller}",
        source="delegation",
        parent_thread_id=delegation.parent_thread_id,
        parent_message_id=delegation.parent_message_id,
        parent_agent=delegation.caller,
        thread_type=ThreadType.DELEGATION,
        metadata=metadata,
    )
    logger.info(f"{delegation.caller} delegated to {target} in thread {thread_id}")
    return thread_id


def build_delegation_chain(
    store: Optional[SessionStore],
    thread_id: Optional[str],
    target: str,
    fallback: Optional[list[str]] = None,
) -> str:
    """
    Human-readable chain of who called whom.

    For example ``human -> coordinator -> solver -> you (observer)``. Built
    from the thread lineage when a store is available, otherwise from
    ``fallback`` (the delegation call stack, excluding the target).
    """
    names: list[str] = []
    lineage = store.get_thread_lineage(thread_id) if store and thread_id else []
    if lineage:
        names = [t.agent_name for t in lineage[:-1]]
    elif fallback:
        names = list(fallback)
    return " -> ".join(["human", *names, f"you ({target})"])


def env_data_available(store: Optional[SessionStore], thread_id: Optional[str]) -> bool:
    if store is None or thread_id is None:
        return False
    root = store.resolve_root_thread(thread_id)
    return root is not None and len(store.list_env_data(root)) > 0


def build_delegation_preamble(
    target: str,
    delegation: DelegationInfo,
    store: Optional[SessionStore] = None,
    thread_id: Optional[str] = None,
) -> str:
    """The block telling a delegated agent who called it and why."""
    parts = [
        "---",
        "[Delegation Context]",
        f"Called by: {delegation.caller}",
    ]
    if delegation.caller_description:
        parts.append(f'{delegation.caller} is: "{delegation.caller_description}"')

    chain = build_delegation_chain(store, thread_id, target, fallback=delegation.chain)
    parts.append(f"Delegation chain: {chain}")

    if env_data_available(store, thread_id):
        parts.append(
            "Shared environment data is available: call list_env_data() to see what context has been stored."
        )
    parts.append("---")
    return "\n".join(parts)
