"""
Rendering of thread trees to Markdown and to nested dictionaries.

Delegation children are inlined immediately after the tool call that
triggered them. The rendering reads only stored data, so the same tree always
renders to the same document.
"""

from __future__ import annotations

import json

from typing import Optional, TYPE_CHECKING

from .models import Thread, StoredMessage

if TYPE_CHECKING:
    from .session_store import SessionStore

RESULT_TRUNCATE_LENGTH = 2000


def _truncate(text: str, length: int = RESULT_TRUNCATE_LENGTH) -> str:
    if len(text) <= length:
        return text
    return text[:length] + "\n... (truncated)"


def _format_arguments(arguments) -> str:
    if isinstance(arguments, str):
        return arguments
    return json.dumps(arguments, indent=2, sort_keys=True, default=str)


class MarkdownTreeRenderer:
    """Renders one thread tree; one instance per export."""

    def __init__(self, store: SessionStore, max_depth: int, inline_children: bool = True):
        self.store = store
        self.max_depth = max_depth
        self.inline_children = inline_children
        self.lines: list[str] = []
        self._rendered: set[str] = set()

    def render(self, root: Thread) -> str:
        self.lines = [
            "# Thread Export",
            "",
            f"**Root PO**: {root.agent_name}",
            f"**Thread**: {root.name or root.id}",
            f"**Thread ID**: {root.id}",
            f"**Created**: {root.created_at.isoformat() if root.created_at else 'unknown'}",
            "",
            "---",
            "",
            f"## {root.agent_name}",
            "",
        ]
        self.render_transcript(root, depth=0)
        return "\n".join(self.lines).rstrip() + "\n"

    def render_transcript(self, thread: Thread, depth: int):
        self._rendered.add(thread.id)
        children = []
        if self.inline_children:
            children = [
                c for c in self.store.child_threads(thread.id) if c.id not in self._rendered
            ]

        for message in self.store.get_messages(thread.id):
            self._render_message(thread, message, children, depth)

        # children whose triggering call was never recorded
        for child in children:
            if child.id not in self._rendered:
                self._render_child(child, depth + 1)

    def _render_child(self, child: Thread, depth: int):
        self._rendered.add(child.id)
        self.lines += [
            f"### Delegation → {child.agent_name}",
            "",
            f"*Created by {child.parent_agent or 'unknown'}*",
            "",
        ]
        if depth > self.max_depth:
            self.lines += ["*(nested delegations omitted)*", ""]
            return
        self.render_transcript(child, depth)
        self.lines += [f"*End of delegation → {child.agent_name}*", ""]

    def _render_message(
        self, thread: Thread, message: StoredMessage, children: list[Thread], depth: int
    ):
        if message.role == "user":
            speaker = message.from_agent or "human"
            self.lines += [f"**{speaker}:** {message.content or ''}", ""]

        elif message.role == "assistant":
            if message.content:
                self.lines += [f"**{thread.agent_name}:** {message.content}", ""]
            for call in message.tool_calls:
                self.lines += [
                    f"> Tool call: <code>{call.get('name')}</code>",
                    "",
                    "```json",
                    _format_arguments(call.get("arguments", {})),
                    "```",
                    "",
                ]
                for child in children:
                    if child.id not in self._rendered and call.get("id") and \
                            child.metadata.get("tool_call_id") == call.get("id"):
                        self._render_child(child, depth + 1)
            # delegations tied to this message but not to a specific call
            for child in children:
                if child.id not in self._rendered and child.parent_message_id == message.id:
                    self._render_child(child, depth + 1)

        elif message.role == "tool":
            for result in message.tool_results:
                self.lines += [
                    f"> Result from <code>{result.get('name')}</code>:",
                    "",
                    "```",
                    _truncate(str(result.get("content", ""))),
                    "```",
                    "",
                ]


def render_thread_tree_markdown(
    store: SessionStore, thread_id: str, max_depth: int = 10
) -> Optional[str]:
    root = store.get_thread(thread_id)
    if root is None:
        return None
    return MarkdownTreeRenderer(store, max_depth).render(root)


def render_thread_markdown(store: SessionStore, thread_id: str) -> Optional[str]:
    """A single thread's transcript, without its delegations."""
    thread = store.get_thread(thread_id)
    if thread is None:
        return None
    renderer = MarkdownTreeRenderer(store, max_depth=0, inline_children=False)
    renderer.lines = [f"# {thread.name or thread.agent_name}", "", f"**PO**: {thread.agent_name}", ""]
    renderer.render_transcript(thread, depth=0)
    return "\n".join(renderer.lines).rstrip() + "\n"


def build_thread_tree_json(
    store: SessionStore, thread_id: str, max_depth: int = 10, _depth: int = 0,
    _seen: Optional[set] = None,
) -> Optional[dict]:
    thread = store.get_thread(thread_id)
    if thread is None:
        return None
    seen = _seen if _seen is not None else set()
    seen.add(thread.id)

    children = []
    if _depth < max_depth:
        for child in store.child_threads(thread.id):
            if child.id in seen:
                continue
            children.append(
                build_thread_tree_json(store, child.id, max_depth, _depth + 1, seen)
            )

    return {
        "thread": thread.to_dict(),
        "messages": [m.to_dict() for m in store.get_messages(thread.id)],
        "children": children,
    }
