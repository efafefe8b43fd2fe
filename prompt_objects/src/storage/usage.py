"""Token usage and cost rollups over stored messages."""

from typing import Iterable

from .models import StoredMessage
from ..llm.pricing import estimate_cost


def empty_usage() -> dict:
    return {
        "input_tokens": 0,
        "output_tokens": 0,
        "total_tokens": 0,
        "estimated_cost_usd": 0.0,
        "calls": 0,
        "by_model": {},
    }


def _add_call(usage: dict, model: str, input_tokens: int, output_tokens: int, cost: float, calls: int = 1):
    usage["input_tokens"] += input_tokens
    usage["output_tokens"] += output_tokens
    usage["total_tokens"] += input_tokens + output_tokens
    usage["estimated_cost_usd"] += cost
    usage["calls"] += calls

    per_model = usage["by_model"].setdefault(
        model,
        {"input_tokens": 0, "output_tokens": 0, "estimated_cost_usd": 0.0, "calls": 0},
    )
    per_model["input_tokens"] += input_tokens
    per_model["output_tokens"] += output_tokens
    per_model["estimated_cost_usd"] += cost
    per_model["calls"] += calls


def usage_from_messages(messages: Iterable[StoredMessage]) -> dict:
    """Sum the usage recorded on each message (one entry per LLM call)."""
    usage = empty_usage()
    for message in messages:
        if not message.usage or not isinstance(message.usage, dict):
            continue
        input_tokens = int(message.usage.get("input_tokens") or 0)
        output_tokens = int(message.usage.get("output_tokens") or 0)
        model = message.usage.get("model") or "unknown"
        cost = estimate_cost(model, input_tokens, output_tokens)
        _add_call(usage, model, input_tokens, output_tokens, cost)
    return usage


def merge_usage(a: dict, b: dict) -> dict:
    """Combine two rollups into a new one."""
    merged = empty_usage()
    for source in (a, b):
        for model, stats in source["by_model"].items():
            _add_call(
                merged,
                model,
                stats["input_tokens"],
                stats["output_tokens"],
                stats["estimated_cost_usd"],
                calls=stats["calls"],
            )
    return merged
