# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""Tests for cost estimation."""
import pytest

from prompt_objects.src.llm.pricing import RATES, estimate_cost, known_model


def test_known_models():
    assert known_model("gpt-4.1")
    assert not known_model("homegrown-7b")
    assert not known_model(None)


def test_estimate_cost():
    assert estimate_cost("gpt-4.1-mini", 1_000_000, 1_000_000) == pytest.approx(0.40 + 1.60)
    assert estimate_cost("gpt-4.1", 500, 0) == pytest.approx(500 * RATES["gpt-4.1"]["input"] / 1_000_000)


def test_unknown_model_is_free():
    assert estimate_cost("homegrown-7b", 10_000, 10_000) == 0.0
    assert estimate_cost(None, 10, 10) == 0.0
