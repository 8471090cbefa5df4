"""
Tests for HandoffRouter and DedupLedger
=======================================
"""

from __future__ import annotations

import random

import pytest

from apps.rtconsole.backend.voice.realtime.dedup import DedupLedger
from apps.rtconsole.backend.voice.realtime.events import AgentSwitched, FunctionCallSnapshot
from apps.rtconsole.backend.voice.realtime.handoff_router import (
    ActiveAgentPointer,
    HandoffRouter,
    handoff_target,
)
from apps.rtconsole.backend.voice.realtime.transcript import ItemType, TranscriptStore


def _call(item_id: str, name: str, arguments="{}", output=None) -> FunctionCallSnapshot:
    data = {"itemId": item_id, "type": "function_call", "name": name, "arguments": arguments}
    if output is not None:
        data["output"] = output
    return FunctionCallSnapshot.model_validate(data)


@pytest.fixture
def store():
    return TranscriptStore()


@pytest.fixture
def ledger():
    return DedupLedger()


@pytest.fixture
def pointer():
    return ActiveAgentPointer("base")


@pytest.fixture
def router(store, ledger, roster, pointer):
    return HandoffRouter(store, ledger, roster, pointer)


# ═══════════════════════════════════════════════════════════════════════════════
# DEDUP LEDGER
# ═══════════════════════════════════════════════════════════════════════════════


class TestDedupLedger:
    def test_true_exactly_once_per_identity(self, ledger):
        ids = [f"call_{i % 5}" for i in range(50)]
        random.Random(7).shuffle(ids)
        results = {}
        for call_id in ids:
            results.setdefault(call_id, []).append(ledger.record_if_new(call_id))
        for call_id, outcomes in results.items():
            assert outcomes.count(True) == 1, call_id
            assert outcomes[0] is True
        assert len(ledger) == 5
        assert "call_3" in ledger


# ═══════════════════════════════════════════════════════════════════════════════
# BREADCRUMBS
# ═══════════════════════════════════════════════════════════════════════════════


class TestToolBreadcrumbs:
    def test_breadcrumb_emitted_once(self, router, store):
        snapshot = _call("c1", "get_user_view", arguments='{"zoom": 2}')
        assert router.apply_function_call(snapshot) is None
        assert router.apply_function_call(snapshot) is None

        crumbs = [i for i in store.items() if i.type == ItemType.BREADCRUMB]
        assert len(crumbs) == 1
        assert crumbs[0].text == "Tool call: get_user_view"
        assert crumbs[0].aux_data == {"arguments": '{"zoom": 2}'}

    def test_later_output_refreshes_existing_breadcrumb(self, router, store):
        router.apply_function_call(_call("c1", "get_current_location"))
        router.apply_function_call(_call("c1", "get_current_location", output='{"city": "Oslo"}'))

        crumb = store.get(router.breadcrumb_id_for("c1"))
        assert crumb.aux_data["output"] == '{"city": "Oslo"}'
        assert len(store) == 1


# ═══════════════════════════════════════════════════════════════════════════════
# HANDOFF ROUTING
# ═══════════════════════════════════════════════════════════════════════════════


class TestHandoffRouting:
    @pytest.mark.parametrize(
        "name,expected",
        [
            ("transfer_to_translation", "translation"),
            ("transfer_to_", None),
            ("get_user_view", None),
            ("please_transfer_to_base", None),
        ],
    )
    def test_handoff_target(self, name, expected):
        assert handoff_target(name) == expected

    def test_switches_case_insensitively(self, router, pointer):
        effect = router.apply_function_call(_call("c1", "transfer_to_TRANSLATION"))
        assert effect == AgentSwitched(
            previous_agent="base",
            agent_name="translation",
            tool_name="transfer_to_TRANSLATION",
            call_id="c1",
        )
        assert pointer.name == "translation"

    def test_redelivery_switches_exactly_once(self, router, pointer):
        snapshot = _call("c1", "transfer_to_translation")
        effects = [router.apply_function_call(snapshot) for _ in range(3)]
        assert sum(e is not None for e in effects) == 1
        assert pointer.name == "translation"

    def test_redelivery_after_manual_switch_does_not_reroute(self, router, pointer):
        snapshot = _call("c1", "transfer_to_translation")
        router.apply_function_call(snapshot)
        pointer.set("base")
        assert router.apply_function_call(snapshot) is None
        assert pointer.name == "base"

    def test_roster_miss_is_ignored(self, router, pointer, store):
        assert router.apply_function_call(_call("c1", "transfer_to_billing")) is None
        assert pointer.name == "base"
        assert len(store) == 1

    def test_handoff_to_active_agent_is_noop(self, router, pointer):
        assert router.apply_function_call(_call("c1", "transfer_to_base")) is None
        assert pointer.name == "base"
