"""
Unit Tests for Context Perceiver
"""

import pytest
from unittest.mock import Mock

from config import NO_CAPABILITIES_TEXT, NO_MEMORIES_TEXT
from core.perception import ContextPerceiver, PerceptionSnapshot, build_system_prompt
from memory import InMemoryMemoryStore, MemoryRecord, MemoryType
from tools import ToolRegistry, ToolSpec


@pytest.fixture
def registry():
    reg = ToolRegistry()
    reg.register(ToolSpec(name="list_students", description="List students"), lambda: [])
    reg.register(
        ToolSpec(name="approve_budget", description="Approve budget", allowed_roles=("principal",)),
        lambda: "approved",
    )
    return reg


@pytest.fixture
def memory_store():
    store = InMemoryMemoryStore()
    for i in range(5):
        store.append(MemoryRecord.create(
            MemoryType.INTERACTION,
            {"objective": f"list students for class {i}"},
        ))
    store.append(MemoryRecord.create(MemoryType.FACT, {"fact": "cafeteria menu"}))
    return store


class TestContextPerceiver:
    """Test ContextPerceiver.perceive."""

    def test_default_role(self, registry, memory_store):
        snapshot = ContextPerceiver(registry, memory_store).perceive("list students")

        assert snapshot.role == "teacher"
        assert [s.name for s in snapshot.tool_specs] == ["list_students"]
        assert snapshot.screen == "unknown"

    def test_role_from_context(self, registry, memory_store):
        snapshot = ContextPerceiver(registry, memory_store).perceive(
            "approve the budget", {"role": "principal", "screen": "finance"}
        )

        assert snapshot.role == "principal"
        assert [s.name for s in snapshot.tool_specs] == ["list_students", "approve_budget"]
        assert snapshot.screen == "finance"

    def test_role_from_profile_provider(self, registry, memory_store):
        perceiver = ContextPerceiver(
            registry,
            memory_store,
            profile_provider=lambda: {"role": "principal"},
            screen_context_provider=lambda: {"screen": "dashboard", "class_id": "7B"},
        )

        snapshot = perceiver.perceive("anything")

        assert snapshot.role == "principal"
        assert snapshot.screen_context == {"screen": "dashboard", "class_id": "7B"}

    def test_failing_providers_fall_back(self, registry, memory_store):
        perceiver = ContextPerceiver(
            registry,
            memory_store,
            profile_provider=Mock(side_effect=RuntimeError("auth down")),
            screen_context_provider=Mock(side_effect=RuntimeError("ui gone")),
        )

        snapshot = perceiver.perceive("list students")

        assert snapshot.role == "teacher"
        assert snapshot.screen_context == {}

    def test_memories_relevant_and_limited(self, registry, memory_store):
        snapshot = ContextPerceiver(registry, memory_store, memory_limit=3).perceive("list students")

        assert len(snapshot.memories) == 3
        assert all("students" in m.content["objective"] for m in snapshot.memories)

    def test_memory_failure_degrades_to_empty(self, registry):
        broken_store = Mock()
        broken_store.retrieve_relevant.side_effect = RuntimeError("disk error")

        snapshot = ContextPerceiver(registry, broken_store).perceive("list students")

        assert snapshot.memories == []


class TestBuildSystemPrompt:
    """Test system prompt rendering."""

    def test_prompt_contains_context(self, registry):
        memories = [
            MemoryRecord.create(MemoryType.PATTERN, {"pattern": f"pattern {i}"}) for i in range(5)
        ]
        snapshot = PerceptionSnapshot(
            role="teacher",
            memories=memories,
            tool_specs=registry.get_tool_specs(role="teacher"),
            screen_context={"screen": "students"},
        )

        prompt = build_system_prompt(snapshot)

        assert "User role: teacher" in prompt
        assert "Current screen: students" in prompt
        assert "Available capabilities: list_students" in prompt
        assert "pattern 2" in prompt
        # Only the top three memories reach the prompt
        assert "pattern 3" not in prompt

    def test_empty_snapshot(self):
        prompt = build_system_prompt(PerceptionSnapshot(role="parent"))

        assert NO_MEMORIES_TEXT in prompt
        assert NO_CAPABILITIES_TEXT in prompt
        assert "Current screen: unknown" in prompt
