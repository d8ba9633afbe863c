"""Unit tests for stage graph validation."""

import time

import pytest

from deploybot.core.exceptions import ValidationError
from deploybot.core.configs import parse
from deploybot.core.graph import entry_stages, find_cycles, needs_graph, validate_stage_graph
from deploybot.models.config import Stage


def stages(**definitions: dict) -> dict[str, Stage]:
    return {key: Stage.model_validate(value) for key, value in definitions.items()}


class TestValidateStageGraph:
    """Tests for needs and runs reference checks."""

    def test_accepts_linear_graph(self):
        graph = stages(
            deploy={"actions": {"approve": {"name": "Approve", "runs": "approve"}}},
            approve={"needs": "deploy"},
        )
        validate_stage_graph(graph)

    def test_rejects_self_dependency(self):
        with pytest.raises(ValidationError, match="cannot depend on itself"):
            validate_stage_graph(stages(deploy={"needs": ["deploy"]}))

    def test_rejects_unknown_need(self):
        with pytest.raises(ValidationError, match="needs unknown stage 'build'"):
            validate_stage_graph(stages(deploy={"needs": ["build"]}))

    def test_rejects_two_stage_cycle(self):
        graph = stages(a={"needs": ["b"]}, b={"needs": ["a"]}, c={})

        with pytest.raises(ValidationError) as exc_info:
            validate_stage_graph(graph)

        assert exc_info.value.message == "Dependency cycle detected: b -> a -> b"

    def test_rejects_three_stage_cycle(self):
        graph = stages(a={"needs": ["c"]}, b={"needs": ["a"]}, c={"needs": ["b"]})

        with pytest.raises(ValidationError, match="Dependency cycle detected"):
            validate_stage_graph(graph)

    def test_allows_action_running_its_own_stage(self):
        graph = stages(
            deploy={"actions": {"retry": {"name": "Retry", "runs": ["deploy"]}}},
        )
        validate_stage_graph(graph)

    def test_rejects_action_running_unknown_stage(self):
        graph = stages(
            deploy={"actions": {"promote": {"name": "Promote", "runs": ["release"]}}},
        )

        with pytest.raises(ValidationError, match="runs unknown stage 'release'"):
            validate_stage_graph(graph)


class TestFindCycles:
    """Tests for cycle path rendering."""

    def test_cycle_path_starts_and_ends_at_root(self):
        graph = {"a": ["b"], "b": ["c"], "c": ["a"]}

        assert find_cycles(graph, "a") == ["a -> b -> c -> a"]

    def test_cycle_not_through_root_is_ignored(self):
        graph = {"a": ["b"], "b": ["c"], "c": ["b"]}

        assert find_cycles(graph, "a") == []

    def test_acyclic_graph(self):
        graph = needs_graph(stages(deploy={}, test={"needs": "deploy"}))

        assert find_cycles(graph, "deploy") == []
        assert find_cycles(graph, "test") == []

    def test_cycle_found_past_a_cut_short_branch(self):
        graph = {"a": ["b", "c"], "b": ["c"], "c": ["b", "a"]}

        assert find_cycles(graph, "a") == ["a -> b -> c -> a", "a -> c -> a"]

    def test_cycle_below_shared_dependencies(self):
        graph = {
            "a": ["b", "c"],
            "b": ["d"],
            "c": ["d"],
            "d": ["e"],
            "e": ["a"],
        }

        assert find_cycles(graph, "a") == [
            "a -> b -> d -> e -> a",
            "a -> c -> d -> e -> a",
        ]

    def test_layered_graph_is_fast(self):
        lines = ["on: push", "stages:"]
        for layer in range(24):
            for side in ("l", "r"):
                needs = f"needs: [s{layer - 1}l, s{layer - 1}r]" if layer else ""
                lines.append(f"  s{layer}{side}: {{{needs}}}")

        start = time.perf_counter()
        config = parse("\n".join(lines) + "\n", "ladder.yml")

        assert len(config.stages) == 48
        assert time.perf_counter() - start < 2.0


class TestEntryStages:
    """Tests for fresh-start stage selection."""

    def test_entry_stages_in_declaration_order(self):
        graph = stages(
            migrate={},
            deploy={"needs": ["migrate"]},
            assets={},
        )

        assert entry_stages(graph) == ("migrate", "assets")

    def test_empty_needs_is_an_entry_stage(self):
        assert entry_stages(stages(deploy={"needs": []})) == ("deploy",)
