"""Tests for few-shot eligibility, sizing and selection."""

import random

import pytest

from project_doc_gen.few_shot import (
    DEFAULT_FEW_SHOT_CONFIG,
    FewShotSelector,
    calculate_optimal_example_count,
    resolve_few_shot_config,
    should_use_few_shot_learning,
)
from project_doc_gen.models import FewShotConfig


BASE = FewShotConfig(
    max_examples=2,
    enabled=True,
    example_token_budget=0.4,
    min_token_limit_for_examples=2000,
)


class TestShouldUseFewShotLearning:

    @pytest.mark.parametrize("token_limit", [2000, 2500, 10000])
    def test_eligible_when_all_preconditions_hold(self, token_limit):
        assert should_use_few_shot_learning("project-charter", token_limit, BASE) is True

    def test_disabled(self):
        assert should_use_few_shot_learning("project-charter", 10000, BASE.merged({"enabled": False})) is False

    def test_below_min_token_limit(self):
        assert should_use_few_shot_learning("project-charter", 1999, BASE) is False

    def test_exclusion_dominates_priority(self):
        config = BASE.merged({
            "priority_document_types": {"project-charter"},
            "excluded_document_types": {"project-charter"},
        })
        assert should_use_few_shot_learning("project-charter", 10000, config) is False


class TestCalculateOptimalExampleCount:

    def test_capped_by_max_examples(self):
        assert calculate_optimal_example_count(10000, 800, BASE) == 2

    def test_budget_too_small(self):
        assert calculate_optimal_example_count(1000, 800, BASE) == 0

    def test_limited_by_budget(self):
        config = BASE.merged({"max_examples": 10})
        assert calculate_optimal_example_count(4000, 800, config) == 2

    def test_non_positive_average(self):
        assert calculate_optimal_example_count(10000, 0, BASE) == 0


class TestResolveFewShotConfig:

    def test_defaults_only(self):
        assert resolve_few_shot_config() == DEFAULT_FEW_SHOT_CONFIG

    def test_size_profile_applies_over_defaults(self):
        config = resolve_few_shot_config("large", base=BASE)
        assert config.max_examples == 3
        assert config.example_token_budget == 0.5

    def test_override_wins_over_size_profile(self):
        config = resolve_few_shot_config("large", {"max_examples": 1}, base=BASE)
        assert config.max_examples == 1
        assert config.example_token_budget == 0.5

    def test_unknown_size_keeps_defaults(self):
        assert resolve_few_shot_config("gigantic", base=BASE) == BASE

    def test_config_object_override(self):
        override = BASE.merged({"random_selection": True})
        assert resolve_few_shot_config("small", override, base=BASE) == override


class TestFewShotSelector:

    def test_deterministic_selection_takes_first_in_catalog_order(self, catalog):
        selector = FewShotSelector(catalog)
        selected = selector.select("project-charter", 10000, BASE)
        assert [e.description for e in selected] == ["first charter", "second charter"]

    def test_deterministic_selection_is_idempotent(self, catalog):
        selector = FewShotSelector(catalog)
        first = selector.select_and_format("project-charter", 10000, BASE)
        second = selector.select_and_format("project-charter", 10000, BASE)
        assert first == second
        assert first

    def test_random_selection_keeps_catalog_order(self, catalog):
        selector = FewShotSelector(catalog, rng=random.Random(7))
        config = BASE.merged({"random_selection": True})
        order = ["first charter", "second charter", "third charter"]
        for _ in range(20):
            picked = [e.description for e in selector.select("project-charter", 10000, config)]
            assert len(picked) == 2
            assert picked == sorted(picked, key=order.index)

    def test_no_examples_when_ineligible(self, catalog):
        selector = FewShotSelector(catalog)
        assert selector.select("project-charter", 1000, BASE) == []
        assert selector.select_and_format("project-charter", 1000, BASE) == ""

    def test_unknown_type_has_no_examples(self, catalog):
        selector = FewShotSelector(catalog)
        assert selector.select("lessons-learned", 10000, BASE) == []

    def test_priority_type_follows_budget_when_it_rounds_to_zero(self, catalog):
        selector = FewShotSelector(catalog)
        config = BASE.merged({
            "min_token_limit_for_examples": 500,
            "priority_document_types": {"project-charter"},
        })
        assert calculate_optimal_example_count(1000, 800, config) == 0
        assert selector.select("project-charter", 1000, config) == []
        assert selector.select_and_format("project-charter", 1000, config) == ""

    def test_count_never_exceeds_catalog(self, catalog):
        selector = FewShotSelector(catalog)
        config = BASE.merged({"max_examples": 10})
        assert len(selector.select("risk-management-plan", 100000, config)) == 1

    def test_formatted_block_contains_request_and_response(self, catalog):
        selector = FewShotSelector(catalog)
        block = selector.select_and_format("project-charter", 10000, BASE)
        assert "## Example 1: first charter" in block
        assert "## Example 2: second charter" in block
        assert block.index("req one") < block.index("# Charter One") < block.index("req two")
