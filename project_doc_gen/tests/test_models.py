"""Tests for the immutable pipeline records."""

import copy
import dataclasses

import pytest

from project_doc_gen.models import ChatMessage, FewShotConfig, FewShotExample, MessageRole, ProjectContext


class TestProjectContext:

    def test_requires_project_name(self):
        with pytest.raises(ValueError):
            ProjectContext(project_name="   ")

    def test_is_frozen(self):
        context = ProjectContext(project_name="Acme Portal")
        with pytest.raises(dataclasses.FrozenInstanceError):
            context.project_name = "Other"

    def test_extra_is_copied_and_read_only(self):
        stakeholders = ["CIO", "CFO"]
        source = {"stakeholders": stakeholders}
        context = ProjectContext(project_name="Acme Portal", extra=source)

        stakeholders.append("CTO")
        source["scope"] = "everything"

        assert context.get("stakeholders") == ("CIO", "CFO")
        assert "scope" not in context.extra
        with pytest.raises(TypeError):
            context.extra["scope"] = "changed"

    def test_nested_extra_values_are_frozen(self):
        context = ProjectContext(
            project_name="Acme",
            extra={"stakeholders": ["CIO"], "budget": {"capex": 100, "phases": [1, 2]}},
        )

        with pytest.raises(AttributeError):
            context.extra["stakeholders"].append("CTO")
        with pytest.raises(TypeError):
            context.extra["budget"]["capex"] = 0

        assert context.get("stakeholders") == ("CIO",)
        assert context.extra["budget"]["phases"] == (1, 2)

    def test_can_be_deep_copied_and_hashed(self):
        context = ProjectContext(project_name="Acme", extra={"budget": {"capex": 100}, "tags": ["a"]})

        clone = copy.deepcopy(context)

        assert clone == context
        assert hash(clone) == hash(context)
        assert len({context, clone}) == 1

    def test_to_dict_returns_mutable_copy(self):
        context = ProjectContext(project_name="Acme", extra={"stakeholders": ["CIO"]})

        data = context.to_dict()
        data["stakeholders"].append("CTO")

        assert data["project_name"] == "Acme"
        assert data["stakeholders"] == ["CIO", "CTO"]
        assert context.get("stakeholders") == ("CIO",)

    def test_from_dict_maps_camel_case_keys(self):
        context = ProjectContext.from_dict({
            "projectName": "Acme Portal",
            "projectType": "Software Development",
            "description": "Customer portal",
            "framework": "PMBOK",
        })

        assert context.project_name == "Acme Portal"
        assert context.project_type == "Software Development"
        assert context.description == "Customer portal"
        assert dict(context.extra) == {"framework": "PMBOK"}

    def test_from_dict_without_name_fails(self):
        with pytest.raises(ValueError):
            ProjectContext.from_dict({"description": "nameless"})

    @pytest.mark.parametrize("raw, expected", [("Large", "large"), (" small ", "small"), ("huge", None)])
    def test_project_size(self, raw, expected):
        context = ProjectContext(project_name="Acme", extra={"projectSize": raw})
        assert context.project_size == expected


class TestFewShotConfig:

    def test_rejects_out_of_range_budget(self):
        with pytest.raises(ValueError):
            FewShotConfig(example_token_budget=1.5)

    def test_rejects_negative_max_examples(self):
        with pytest.raises(ValueError):
            FewShotConfig(max_examples=-1)

    def test_merged_returns_new_config(self):
        base = FewShotConfig(max_examples=2)
        merged = base.merged({"max_examples": 5, "excluded_document_types": ["risk-register"]})

        assert base.max_examples == 2
        assert merged.max_examples == 5
        assert merged.excluded_document_types == frozenset({"risk-register"})

    def test_merged_rejects_unknown_fields(self):
        with pytest.raises(ValueError):
            FewShotConfig().merged({"max_example": 3})


def test_few_shot_example_estimates_tokens_when_missing():
    example = FewShotExample("project-charter", "", "a" * 40, "b" * 40)
    assert example.approx_tokens == 20


def test_chat_message_coerces_role():
    message = ChatMessage(role="system", content="guidance")
    assert message.role is MessageRole.SYSTEM
    assert message.as_dict() == {"role": "system", "content": "guidance"}
