"""Tests for OutputValidator."""

import pytest

from project_doc_gen.errors import ErrorKind, GenerationError
from project_doc_gen.validator import OutputValidator


@pytest.fixture
def validator():
    return OutputValidator()


@pytest.mark.parametrize("content", ["", "   \n\t", None])
def test_rejects_empty_content(validator, content):
    with pytest.raises(GenerationError) as excinfo:
        validator.validate(content)
    assert excinfo.value.kind is ErrorKind.VALIDATION
    assert "empty" in excinfo.value.reason


def test_rejects_content_without_heading(validator):
    with pytest.raises(GenerationError) as excinfo:
        validator.validate("Just a paragraph about #hashtags and more text.")
    assert excinfo.value.kind is ErrorKind.VALIDATION
    assert "structure" in excinfo.value.reason


def test_accepts_content_with_all_required_sections(validator):
    content = "# Quality Plan\n\n## Introduction\ntext\n\n## Quality Control\nmore"
    validator.validate(content, required_sections=["Introduction", "Quality Control"])


def test_reports_all_missing_sections_in_one_error(validator):
    content = "# Plan\n\n## Introduction\ntext"
    with pytest.raises(GenerationError) as excinfo:
        validator.validate(content, required_sections=["Introduction", "Budget Summary", "Risks"])

    error = excinfo.value
    assert error.kind is ErrorKind.VALIDATION
    assert error.details["missing_sections"] == ["Budget Summary", "Risks"]
    assert "Budget Summary" in error.reason and "Risks" in error.reason


def test_rejects_leftover_placeholders(validator):
    with pytest.raises(GenerationError) as excinfo:
        validator.validate("# Charter\n\nSponsor: [PLACEHOLDER]")
    assert excinfo.value.details["placeholders"] == ["[PLACEHOLDER]"]


def test_forbidden_markers_can_be_overridden(validator):
    validator.validate("# Charter\n\nSponsor: [PLACEHOLDER]", forbidden_markers=())


def test_custom_structural_pattern():
    validator = OutputValidator(structural_pattern=r"^\|.*\|$")
    validator.validate("| a | b |\n|---|---|")
    with pytest.raises(GenerationError):
        validator.validate("# heading only")
