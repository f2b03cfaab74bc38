"""Descriptor table for the supported document types.

Each entry pairs a prompt builder with the system guidance, required
section headings and response budget for one document type. Callers keep
their own registry of processors; ``build_processors`` is a convenience for
building one from this table.
"""

from __future__ import annotations

import json
from typing import Any, Dict, Iterable, List, Optional

from .config import LONG_DOCUMENT_TOKENS
from .few_shot import FewShotSelector
from .gateway import ModelGateway
from .models import ProjectContext, thaw
from .processor import DocumentDescriptor, DocumentProcessor, PromptBuilder


def _format_value(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, (list, tuple)):
        return ", ".join(_format_value(item) for item in value)
    return json.dumps(thaw(value), default=str, ensure_ascii=False)


def render_project_context(context: ProjectContext) -> str:
    lines = [
        "Project Context:",
        f"- Name: {context.project_name}",
        f"- Type: {context.project_type or 'Not specified'}",
        f"- Description: {context.description or 'No description provided'}",
    ]
    for key in sorted(context.extra):
        lines.append(f"- {key}: {_format_value(context.extra[key])}")
    return "\n".join(lines)


def _sections_outline(sections: Iterable[str]) -> str:
    return "\n".join(f"## {section}" for section in sections)


def _structured_prompt(title: str, intro: str, sections: List[str]) -> PromptBuilder:
    def build(context: ProjectContext) -> str:
        return (
            f"{intro}\n\n"
            f"{render_project_context(context)}\n\n"
            f"Produce the document in markdown, starting with the heading "
            f"'# {title}: {context.project_name}'. Use exactly these section headings, "
            f"in this order, and fill every section with project-specific content:\n\n"
            f"{_sections_outline(sections)}\n\n"
            "Do not leave template placeholders such as [PLACEHOLDER] in the output."
        )

    return build


PROJECT_CHARTER_SECTIONS = [
    "Project Purpose",
    "Measurable Project Objectives",
    "High-level Requirements",
    "Budget Summary",
    "Key Stakeholders",
    "Project Authorization",
]

QUALITY_PLAN_SECTIONS = [
    "Executive Summary",
    "Quality Policy and Objectives",
    "Quality Assurance",
    "Quality Control",
    "Continuous Improvement",
]

STAKEHOLDER_PLAN_SECTIONS = [
    "Stakeholder Identification",
    "Engagement Assessment Matrix",
    "Communication Plan",
    "Monitoring Stakeholder Engagement",
]

RISK_PLAN_SECTIONS = [
    "Risk Management Approach",
    "Risk Register",
    "Risk Response Strategies",
    "Risk Monitoring",
]

SCOPE_PLAN_SECTIONS = [
    "Scope Planning Process",
    "Scope Definition and Documentation",
    "Scope Verification and Control",
    "Scope Monitoring and Reporting",
]

DATA_GOVERNANCE_SECTIONS = [
    "Introduction & Purpose",
    "Governance Roles and Responsibilities",
    "Data Policies and Standards",
    "Decision Rights and Escalation",
    "Compliance and Monitoring",
]

ASSUMPTIONS_LOG_SECTIONS = [
    "Assumptions",
    "Constraints",
    "Validation Plan",
]


DESCRIPTORS: Dict[str, DocumentDescriptor] = {
    d.document_type: d
    for d in (
        DocumentDescriptor(
            document_type="project-charter",
            title="Project Charter",
            prompt_builder=_structured_prompt(
                "Project Charter",
                "As a PMO Director and Executive Sponsor, create the Project Charter that formally "
                "authorizes this initiative.",
                PROJECT_CHARTER_SECTIONS,
            ),
            system_guidance=(
                "You are a PMO Director and Executive Sponsor with 25+ years of experience in enterprise "
                "project management. Write with executive authority, tie every statement to business "
                "value, and define success in measurable terms."
            ),
            required_sections=tuple(PROJECT_CHARTER_SECTIONS),
            token_budget=LONG_DOCUMENT_TOKENS,
        ),
        DocumentDescriptor(
            document_type="quality-management-plan",
            title="Quality Management Plan",
            prompt_builder=_structured_prompt(
                "Quality Management Plan",
                "Based on the following project context, generate a comprehensive Quality Management Plan "
                "that establishes quality standards, processes, and controls for the project.",
                QUALITY_PLAN_SECTIONS,
            ),
            system_guidance=(
                "You are a quality management expert specializing in Quality Management Plans that ensure "
                "project deliverables meet stakeholder expectations and quality standards."
            ),
            required_sections=tuple(QUALITY_PLAN_SECTIONS),
            token_budget=LONG_DOCUMENT_TOKENS,
        ),
        DocumentDescriptor(
            document_type="stakeholder-engagement-plan",
            title="Stakeholder Engagement Plan",
            prompt_builder=_structured_prompt(
                "Stakeholder Engagement Plan",
                "Create a Stakeholder Engagement Plan describing how each stakeholder group will be "
                "engaged throughout the project.",
                STAKEHOLDER_PLAN_SECTIONS,
            ),
            system_guidance=(
                "You are an expert project manager specializing in stakeholder engagement and "
                "communication planning."
            ),
            required_sections=tuple(STAKEHOLDER_PLAN_SECTIONS),
        ),
        DocumentDescriptor(
            document_type="risk-management-plan",
            title="Risk Management Plan",
            prompt_builder=_structured_prompt(
                "Risk Management Plan",
                "Create a Risk Management Plan including a scored risk register with probability, impact "
                "and response for each risk.",
                RISK_PLAN_SECTIONS,
            ),
            system_guidance=(
                "You are a senior risk manager. Identify concrete, project-specific risks and "
                "actionable responses; avoid generic risk statements."
            ),
            required_sections=tuple(RISK_PLAN_SECTIONS),
            token_budget=LONG_DOCUMENT_TOKENS,
        ),
        DocumentDescriptor(
            document_type="scope-management-plan",
            title="Scope Management Plan",
            prompt_builder=_structured_prompt(
                "Scope Management Plan",
                "Create a Scope Management Plan describing how scope will be defined, verified and "
                "controlled.",
                SCOPE_PLAN_SECTIONS,
            ),
            system_guidance=(
                "You are an expert project manager specializing in scope definition and change control."
            ),
            required_sections=tuple(SCOPE_PLAN_SECTIONS),
        ),
        DocumentDescriptor(
            document_type="data-governance-framework",
            title="Data Governance Framework",
            prompt_builder=_structured_prompt(
                "Data Governance Framework",
                "Create the formal Data Governance Framework defining roles, policies, standards and "
                "decision-making processes for the project's data assets, aligned with DMBOK.",
                DATA_GOVERNANCE_SECTIONS,
            ),
            system_guidance=(
                "You are a data governance lead experienced with DMBOK. Be specific about ownership, "
                "stewardship and accountability."
            ),
            required_sections=tuple(DATA_GOVERNANCE_SECTIONS),
            token_budget=LONG_DOCUMENT_TOKENS,
        ),
        DocumentDescriptor(
            document_type="assumptions-log",
            title="Assumptions Log",
            prompt_builder=_structured_prompt(
                "Assumptions Log",
                "Create an Assumptions Log listing the assumptions and constraints behind this project "
                "and how each will be validated.",
                ASSUMPTIONS_LOG_SECTIONS,
            ),
            system_guidance="You are a business analyst documenting project assumptions and constraints.",
            required_sections=tuple(ASSUMPTIONS_LOG_SECTIONS),
            use_few_shot=False,
        ),
    )
}


def get_descriptor(document_type: str) -> DocumentDescriptor:
    try:
        return DESCRIPTORS[document_type]
    except KeyError:
        raise KeyError(f"Unknown document type: {document_type}") from None


def build_processors(
    gateway: ModelGateway,
    selector: Optional[FewShotSelector] = None,
    keys: Optional[Iterable[str]] = None,
    **processor_kwargs: Any,
) -> Dict[str, DocumentProcessor]:
    """Build processors sharing one gateway for the given (or all) document types."""

    selected = list(keys) if keys is not None else list(DESCRIPTORS)
    return {
        key: DocumentProcessor(get_descriptor(key), gateway, selector=selector, **processor_kwargs)
        for key in selected
    }
