"""Static catalog of worked few-shot examples."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from .config import FEW_SHOT_CATALOG_PATH
from .models import FewShotExample

logger = logging.getLogger(__name__)

# Document types that reuse another type's examples
DEFAULT_ALIASES: Dict[str, str] = {
    "develop-project-charter": "project-charter",
    "project-management-plan": "project-charter",
    "plan-scope-management": "scope-management-plan",
    "define-scope-process": "scope-management-plan",
    "validate-scope-process": "scope-management-plan",
    "control-scope-process": "scope-management-plan",
    "requirements-traceability-matrix": "requirements-documentation",
    "risk-register": "risk-management-plan",
    "stakeholder-register": "stakeholder-engagement-plan",
    "stakeholder-analysis": "stakeholder-engagement-plan",
}


def _record_to_example(record: Mapping[str, Any]) -> FewShotExample:
    document_type = record.get("documentType") or record.get("document_type")
    if not document_type:
        raise ValueError(f"Few-shot record is missing documentType: {record!r}")
    request = record.get("request") or record.get("input") or ""
    response = record.get("response") or record.get("output") or ""
    if not request or not response:
        raise ValueError(f"Few-shot record for {document_type} needs request and response")
    return FewShotExample(
        document_type=document_type,
        description=record.get("description", ""),
        request=request,
        response=response,
        approx_tokens=int(record.get("approxTokens") or record.get("approx_tokens") or 0),
    )


class FewShotCatalog:
    """Read-only lookup of examples by document type, preserving catalog order."""

    def __init__(
        self,
        examples: Iterable[FewShotExample],
        aliases: Optional[Mapping[str, str]] = None,
    ) -> None:
        self._examples: Tuple[FewShotExample, ...] = tuple(examples)
        self._aliases = dict(DEFAULT_ALIASES if aliases is None else aliases)
        by_type: Dict[str, List[FewShotExample]] = {}
        for example in self._examples:
            by_type.setdefault(example.document_type, []).append(example)
        self._by_type = {key: tuple(values) for key, values in by_type.items()}

    @classmethod
    def from_records(
        cls,
        records: Iterable[Mapping[str, Any]],
        aliases: Optional[Mapping[str, str]] = None,
    ) -> "FewShotCatalog":
        return cls((_record_to_example(record) for record in records), aliases=aliases)

    @classmethod
    def load(cls, path: Optional[Path] = None) -> "FewShotCatalog":
        """Load the JSON catalog shipped with the package (or an override path)."""

        catalog_path = Path(path) if path else FEW_SHOT_CATALOG_PATH
        with open(catalog_path, "r", encoding="utf-8") as f:
            records = json.load(f)
        if not isinstance(records, list):
            raise ValueError(f"Few-shot catalog {catalog_path} must contain a JSON list")
        catalog = cls.from_records(records)
        logger.info(
            "Loaded %s few-shot examples for %s document types from %s",
            len(catalog), len(catalog.document_types), catalog_path,
        )
        return catalog

    def __len__(self) -> int:
        return len(self._examples)

    @property
    def document_types(self) -> List[str]:
        return sorted(self._by_type)

    def examples_for(self, document_type: str) -> Tuple[FewShotExample, ...]:
        key = document_type if document_type in self._by_type else self._aliases.get(document_type)
        if key is None:
            return ()
        return self._by_type.get(key, ())
