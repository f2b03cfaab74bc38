"""Minimal structural checks on generated documents."""

from __future__ import annotations

import logging
import re
from typing import Iterable, Optional, Pattern, Sequence, Union

from .errors import ErrorKind, GenerationError

logger = logging.getLogger(__name__)

# A markdown ATX heading at the start of a line, e.g. "# Title" or "## 2. Scope"
HEADING_PATTERN = re.compile(r"^\s{0,3}#{1,6}\s+\S", re.MULTILINE)

DEFAULT_FORBIDDEN_MARKERS = ("[AI_TO_POPULATE]", "[PLACEHOLDER]")


class OutputValidator:
    """Rejects empty, unstructured, or incomplete model output."""

    def __init__(
        self,
        structural_pattern: Union[str, Pattern[str]] = HEADING_PATTERN,
        forbidden_markers: Sequence[str] = DEFAULT_FORBIDDEN_MARKERS,
    ) -> None:
        if isinstance(structural_pattern, str):
            structural_pattern = re.compile(structural_pattern, re.MULTILINE)
        self.structural_pattern = structural_pattern
        self.forbidden_markers = tuple(forbidden_markers)

    def validate(
        self,
        content: Optional[str],
        required_sections: Optional[Iterable[str]] = None,
        forbidden_markers: Optional[Iterable[str]] = None,
    ) -> None:
        """Raise a VALIDATION ``GenerationError`` on the first failed check."""

        if content is None or not content.strip():
            raise GenerationError(ErrorKind.VALIDATION, "Generated content is empty")

        if not self.structural_pattern.search(content):
            raise GenerationError(
                ErrorKind.VALIDATION,
                "Generated content lacks proper markdown structure (no headings found)",
            )

        if required_sections:
            # Report every missing section at once so a retry can address them together
            missing = [section for section in required_sections if section not in content]
            if missing:
                raise GenerationError(
                    ErrorKind.VALIDATION,
                    "Generated content is missing required sections: " + ", ".join(missing),
                    details={"missing_sections": missing},
                )

        markers = self.forbidden_markers if forbidden_markers is None else tuple(forbidden_markers)
        leftovers = [marker for marker in markers if marker in content]
        if leftovers:
            raise GenerationError(
                ErrorKind.VALIDATION,
                "Generated content still contains template placeholders: " + ", ".join(leftovers),
                details={"placeholders": leftovers},
            )

        logger.debug("Validated generated content (%s chars)", len(content))
