"""Few-shot example selection under a token budget."""

from __future__ import annotations

import logging
import math
import random
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from .catalog import FewShotCatalog
from .config import (
    FEW_SHOT_DEFAULT_EXAMPLE_TOKENS,
    FEW_SHOT_ENABLED,
    FEW_SHOT_EXCLUDED_TYPES,
    FEW_SHOT_MAX_EXAMPLES,
    FEW_SHOT_MIN_TOKEN_LIMIT,
    FEW_SHOT_PRIORITY_TYPES,
    FEW_SHOT_RANDOM_SELECTION,
    FEW_SHOT_TOKEN_BUDGET,
)
from .models import FewShotConfig, FewShotExample

logger = logging.getLogger(__name__)


DEFAULT_FEW_SHOT_CONFIG = FewShotConfig(
    max_examples=FEW_SHOT_MAX_EXAMPLES,
    enabled=FEW_SHOT_ENABLED,
    example_token_budget=FEW_SHOT_TOKEN_BUDGET,
    min_token_limit_for_examples=FEW_SHOT_MIN_TOKEN_LIMIT,
    random_selection=FEW_SHOT_RANDOM_SELECTION,
    priority_document_types=frozenset(FEW_SHOT_PRIORITY_TYPES),
    excluded_document_types=frozenset(FEW_SHOT_EXCLUDED_TYPES),
)

# Per project size adjustments applied on top of the defaults
SIZE_PROFILES: Dict[str, Dict[str, Any]] = {
    "small": {"max_examples": 1, "example_token_budget": 0.3},
    "medium": {"max_examples": 2, "example_token_budget": 0.4},
    "large": {"max_examples": 3, "example_token_budget": 0.5, "min_token_limit_for_examples": 3000},
}

ConfigOverride = Union[FewShotConfig, Mapping[str, Any], None]


def resolve_few_shot_config(
    project_size: Optional[str] = None,
    override: ConfigOverride = None,
    base: Optional[FewShotConfig] = None,
) -> FewShotConfig:
    """Merge default < size profile < explicit override, in that order."""

    config = base or DEFAULT_FEW_SHOT_CONFIG
    if project_size:
        profile = SIZE_PROFILES.get(project_size.strip().lower())
        if profile is None:
            logger.debug("No few-shot size profile for %r; using defaults", project_size)
        else:
            config = config.merged(profile)
    if isinstance(override, FewShotConfig):
        config = config.merged(override.as_dict())
    elif override:
        config = config.merged(override)
    return config


def should_use_few_shot_learning(document_type: str, token_limit: int, config: FewShotConfig) -> bool:
    if not config.enabled:
        return False
    # Exclusion is checked before anything else that could favour the type
    if document_type in config.excluded_document_types:
        return False
    if token_limit < config.min_token_limit_for_examples:
        return False
    return True


def calculate_optimal_example_count(
    token_limit: int,
    average_example_tokens: float,
    config: FewShotConfig,
) -> int:
    if average_example_tokens <= 0:
        return 0
    available = token_limit * config.example_token_budget
    by_budget = math.floor(available / average_example_tokens)
    return max(0, min(by_budget, config.max_examples))


def format_examples(examples: Sequence[FewShotExample]) -> str:
    if not examples:
        return ""
    blocks = []
    for index, example in enumerate(examples, start=1):
        heading = f"## Example {index}"
        if example.description:
            heading += f": {example.description}"
        blocks.append(
            f"{heading}\n\n"
            f"**Input Context:**\n{example.request.strip()}\n\n"
            f"**Expected Output:**\n{example.response.strip()}\n"
        )
    return (
        "Use the following examples as a guide to the expected structure, depth and tone. "
        "Do not copy their content.\n\n" + "\n".join(blocks)
    )


class FewShotSelector:
    """Chooses worked examples for a document type and renders them for a prompt."""

    def __init__(self, catalog: FewShotCatalog, rng: Optional[random.Random] = None) -> None:
        self.catalog = catalog
        self._rng = rng or random.Random()

    def average_example_tokens(self, document_type: str) -> float:
        candidates = self.catalog.examples_for(document_type)
        if not candidates:
            return float(FEW_SHOT_DEFAULT_EXAMPLE_TOKENS)
        return sum(example.approx_tokens for example in candidates) / len(candidates)

    def select(self, document_type: str, token_limit: int, config: FewShotConfig) -> List[FewShotExample]:
        if not should_use_few_shot_learning(document_type, token_limit, config):
            return []
        candidates = self.catalog.examples_for(document_type)
        if not candidates:
            return []

        count = calculate_optimal_example_count(
            token_limit, self.average_example_tokens(document_type), config
        )
        count = min(count, len(candidates))
        if count == 0:
            return []

        if config.random_selection:
            indices = sorted(self._rng.sample(range(len(candidates)), count))
            selected = [candidates[i] for i in indices]
        else:
            selected = list(candidates[:count])

        logger.debug(
            "Selected %s few-shot example(s) for %s (token_limit=%s, random=%s)",
            len(selected), document_type, token_limit, config.random_selection,
        )
        return selected

    def format_examples(self, examples: Sequence[FewShotExample]) -> str:
        return format_examples(examples)

    def select_and_format(self, document_type: str, token_limit: int, config: FewShotConfig) -> str:
        return self.format_examples(self.select(document_type, token_limit, config))
