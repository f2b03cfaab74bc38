"""Generic per-document orchestration: prompt, examples, model call, validation."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional, Tuple, Union

from .config import VALIDATION_ATTEMPTS
from .errors import ErrorKind, GenerationError
from .few_shot import ConfigOverride, FewShotSelector, resolve_few_shot_config
from .gateway import ModelGateway
from .models import ChatMessage, DocumentOutput, ProjectContext
from .validator import OutputValidator

logger = logging.getLogger(__name__)

PromptBuilder = Callable[[ProjectContext], str]


@dataclass(frozen=True)
class DocumentDescriptor:
    """Everything that distinguishes one document type from another."""

    document_type: str
    title: str
    prompt_builder: PromptBuilder
    system_guidance: str
    required_sections: Tuple[str, ...] = ()
    token_budget: Optional[int] = None
    use_few_shot: bool = True
    forbidden_markers: Optional[Tuple[str, ...]] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "required_sections", tuple(self.required_sections))
        if self.forbidden_markers is not None:
            object.__setattr__(self, "forbidden_markers", tuple(self.forbidden_markers))


class DocumentProcessor:
    """Produces a validated ``DocumentOutput`` for one document type."""

    def __init__(
        self,
        descriptor: DocumentDescriptor,
        gateway: ModelGateway,
        *,
        selector: Optional[FewShotSelector] = None,
        validator: Optional[OutputValidator] = None,
        few_shot_config: ConfigOverride = None,
        max_attempts: int = VALIDATION_ATTEMPTS,
        timeout: Optional[float] = None,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.descriptor = descriptor
        self.gateway = gateway
        self.selector = selector
        self.validator = validator or OutputValidator()
        self.few_shot_config = few_shot_config
        self.max_attempts = max_attempts
        # Per-attempt deadline for model calls; None keeps the gateway default
        self.timeout = timeout

    @property
    def document_type(self) -> str:
        return self.descriptor.document_type

    @property
    def token_limit(self) -> int:
        if self.descriptor.token_budget is not None:
            return self.descriptor.token_budget
        return self.gateway.default_max_tokens

    def few_shot_block(self, context: ProjectContext) -> str:
        if self.selector is None or not self.descriptor.use_few_shot:
            return ""
        config = resolve_few_shot_config(context.project_size, self.few_shot_config)
        return self.selector.select_and_format(self.document_type, self.token_limit, config)

    def build_messages(self, context: ProjectContext) -> List[ChatMessage]:
        prompt = self.descriptor.prompt_builder(context)
        system_prompt = self.descriptor.system_guidance
        examples = self.few_shot_block(context)
        if examples:
            system_prompt = f"{system_prompt}\n\n{examples}"
        return ModelGateway.create_messages(system_prompt, prompt)

    async def process(self, context: ProjectContext) -> DocumentOutput:
        descriptor = self.descriptor
        try:
            messages = self.build_messages(context)
            last_error: Optional[GenerationError] = None
            for attempt in range(1, self.max_attempts + 1):
                content = await self.gateway.call(messages, descriptor.token_budget, timeout=self.timeout)
                try:
                    self.validator.validate(
                        content,
                        required_sections=descriptor.required_sections,
                        forbidden_markers=descriptor.forbidden_markers,
                    )
                except GenerationError as exc:
                    if exc.kind is not ErrorKind.VALIDATION:
                        raise
                    last_error = exc
                    logger.warning(
                        "Expected error in %s processing (attempt %s/%s): %s",
                        descriptor.title, attempt, self.max_attempts, exc.reason,
                    )
                    continue
                logger.info("Generated %s (%s chars, attempt %s)", descriptor.title, len(content), attempt)
                return DocumentOutput(title=descriptor.title, content=content.strip())

            reason = last_error.reason if last_error else "no valid content returned"
            raise GenerationError(
                ErrorKind.VALIDATION,
                f"generation failed: {reason}",
                document_type=descriptor.document_type,
                attempts=self.max_attempts,
                details=last_error.details if last_error else None,
            )
        except GenerationError as exc:
            raise exc.with_document_type(descriptor.document_type)
        except Exception as exc:
            logger.exception("Unexpected error in %s processing", descriptor.title)
            raise GenerationError(
                ErrorKind.INTERNAL,
                f"An unexpected error occurred while generating {descriptor.title}: {exc}",
                document_type=descriptor.document_type,
            ) from exc


async def generate_documents(
    processors: Iterable[DocumentProcessor],
    context: ProjectContext,
    *,
    concurrency: Optional[int] = None,
) -> Dict[str, Union[DocumentOutput, GenerationError]]:
    """Run several processors concurrently against one context.

    Results are keyed by document type in the order the processors were given;
    a failed document maps to its ``GenerationError`` instead of aborting the set.
    Each processor must produce a distinct document type.
    """

    processors = list(processors)
    seen = set()
    for processor in processors:
        if processor.document_type in seen:
            raise ValueError(f"Duplicate document type: {processor.document_type}")
        seen.add(processor.document_type)
    semaphore = asyncio.Semaphore(concurrency) if concurrency else None

    async def _run(processor: DocumentProcessor) -> Union[DocumentOutput, GenerationError]:
        try:
            if semaphore is None:
                return await processor.process(context)
            async with semaphore:
                return await processor.process(context)
        except GenerationError as exc:
            logger.warning("Skipping %s: %s", processor.document_type, exc.reason)
            return exc

    results = await asyncio.gather(*(_run(p) for p in processors))
    return {p.document_type: result for p, result in zip(processors, results)}
