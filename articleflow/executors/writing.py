"""Drafting, claim verification and internal linking stages."""

from __future__ import annotations

from typing import Any, Dict, List

from ..context import ExecutionContext
from ..contracts import ClaimVerification, InternalLink
from ..state import OutputKind, WorkflowStage
from .base import LLMStageExecutor, split_fields

_VERDICTS = {"supported", "unsupported", "uncertain"}


class DraftWriter(LLMStageExecutor):
    stage = WorkflowStage.DRAFT_GENERATION
    template = "draft"

    def prompt_values(self, ctx: ExecutionContext) -> Dict[str, Any]:
        return {
            "outline": self.require(ctx, OutputKind.OUTLINE),
            "research_summary": self.require(ctx, OutputKind.RESEARCH_SUMMARY),
        }

    def store(self, ctx: ExecutionContext, value: str) -> None:
        ctx.set_draft(value)


class ClaimVerifier(LLMStageExecutor):
    """Check the draft's factual claims against the research summary."""

    stage = WorkflowStage.VERIFICATION
    template = "verification"

    def prompt_values(self, ctx: ExecutionContext) -> Dict[str, Any]:
        return {
            "draft": self.require(ctx, OutputKind.DRAFT),
            "research_summary": self.require(ctx, OutputKind.RESEARCH_SUMMARY),
        }

    def parse(self, content: str) -> List[ClaimVerification]:
        checks = []
        for line in content.splitlines():
            fields = split_fields(line, 4)
            if not fields or not fields[0]:
                continue
            claim, verdict, source, note = fields
            verdict = verdict.lower()
            checks.append(
                ClaimVerification(
                    claim=claim,
                    verdict=verdict if verdict in _VERDICTS else "uncertain",
                    source_url=source if source not in ("", "-") else None,
                    note=note or None,
                )
            )
        return checks

    def store(self, ctx: ExecutionContext, value: List[ClaimVerification]) -> None:
        ctx.set_claim_verification(value)


class InternalLinker(LLMStageExecutor):
    """Propose internal links for the draft."""

    stage = WorkflowStage.INTERNAL_LINKING
    template = "internal_linking"

    def prompt_values(self, ctx: ExecutionContext) -> Dict[str, Any]:
        return {"draft": self.require(ctx, OutputKind.DRAFT)}

    def parse(self, content: str) -> List[InternalLink]:
        links = []
        for line in content.splitlines():
            fields = split_fields(line, 2)
            if not fields or not all(fields):
                continue
            links.append(InternalLink(anchor_text=fields[0], url=fields[1]))
        return links

    def store(self, ctx: ExecutionContext, value: List[InternalLink]) -> None:
        ctx.set_internal_links(value)
