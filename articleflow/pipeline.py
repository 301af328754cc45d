"""Orchestrator that drives an execution context through the stage graph."""

from __future__ import annotations

import logging
from typing import Awaitable, Callable, Dict, Mapping, Optional

from .config import PipelineConfig
from .context import ExecutionContext
from .errors import NoExecutorForStage, WorkflowInvariantError
from .state import (
    STAGE_METADATA,
    TERMINAL_STAGE,
    StageStatus,
    WorkflowStage,
    WorkflowState,
)

logger = logging.getLogger(__name__)

# Executors record outputs on the context and may return tokens consumed.
StageExecutor = Callable[[ExecutionContext], Awaitable[Optional[int]]]


class ArticlePipeline:
    """Runs registered stage executors until the workflow finishes or halts.

    The loop halts at approval gates (unless configured to skip them) and
    on failed or rejected stages. Executor failures are retried within the
    same stage up to ``max_retries_per_stage`` times before the last error
    is re-raised. Re-running a context loaded from a snapshot continues
    from its current state.
    """

    def __init__(
        self,
        executors: Optional[Mapping[WorkflowStage, StageExecutor]] = None,
        config: Optional[PipelineConfig] = None,
    ) -> None:
        self._config = config or PipelineConfig()
        self._executors: Dict[WorkflowStage, StageExecutor] = {}
        for stage, executor in (executors or {}).items():
            self.register(stage, executor)

    @property
    def config(self) -> PipelineConfig:
        return self._config

    def register(self, stage: WorkflowStage, executor: StageExecutor) -> None:
        """Register ``executor`` as the worker for ``stage``."""
        stage = WorkflowStage(stage)
        if stage is TERMINAL_STAGE:
            raise ValueError("The terminal stage does not run an executor")
        self._executors[stage] = executor

    async def run(self, ctx: ExecutionContext) -> ExecutionContext:
        """Advance ``ctx`` as far as possible and return it."""
        logger.info(f"Running pipeline for context {ctx.id} from {ctx.state.describe()}")

        while ctx.state.stage is not TERMINAL_STAGE:
            state = ctx.state
            if state.status is StageStatus.IN_PROGRESS:
                await self._execute_stage(ctx)
            elif state.status is StageStatus.AWAITING_APPROVAL:
                if not self._config.skips_approval(state.stage):
                    logger.info(f"Context {ctx.id} awaiting approval: {state.describe()}")
                    return ctx
                ctx.approve(state.metadata.output)
            elif state.is_failed():
                logger.info(f"Context {ctx.id} halted: {state.describe()}")
                return ctx
            else:
                next_state = state.advance()
                ctx.transition_to(
                    next_state, f"Advanced to {next_state.metadata.name}"
                )

        if ctx.state.status is StageStatus.IN_PROGRESS:
            ctx.transition_to(
                WorkflowState(stage=TERMINAL_STAGE, status=StageStatus.COMPLETED),
                "Workflow completed",
            )
        logger.info(f"Pipeline finished for context {ctx.id}")
        logger.debug(ctx.get_summary())
        return ctx

    async def _execute_stage(self, ctx: ExecutionContext) -> None:
        stage = ctx.state.stage
        executor = self._executors.get(stage)
        if executor is None:
            raise NoExecutorForStage(stage)

        meta = STAGE_METADATA[stage]
        max_retries = self._config.max_retries_per_stage
        while True:
            ctx.start_stage(stage)
            try:
                tokens = await executor(ctx)
            except WorkflowInvariantError as e:
                ctx.fail_stage(e)
                ctx.transition_to(
                    WorkflowState(stage=stage, status=StageStatus.FAILED),
                    f"{meta.name} aborted: {e}",
                )
                raise
            except Exception as e:
                ctx.fail_stage(e)
                ctx.transition_to(
                    WorkflowState(stage=stage, status=StageStatus.FAILED),
                    f"{meta.name} failed: {e}",
                )
                retries = ctx.retry_count(stage)
                if retries >= max_retries:
                    logger.error(
                        f"{meta.name} failed after {retries + 1} attempts "
                        f"for context {ctx.id}: {e}"
                    )
                    raise
                attempt = ctx.record_retry(stage) + 1
                logger.warning(
                    f"{meta.name} failed for context {ctx.id}, "
                    f"retrying (attempt {attempt}/{max_retries + 1}): {e}"
                )
                ctx.transition_to(
                    WorkflowState(stage=stage, status=StageStatus.IN_PROGRESS),
                    f"Retrying {meta.name} (attempt {attempt})",
                )
                continue
            except BaseException as e:
                # Cancellation or interpreter exit: release the stage, no retry.
                ctx.fail_stage(e)
                ctx.transition_to(
                    WorkflowState(stage=stage, status=StageStatus.FAILED),
                    f"{meta.name} interrupted",
                )
                raise

            if isinstance(tokens, bool) or not isinstance(tokens, int):
                tokens = None
            ctx.complete_stage(tokens_used=tokens)
            if meta.requires_approval:
                ctx.transition_to(
                    WorkflowState(stage=stage, status=StageStatus.AWAITING_APPROVAL),
                    f"{meta.name} finished, awaiting approval",
                )
            else:
                ctx.transition_to(
                    WorkflowState(stage=stage, status=StageStatus.COMPLETED),
                    f"{meta.name} finished",
                )
            return
