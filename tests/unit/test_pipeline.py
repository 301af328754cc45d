"""Pipeline orchestration tests."""

import asyncio

import pytest

from articleflow.config import PipelineConfig
from articleflow.context import ExecutionContext
from articleflow.contracts import ClaimVerification, InternalLink, ResearchResult
from articleflow.errors import IllegalTransition, NoExecutorForStage
from articleflow.pipeline import ArticlePipeline
from articleflow.state import STAGE_ORDER, OutputKind, StageStatus, WorkflowStage, WorkflowState


def _state(stage, status):
    return WorkflowState(stage=stage, status=status)


async def _outline(ctx):
    ctx.set_outline("outline")
    return 10


async def _queries(ctx):
    ctx.set_research_queries(["sleep hygiene", "circadian rhythm"])


async def _research(ctx):
    ctx.set_research_results([ResearchResult(url="https://a.example", text="A")])


async def _summary(ctx):
    ctx.set_research_summary("summary")


async def _draft(ctx):
    ctx.set_draft("draft")


async def _verify(ctx):
    ctx.set_claim_verification([ClaimVerification(claim="c", verdict="supported")])


async def _links(ctx):
    ctx.set_internal_links([InternalLink(anchor_text="sleep", url="/sleep")])


def _executors(**overrides):
    executors = {
        WorkflowStage.OUTLINE_GENERATION: _outline,
        WorkflowStage.RESEARCH_QUERY_GENERATION: _queries,
        WorkflowStage.RESEARCH_EXECUTION: _research,
        WorkflowStage.RESEARCH_SUMMARIZATION: _summary,
        WorkflowStage.DRAFT_GENERATION: _draft,
        WorkflowStage.VERIFICATION: _verify,
        WorkflowStage.INTERNAL_LINKING: _links,
    }
    executors.update({WorkflowStage(k): v for k, v in overrides.items()})
    return executors


class FlakyExecutor:
    def __init__(self, failures, error=RuntimeError):
        self.failures = failures
        self.error = error
        self.calls = 0

    async def __call__(self, ctx):
        self.calls += 1
        if self.calls <= self.failures:
            raise self.error(f"failure {self.calls}")
        ctx.set_research_results([])


@pytest.mark.asyncio
async def test_halts_at_outline_gate_and_resumes_after_approval(ctx):
    pipeline = ArticlePipeline(_executors())

    await pipeline.run(ctx)
    assert ctx.state == _state(WorkflowStage.OUTLINE_GENERATION, StageStatus.AWAITING_APPROVAL)
    assert ctx.metrics[WorkflowStage.OUTLINE_GENERATION].tokens_used == 10

    ctx.approve_outline()
    assert ctx.state == _state(WorkflowStage.OUTLINE_GENERATION, StageStatus.COMPLETED)

    await pipeline.run(ctx)
    entered = [
        e.state for e in ctx.history
        if e.action == "Advanced to Research Query Generation"
    ]
    assert entered == [
        _state(WorkflowStage.RESEARCH_QUERY_GENERATION, StageStatus.IN_PROGRESS)
    ]
    assert ctx.state == _state(
        WorkflowStage.RESEARCH_QUERY_GENERATION, StageStatus.AWAITING_APPROVAL
    )


@pytest.mark.asyncio
async def test_awaiting_context_stays_parked(ctx):
    pipeline = ArticlePipeline(_executors())
    await pipeline.run(ctx)
    history_len = len(ctx.history)
    await pipeline.run(ctx)
    assert len(ctx.history) == history_len
    assert ctx.state.status is StageStatus.AWAITING_APPROVAL


@pytest.mark.asyncio
async def test_retries_exhausted_propagates_last_error(ctx):
    flaky = FlakyExecutor(failures=10)
    pipeline = ArticlePipeline(
        _executors(research_execution=flaky),
        config=PipelineConfig(max_retries_per_stage=2, auto_approve=True),
    )

    with pytest.raises(RuntimeError, match="failure 3"):
        await pipeline.run(ctx)

    assert flaky.calls == 3
    assert ctx.state == _state(WorkflowStage.RESEARCH_EXECUTION, StageStatus.FAILED)
    metrics = ctx.metrics[WorkflowStage.RESEARCH_EXECUTION]
    assert metrics.retry_count == 2
    assert metrics.last_error.message == "failure 3"
    assert ctx.active_stage is None
    assert len(ctx.errors) == 3


@pytest.mark.asyncio
@pytest.mark.parametrize("max_retries", [0, 1, 4])
async def test_retry_ceiling(ctx, max_retries):
    flaky = FlakyExecutor(failures=100)
    pipeline = ArticlePipeline(
        _executors(outline_generation=flaky),
        config=PipelineConfig(max_retries_per_stage=max_retries),
    )
    with pytest.raises(RuntimeError):
        await pipeline.run(ctx)
    assert flaky.calls == max_retries + 1
    assert ctx.retry_count(WorkflowStage.OUTLINE_GENERATION) == max_retries


@pytest.mark.asyncio
async def test_transient_failure_is_retried_in_same_stage(ctx):
    flaky = FlakyExecutor(failures=1)
    outline_calls = []

    async def outline(c):
        outline_calls.append(1)
        c.set_outline("outline")

    pipeline = ArticlePipeline(
        _executors(outline_generation=outline, research_execution=flaky),
        config=PipelineConfig(max_retries_per_stage=2, auto_approve=True),
    )
    await pipeline.run(ctx)

    assert flaky.calls == 2
    assert len(outline_calls) == 1
    assert ctx.retry_count(WorkflowStage.RESEARCH_EXECUTION) == 1
    assert ctx.is_finished()
    research_states = [
        e.state.status for e in ctx.history
        if e.state.stage is WorkflowStage.RESEARCH_EXECUTION
    ]
    assert StageStatus.FAILED in research_states


@pytest.mark.asyncio
async def test_happy_path_with_auto_approval(ctx):
    pipeline = ArticlePipeline(_executors(), config=PipelineConfig(auto_approve=True))
    await pipeline.run(ctx)

    assert ctx.state == _state(WorkflowStage.COMPLETED, StageStatus.COMPLETED)
    stage_changes = [
        (prev.state.stage, cur.state.stage)
        for prev, cur in zip(ctx.history, ctx.history[1:])
        if prev.state.stage is not cur.state.stage
    ]
    assert len(stage_changes) == 7
    assert [dst for _, dst in stage_changes] == list(STAGE_ORDER[1:])

    for kind in (OutputKind.OUTLINE, OutputKind.RESEARCH_QUERIES, OutputKind.DRAFT):
        assert ctx.get_record(kind).approved_at is not None


@pytest.mark.asyncio
async def test_gated_stage_never_completes_without_approve(ctx):
    pipeline = ArticlePipeline(_executors(), config=PipelineConfig(auto_approve=True))
    await pipeline.run(ctx)

    history = ctx.history
    for i, entry in enumerate(history):
        if entry.state.stage.order > WorkflowStage.DRAFT_GENERATION.order:
            break
        if entry.state.metadata.requires_approval and entry.state.is_complete():
            if history[i - 1].state != entry.state:
                assert entry.action.endswith("approved")


@pytest.mark.asyncio
async def test_auto_approve_selected_stages(ctx):
    pipeline = ArticlePipeline(
        _executors(),
        config=PipelineConfig(
            auto_approve_stages=[
                WorkflowStage.OUTLINE_GENERATION,
                WorkflowStage.RESEARCH_QUERY_GENERATION,
            ]
        ),
    )
    await pipeline.run(ctx)
    assert ctx.state == _state(WorkflowStage.DRAFT_GENERATION, StageStatus.AWAITING_APPROVAL)


@pytest.mark.asyncio
async def test_rejected_stage_halts_until_restart(ctx):
    calls = []

    async def outline(c):
        calls.append(1)
        c.set_outline(f"outline v{len(calls)}")

    pipeline = ArticlePipeline(_executors(outline_generation=outline))
    await pipeline.run(ctx)
    ctx.reject_outline("too generic")

    await pipeline.run(ctx)
    assert ctx.state.status is StageStatus.REJECTED
    assert len(calls) == 1

    ctx.restart_stage()
    assert ctx.state == WorkflowState.initial()
    await pipeline.run(ctx)
    assert len(calls) == 2
    assert ctx.get_output(OutputKind.OUTLINE) == "outline v2"
    assert ctx.state.status is StageStatus.AWAITING_APPROVAL


@pytest.mark.asyncio
async def test_missing_executor_is_not_retried(ctx):
    executors = _executors()
    del executors[WorkflowStage.RESEARCH_EXECUTION]
    pipeline = ArticlePipeline(executors, config=PipelineConfig(auto_approve=True))

    with pytest.raises(NoExecutorForStage):
        await pipeline.run(ctx)
    assert ctx.state == _state(WorkflowStage.RESEARCH_EXECUTION, StageStatus.IN_PROGRESS)
    assert WorkflowStage.RESEARCH_EXECUTION not in ctx.metrics


@pytest.mark.asyncio
async def test_invariant_errors_are_not_retried(ctx):
    calls = []

    async def misbehaving(c):
        calls.append(1)
        c.transition_to(
            _state(WorkflowStage.COMPLETED, StageStatus.COMPLETED), "jump to the end"
        )

    pipeline = ArticlePipeline(
        _executors(outline_generation=misbehaving),
        config=PipelineConfig(max_retries_per_stage=3),
    )
    with pytest.raises(IllegalTransition):
        await pipeline.run(ctx)
    assert len(calls) == 1
    assert ctx.state == _state(WorkflowStage.OUTLINE_GENERATION, StageStatus.FAILED)


@pytest.mark.asyncio
async def test_resume_from_snapshot_in_new_context(ctx):
    pipeline = ArticlePipeline(_executors())
    await pipeline.run(ctx)
    ctx.approve_outline()

    restored = ExecutionContext.from_json(ctx.to_json())
    await pipeline.run(restored)
    assert restored.state == _state(
        WorkflowStage.RESEARCH_QUERY_GENERATION, StageStatus.AWAITING_APPROVAL
    )
    assert ctx.state == _state(WorkflowStage.OUTLINE_GENERATION, StageStatus.COMPLETED)


@pytest.mark.asyncio
async def test_finished_context_is_a_no_op(ctx):
    pipeline = ArticlePipeline(_executors(), config=PipelineConfig(auto_approve=True))
    await pipeline.run(ctx)
    history_len = len(ctx.history)
    await pipeline.run(ctx)
    assert len(ctx.history) == history_len


def test_cannot_register_terminal_stage():
    pipeline = ArticlePipeline()
    with pytest.raises(ValueError):
        pipeline.register(WorkflowStage.COMPLETED, _outline)


@pytest.mark.asyncio
async def test_cancelled_stage_is_released(ctx):
    calls = []

    async def slow_outline(ctx):
        calls.append("slow")
        await asyncio.sleep(10)

    pipeline = ArticlePipeline(_executors(outline_generation=slow_outline))
    with pytest.raises(asyncio.TimeoutError):
        await asyncio.wait_for(pipeline.run(ctx), 0.05)

    assert ctx.active_stage is None
    assert ctx.state == _state(WorkflowStage.OUTLINE_GENERATION, StageStatus.FAILED)
    assert ctx.retry_count(WorkflowStage.OUTLINE_GENERATION) == 0
    assert ctx.history[-1].action == "Outline Generation interrupted"
    assert calls == ["slow"]

    ctx.restart_stage("try again")
    pipeline.register(WorkflowStage.OUTLINE_GENERATION, _outline)
    await pipeline.run(ctx)
    assert ctx.state == _state(
        WorkflowStage.OUTLINE_GENERATION, StageStatus.AWAITING_APPROVAL
    )


@pytest.mark.asyncio
async def test_boolean_return_is_not_a_token_count(ctx):
    async def outline_returning_flag(ctx):
        ctx.set_outline("outline")
        return True

    pipeline = ArticlePipeline(_executors(outline_generation=outline_returning_flag))
    await pipeline.run(ctx)
    assert ctx.metrics[WorkflowStage.OUTLINE_GENERATION].tokens_used is None
