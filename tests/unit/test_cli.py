import yaml
from typer.testing import CliRunner

import articleflow.cli as cli
from articleflow.cli import app
from articleflow.config import PipelineConfig
from articleflow.context import ExecutionContext
from articleflow.contracts import ClaimVerification, InternalLink, ResearchResult
from articleflow.pipeline import ArticlePipeline
from articleflow.state import OutputKind, StageStatus, WorkflowStage

runner = CliRunner()

BRIEF = {
    "title": "5 Essential Tips for Better Sleep",
    "client_name": "HealthWellness Blog",
    "usps": "Science-backed advice",
    "client_guidelines": "Friendly tone",
    "general_guidelines": "Short paragraphs",
    "example_article": "Sleep matters.",
    "outline_description": "Intro, tips, conclusion",
}


async def _outline(ctx):
    ctx.set_outline("outline")


async def _queries(ctx):
    ctx.set_research_queries(["sleep"])


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


EXECUTORS = {
    WorkflowStage.OUTLINE_GENERATION: _outline,
    WorkflowStage.RESEARCH_QUERY_GENERATION: _queries,
    WorkflowStage.RESEARCH_EXECUTION: _research,
    WorkflowStage.RESEARCH_SUMMARIZATION: _summary,
    WorkflowStage.DRAFT_GENERATION: _draft,
    WorkflowStage.VERIFICATION: _verify,
    WorkflowStage.INTERNAL_LINKING: _links,
}


def _patch_pipeline(monkeypatch, executors=None, pipeline_config=None):
    def fake_build_pipeline(config):
        return ArticlePipeline(
            executors or EXECUTORS, config=pipeline_config or config.pipeline
        )

    monkeypatch.setattr(cli, "build_pipeline", fake_build_pipeline)


def _isolate(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("ARTICLEFLOW_CONFIG", raising=False)


def _write_brief(tmp_path, **overrides):
    path = tmp_path / "brief.yaml"
    path.write_text(yaml.safe_dump({**BRIEF, **overrides}))
    return path


def _load(path):
    return ExecutionContext.from_json(path.read_text())


def test_run_stops_at_outline_gate(monkeypatch, tmp_path):
    _isolate(monkeypatch, tmp_path)
    _patch_pipeline(monkeypatch)
    brief = _write_brief(tmp_path)
    snapshot = tmp_path / "run.json"

    result = runner.invoke(app, ["run", str(brief), "--snapshot", str(snapshot)])

    assert result.exit_code == 0, result.output
    assert "Started workflow" in result.output
    assert "Pipeline Summary:" in result.output
    ctx = _load(snapshot)
    assert ctx.state.stage is WorkflowStage.OUTLINE_GENERATION
    assert ctx.state.status is StageStatus.AWAITING_APPROVAL


def test_run_with_auto_approve_finishes(monkeypatch, tmp_path):
    _isolate(monkeypatch, tmp_path)
    _patch_pipeline(monkeypatch)
    brief = _write_brief(tmp_path)
    snapshot = tmp_path / "run.json"

    result = runner.invoke(
        app, ["run", str(brief), "--snapshot", str(snapshot), "--auto-approve"]
    )

    assert result.exit_code == 0, result.output
    ctx = _load(snapshot)
    assert ctx.is_finished()
    assert ctx.get_output(OutputKind.INTERNAL_LINKS)[0].url == "/sleep"


def test_run_rejects_invalid_brief(monkeypatch, tmp_path):
    _isolate(monkeypatch, tmp_path)
    _patch_pipeline(monkeypatch)
    brief = _write_brief(tmp_path, min_word_count=500)

    result = runner.invoke(app, ["run", str(brief)])

    assert result.exit_code == 1
    assert "Invalid article input" in result.output


def test_run_missing_input_file(monkeypatch, tmp_path):
    _isolate(monkeypatch, tmp_path)
    result = runner.invoke(app, ["run", str(tmp_path / "missing.yaml")])
    assert result.exit_code == 1
    assert "Input file not found" in result.output


def test_run_failure_saves_snapshot(monkeypatch, tmp_path):
    async def broken(ctx):
        raise RuntimeError("model offline")

    _isolate(monkeypatch, tmp_path)
    _patch_pipeline(
        monkeypatch,
        executors={**EXECUTORS, WorkflowStage.OUTLINE_GENERATION: broken},
        pipeline_config=PipelineConfig(max_retries_per_stage=0),
    )
    brief = _write_brief(tmp_path)
    snapshot = tmp_path / "run.json"

    result = runner.invoke(app, ["run", str(brief), "--snapshot", str(snapshot)])

    assert result.exit_code == 1
    assert "Workflow failed: model offline" in result.output
    ctx = _load(snapshot)
    assert ctx.state.status is StageStatus.FAILED
    assert ctx.errors[0].message == "model offline"


def test_approve_then_resume(monkeypatch, tmp_path):
    _isolate(monkeypatch, tmp_path)
    _patch_pipeline(monkeypatch)
    brief = _write_brief(tmp_path)
    snapshot = tmp_path / "run.json"
    runner.invoke(app, ["run", str(brief), "--snapshot", str(snapshot)])

    result = runner.invoke(app, ["approve", str(snapshot), "--output", "outline"])
    assert result.exit_code == 0, result.output
    assert "Outline Generation - completed" in result.output

    result = runner.invoke(app, ["resume", str(snapshot)])
    assert result.exit_code == 0, result.output
    ctx = _load(snapshot)
    assert ctx.state.stage is WorkflowStage.RESEARCH_QUERY_GENERATION
    assert ctx.state.status is StageStatus.AWAITING_APPROVAL


def test_approve_wrong_output_fails(monkeypatch, tmp_path):
    _isolate(monkeypatch, tmp_path)
    _patch_pipeline(monkeypatch)
    brief = _write_brief(tmp_path)
    snapshot = tmp_path / "run.json"
    runner.invoke(app, ["run", str(brief), "--snapshot", str(snapshot)])

    result = runner.invoke(app, ["approve", str(snapshot), "--output", "draft"])

    assert result.exit_code == 1
    assert _load(snapshot).state.status is StageStatus.AWAITING_APPROVAL


def test_reject_and_restart(monkeypatch, tmp_path):
    _isolate(monkeypatch, tmp_path)
    _patch_pipeline(monkeypatch)
    brief = _write_brief(tmp_path)
    snapshot = tmp_path / "run.json"
    runner.invoke(app, ["run", str(brief), "--snapshot", str(snapshot)])

    result = runner.invoke(
        app,
        ["reject", str(snapshot), "--output", "outline", "--reason", "too short"],
    )
    assert result.exit_code == 0, result.output
    ctx = _load(snapshot)
    assert ctx.state.status is StageStatus.REJECTED
    assert ctx.get_record(OutputKind.OUTLINE).rejection_reason == "too short"

    result = runner.invoke(app, ["restart", str(snapshot), "--reason", "retry"])
    assert result.exit_code == 0, result.output
    ctx = _load(snapshot)
    assert ctx.state.status is StageStatus.IN_PROGRESS
    assert ctx.get_output(OutputKind.OUTLINE) is None


def test_restart_requires_failed_stage(monkeypatch, tmp_path):
    _isolate(monkeypatch, tmp_path)
    _patch_pipeline(monkeypatch)
    brief = _write_brief(tmp_path)
    snapshot = tmp_path / "run.json"
    runner.invoke(app, ["run", str(brief), "--snapshot", str(snapshot)])

    result = runner.invoke(app, ["restart", str(snapshot)])

    assert result.exit_code == 1


def test_show_prints_summary_and_history(monkeypatch, tmp_path):
    _isolate(monkeypatch, tmp_path)
    _patch_pipeline(monkeypatch)
    brief = _write_brief(tmp_path)
    snapshot = tmp_path / "run.json"
    runner.invoke(app, ["run", str(brief), "--snapshot", str(snapshot)])

    result = runner.invoke(app, ["show", str(snapshot), "--history"])

    assert result.exit_code == 0, result.output
    assert "Stage Results:" in result.output
    assert "History:" in result.output
    assert "Context initialized" in result.output
    assert "Started Outline Generation" in result.output


def test_show_missing_snapshot(tmp_path):
    result = runner.invoke(app, ["show", str(tmp_path / "nope.json")])
    assert result.exit_code == 1
    assert "Snapshot not found" in result.output
