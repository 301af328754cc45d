"""Simple example running an article workflow with an approval loop."""

import asyncio

from articleflow import ArticleInput, ExecutionContext, load_config
from articleflow.executors import build_pipeline
from articleflow.state import StageStatus


async def main():
    """Run the pipeline, approving every gate from the terminal."""
    # Reads articleflow.yaml, SERPAPI_KEY and ARTICLEFLOW_LLM_MODEL
    config = load_config()
    pipeline = build_pipeline(config)

    ctx = ExecutionContext(
        ArticleInput(
            title="5 Essential Tips for Better Sleep",
            client_name="HealthWellness Blog",
            usps="Science-backed advice, practical tips, suitable for all ages",
            client_guidelines="Friendly and approachable tone",
            general_guidelines="Use short paragraphs and subheadings",
            example_article="Getting enough quality sleep is crucial for your health.",
            outline_description="Introduction, 5 tip sections, brief conclusion",
        )
    )

    while not ctx.is_finished():
        await pipeline.run(ctx)
        if ctx.state.status is not StageStatus.AWAITING_APPROVAL:
            break
        output = ctx.state.metadata.output
        print(f"\n--- {output.value} ---\n{ctx.get_output(output)}\n")
        answer = input("Approve? [y/N] ").strip().lower()
        if answer == "y":
            ctx.approve(output)
        else:
            ctx.reject(output, input("Reason: "))
            ctx.restart_stage("regenerating after review")

    print(ctx.get_summary())


if __name__ == "__main__":
    asyncio.run(main())
