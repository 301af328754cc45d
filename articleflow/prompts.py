"""Prompt templates for the LLM-backed stages.

Templates use ``str.format`` placeholders. Any template can be overridden
by a ``<name>.txt`` file in a prompts directory.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Optional, Union

from .contracts import ArticleInput

_BRIEF = """\
Article title: {title}
Client: {client_name}
Article type: {article_type}
Unique selling points: {usps}
Target length: {min_word_count}-{max_word_count} words
Client guidelines: {client_guidelines}
General guidelines: {general_guidelines}
"""

DEFAULT_TEMPLATES = {
    "outline": _BRIEF
    + """
Expected outline structure: {outline_description}

Example article for tone and structure:
{example_article}

Write a detailed article outline with headings and a short note under each
heading describing what it covers. Return only the outline.
""",
    "research_planner": _BRIEF
    + """
Approved outline:
{outline}

Preferred sources: {preferred_sources}

List the web search queries needed to research the facts this article
relies on. Write one query per line with no numbering. Lines starting with
# are ignored.
""",
    "research_summary": _BRIEF
    + """
Outline:
{outline}

Research notes (one block per source):
{research}

Summarize the findings relevant to the outline. Keep source URLs next to
the facts they support.
""",
    "draft": _BRIEF
    + """
Outline:
{outline}

Research summary:
{research_summary}

Example article for tone and structure:
{example_article}

Write the full article following the outline. Return only the article.
""",
    "verification": """\
Article draft:
{draft}

Research summary:
{research_summary}

List every factual claim in the draft and check it against the research.
Write one claim per line in the form:
claim | supported/unsupported/uncertain | source url or - | short note
""",
    "internal_linking": """\
Client: {client_name}
Preferred sources: {preferred_sources}

Article draft:
{draft}

Suggest internal links for the article. Write one link per line in the form:
anchor text | url
""",
}


def load_template(name: str, prompts_dir: Optional[Union[str, Path]] = None) -> str:
    """Return template ``name``, preferring ``<prompts_dir>/<name>.txt``."""
    if prompts_dir is not None:
        path = Path(prompts_dir) / f"{name}.txt"
        if path.exists():
            return path.read_text(encoding="utf-8")
    try:
        return DEFAULT_TEMPLATES[name]
    except KeyError:
        raise KeyError(f"Unknown prompt template: {name}") from None


def render_prompt(
    name: str,
    article_input: ArticleInput,
    prompts_dir: Optional[Union[str, Path]] = None,
    **extra: Any,
) -> str:
    """Fill template ``name`` with the article brief and ``extra`` values."""
    values = article_input.model_dump()
    values["article_type"] = article_input.article_type.value
    values["preferred_sources"] = ", ".join(article_input.preferred_sources) or "none"
    values.update(extra)
    return load_template(name, prompts_dir).format(**values)
