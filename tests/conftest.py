import pytest

from articleflow.contracts import ArticleInput
from articleflow.context import ExecutionContext


def make_input(**overrides) -> ArticleInput:
    data = dict(
        title="5 Essential Tips for Better Sleep",
        client_name="HealthWellness Blog",
        usps="Science-backed advice, practical tips, suitable for all ages",
        client_guidelines="Friendly and approachable tone, use simple language",
        general_guidelines="Use short paragraphs, include subheadings",
        example_article="Getting enough quality sleep is crucial for your health.",
        outline_description="Introduction, 5 tip sections, brief conclusion",
    )
    data.update(overrides)
    return ArticleInput(**data)


@pytest.fixture
def article_input() -> ArticleInput:
    return make_input()


@pytest.fixture
def ctx(article_input) -> ExecutionContext:
    return ExecutionContext(article_input)


@pytest.fixture
def input_factory():
    return make_input
