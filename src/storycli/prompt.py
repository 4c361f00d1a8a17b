"""Operator input and the user-story prompt template."""

from __future__ import annotations

import textwrap

import typer

from storycli.exceptions import InvalidUsageError

TITLE_QUESTION = "Enter User story Title"

_STORY_TEMPLATE = textwrap.dedent(
    """\
    Create user story for developer role with rephrased title, description and acceptance criteria for title: {title}

    Note: response should be in only JSON format with keys: (title, description, acceptanceCriteria) and should not include any additional text or explanation or markdown text.
    """
)


def prompt_line(question: str) -> str:
    """Read one line of free text from the operator.

    Raises:
        InvalidUsageError: If stdin is closed before a line is entered.
    """
    try:
        return typer.prompt(question)
    except typer.Abort as exc:
        raise InvalidUsageError("No input received") from exc


def build_story_prompt(title: str) -> str:
    """Return the completion prompt asking for a JSON user story about *title*."""
    return _STORY_TEMPLATE.format(title=title.strip())
