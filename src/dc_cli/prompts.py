"""Confirmation prompts.

Commands never read stdin directly; they are handed a ``Confirmer``.
``ConsoleConfirmer`` asks on the terminal, ``StaticConfirmer`` returns a
fixed answer and records the questions it was asked (``--force`` and
tests).

Everything meant for the user while a command runs (progress, prompts)
goes to stderr so stdout only ever carries the final report.
"""

from __future__ import annotations

import logging
import sys
from typing import Callable, Protocol

logger = logging.getLogger(__name__)


def notify(message: str) -> None:
    """Print progress feedback to stderr."""
    print(message, file=sys.stderr, flush=True)


def read_answer(prompt: str) -> str:
    """Like ``input()``, but the prompt is written to stderr."""
    sys.stderr.write(prompt)
    sys.stderr.flush()
    line = sys.stdin.readline()
    if not line:
        raise EOFError
    return line.rstrip("\n")


class Confirmer(Protocol):
    """Anything that can answer a yes/no question."""

    def confirm(self, question: str) -> bool:
        ...  # pragma: no cover


class ConsoleConfirmer:
    """Ask on the terminal; anything starting with ``y`` is a yes."""

    def __init__(self, input_func: Callable[[str], str] = read_answer) -> None:
        self._input = input_func

    def confirm(self, question: str) -> bool:
        try:
            answer = self._input(f"{question} ")
        except EOFError:
            logger.debug("No answer available on stdin, treating as 'no'")
            return False
        return answer.strip().lower().startswith("y")


class StaticConfirmer:
    """Answer every question with the same value."""

    def __init__(self, answer: bool = True) -> None:
        self.answer = answer
        self.questions: list[str] = []

    def confirm(self, question: str) -> bool:
        self.questions.append(question)
        return self.answer


def archive_question(
    action: str,
    entity_type: str,
    all_content: bool = False,
    missing_content: bool = False,
) -> str:
    """Build the question asked before an archive/unarchive run.

    Args:
        action: Verb shown to the user ("archive", "unarchive").
        entity_type: Singular entity label ("content item").
        all_content: No filter was given, so everything is affected.
        missing_content: A revert log named entities that were not found.
    """
    if all_content:
        question = (
            f"Providing no ID or filter will {action} ALL {entity_type}s! "
            "Are you sure you want to do this? (y/n)"
        )
    else:
        question = (
            f"Are you sure you want to {action} these {entity_type}s? (y/n)"
        )
    if missing_content:
        question = (
            f"Warning: Some {entity_type}s specified on the log are missing.\n"
            + question
        )
    return question


def overwrite_question(filenames: list[str]) -> str:
    """Build the single question asked before overwriting exported files."""
    listing = "\n".join(f"  {name}" for name in filenames)
    return (
        "The following files will be overwritten:\n"
        f"{listing}\n"
        "Do you want to continue? (y/n)"
    )


def update_question(count: int, entity_type: str) -> str:
    """Build the question asked before an import updates previously imported entities."""
    return (
        f"{count} {entity_type}s were imported before and will be updated "
        "on the destination hub. Do you want to continue? (y/n)"
    )
