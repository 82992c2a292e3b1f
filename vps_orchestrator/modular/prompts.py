"""
Operator confirmation prompts.
"""

import logging
from typing import Optional

import click

module_logger = logging.getLogger(__name__)


class Prompter:
    """
    Synchronous yes/no questions for the operator.

    Empty or negative answers are "no". In automation mode every question is
    answered "yes" without blocking and the auto-answer is logged.
    """

    def __init__(
        self,
        assume_yes: bool = False,
        logger: Optional[logging.Logger] = None,
    ):
        self.assume_yes = assume_yes
        self.logger = logger or module_logger

    def confirm(self, question: str) -> bool:
        if self.assume_yes:
            self.logger.info(f"{question} [AUTO-YES]")
            return True
        return click.confirm(
            click.style(question, fg="yellow"), default=False
        )
