"""
confirm.py
Confirmation capability injected into transactions.

The transaction decides *what* needs confirming; a Confirmer decides *how*
the answer is obtained.
"""

from __future__ import annotations
from typing import Iterable, List, Optional, Protocol

from rich.console import Console
from rich.prompt import Confirm


class Confirmer(Protocol):
    def confirm(self, question: str, default: bool = True) -> bool:
        ...


class AutoConfirm:
    """Unattended mode (--no-confirm): every question is answered yes."""

    def confirm(self, question: str, default: bool = True) -> bool:
        return True


class ConsoleConfirm:
    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console()

    def confirm(self, question: str, default: bool = True) -> bool:
        return Confirm.ask(question, default=default, console=self.console)


class ScriptedConfirm:
    """
    Answers from a fixed list, recording every question asked.
    Running out of answers means "no".
    """

    def __init__(self, answers: Iterable[bool] = ()):
        self._answers = list(answers)
        self.questions: List[str] = []

    def confirm(self, question: str, default: bool = True) -> bool:
        self.questions.append(question)
        if not self._answers:
            return False
        return self._answers.pop(0)
