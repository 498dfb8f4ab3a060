"""
Operator prompts.

All interactive decisions go through a `Confirmer`. The terminal version reads
from stdin; `ScriptedConfirmer` replays fixed answers (tests, dry rehearsals).
Neither offers a way to skip the code check for a destructive reset: the
expected code is only known to the caller that generated it.
"""

from __future__ import annotations

import re
from typing import List, Optional, Sequence

from .console import emit, log_only

_YES_RE = re.compile(r"^[Yy]$")


class Confirmer:
    def ask(self, prompt: str) -> Optional[str]:
        """Return the operator's raw answer, or None when no answer can be read."""
        raise NotImplementedError

    def confirm(self, prompt: str) -> bool:
        answer = self.ask(f"{prompt} (y/n): ")
        return bool(answer is not None and _YES_RE.match(answer.strip()))

    def confirm_with_code(self, prompt: str, expected_code: str) -> bool:
        if not expected_code:
            return False
        answer = self.ask(prompt)
        return answer is not None and answer.strip() == expected_code

    def choose(self, prompt: str, options: Sequence[str]) -> Optional[str]:
        """Return the chosen option key, or None for an answer that is not one of `options`."""
        answer = self.ask(prompt)
        if answer is None:
            return None
        answer = answer.strip()
        return answer if answer in options else None


class TerminalConfirmer(Confirmer):
    def ask(self, prompt: str) -> Optional[str]:
        try:
            answer = input(prompt)
        except EOFError:
            emit("")
            return None
        log_only(f"{prompt}{answer}")
        return answer


class ScriptedConfirmer(Confirmer):
    def __init__(self, answers: Sequence[str] = ()):
        self.answers: List[str] = list(answers)
        self.prompts: List[str] = []

    def ask(self, prompt: str) -> Optional[str]:
        self.prompts.append(prompt)
        if not self.answers:
            return None
        return self.answers.pop(0)

