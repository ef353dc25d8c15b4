from __future__ import annotations

import sys
from typing import Any, Protocol, Sequence

from .errors import PromptInterrupted

Choice = tuple[str, Any]


class Prompter(Protocol):
    def confirm(self, message: str, default: bool = True) -> bool:
        ...

    def select(self, message: str, choices: Sequence[Choice], default: Any = None) -> Any:
        ...


class TerminalPrompter:
    def __init__(self, *, stream=None) -> None:
        self._stream = stream if stream is not None else sys.stdout

    def _ask(self, text: str) -> str:
        try:
            return input(text)
        except (KeyboardInterrupt, EOFError) as e:
            print(file=self._stream)
            raise PromptInterrupted() from e

    def confirm(self, message: str, default: bool = True) -> bool:
        hint = "[Y/n]" if default else "[y/N]"
        while True:
            answer = self._ask(f"{message} {hint} ").strip().lower()
            if not answer:
                return default
            if answer in ("y", "yes"):
                return True
            if answer in ("n", "no"):
                return False
            print("Please answer y or n.", file=self._stream)

    def select(self, message: str, choices: Sequence[Choice], default: Any = None) -> Any:
        if not choices:
            raise ValueError("select() requires at least one choice")
        default_idx = next((i for i, (_, value) in enumerate(choices) if value == default), 0)
        print(message, file=self._stream)
        for i, (label, _) in enumerate(choices, start=1):
            marker = "*" if i - 1 == default_idx else " "
            print(f" {marker} {i}) {label}", file=self._stream)
        while True:
            answer = self._ask(f"Choose 1-{len(choices)} [{default_idx + 1}]: ").strip()
            if not answer:
                return choices[default_idx][1]
            if answer.isdigit() and 1 <= int(answer) <= len(choices):
                return choices[int(answer) - 1][1]
            print(f"Please enter a number between 1 and {len(choices)}.", file=self._stream)


class AutoConfirmPrompter:
    """Non-interactive prompter used for ``--yes``: confirms everything, selects defaults."""

    def confirm(self, message: str, default: bool = True) -> bool:
        return True

    def select(self, message: str, choices: Sequence[Choice], default: Any = None) -> Any:
        if default is not None:
            return default
        return choices[0][1]
