#!/usr/bin/env python3
"""
Interactive terminal prompt for choosing between JDKs of the same version.
Works in any terminal, including ones without TUI support.
"""
from __future__ import annotations

import logging
import sys
from typing import Callable, Optional, Sequence

from jar_runner import stdin_reader
from java_manager import JavaInstallation
from jdk_selector import Choice

logger = logging.getLogger(__name__)


# stdout belongs to the JAR that is about to run, so prompts go to stderr

def _print_err(text: str = "") -> None:
    print(text, file=sys.stderr)


def _read_line(prompt: str) -> str:
    print(prompt, end="", file=sys.stderr, flush=True)
    # Same unbuffered reader as the stdin relay: whatever follows the answers
    # stays unread for the JAR
    line = stdin_reader().readline()
    if not line:
        raise EOFError
    return line.decode(errors="replace").rstrip("\r\n")


class TerminalChooser:
    """Numbered-list prompt; implements the JdkChooser protocol."""

    CANCEL_ANSWERS = ("0", "q", "quit")

    def __init__(
        self,
        input_func: Callable[[str], str] = _read_line,
        output: Callable[[str], None] = _print_err,
    ) -> None:
        self._input = input_func
        self._output = output

    def _ask(self, prompt: str) -> Optional[str]:
        try:
            return self._input(prompt).strip()
        except EOFError:
            return None

    def print_menu(self, candidates: Sequence[JavaInstallation], jar_path: str) -> None:
        self._output("\n" + "=" * 60)
        self._output("☕  Multiple JDKs match the requested version")
        self._output("=" * 60)
        self._output(f"JAR: {jar_path}\n")
        for index, jdk in enumerate(candidates, start=1):
            self._output(f"  {index}. Version: {jdk.version} - Vendor: {jdk.vendor_label} - Path: ({jdk.path})")
        self._output("  0. ❌ Cancel")
        self._output("")

    def present(
        self, candidates: Sequence[JavaInstallation], jar_path: str
    ) -> Optional[Choice]:
        if not candidates:
            return None

        self.print_menu(candidates, jar_path)

        while True:
            answer = self._ask(f"Choice [1-{len(candidates)}]: ")
            if answer is None or answer.lower() in self.CANCEL_ANSWERS:
                logger.info("JDK selection cancelled at the prompt")
                return None
            try:
                index = int(answer)
            except ValueError:
                self._output("❌ Invalid choice!")
                continue
            if 1 <= index <= len(candidates):
                break
            self._output("❌ Invalid choice!")

        selected = candidates[index - 1]
        remember = self._ask("Remember this JDK for this JAR? [Y/n]: ")
        return Choice(
            installation=selected,
            remember=remember is not None and remember.lower() in ("", "y", "yes"),
        )
