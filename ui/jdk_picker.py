"""
ui/jdk_picker.py
================
Textual app for choosing between JDKs of the same major version.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical
from textual.widgets import Button, Checkbox, DataTable, Footer, Label

from java_manager import JavaInstallation
from jdk_selector import Choice

logger = logging.getLogger(__name__)


class JdkPickerApp(App[Optional[Choice]]):
    """Table of matching JDKs with Select / Cancel and a remember checkbox."""

    TITLE = "☕ Choose JDK Version"

    CSS = """
    Screen { align: center middle; }
    #picker-box {
        width: 95%; max-width: 110; height: auto; max-height: 90%;
        border: double #58a6ff; padding: 1 2; background: #161b22;
    }
    #picker-title { margin-bottom: 1; }
    #picker-jar { color: #8b949e; margin-bottom: 1; }
    #pick-table { height: auto; max-height: 16; margin-bottom: 1; }
    #picker-bottom { height: auto; }
    #picker-btns { width: auto; }
    #picker-btns Button { margin-right: 1; }
    """

    BINDINGS = [
        Binding("escape", "cancel", "Cancel"),
        Binding("ctrl+q", "cancel", "Cancel", show=False, priority=True),
    ]

    def __init__(self, candidates: Sequence[JavaInstallation], jar_path: str) -> None:
        super().__init__()
        self.candidates: List[JavaInstallation] = list(candidates)
        self.jar_path = jar_path

    def compose(self) -> ComposeResult:
        with Vertical(id="picker-box"):
            yield Label(
                "Multiple JDK versions have been detected on your system. "
                "Please select the JDK you want to use.",
                id="picker-title",
            )
            yield Label(f"JAR: {self.jar_path}", id="picker-jar")
            yield DataTable(id="pick-table", cursor_type="row")
            with Horizontal(id="picker-bottom"):
                with Horizontal(id="picker-btns"):
                    yield Button("Select", variant="success", id="pick-select")
                    yield Button("Cancel", variant="error", id="pick-cancel")
                yield Checkbox("Remember this JDK for this JAR", value=True, id="pick-remember")
        yield Footer()

    def on_mount(self) -> None:
        table = self.query_one("#pick-table", DataTable)
        table.add_columns("Version", "Vendor", "Path")
        for index, jdk in enumerate(self.candidates):
            table.add_row(str(jdk.version), jdk.vendor_label, jdk.path, key=str(index))
        table.focus()

    # ── Actions ────────────────────────────────

    def _selected(self) -> Optional[JavaInstallation]:
        table = self.query_one("#pick-table", DataTable)
        row = table.cursor_row
        if row is None or not 0 <= row < len(self.candidates):
            return None
        return self.candidates[row]

    def _finish(self) -> None:
        jdk = self._selected()
        if jdk is None:
            self.notify("Select a JDK first", severity="warning")
            return
        remember = self.query_one("#pick-remember", Checkbox).value
        logger.debug("Picked %s (remember=%s)", jdk.describe(), remember)
        self.exit(Choice(installation=jdk, remember=remember))

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "pick-select":
            self._finish()
        elif event.button.id == "pick-cancel":
            self.action_cancel()

    def on_data_table_row_selected(self, event: DataTable.RowSelected) -> None:
        self._finish()

    def action_cancel(self) -> None:
        self.exit(None)


class TextualChooser:
    """JdkChooser backed by JdkPickerApp."""

    def present(
        self, candidates: Sequence[JavaInstallation], jar_path: str
    ) -> Optional[Choice]:
        return JdkPickerApp(candidates, jar_path).run()
