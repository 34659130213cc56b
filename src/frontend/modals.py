"""Modal dialogs for the Textual dashboard."""

from __future__ import annotations

from textual.app import ComposeResult
from textual.containers import Container, Horizontal
from textual.screen import ModalScreen
from textual.widgets import Button, Static


class ConfirmRunScreen(ModalScreen[bool]):
    """Confirm an on-demand scrape of every active channel."""

    def __init__(self, channel_count: int) -> None:
        super().__init__()
        self._channel_count = channel_count

    def compose(self) -> ComposeResult:
        yield Container(
            Static("Run scrape now?", classes="modal-title"),
            Static(
                f"{self._channel_count} active channel(s) will be scraped.",
                classes="modal-body",
            ),
            Horizontal(
                Button("Run", id="run-confirm", variant="success"),
                Button("Cancel", id="run-cancel"),
                classes="modal-actions",
            ),
            classes="modal-dialog modal-dialog--confirm",
        )

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "run-confirm":
            self.dismiss(True)
        else:
            self.dismiss(False)
