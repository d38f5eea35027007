"""Boxed title with a live link/MIDI status line."""
from typing import Optional

from textual.app import ComposeResult
from textual.containers import Center, Vertical
from textual.widgets import Static


class HeaderWidget(Vertical):
    """Title box plus one status line."""

    DEFAULT_CSS = """
    HeaderWidget {
        width: 100%;
        height: auto;
        align: center top;
    }

    .header-boxed {
        width: auto;
        height: auto;
        text-align: center;
        color: $accent;
    }

    #header-status {
        width: 100%;
        text-align: center;
        content-align: center middle;
    }
    """

    def __init__(self, title: str, **kwargs):
        super().__init__(**kwargs)
        self.title_text = title

    def compose(self) -> ComposeResult:
        with Center():
            yield Static(self._create_boxed_title(self.title_text), classes="header-boxed")
        yield Static("", id="header-status")

    def _create_boxed_title(self, title: str, width: int = 40) -> str:
        title_padded = f" {title} "
        inner_width = max(width - 2, len(title_padded))
        padding = inner_width - len(title_padded)
        left_pad = padding // 2
        right_pad = padding - left_pad

        top = f"╔{'═' * inner_width}╗"
        mid = f"║{' ' * left_pad}{title_padded}{' ' * right_pad}║"
        bottom = f"╚{'═' * inner_width}╝"
        return f"{top}\n{mid}\n{bottom}"

    def update_status(self, connected: bool, endpoint: str, midi_port: Optional[str] = None,
                      pending: int = 0):
        link = "[#00ff00]● connected[/]" if connected else "[#ff5555]○ waiting for engine[/]"
        midi = midi_port or "no MIDI"
        status = f"{link}  [#666666]{endpoint} • {midi} • pending {pending}[/]"
        self.query_one("#header-status", Static).update(status)
