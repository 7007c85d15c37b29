"""Rich renderables for frames (interactive mode)."""

from __future__ import annotations

from rich import box
from rich.console import Group, RenderableType
from rich.panel import Panel as RichPanel
from rich.table import Table
from rich.text import Text

from xyte.tui.frames import Frame
from xyte.tui.navigation import TAB_ORDER
from xyte.tui.scene import Panel

_STATUS_STYLE = {
    "idle": "green",
    "loading": "cyan",
    "retrying": "yellow",
    "error": "red",
}


def render_tabs(frame: Frame) -> Text:
    tabs = Text()
    for index, screen in enumerate(TAB_ORDER, start=1):
        label = f" {index}:{screen.value} "
        style = "bold reverse" if screen == frame.screen else "dim"
        tabs.append(label, style=style)
    return tabs


def render_header(frame: Frame) -> RenderableType:
    refresh = str(frame.meta.get("refreshState", "idle"))
    header = Table.grid(expand=True)
    header.add_column(ratio=1)
    header.add_column(justify="right")
    header.add_row(
        Text(f"{frame.logo}  {frame.title}", style="bold cyan"),
        Text(f"tenant={frame.tenant_id or 'none'}  refresh={refresh}", style=_STATUS_STYLE.get(refresh, "white")),
    )
    return Group(render_tabs(frame), header, Text(frame.status, style="italic"))


def render_panel(panel: Panel, active: bool = False) -> RichPanel:
    body: RenderableType
    if panel.stats is not None:
        grid = Table.grid(padding=(0, 2))
        grid.add_column(style="bold")
        grid.add_column()
        for stat in panel.stats:
            grid.add_row(stat.label, str(stat.value))
        body = grid
    elif panel.table is not None:
        table = Table(box=box.SIMPLE_HEAD, expand=True)
        for column in panel.table.columns:
            table.add_column(column, no_wrap=True)
        for row in panel.table.rows:
            table.add_row(*(str(cell) for cell in row))
        if not panel.table.rows:
            body = Text("(empty)", style="dim")
        else:
            body = table
    else:
        body = Text("\n".join(panel.text.lines if panel.text else []))

    subtitle = panel.status or None
    return RichPanel(
        body,
        title=panel.title,
        subtitle=subtitle,
        border_style="cyan" if active else "grey50",
    )


def render_frame(frame: Frame, pane_panels: dict[str, str] | None = None) -> RenderableType:
    """Header plus one bordered panel per scene panel; ``pane_panels`` maps pane id → panel id to highlight."""
    active_panel = (pane_panels or {}).get(str(frame.meta.get("activePane", "")))
    parts: list[RenderableType] = [render_header(frame)]
    parts.extend(render_panel(p, active=p.id == active_panel) for p in frame.panels)
    return Group(*parts)
