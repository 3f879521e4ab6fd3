from datetime import datetime
from typing import Optional
from rich.console import Console
from rich.table import Table
from tomp4.ui.state import RunState

def format_elapsed(seconds: float) -> str:
    seconds = int(seconds)
    hours, rem = divmod(seconds, 3600)
    minutes, secs = divmod(rem, 60)
    if hours:
        return f"{hours}h {minutes:02d}m {secs:02d}s"
    if minutes:
        return f"{minutes}m {secs:02d}s"
    return f"{secs}s"

def build_summary_table(state: RunState) -> Table:
    """Builds the end-of-run counters table."""
    with state._lock:
        end = state.finished_time or datetime.now()
        elapsed = (end - state.start_time).total_seconds()

        table = Table(title="tomp4 summary", show_header=False, box=None, padding=(0, 2))
        table.add_column("label", style="bold")
        table.add_column("value", justify="right")

        if state.watch_root is not None:
            table.add_row("Watched", str(state.watch_root))
            table.add_row("Enqueued", str(state.enqueued_count))
        else:
            table.add_row("Inputs", str(state.inputs_count))
            table.add_row("Files found", str(state.total_files_found))
        table.add_row("Transcoded", f"[green]{state.transcoded_count}[/green]")
        actions = ", ".join(f"{k.lower()}={v}" for k, v in sorted(state.compliant_actions.items()))
        compliant = str(state.compliant_count) + (f" ({actions})" if actions else "")
        table.add_row("Already compliant", compliant)
        failed_style = "red" if state.failed_count else "dim"
        table.add_row("Failed", f"[{failed_style}]{state.failed_count}[/{failed_style}]")
        if state.shutdown_signal:
            table.add_row("Stopped by", state.shutdown_signal)
        table.add_row("Elapsed", format_elapsed(elapsed))
    return table

def render_summary(state: RunState, console: Optional[Console] = None) -> None:
    console = console or Console(stderr=True)
    console.print(build_summary_table(state))
    failures = state.failures()
    if failures:
        console.print("[red]Failed files:[/red]")
        for path, message in failures:
            console.print(f"  {path}: {message}", markup=False, highlight=False)
