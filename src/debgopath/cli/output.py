"""Output utilities for CLI commands with clear intent.

Standard output carries only machine-readable results (the snapshot
timestamp) so the command can be used as `latest=$(debgopath build)`;
everything meant for humans goes to stderr.
"""

from typing import Any

import click
from rich.panel import Panel
from rich.text import Text

from debgopath.core.types import AssemblyStatus, BuildOutcome

MAX_LISTED_SKIPS = 20


def user_output(message: Any = "", nl: bool = True) -> None:
    """Write human-facing output to stderr."""
    click.echo(message, err=True, nl=nl)


def machine_output(message: Any = "", nl: bool = True) -> None:
    """Write machine-readable output to stdout."""
    click.echo(message, nl=nl)


def format_duration(seconds: float) -> str:
    """Format a duration as "42s" or "3m 07s"."""
    minutes, secs = divmod(int(round(seconds)), 60)
    if minutes == 0:
        return f"{secs}s"
    return f"{minutes}m {secs:02d}s"


def format_build_summary(outcome: BuildOutcome) -> Panel:
    """Format the summary box shown after a build.

    Example:
        >>> console = Console(stderr=True)
        >>> console.print(format_build_summary(outcome))
    """
    lines: list[Text] = []
    if outcome.reused:
        lines.append(Text(f"Snapshot {outcome.snapshot_path} is up to date", style="green"))
    else:
        lines.append(Text(f"Published {outcome.snapshot_path}", style="green"))
        lines.append(Text(f"Assembled: {outcome.count(AssemblyStatus.ASSEMBLED)}"))
        skipped = outcome.count(AssemblyStatus.SKIPPED)
        lines.append(Text(f"Skipped:   {skipped}", style="yellow" if skipped else ""))
        failed = outcome.count(AssemblyStatus.FAILED)
        lines.append(Text(f"Failed:    {failed}", style="red" if failed else ""))
        lines.append(Text(f"Duration:  {format_duration(outcome.duration_seconds)}"))

        skipped_results = [r for r in outcome.results if r.status == AssemblyStatus.SKIPPED]
        if skipped_results:
            lines.append(Text(""))
            for result in skipped_results[:MAX_LISTED_SKIPS]:
                lines.append(Text(f"  {result.error}", style="dim"))
            if len(skipped_results) > MAX_LISTED_SKIPS:
                remaining = len(skipped_results) - MAX_LISTED_SKIPS
                lines.append(Text(f"  ... and {remaining} more", style="dim"))

    return Panel(
        Text("\n").join(lines),
        title=f"debgopath {outcome.timestamp}",
        border_style="green",
        padding=(0, 1),
    )
