"""
Operator-facing console output.

Successful locks are printed green and anything that needs the operator's
attention red. Table names are always printed as plain text, never
interpreted as console markup.
"""

from __future__ import annotations

import sys

from rich.console import Console
from rich.text import Text

from tablelock.exceptions import TableLockError
from tablelock.models import AttemptOutcome, OutcomeKind, RunReport, TableRef
from tablelock.scheduler import RetryQueue

OK_STYLE = "green"
ERROR_STYLE = "red"
INFO_STYLE = "bold"


def format_summary(report: RunReport) -> list[str]:
    """
    Render a run report as plain text lines.

    The output depends only on the report, so rendering the same report
    twice yields identical lines.
    """
    lines = []
    if report.complete:
        lines.append(
            f"All {len(report.locked)} table(s) in schema {report.schema} locked "
            f"in {report.mode.sql} mode in {report.elapsed:.2f}s."
        )
    else:
        lines.append(
            f"Locked {len(report.locked)} table(s) in schema {report.schema}, "
            f"{len(report.outstanding)} could not be locked."
        )

    lines.append(f"Retry rounds: {report.retry_rounds}")
    retried = sorted(t.qualified_name for t in report.ever_failed)
    lines.append(f"Needed retries: {', '.join(retried) if retried else 'none'}")
    outstanding = [t.qualified_name for t in report.outstanding]
    lines.append(f"Retry queue: {', '.join(outstanding) if outstanding else 'empty'}")
    return lines


class ConsoleReporter:
    """
    Reporter that prints progress with rich.

    Args:
        console: Console to print to (defaults to stdout)
        no_color: Disable colour output

    Example:
        >>> reporter = ConsoleReporter()
        >>> reporter.outcome(AttemptOutcome.locked(TableRef("public", "a")))
        Table public.a locked.
    """

    def __init__(self, console: Console | None = None, *, no_color: bool = False) -> None:
        self._console = console or Console(file=sys.stdout, no_color=no_color, highlight=False)

    @property
    def console(self) -> Console:
        return self._console

    def tables_found(self, schema: str, tables: list[TableRef]) -> None:
        self._print(f"Found {len(tables)} table(s) in schema {schema}.", INFO_STYLE)

    def outcome(self, outcome: AttemptOutcome) -> None:
        name = outcome.table.qualified_name
        if outcome.kind is OutcomeKind.LOCKED:
            self._print(f"Table {name} locked.", OK_STYLE)
        elif outcome.kind is OutcomeKind.TIMED_OUT:
            self._print(f"Error lock table {name}: timeout ({outcome.cause})", ERROR_STYLE)
        else:
            self._print(f"Error locking table {name}: {outcome.cause}", ERROR_STYLE)

    def retry_scheduled(self, round_number: int, queue: RetryQueue, backoff: float) -> None:
        self._print(
            f"Following table(s) cannot lock, retry round {round_number} after {backoff:g}s",
            ERROR_STYLE,
        )
        for name in queue.describe():
            self._print(f"  {name}", ERROR_STYLE)

    def completed(self, report: RunReport) -> None:
        style = OK_STYLE if report.complete else ERROR_STYLE
        for line in format_summary(report):
            self._print(line, style)

    def holding(self, schema: str) -> None:
        self._print(f"Locked tables in schema {schema}, press Ctrl+C to release...", INFO_STYLE)

    def releasing(self, reason: str) -> None:
        self._print(f"{reason[:1].upper()}{reason[1:]}, releasing table locks...", INFO_STYLE)

    def failed(self, error: TableLockError) -> None:
        self._print(str(error), ERROR_STYLE)

    def _print(self, message: str, style: str) -> None:
        self._console.print(Text(message, style=style))


__all__ = [
    "ConsoleReporter",
    "format_summary",
]
