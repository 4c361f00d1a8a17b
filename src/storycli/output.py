"""Terminal output for storycli.

The generated story is the only thing written to **stdout**, so it can be
piped straight into ``jq`` or a file. Sign-in instructions, polling
progress, warnings and errors all go to **stderr**.

Colour follows `clig.dev <https://clig.dev/>`_: it is off when ``NO_COLOR``
is set, when ``TERM=dumb``, or with ``--no-color``. Without colour every
diagnostic is a plain ``print`` with a textual prefix instead of Rich markup.

:class:`OutputManager` holds the consoles and the quiet/verbose flags. One
instance is installed per run by :func:`~storycli.app.main_callback`; the
module-level functions (:func:`info`, :func:`error`, ...) forward to it.
"""

from __future__ import annotations

import json
import os
import sys
from typing import Optional

from rich.console import Console
from rich.table import Table


class OutputManager:
    """Route storycli output to stdout or stderr.

    Args:
        no_color: Disable colour and Rich markup.
        quiet: Hide ``info``, ``success`` and ``suggest`` messages.
        verbose: Show ``debug`` messages.
        json_output: Render tables as a JSON array of records.
    """

    def __init__(
        self,
        no_color: bool = False,
        quiet: bool = False,
        verbose: bool = False,
        json_output: bool = False,
    ) -> None:
        self._no_color = no_color or _should_disable_color()
        self._quiet = quiet
        self._verbose = verbose
        self._json = json_output

        self._stdout = Console(
            file=sys.stdout,
            no_color=self._no_color,
            force_terminal=_is_tty() and not self._no_color,
        )
        self._stderr = Console(
            file=sys.stderr,
            no_color=self._no_color,
            stderr=True,
            highlight=False,
        )

    @property
    def is_quiet(self) -> bool:
        return self._quiet

    @property
    def is_verbose(self) -> bool:
        return self._verbose

    # -- stdout --------------------------------------------------------- #

    def print_data(self, text: str) -> None:
        """Write *text* to stdout as is."""
        print(text, file=sys.stdout, flush=True)

    def print_table(
        self,
        headers: list[str],
        rows: list[list[str]],
        title: Optional[str] = None,
    ) -> None:
        """Write rows to stdout as JSON records, TSV, or a Rich table.

        JSON wins when ``--json`` is set. Without colour, or when stdout is
        not a terminal, rows are tab separated with a header line.
        """
        if self._json:
            records = [dict(zip(headers, row)) for row in rows]
            self.print_data(json.dumps(records, indent=2, ensure_ascii=False))
            return
        if self._no_color or not _is_tty():
            for line in [headers, *rows]:
                self.print_data("\t".join(line))
            return
        table = Table(title=title, show_header=True, header_style="bold cyan")
        for header in headers:
            table.add_column(header)
        for row in rows:
            table.add_row(*row)
        self._stdout.print(table)

    # -- stderr --------------------------------------------------------- #

    def info(self, message: str) -> None:
        if not self._quiet:
            self._diagnostic(message, message)

    def success(self, message: str) -> None:
        if not self._quiet:
            self._diagnostic(message, f"[green]{message}[/green]")

    def suggest(self, message: str) -> None:
        if not self._quiet:
            self._diagnostic(f"→ {message}", f"[dim]→ {message}[/dim]")

    def warning(self, message: str) -> None:
        """Shown even with ``--quiet``."""
        self._diagnostic(f"Warning: {message}", f"[yellow]Warning:[/yellow] {message}")

    def error(self, message: str) -> None:
        """Shown even with ``--quiet``."""
        self._diagnostic(f"Error: {message}", f"[bold red]Error:[/bold red] {message}")

    def debug(self, message: str) -> None:
        """Shown only with ``--verbose``."""
        if self._verbose:
            self._diagnostic(f"[debug] {message}", f"[dim]\\[debug] {message}[/dim]")

    def _diagnostic(self, plain: str, markup: str) -> None:
        if self._no_color:
            print(plain, file=sys.stderr, flush=True)
        else:
            self._stderr.print(markup)


def _is_tty() -> bool:
    return hasattr(sys.stdout, "isatty") and sys.stdout.isatty()


def _should_disable_color() -> bool:
    """Return True when ``NO_COLOR`` is set (any value) or ``TERM=dumb``."""
    return os.environ.get("NO_COLOR") is not None or os.environ.get("TERM") == "dumb"


# -- process-wide instance ---------------------------------------------- #

_output: Optional[OutputManager] = None


def get_output() -> OutputManager:
    """Return the installed :class:`OutputManager`, creating a default one."""
    global _output
    if _output is None:
        _output = OutputManager()
    return _output


def set_output(output: OutputManager) -> None:
    global _output
    _output = output


def reset_output() -> None:
    """Drop the installed manager; tests call this between runs."""
    global _output
    _output = None


def print_data(text: str) -> None:
    get_output().print_data(text)


def print_table(
    headers: list[str],
    rows: list[list[str]],
    title: Optional[str] = None,
) -> None:
    get_output().print_table(headers, rows, title)


def info(message: str) -> None:
    get_output().info(message)


def success(message: str) -> None:
    get_output().success(message)


def suggest(message: str) -> None:
    get_output().suggest(message)


def warning(message: str) -> None:
    get_output().warning(message)


def error(message: str) -> None:
    get_output().error(message)


def debug(message: str) -> None:
    get_output().debug(message)
