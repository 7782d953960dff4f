"""
Output - Console output formatting.

Provides pretty-printed output with colors and formatting.
"""

import json
import sys
from typing import Any

from domainclient.core.exceptions import (
    DomainException,
    DomainOperationError,
    SubmitOperationError,
    TransportError,
)


class Colors:
    """ANSI color codes for terminal output."""

    RESET = "\033[0m"
    BOLD = "\033[1m"
    DIM = "\033[2m"

    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    BLUE = "\033[34m"
    CYAN = "\033[36m"


class Symbols:
    """Unicode symbols for terminal output."""

    CHECK = "✓"
    CROSS = "✗"
    ARROW = "→"
    DOT = "•"
    WARN = "⚠"
    INFO = "ℹ"

    BOX_H = "─"


class Console:
    """
    Console output helper with colors and formatting.

    Attributes:
        color: Whether to use ANSI color codes.
        verbose: Whether to print debug messages.
        quiet: Whether to suppress most output (for CI/scripting).
        json_mode: Whether results are printed as JSON for programmatic use.
    """

    def __init__(
        self,
        color: bool = True,
        verbose: bool = False,
        quiet: bool = False,
        json_mode: bool = False,
    ):
        """
        Initialize the console output helper.

        Args:
            color: Enable colored output. Automatically disabled if stdout is not a TTY.
            verbose: Enable verbose debug output.
            quiet: Suppress most output, only show errors and results.
            json_mode: Print results as JSON instead of text.
        """
        self.json_mode = json_mode
        self.color = color and sys.stdout.isatty() and not json_mode
        self.verbose = verbose
        self.quiet = quiet or json_mode

        if self.quiet:
            self.verbose = False

    def _c(self, text: str, *codes: str) -> str:
        if not self.color:
            return text
        return "".join(codes) + text + Colors.RESET

    def print(self, text: str = "", force: bool = False) -> None:
        """
        Print text to stdout.

        Args:
            text: Text to print. Defaults to empty string for blank line.
            force: Print even in quiet mode.
        """
        if self.quiet and not force:
            return
        print(text)

    def header(self, text: str) -> None:
        if self.quiet:
            return
        width = max(len(text) + 4, 50)
        border = self._c(Symbols.BOX_H * width, Colors.CYAN) if self.color else "-" * width

        self.print()
        self.print(border)
        self.print(self._c(f"  {text}", Colors.BOLD, Colors.CYAN))
        self.print(border)
        self.print()

    def section(self, text: str) -> None:
        if self.quiet:
            return
        self.print()
        self.print(self._c(f"{Symbols.ARROW} {text}", Colors.BOLD, Colors.BLUE))

    def success(self, text: str) -> None:
        if self.quiet:
            return
        self.print(self._c(f"  {Symbols.CHECK} {text}", Colors.GREEN))

    def error(self, text: str) -> None:
        """Print an error message. Errors always print, on stderr in JSON mode."""
        if self.json_mode:
            print(json.dumps({"error": text}), file=sys.stderr)
            return
        print(self._c(f"  {Symbols.CROSS} {text}", Colors.RED))

    def warning(self, text: str) -> None:
        if self.quiet:
            return
        self.print(self._c(f"  {Symbols.WARN} {text}", Colors.YELLOW))

    def info(self, text: str) -> None:
        if self.quiet:
            return
        self.print(self._c(f"  {Symbols.INFO} {text}", Colors.CYAN))

    def detail(self, text: str) -> None:
        if self.quiet:
            return
        self.print(self._c(f"    {text}", Colors.DIM))

    def debug(self, text: str) -> None:
        if self.verbose:
            self.print(self._c(f"  [DEBUG] {text}", Colors.DIM))

    def item(self, text: str, status: str | None = None) -> None:
        """
        Print a list item with optional status indicator.

        Args:
            text: Item text to display.
            status: "ok", "fail", or any other label shown dimmed.
        """
        if self.quiet:
            return
        status_str = ""
        if status == "ok":
            status_str = self._c(f" [{Symbols.CHECK}]", Colors.GREEN)
        elif status == "fail":
            status_str = self._c(f" [{Symbols.CROSS}]", Colors.RED)
        elif status:
            status_str = self._c(f" [{status}]", Colors.DIM)

        self.print(f"    {Symbols.DOT} {text}{status_str}")

    def table(self, headers: list[str], rows: list[list[Any]]) -> None:
        """Print a table; results always print, even in quiet mode."""
        widths = [len(h) for h in headers]
        for row in rows:
            for i, cell in enumerate(row):
                if i < len(widths):
                    widths[i] = max(widths[i], len(str(cell)))

        header_line = "  " + "  ".join(
            self._c(h.ljust(widths[i]), Colors.BOLD) for i, h in enumerate(headers)
        )
        print(header_line)
        print("  " + "  ".join("-" * w for w in widths))
        for row in rows:
            print("  " + "  ".join(str(cell).ljust(widths[i]) for i, cell in enumerate(row)))

    def emit_json(self, data: Any) -> None:
        """Print a result document as JSON."""
        print(json.dumps(data, indent=2, default=str))

    # -------------------------------------------------------------------------
    # Error reporting
    # -------------------------------------------------------------------------

    def config_errors(self, errors: list[str]) -> None:
        """Print configuration errors with a hint on where settings come from."""
        if self.json_mode:
            print(json.dumps({"errors": errors}), file=sys.stderr)
            return
        self.error("Configuration errors:")
        for error in errors:
            print(f"    {Symbols.DOT} {error}")
        print(
            self._c(
                "    Settings are read from --url/--config, DOMAINCLIENT_* environment "
                "variables, .env and .domainclient.yaml",
                Colors.DIM,
            )
        )

    def error_rich(self, exc: BaseException) -> None:
        """Print an exception with the details its type carries."""
        self.error(str(exc))
        if self.json_mode:
            return

        if isinstance(exc, DomainOperationError):
            self.print(self._c(f"    status: {exc.status.name}", Colors.DIM), force=True)
            for result in exc.validation_errors:
                self.print(f"    {Symbols.DOT} {result}", force=True)
            if isinstance(exc, SubmitOperationError):
                for entity in exc.entities_in_error:
                    self.print(f"    {Symbols.DOT} {entity!r}", force=True)
        elif isinstance(exc, DomainException) and exc.error_code:
            self.print(self._c(f"    error code: {exc.error_code}", Colors.DIM), force=True)
        elif isinstance(exc, TransportError) and exc.status_code is None:
            self.print(
                self._c("    Check the service URL and your network connection", Colors.DIM),
                force=True,
            )
