import sys
from typing import IO, Optional, Protocol

from dmethod.catalog import OptionCatalog
from dmethod.commands.dmethod_cmd.output import OutputStylingBase, output_styling
from dmethod.selection import SelectionState
from dmethod.types import MethodOption, QuitAction
from dmethod.util import program_name


class Screen(Protocol):
    """The interactive display the request operations share the terminal with"""

    def suspend(self) -> None:
        """Give the terminal to a child process"""

    def resume(self) -> None:
        """Take the terminal back for interactive use"""

    def report_failure(self, reason: str) -> None:
        """Show `reason` and block until the operator acknowledges it"""


class MethodMenu(Protocol):
    def display(self) -> QuitAction: ...


class TerminalScreen:
    """A line-oriented screen on plain terminal streams

    There is no full-screen state to tear down, so suspending only ensures
    pending output is written before a child process starts writing to the
    same terminal.
    """

    def __init__(
        self,
        input_stream: Optional[IO[str]] = None,
        output_stream: Optional[IO[str]] = None,
        *,
        fancy_output: Optional[OutputStylingBase] = None,
    ) -> None:
        self.input_stream = input_stream if input_stream is not None else sys.stdin
        self.output_stream = output_stream if output_stream is not None else sys.stdout
        if fancy_output is None:
            fancy_output = output_styling(self.output_stream)
        self.fancy_output = fancy_output
        self.is_active = False

    def suspend(self) -> None:
        self.output_stream.flush()
        self.is_active = False

    def resume(self) -> None:
        self.is_active = True

    def report_failure(self, reason: str) -> None:
        self.resume()
        fo = self.fancy_output
        fo.print(f"\n\n{program_name()}: {reason}")
        fo.print("\n" + fo.colored("Press <enter> to continue.", style="bold"))
        self.output_stream.flush()
        self.input_stream.readline()


class TextMethodMenu:
    """Numbered list of all access method options

    Choosing an entry makes it the current selection and accepts it. An
    empty answer accepts the current selection (if any) while "q" or
    end-of-file leaves without saving. "?N" shows the long description of
    entry N.
    """

    def __init__(
        self,
        catalog: OptionCatalog,
        selection: SelectionState,
        screen: TerminalScreen,
    ) -> None:
        self._catalog = catalog
        self._selection = selection
        self._screen = screen

    def _show_options(self) -> None:
        fo = self._screen.fancy_output
        current = self._selection.current
        rows = []
        for no, option in enumerate(self._catalog.options, start=1):
            marker = "*" if option is current else ""
            rows.append((marker, str(no), option.method_name, option.name, option.summary))
        fo.print(fo.colored("Access method options", style="bold"))
        fo.print_list_table(
            ["", ("No.", ">"), "Method", "Option", "Summary"],
            rows,
        )

    def _show_description(self, option: MethodOption) -> None:
        fo = self._screen.fancy_output
        fo.print(fo.colored(f"{option}: {option.summary}", style="bold"))
        for line in option.description.rstrip("\n").splitlines():
            fo.print(f"  {line}")

    def _parse_choice(self, answer: str) -> Optional[MethodOption]:
        options = self._catalog.options
        if answer.isdecimal() and 1 <= int(answer) <= len(options):
            return options[int(answer) - 1]
        return None

    def display(self) -> QuitAction:
        screen = self._screen
        options = self._catalog.options
        self._show_options()
        current = self._selection.current
        if current is not None:
            self._show_description(current)
        while True:
            screen.fancy_output.print(
                f"Select an access method [1-{len(options)}, ?N for details, q to quit]: ",
                end="",
            )
            screen.output_stream.flush()
            answer = screen.input_stream.readline()
            if answer == "":
                return QuitAction.QUIT_NO_SAVE
            answer = answer.strip()
            if answer.lower() == "q":
                return QuitAction.QUIT_NO_SAVE
            if answer == "":
                if self._selection.current is not None:
                    return QuitAction.QUIT_CHECK_SAVE
                continue
            if answer.startswith("?"):
                option = self._parse_choice(answer[1:].strip())
                if option is not None:
                    self._show_description(option)
                    continue
            else:
                option = self._parse_choice(answer)
                if option is not None:
                    self._selection.current = option
                    return QuitAction.QUIT_CHECK_SAVE
            screen.fancy_output.print(f'"{answer}" is not a valid choice')
