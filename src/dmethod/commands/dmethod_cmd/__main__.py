#!/usr/bin/python3 -B
import argparse
import os
import sys
import textwrap
import traceback
from typing import (
    List,
    Optional,
    NoReturn,
)

from argcomplete import autocomplete

from dmethod.commands.dmethod_cmd.context import (
    CommandContext,
    CommandArg,
    ROOT_COMMAND,
    add_arg,
)
from dmethod.exceptions import (
    AcknowledgementReadError,
    DmethodRuntimeError,
    NoMethodsAvailableError,
)
from dmethod.types import UrqResult
from dmethod.util import (
    _error,
    _warn,
    ColorizedArgumentParser,
    setup_logging,
    program_name,
)
from dmethod.version import __version__


def _add_common_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--admindir",
        dest="admindir",
        action="store",
        default=None,
        help="The dpkg administrative directory (default: $DPKG_ADMINDIR or /var/lib/dpkg)",
    )

    parser.add_argument(
        "--methods-dir",
        dest="method_directories",
        action="append",
        default=[],
        help="Look for access methods in this directory instead of the system and local"
        " method directories. Can be used multiple times; directories are searched in order",
    )

    parser.add_argument(
        "--dpkg",
        dest="dpkg",
        action="store",
        default=None,
        help="The dpkg program used for the remove and configure requests (default: dpkg)",
    )

    parser.add_argument(
        "-d",
        "--debug",
        dest="debug_mode",
        action="store_true",
        default=False,
        help="Enable debug logging and raw stack traces on errors.",
    )


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    description = textwrap.dedent(
        """\
    The `dmethod` program runs dselect access method requests.

    It updates the list of available packages or installs the selected packages
    through the configured access method, lets you choose the access method,
    and asks dpkg to remove or configure pending packages.

    The access method area is locked while a method script runs.
    """
    )

    parser: argparse.ArgumentParser = ColorizedArgumentParser(
        description=description,
        formatter_class=argparse.RawDescriptionHelpFormatter,
        allow_abbrev=False,
        prog=program_name(),
    )

    parser.add_argument("--version", action="version", version=str(__version__))

    _add_common_args(parser)

    ROOT_COMMAND.configure(parser)

    autocomplete(parser)

    if argv is None:
        argv = sys.argv[1:]
    return parser.parse_args(argv)


@ROOT_COMMAND.register_subcommand(
    "update",
    help_description="Update the list of available packages via the selected access method",
)
def _update(context: CommandContext) -> UrqResult:
    return context.coordinator.update()


@ROOT_COMMAND.register_subcommand(
    "install",
    help_description="Install the selected packages via the selected access method",
)
def _install(context: CommandContext) -> UrqResult:
    return context.coordinator.install()


@ROOT_COMMAND.register_subcommand(
    "remove",
    help_description="Remove packages pending removal (dpkg --pending --remove)",
)
def _remove(context: CommandContext) -> UrqResult:
    return context.coordinator.remove()


@ROOT_COMMAND.register_subcommand(
    ["configure", "config"],
    help_description="Configure unpacked packages (dpkg --pending --configure)",
)
def _configure(context: CommandContext) -> UrqResult:
    return context.coordinator.configure()


@ROOT_COMMAND.register_subcommand(
    ["setup", "access"],
    help_description="Choose the access method and run its setup script",
)
def _setup(context: CommandContext) -> UrqResult:
    return context.coordinator.setup()


@ROOT_COMMAND.register_subcommand(
    "list",
    help_description="List the available access method options",
    argparser=add_arg(
        "--output-format",
        dest="output_format",
        default="text",
        choices=["text", "csv"],
        help="Output format",
    ),
)
def _list(context: CommandContext) -> UrqResult:
    coordinator = context.coordinator
    try:
        options = coordinator.catalog.ensure_loaded()
    except NoMethodsAvailableError as e:
        _warn(e.message)
        return UrqResult.FAIL
    current = coordinator.selection.load(coordinator.catalog)
    fo = context.fancy_output
    fo.print_list_table(
        ["", "Method", "Option", "Summary"],
        [
            (
                "*" if option is current else "",
                option.method_name,
                option.name,
                option.summary,
            )
            for option in options
        ],
    )
    return UrqResult.NORMAL


def _setup_and_parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    is_arg_completing = "_ARGCOMPLETE" in os.environ
    if not is_arg_completing:
        setup_logging()
    parsed_args = parse_args(argv)
    if is_arg_completing:
        # We could be asserting at this point; but lets just recover gracefully.
        setup_logging()
    return parsed_args


def main(argv: Optional[List[str]] = None) -> None:
    parsed_args = _setup_and_parse_args(argv)
    try:
        result = ROOT_COMMAND(CommandArg(parsed_args))
    except AcknowledgementReadError as e:
        if parsed_args.debug_mode:
            raise
        _error(f"{e.message}: {e.__cause__}")
    except DmethodRuntimeError as e:
        if parsed_args.debug_mode:
            _warn(
                "Re-raising original exception to show the full stack trace due to debug mode being active"
            )
            raise e
        _error(e.message)
    except AssertionError as e:
        _error_w_stack_trace(
            "Internal error in dmethod",
            str(e),
            e,
            parsed_args.debug_mode,
            orig_exception=e,
            follow_warning=["Please file a bug against dmethod with the full output."],
        )
    except Exception as e:
        _error_w_stack_trace(
            "Unhandled exception (Re-run with --debug to see the raw stack trace)",
            str(e),
            e,
            parsed_args.debug_mode,
            orig_exception=e,
            follow_warning=["Please file a bug against dmethod with the full output."],
        )
    if result is UrqResult.FAIL:
        sys.exit(1)


def _error_w_stack_trace(
    warning: str,
    error_msg: str,
    stacktrace: BaseException,
    debug_mode: bool,
    orig_exception: Optional[BaseException] = None,
    follow_warning: Optional[List[str]] = None,
) -> "NoReturn":
    if debug_mode:
        _warn(
            "Re-raising original exception to show the full stack trace due to debug mode being active"
        )
        raise orig_exception if orig_exception is not None else stacktrace
    _warn(warning)
    _warn("  ----- 8< ---- BEGIN STACK TRACE ---- 8< -----")
    traceback.print_exception(stacktrace)
    _warn("  ----- 8< ---- END STACK TRACE ---- 8< -----")
    if follow_warning:
        for line in follow_warning:
            _warn(line)
    _error(error_msg)


if __name__ == "__main__":
    main()
