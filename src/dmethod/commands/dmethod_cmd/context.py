import argparse
import dataclasses
import logging
import os
import sys
from typing import (
    Optional,
    Sequence,
    Callable,
    Dict,
    TYPE_CHECKING,
    Union,
)

from dmethod.commands.dmethod_cmd.output import OutputStylingBase, output_styling
from dmethod.operations import MethodAreaCoordinator
from dmethod.screen import TerminalScreen, TextMethodMenu
from dmethod.settings import DmethodSettings
from dmethod.types import UrqResult
from dmethod.util import _error, change_log_level

if TYPE_CHECKING:
    from argparse import _SubParsersAction


CommandHandler = Callable[["CommandContext"], Optional[UrqResult]]
ArgparserConfigurator = Callable[[argparse.ArgumentParser], None]


def add_arg(
    *name_or_flags: str,
    **kwargs,
) -> Callable[[argparse.ArgumentParser], None]:
    def _configurator(argparser: argparse.ArgumentParser) -> None:
        argparser.add_argument(
            *name_or_flags,
            **kwargs,
        )

    return _configurator


@dataclasses.dataclass(slots=True, frozen=True)
class CommandArg:
    parsed_args: argparse.Namespace


class CommandContext:
    def __init__(self, parsed_args: argparse.Namespace) -> None:
        self.parsed_args = parsed_args
        self._settings: Optional[DmethodSettings] = None
        self._screen: Optional[TerminalScreen] = None
        self._coordinator: Optional[MethodAreaCoordinator] = None

    @property
    def settings(self) -> DmethodSettings:
        settings = self._settings
        if settings is None:
            parsed_args = self.parsed_args
            settings = DmethodSettings.from_environ(
                admindir=parsed_args.admindir,
                method_directories=parsed_args.method_directories,
                dpkg=parsed_args.dpkg,
            )
            if not os.path.isdir(settings.admindir):
                _error(f'The administrative directory "{settings.admindir}" does not exist')
            self._settings = settings
        return settings

    @property
    def screen(self) -> TerminalScreen:
        screen = self._screen
        if screen is None:
            screen = TerminalScreen(sys.stdin, sys.stdout)
            self._screen = screen
        return screen

    @property
    def fancy_output(self) -> OutputStylingBase:
        output_format = getattr(self.parsed_args, "output_format", None) or "text"
        return output_styling(sys.stdout, output_format)

    @property
    def coordinator(self) -> MethodAreaCoordinator:
        coordinator = self._coordinator
        if coordinator is None:
            screen = self.screen
            coordinator = MethodAreaCoordinator(
                self.settings,
                screen,
                lambda c: TextMethodMenu(c.catalog, c.selection, screen),
            )
            self._coordinator = coordinator
        return coordinator

    def close(self) -> None:
        if self._coordinator is not None:
            self._coordinator.close()


class CommandBase:
    __slots__ = ()

    def configure(self, argparser: argparse.ArgumentParser) -> None:
        # Does nothing by default
        pass

    def __call__(self, command_arg: CommandArg) -> Optional[UrqResult]:
        raise NotImplementedError


class SubcommandBase(CommandBase):
    __slots__ = ("name", "aliases", "help_description")

    def __init__(
        self,
        name: str,
        *,
        aliases: Sequence[str] = tuple(),
        help_description: Optional[str] = None,
    ) -> None:
        self.name = name
        self.aliases = aliases
        self.help_description = help_description

    def add_subcommand_to_subparser(
        self,
        subparser: "_SubParsersAction",
    ) -> argparse.ArgumentParser:
        parser = subparser.add_parser(
            self.name,
            aliases=self.aliases,
            help=self.help_description,
            allow_abbrev=False,
        )
        self.configure(parser)
        return parser


class GenericSubCommand(SubcommandBase):
    __slots__ = (
        "_handler",
        "_configure_handler",
        "_default_log_level",
    )

    def __init__(
        self,
        name: str,
        handler: CommandHandler,
        *,
        aliases: Sequence[str] = tuple(),
        help_description: Optional[str] = None,
        configure_handler: Optional[ArgparserConfigurator] = None,
        default_log_level: int = logging.INFO,
    ) -> None:
        super().__init__(name, aliases=aliases, help_description=help_description)
        self._handler = handler
        self._configure_handler = configure_handler
        self._default_log_level = default_log_level

    def configure_handler(
        self,
        handler: ArgparserConfigurator,
    ) -> None:
        if self._configure_handler is not None:
            raise TypeError("Only one argument handler can be provided")
        self._configure_handler = handler

    def configure(self, argparser: argparse.ArgumentParser) -> None:
        handler = self._configure_handler
        if handler is not None:
            handler(argparser)

    def __call__(self, command_arg: CommandArg) -> Optional[UrqResult]:
        context = CommandContext(command_arg.parsed_args)
        level = self._default_log_level
        change_log_level(level)
        if level > logging.DEBUG and (
            context.parsed_args.debug_mode or os.environ.get("DMETHOD_DEBUG", "") != ""
        ):
            change_log_level(logging.DEBUG)
        try:
            return self._handler(context)
        finally:
            context.close()


class DispatcherCommand(SubcommandBase):
    __slots__ = (
        "_subcommands",
        "_aliases",
        "_dest",
        "_metavar",
    )

    def __init__(
        self,
        name: str,
        dest: str,
        *,
        aliases: Sequence[str] = tuple(),
        help_description: Optional[str] = None,
        metavar: str = "command",
    ) -> None:
        super().__init__(name, aliases=aliases, help_description=help_description)
        self._aliases: Dict[str, SubcommandBase] = {}
        self._subcommands: Dict[str, SubcommandBase] = {}
        self._dest = dest
        self._metavar = metavar

    def add_subcommand(self, subcommand: SubcommandBase) -> None:
        all_names = [subcommand.name]
        if subcommand.aliases:
            all_names.extend(subcommand.aliases)
        aliases = self._aliases
        for n in all_names:
            if n in aliases:
                raise ValueError(
                    f"Internal error: Multiple handlers for {n} on topic {self.name}"
                )

            aliases[n] = subcommand
        self._subcommands[subcommand.name] = subcommand

    def register_subcommand(
        self,
        name: Union[str, Sequence[str]],
        *,
        help_description: Optional[str] = None,
        argparser: Optional[
            Union[ArgparserConfigurator, Sequence[ArgparserConfigurator]]
        ] = None,
        default_log_level: int = logging.INFO,
    ) -> Callable[[CommandHandler], GenericSubCommand]:
        if isinstance(name, str):
            cmd_name = name
            aliases = []
        else:
            cmd_name = name[0]
            aliases = name[1:]

        if argparser is not None and not callable(argparser):
            args = argparser

            def _wrapper(parser: argparse.ArgumentParser) -> None:
                for configurator in args:
                    configurator(parser)

            argparser = _wrapper

        def _annotation_impl(func: CommandHandler) -> GenericSubCommand:
            subcommand = GenericSubCommand(
                cmd_name,
                func,
                aliases=aliases,
                help_description=help_description,
                default_log_level=default_log_level,
            )
            self.add_subcommand(subcommand)
            if argparser is not None:
                subcommand.configure_handler(argparser)

            return subcommand

        return _annotation_impl

    def configure(self, argparser: argparse.ArgumentParser) -> None:
        subcommands = self._subcommands
        if not subcommands:
            raise ValueError(
                f"Internal error: No subcommands for subcommand {self.name} (then why do we have it?)"
            )
        subparser = argparser.add_subparsers(
            dest=self._dest,
            required=True,
            metavar=self._metavar,
        )
        for subcommand in subcommands.values():
            subcommand.add_subcommand_to_subparser(subparser)

    def __call__(self, command_arg: CommandArg) -> Optional[UrqResult]:
        v = getattr(command_arg.parsed_args, self._dest, None)
        assert (
            v is not None
        ), f"Internal error: argparse did not provide the required subcommand {self._dest}?"
        assert (
            v in self._aliases
        ), f"Internal error: {v} was accepted as a topic, but it was not registered?"
        return self._aliases[v](command_arg)


ROOT_COMMAND = DispatcherCommand(
    "root",
    dest="command",
    metavar="COMMAND",
)
