import sys
from typing import IO, Callable, Optional

from dmethod.catalog import OptionCatalog
from dmethod.exceptions import (
    MethodAreaLockError,
    NoMethodsAvailableError,
    NoMethodSelectedError,
    SelectionPersistenceError,
)
from dmethod.method_lock import MethodLockGuard, MethodLockManager
from dmethod.screen import MethodMenu, Screen
from dmethod.selection import SelectionState
from dmethod.settings import (
    METHLOCKFILE,
    METHODINSTALLSCRIPT,
    METHODSETUPSCRIPT,
    METHODUPDATESCRIPT,
    DmethodSettings,
)
from dmethod.subprocess_runner import SubprocessRunner
from dmethod.types import Command, MethodOption, QuitAction, UrqResult
from dmethod.util import _debug, _info

MenuFactory = Callable[["MethodAreaCoordinator"], MethodMenu]


class MethodAreaCoordinator:
    """Runs the user requests against the access method area

    One instance is created per program run. It owns the lazily initialized
    state (the lock file descriptor and the option catalog), so repeated
    requests reuse them.
    """

    def __init__(
        self,
        settings: DmethodSettings,
        screen: Screen,
        menu_factory: MenuFactory,
        *,
        catalog: Optional[OptionCatalog] = None,
        selection: Optional[SelectionState] = None,
        runner: Optional[SubprocessRunner] = None,
        lock_manager: Optional[MethodLockManager] = None,
        output_stream: Optional[IO[str]] = None,
    ) -> None:
        self.settings = settings
        self.screen = screen
        self._menu_factory = menu_factory
        self.catalog = (
            catalog
            if catalog is not None
            else OptionCatalog(settings.method_directories)
        )
        self.selection = (
            selection
            if selection is not None
            else SelectionState(settings.current_option_file)
        )
        self.runner = runner if runner is not None else SubprocessRunner(screen)
        self.lock_manager = (
            lock_manager
            if lock_manager is not None
            else MethodLockManager(
                settings.admindir, METHLOCKFILE, screen.report_failure
            )
        )
        self._output_stream = output_stream if output_stream is not None else sys.stdout

    def close(self) -> None:
        self.lock_manager.close()

    def _ensure_options(self) -> UrqResult:
        try:
            self.catalog.ensure_loaded()
        except NoMethodsAvailableError as e:
            self.screen.report_failure(e.message)
            return UrqResult.FAIL
        return UrqResult.NORMAL

    def _lock_method_area(self) -> Optional[MethodLockGuard]:
        try:
            return self.lock_manager.acquire()
        except MethodAreaLockError as e:
            self.screen.report_failure(e.message)
            return None

    def _selected_option(self) -> MethodOption:
        option = self.selection.current
        if option is None:
            raise NoMethodSelectedError("no access method is selected/configured")
        return option

    def _method_script_command(
        self,
        option: MethodOption,
        script: str,
        name: str,
    ) -> Command:
        script_path = option.method.use_script(script)
        return Command(
            script_path,
            name,
            (script, self.settings.admindir, option.method_name, option.name),
        )

    def _run_script(self, script: str, name: str) -> UrqResult:
        if self._ensure_options() is not UrqResult.NORMAL:
            return UrqResult.FAIL
        guard = self._lock_method_area()
        if guard is None:
            return UrqResult.FAIL
        with guard:
            self.selection.load(self.catalog)
            try:
                option = self._selected_option()
            except NoMethodSelectedError as e:
                self.screen.report_failure(e.message)
                return UrqResult.FAIL
            command = self._method_script_command(option, script, name)
            return self.runner.run(command)

    def update(self) -> UrqResult:
        return self._run_script(METHODUPDATESCRIPT, "update available list script")

    def install(self) -> UrqResult:
        return self._run_script(METHODINSTALLSCRIPT, "installation script")

    def _run_dpkg_pending(self, name: str, dpkg_mode: str) -> UrqResult:
        dpkg = self.settings.dpkg
        command = Command(
            dpkg,
            name,
            (dpkg, "--admindir", self.settings.admindir, "--pending", dpkg_mode),
        )
        self.screen.suspend()
        print(f"running dpkg --pending {dpkg_mode} ...", file=self._output_stream)
        self._output_stream.flush()
        return self.runner.run(command)

    def remove(self) -> UrqResult:
        return self._run_dpkg_pending("dpkg --remove", "--remove")

    def configure(self) -> UrqResult:
        return self._run_dpkg_pending("dpkg --configure", "--configure")

    def setup(self) -> UrqResult:
        if self._ensure_options() is not UrqResult.NORMAL:
            return UrqResult.FAIL
        guard = self._lock_method_area()
        if guard is None:
            return UrqResult.FAIL
        with guard:
            self.selection.load(self.catalog)

            self.screen.resume()
            quit_action = self._menu_factory(self).display()
            if quit_action is not QuitAction.QUIT_CHECK_SAVE:
                _debug(f"The method selection was left via {quit_action.value}")
                return UrqResult.FAIL

            try:
                option = self._selected_option()
            except NoMethodSelectedError as e:
                self.screen.report_failure(e.message)
                return UrqResult.FAIL
            command = self._method_script_command(
                option, METHODSETUPSCRIPT, "query/setup script"
            )
            result = self.runner.run(command)
            if result is UrqResult.NORMAL:
                try:
                    self.selection.save()
                except SelectionPersistenceError as e:
                    self.screen.report_failure(e.message)
                    return UrqResult.FAIL
                _info(f"Selected access method option {option}")
            return result
