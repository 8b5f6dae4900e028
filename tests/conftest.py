import functools
import io
import os

import pytest

from dmethod.operations import MethodAreaCoordinator
from dmethod.settings import DmethodSettings
from dmethod.subprocess_runner import SubprocessRunner
from dmethod.types import QuitAction

from tutil import FakeMenu, FakeScreen

# Keep the child processes of the tests away from the translations of the host
os.environ["LC_ALL"] = "C"


@pytest.fixture()
def admindir(tmp_path) -> str:
    d = tmp_path / "admin"
    d.mkdir()
    return str(d)


@pytest.fixture()
def methods_dir(tmp_path) -> str:
    d = tmp_path / "methods"
    d.mkdir()
    return str(d)


@pytest.fixture()
def record_file(tmp_path) -> str:
    return str(tmp_path / "record.txt")


@pytest.fixture()
def settings(admindir, methods_dir) -> DmethodSettings:
    return DmethodSettings(
        admindir=admindir,
        method_directories=(methods_dir,),
        dpkg="dpkg",
    )


@pytest.fixture()
def screen() -> FakeScreen:
    return FakeScreen()


@pytest.fixture()
def diagnostics() -> io.StringIO:
    return io.StringIO()


@pytest.fixture()
def real_runner(screen, diagnostics) -> SubprocessRunner:
    return SubprocessRunner(
        screen,
        diagnostic_stream=diagnostics,
        input_stream=io.StringIO("\n"),
        settle_delay=0,
    )


def _bind_menu(menu: FakeMenu, coordinator: MethodAreaCoordinator) -> FakeMenu:
    menu.coordinator = coordinator
    return menu


@pytest.fixture()
def make_coordinator(settings, screen):
    created = []

    def _factory(runner, menu=None, **kwargs) -> MethodAreaCoordinator:
        if menu is None:
            menu = FakeMenu(QuitAction.QUIT_NO_SAVE)
        coordinator = MethodAreaCoordinator(
            settings,
            screen,
            functools.partial(_bind_menu, menu),
            runner=runner,
            output_stream=io.StringIO(),
            **kwargs,
        )
        created.append(coordinator)
        return coordinator

    yield _factory

    for c in created:
        c.close()
