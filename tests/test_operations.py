import dataclasses
import errno
import os

import pytest

from dmethod.catalog import OptionCatalog
from dmethod.method_parser import read_methods
from dmethod.settings import METHLOCKFILE
from dmethod.types import QuitAction, UrqResult

from tutil import (
    FakeMenu,
    RecordingRunner,
    lock_held_by_other_process,
    lock_is_free,
    read_record,
    recording_script,
    write_method,
    write_script,
)


@pytest.fixture()
def lock_path(admindir) -> str:
    return os.path.join(admindir, METHLOCKFILE)


@pytest.fixture()
def cmethopt(admindir) -> str:
    return os.path.join(admindir, "cmethopt")


def _select(cmethopt: str, method: str = "mymethod", option: str = "myoption") -> None:
    with open(cmethopt, "w") as fd:
        fd.write(f"{method} {option}\n")


@pytest.mark.parametrize("exit_code", [0, 3])
def test_update_end_to_end(
    make_coordinator,
    real_runner,
    methods_dir,
    admindir,
    record_file,
    cmethopt,
    lock_path,
    diagnostics,
    screen,
    exit_code,
):
    write_method(
        methods_dir,
        "mymethod",
        scripts={"update": recording_script(record_file, exit_code)},
    )
    _select(cmethopt)
    coordinator = make_coordinator(real_runner)

    res = coordinator.update()

    assert read_record(record_file) == [admindir, "mymethod", "myoption"]
    assert lock_is_free(lock_path)
    assert screen.failures == []
    if exit_code == 0:
        assert res is UrqResult.NORMAL
        assert diagnostics.getvalue() == ""
    else:
        assert res is UrqResult.FAIL
        assert (
            "update available list script returned error exit status 3."
            in diagnostics.getvalue()
        )


def test_install_command(make_coordinator, methods_dir, admindir, cmethopt):
    method_dir = write_method(methods_dir, "mymethod")
    _select(cmethopt)
    runner = RecordingRunner()
    coordinator = make_coordinator(runner)

    assert coordinator.install() is UrqResult.NORMAL

    (command,) = runner.commands
    assert command.filename == os.path.join(method_dir, "install")
    assert command.name == "installation script"
    assert tuple(command.argv) == ("install", admindir, "mymethod", "myoption")
    assert coordinator.selection.current.method.path_in_method == "install"


def test_lock_is_held_while_script_runs(make_coordinator, methods_dir, cmethopt, lock_path):
    write_method(methods_dir, "mymethod")
    _select(cmethopt)
    observed = []
    runner = RecordingRunner(on_run=lambda _cmd: observed.append(lock_is_free(lock_path)))
    coordinator = make_coordinator(runner)

    assert coordinator.update() is UrqResult.NORMAL
    assert observed == [False]
    assert lock_is_free(lock_path)


def test_runner_result_is_returned(make_coordinator, methods_dir, cmethopt, lock_path):
    write_method(methods_dir, "mymethod")
    _select(cmethopt)
    coordinator = make_coordinator(RecordingRunner(UrqResult.FAIL))
    assert coordinator.install() is UrqResult.FAIL
    assert lock_is_free(lock_path)


@pytest.mark.parametrize("operation", ["update", "install"])
@pytest.mark.parametrize("record", [None, "mymethod gone", "gone myoption"])
def test_no_method_selected(
    make_coordinator, methods_dir, cmethopt, lock_path, screen, operation, record
):
    write_method(methods_dir, "mymethod")
    if record is not None:
        with open(cmethopt, "w") as fd:
            fd.write(record + "\n")
    runner = RecordingRunner()
    coordinator = make_coordinator(runner)

    assert getattr(coordinator, operation)() is UrqResult.FAIL
    assert screen.failures == ["no access method is selected/configured"]
    assert runner.commands == []
    assert lock_is_free(lock_path)


@pytest.mark.parametrize("operation", ["update", "install", "setup"])
def test_no_methods_available(make_coordinator, lock_path, screen, operation):
    runner = RecordingRunner()
    menu = FakeMenu(QuitAction.QUIT_CHECK_SAVE)
    coordinator = make_coordinator(runner, menu=menu)

    assert getattr(coordinator, operation)() is UrqResult.FAIL
    assert screen.failures == ["no access methods are available"]
    assert runner.commands == []
    assert menu.display_count == 0
    assert not os.path.exists(lock_path)


@pytest.mark.parametrize("operation", ["update", "install", "setup"])
def test_permission_denied(
    make_coordinator, methods_dir, cmethopt, screen, monkeypatch, operation
):
    write_method(methods_dir, "mymethod")
    _select(cmethopt)
    runner = RecordingRunner()
    menu = FakeMenu(QuitAction.QUIT_CHECK_SAVE)
    coordinator = make_coordinator(runner, menu=menu)
    coordinator.catalog.ensure_loaded()

    def _denied(*args, **kwargs):
        raise PermissionError(errno.EACCES, os.strerror(errno.EACCES))

    monkeypatch.setattr(os, "open", _denied)

    assert getattr(coordinator, operation)() is UrqResult.FAIL
    assert screen.failures == ["requested operation requires superuser privilege"]
    assert runner.commands == []
    assert menu.display_count == 0


@pytest.mark.parametrize("operation", ["update", "install", "setup"])
def test_already_locked(
    make_coordinator, methods_dir, cmethopt, lock_path, screen, operation
):
    write_method(methods_dir, "mymethod")
    _select(cmethopt)
    runner = RecordingRunner()
    coordinator = make_coordinator(runner, menu=FakeMenu(QuitAction.QUIT_CHECK_SAVE))

    with lock_held_by_other_process(lock_path):
        assert getattr(coordinator, operation)() is UrqResult.FAIL
    assert screen.failures == ["the access method area is already locked"]
    assert runner.commands == []

    # Once the other process is done, the same coordinator can lock again
    assert getattr(coordinator, operation)() is UrqResult.NORMAL
    assert len(runner.commands) == 1


def test_catalog_is_discovered_once(make_coordinator, methods_dir, cmethopt, settings):
    write_method(methods_dir, "mymethod")
    _select(cmethopt)
    calls = []

    def _discover(directory, options):
        calls.append(directory)
        read_methods(directory, options)

    catalog = OptionCatalog(settings.method_directories, discover=_discover)
    runner = RecordingRunner()
    coordinator = make_coordinator(runner, catalog=catalog)

    assert coordinator.update() is UrqResult.NORMAL
    assert coordinator.install() is UrqResult.NORMAL
    assert calls == [methods_dir]
    assert [c.argv[0] for c in runner.commands] == ["update", "install"]


@pytest.mark.parametrize(
    "operation,mode,name",
    [
        ("remove", "--remove", "dpkg --remove"),
        ("configure", "--configure", "dpkg --configure"),
    ],
)
def test_dpkg_pending(make_coordinator, admindir, lock_path, screen, operation, mode, name):
    runner = RecordingRunner()
    coordinator = make_coordinator(runner)

    assert getattr(coordinator, operation)() is UrqResult.NORMAL

    (command,) = runner.commands
    assert command.filename == "dpkg"
    assert command.name == name
    assert tuple(command.argv) == ("dpkg", "--admindir", admindir, "--pending", mode)
    assert screen.suspend_count == 1
    assert not coordinator.catalog.is_loaded
    assert not coordinator.lock_manager.is_open
    assert not os.path.exists(lock_path)


def test_dpkg_pending_end_to_end(
    make_coordinator, real_runner, settings, admindir, lock_path, record_file, tmp_path
):
    fake_dpkg = str(tmp_path / "fake-dpkg")
    write_script(fake_dpkg, recording_script(record_file, 0))
    coordinator = make_coordinator(real_runner)
    coordinator.settings = dataclasses.replace(settings, dpkg=fake_dpkg)

    assert coordinator.configure() is UrqResult.NORMAL
    assert read_record(record_file) == ["--admindir", admindir, "--pending", "--configure"]
    assert not os.path.exists(lock_path)


def test_setup_saves_selection_on_success(
    make_coordinator, real_runner, methods_dir, admindir, cmethopt, lock_path, record_file
):
    write_method(
        methods_dir,
        "mymethod",
        [("10", "myoption", "Mine"), ("20", "other", "Other")],
        scripts={"setup": recording_script(record_file, 0)},
    )
    _select(cmethopt)
    menu = FakeMenu(QuitAction.QUIT_CHECK_SAVE, choose=("mymethod", "other"))
    coordinator = make_coordinator(real_runner, menu=menu)

    assert coordinator.setup() is UrqResult.NORMAL
    assert menu.display_count == 1
    assert read_record(record_file) == [admindir, "mymethod", "other"]
    with open(cmethopt) as fd:
        assert fd.read() == "mymethod other\n"
    assert lock_is_free(lock_path)


def test_setup_without_prior_selection_shows_menu(
    make_coordinator, methods_dir, cmethopt, screen
):
    write_method(methods_dir, "mymethod")
    runner = RecordingRunner()
    menu = FakeMenu(QuitAction.QUIT_CHECK_SAVE, choose=("mymethod", "myoption"))
    coordinator = make_coordinator(runner, menu=menu)

    assert coordinator.setup() is UrqResult.NORMAL
    assert menu.display_count == 1
    assert screen.resume_count == 1
    (command,) = runner.commands
    assert command.name == "query/setup script"
    assert command.argv[0] == "setup"
    with open(cmethopt) as fd:
        assert fd.read() == "mymethod myoption\n"


def test_setup_abandoned(make_coordinator, methods_dir, cmethopt, lock_path):
    write_method(methods_dir, "mymethod")
    runner = RecordingRunner()
    menu = FakeMenu(QuitAction.QUIT_NO_SAVE)
    coordinator = make_coordinator(runner, menu=menu)

    assert coordinator.setup() is UrqResult.FAIL
    assert menu.display_count == 1
    assert runner.commands == []
    assert not os.path.exists(cmethopt)
    assert lock_is_free(lock_path)


def test_setup_accepted_without_any_selection(make_coordinator, methods_dir, screen):
    write_method(methods_dir, "mymethod")
    runner = RecordingRunner()
    coordinator = make_coordinator(runner, menu=FakeMenu(QuitAction.QUIT_CHECK_SAVE))

    assert coordinator.setup() is UrqResult.FAIL
    assert screen.failures == ["no access method is selected/configured"]
    assert runner.commands == []


def test_setup_script_failure_keeps_old_selection(
    make_coordinator, methods_dir, cmethopt, lock_path
):
    write_method(methods_dir, "mymethod", [("10", "myoption", ""), ("20", "other", "")])
    _select(cmethopt)
    menu = FakeMenu(QuitAction.QUIT_CHECK_SAVE, choose=("mymethod", "other"))
    coordinator = make_coordinator(RecordingRunner(UrqResult.FAIL), menu=menu)

    assert coordinator.setup() is UrqResult.FAIL
    with open(cmethopt) as fd:
        assert fd.read() == "mymethod myoption\n"
    assert lock_is_free(lock_path)
