import contextlib
import dataclasses
import enum
import os
import signal
import sys
import time
from typing import IO, Callable, Iterator, Optional, Tuple

from dmethod.exceptions import AcknowledgementReadError
from dmethod.screen import Screen
from dmethod.types import Command, UrqResult
from dmethod.util import _debug, escape_shell, program_name

# Operator interrupts go to the child; the parent ignores them while it waits.
CHILD_SIGNALS = (signal.SIGINT, signal.SIGQUIT)
# Mirrors the exit code of a child that fails to exec the program.
EXEC_FAILURE_EXIT_CODE = 2
SETTLE_DELAY = 1.0

Spawner = Callable[..., int]
Waiter = Callable[[int, int], Tuple[int, int]]


class ExitKind(enum.Enum):
    EXITED_OK = "exited-ok"
    EXITED_ERROR = "exited-error"
    SIGNALED = "signaled"
    UNKNOWN = "unknown"


@dataclasses.dataclass(slots=True, frozen=True)
class WaitStatusClassification:
    kind: ExitKind
    raw_status: int
    exit_code: Optional[int] = None
    signal_number: Optional[int] = None
    core_dumped: bool = False

    @property
    def result(self) -> UrqResult:
        return UrqResult.NORMAL if self.kind is ExitKind.EXITED_OK else UrqResult.FAIL


def classify_wait_status(status: int) -> WaitStatusClassification:
    """Classify a raw wait status as returned by os.waitpid

    >>> classify_wait_status(0).kind
    <ExitKind.EXITED_OK: 'exited-ok'>
    >>> classify_wait_status(3 << 8).exit_code
    3
    >>> c = classify_wait_status(signal.SIGINT)
    >>> c.kind, c.signal_number == signal.SIGINT, c.core_dumped
    (<ExitKind.SIGNALED: 'signaled'>, True, False)
    """
    if os.WIFEXITED(status):
        exit_code = os.WEXITSTATUS(status)
        kind = ExitKind.EXITED_OK if exit_code == 0 else ExitKind.EXITED_ERROR
        return WaitStatusClassification(kind, status, exit_code=exit_code)
    if os.WIFSIGNALED(status):
        return WaitStatusClassification(
            ExitKind.SIGNALED,
            status,
            signal_number=os.WTERMSIG(status),
            core_dumped=os.WCOREDUMP(status),
        )
    return WaitStatusClassification(ExitKind.UNKNOWN, status)


def _signal_description(signal_number: int) -> str:
    description = signal.strsignal(signal_number)
    if description is None:
        return f"Unknown signal {signal_number}"
    return description


def describe_failure(name: str, classification: WaitStatusClassification) -> str:
    kind = classification.kind
    if kind is ExitKind.EXITED_OK:
        raise ValueError("A successful exit is not a failure")
    text = f"\n{name} "
    if kind is ExitKind.EXITED_ERROR:
        text += f"returned error exit status {classification.exit_code}.\n"
    elif kind is ExitKind.SIGNALED:
        signal_number = classification.signal_number
        assert signal_number is not None
        if signal_number == signal.SIGINT:
            text += "was interrupted.\n"
        else:
            text += f"was terminated by a signal: {_signal_description(signal_number)}.\n"
        if classification.core_dumped:
            text += "(It left a coredump.)\n"
    else:
        text += (
            f"failed with an unknown wait return code {classification.raw_status}.\n"
        )
    return text


@contextlib.contextmanager
def _child_signal_posture() -> Iterator[None]:
    previous = [(signum, signal.signal(signum, signal.SIG_IGN)) for signum in CHILD_SIGNALS]
    try:
        yield
    finally:
        for signum, handler in previous:
            signal.signal(signum, handler)


class SubprocessRunner:
    """Run one external program while the screen is suspended

    Failures are explained on the diagnostic stream and have to be
    acknowledged by the operator before control returns.
    """

    def __init__(
        self,
        screen: Screen,
        *,
        diagnostic_stream: Optional[IO[str]] = None,
        input_stream: Optional[IO[str]] = None,
        settle_delay: float = SETTLE_DELAY,
        spawn: Spawner = os.posix_spawnp,
        wait: Waiter = os.waitpid,
    ) -> None:
        self._screen = screen
        self._diagnostic_stream = (
            diagnostic_stream if diagnostic_stream is not None else sys.stderr
        )
        self._input_stream = input_stream if input_stream is not None else sys.stdin
        self._settle_delay = settle_delay
        self._spawn = spawn
        self._wait = wait

    def run(self, command: Command) -> UrqResult:
        self._screen.suspend()
        _debug(f"Running {command.name}: {escape_shell(*command.argv)}")

        with _child_signal_posture():
            status = self._spawn_and_wait(command)

        classification = classify_wait_status(status)
        if classification.kind is ExitKind.EXITED_OK:
            time.sleep(self._settle_delay)
            return UrqResult.NORMAL

        stream = self._diagnostic_stream
        stream.write(describe_failure(command.name, classification))
        stream.write("Press <enter> to continue.\n")
        stream.flush()
        self._await_acknowledgement()
        return UrqResult.FAIL

    def _spawn_and_wait(self, command: Command) -> int:
        try:
            pid = self._spawn(
                command.filename,
                list(command.argv),
                os.environ,
                setsigdef=CHILD_SIGNALS,
            )
        except OSError as e:
            self._diagnostic_stream.write(
                f"{program_name()}: error: unable to execute {command.name}"
                f" ({command.filename}): {e.strerror}\n"
            )
            return EXEC_FAILURE_EXIT_CODE << 8

        try:
            _, status = self._wait(pid, 0)
        except BaseException:
            with contextlib.suppress(ChildProcessError, ProcessLookupError):
                os.kill(pid, signal.SIGTERM)
                os.waitpid(pid, 0)
            raise
        return status

    def _await_acknowledgement(self) -> None:
        stream = self._input_stream
        while True:
            try:
                c = stream.read(1)
            except InterruptedError:
                continue
            except UnicodeDecodeError:
                # Undecodable input is discarded like any other character
                continue
            except OSError as e:
                raise AcknowledgementReadError(
                    "error reading acknowledgement of program failure message"
                ) from e
            if c in ("", "\n"):
                return
