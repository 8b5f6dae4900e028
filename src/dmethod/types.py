import dataclasses
import enum
import os
from typing import Sequence


class UrqResult(enum.Enum):
    """Outcome of a user request (update, install, ...)"""

    NORMAL = "normal"
    FAIL = "fail"


class QuitAction(enum.Enum):
    """How the operator left the method selection menu"""

    QUIT_CHECK_SAVE = "quitchecksave"
    QUIT_NO_SAVE = "quitnosave"


@dataclasses.dataclass(slots=True, eq=False)
class AccessMethod:
    name: str
    path: str
    # Which script in `path` is about to be run. Rewritten before each
    # invocation of one of the method scripts.
    path_in_method: str = ""

    @property
    def script_path(self) -> str:
        return os.path.join(self.path, self.path_in_method)

    def use_script(self, script: str) -> str:
        self.path_in_method = script
        return self.script_path


@dataclasses.dataclass(slots=True, eq=False)
class MethodOption:
    method: AccessMethod
    name: str
    index: str = "00"
    summary: str = ""
    description: str = "No explanation available."

    @property
    def method_name(self) -> str:
        return self.method.name

    def __str__(self) -> str:
        return f"{self.method.name}/{self.name}"


@dataclasses.dataclass(slots=True, frozen=True)
class Command:
    """A program to be run

    :ivar filename: The program to execute (resolved via PATH if it has no slash)
    :ivar name: Human readable label used in diagnostics
    :ivar argv: The arguments passed to the program. The first one is the
      name of the program as seen by itself.
    """

    filename: str
    name: str
    argv: Sequence[str]
