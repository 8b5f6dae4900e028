import dataclasses
import os
from typing import Mapping, Optional, Sequence, Tuple

from dmethod import DEFAULT_ADMINDIR, DPKG, LIBDIR, LOCALLIBDIR, METHODSDIR

METHLOCKFILE = "methlock"
CMETHOPTFILE = "cmethopt"
METHODSETUPSCRIPT = "setup"
METHODUPDATESCRIPT = "update"
METHODINSTALLSCRIPT = "install"
METHOD_SCRIPTS = (METHODSETUPSCRIPT, METHODUPDATESCRIPT, METHODINSTALLSCRIPT)


def default_method_directories() -> Tuple[str, ...]:
    return (
        os.path.join(LIBDIR, METHODSDIR),
        os.path.join(LOCALLIBDIR, METHODSDIR),
    )


@dataclasses.dataclass(slots=True, frozen=True)
class DmethodSettings:
    """Configuration of the access method area

    >>> s = DmethodSettings.from_environ(environ={'DPKG_ADMINDIR': '/srv/dpkg'})
    >>> s.admindir
    '/srv/dpkg'
    >>> s.method_lock_file
    '/srv/dpkg/methlock'
    >>> DmethodSettings.from_environ(environ={}).admindir
    '/var/lib/dpkg'
    """

    admindir: str = DEFAULT_ADMINDIR
    method_directories: Sequence[str] = dataclasses.field(
        default_factory=default_method_directories
    )
    dpkg: str = DPKG

    @property
    def method_lock_file(self) -> str:
        return os.path.join(self.admindir, METHLOCKFILE)

    @property
    def current_option_file(self) -> str:
        return os.path.join(self.admindir, CMETHOPTFILE)

    @classmethod
    def from_environ(
        cls,
        *,
        admindir: Optional[str] = None,
        method_directories: Optional[Sequence[str]] = None,
        dpkg: Optional[str] = None,
        environ: Optional[Mapping[str, str]] = None,
    ) -> "DmethodSettings":
        """Resolve settings with command line values taking priority over the environment

        :param environ: Alternative to os.environ. Mostly useful for testing purposes
        """
        if environ is None:
            environ = os.environ
        if admindir is None:
            admindir = environ.get("DPKG_ADMINDIR") or DEFAULT_ADMINDIR
        if not method_directories:
            method_directories = default_method_directories()
        return cls(
            admindir=admindir,
            method_directories=tuple(method_directories),
            dpkg=dpkg if dpkg is not None else DPKG,
        )
