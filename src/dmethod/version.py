from typing import Optional, Callable

__version__ = "N/A"

IS_RELEASE_BUILD = False

if __version__ in ("N/A",):
    import subprocess

    class LazyString:
        def __init__(self, initializer: Callable[[], str]) -> None:
            self._initializer = initializer
            self._value: Optional[str] = None

        def __str__(self) -> str:
            value = object.__getattribute__(self, "_value")
            if value is None:
                value = object.__getattribute__(self, "_initializer")()
                object.__setattr__(self, "_value", value)
            return value

        def __getattribute__(self, item):
            value = str(self)
            return getattr(value, item)

        def __contains__(self, item):
            return item in str(self)

    def _initialize_version() -> str:
        try:
            v = (
                subprocess.check_output(
                    ["git", "describe", "--tags"],
                    stderr=subprocess.DEVNULL,
                )
                .strip()
                .decode("utf-8")
            )
        except (subprocess.CalledProcessError, FileNotFoundError):
            from importlib.metadata import version, PackageNotFoundError

            try:
                v = version("dmethod")
            except PackageNotFoundError:
                v = "N/A"

        if v.startswith("v"):
            v = v[1:]
        return v

    __version__ = LazyString(_initialize_version)
    IS_RELEASE_BUILD = False

else:
    IS_RELEASE_BUILD = "+git" not in __version__
