from typing import Callable, List, Optional, Sequence

from dmethod.exceptions import NoMethodsAvailableError
from dmethod.method_parser import read_methods
from dmethod.types import MethodOption

MethodDiscovery = Callable[[str, List[MethodOption]], None]


class OptionCatalog:
    """Lazily loaded list of all options of all available access methods"""

    def __init__(
        self,
        method_directories: Sequence[str],
        *,
        discover: MethodDiscovery = read_methods,
    ) -> None:
        self._method_directories = tuple(method_directories)
        self._discover = discover
        self._options: Optional[Sequence[MethodOption]] = None

    @property
    def is_loaded(self) -> bool:
        return self._options is not None

    @property
    def options(self) -> Sequence[MethodOption]:
        options = self._options
        if options is None:
            raise TypeError("The option catalog has not been loaded yet")
        return options

    def ensure_loaded(self) -> Sequence[MethodOption]:
        options = self._options
        if options is not None:
            return options
        new_options: List[MethodOption] = []
        for methods_dir in self._method_directories:
            self._discover(methods_dir, new_options)
        if not new_options:
            raise NoMethodsAvailableError("no access methods are available")
        options = tuple(new_options)
        self._options = options
        return options

    def find(self, method_name: str, option_name: str) -> Optional[MethodOption]:
        for option in self.options:
            if option.method_name == method_name and option.name == option_name:
                return option
        return None
