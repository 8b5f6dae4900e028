import os
from typing import Optional

from dmethod.catalog import OptionCatalog
from dmethod.exceptions import SelectionPersistenceError
from dmethod.types import MethodOption
from dmethod.util import _debug


class SelectionState:
    """The currently chosen access method option and its on-disk record

    The record is a single line "<method> <option>" in the current option
    file.
    """

    def __init__(self, current_option_file: str) -> None:
        self._current_option_file = current_option_file
        self.current: Optional[MethodOption] = None

    @property
    def current_option_file(self) -> str:
        return self._current_option_file

    def _read_record(self) -> Optional[str]:
        try:
            with open(self._current_option_file, "rt", encoding="utf-8") as fd:
                return fd.readline()
        except FileNotFoundError:
            return None

    def load(self, catalog: OptionCatalog) -> Optional[MethodOption]:
        """Re-resolve the persisted choice against a loaded catalog

        A persisted choice that no longer matches anything in the catalog
        counts as no choice at all.
        """
        self.current = None
        line = self._read_record()
        if line is None:
            return None
        parts = line.split()
        if len(parts) != 2:
            _debug(f"Ignoring malformed selection in {self._current_option_file}")
            return None
        method_name, option_name = parts
        option = catalog.find(method_name, option_name)
        if option is None:
            _debug(
                f"The selected option {method_name}/{option_name} is no longer available"
            )
        self.current = option
        return option

    def save(self) -> None:
        option = self.current
        if option is None:
            raise ValueError("There is no selected option to save")
        new_file = self._current_option_file + ".new"
        try:
            with open(new_file, "wt", encoding="utf-8") as fd:
                fd.write(f"{option.method_name} {option.name}\n")
                fd.flush()
                os.fsync(fd.fileno())
            os.rename(new_file, self._current_option_file)
        except OSError as e:
            raise SelectionPersistenceError(
                f'unable to write new option to "{self._current_option_file}": {e.strerror}'
            ) from e
