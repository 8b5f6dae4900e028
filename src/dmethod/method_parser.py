import os
import re
from typing import List

from dmethod.settings import METHOD_SCRIPTS
from dmethod.types import AccessMethod, MethodOption
from dmethod.util import _debug, _warn

IMETHODMAXLEN = 32
IOPTIONMAXLEN = IMETHODMAXLEN
OPTIONINDEXMAXLEN = 2
METHODOPTIONSFILE = "names"
OPTIONSDESCPFX = "desc."

_METHOD_NAME_REGEX = re.compile(rf"[A-Za-z0-9_-]{{1,{IMETHODMAXLEN}}}", re.ASCII)
_NAMES_LINE_REGEX = re.compile(
    rf"""
        (?P<index>[A-Za-z0-9]{{{OPTIONINDEXMAXLEN}}})
        \s+
        (?P<option>[A-Za-z0-9_-]{{1,{IOPTIONMAXLEN}}})
        (?:\s+(?P<summary>.*))?
    """,
    re.VERBOSE | re.ASCII,
)


def _read_description(method_dir: str, option_name: str) -> str:
    desc_path = os.path.join(method_dir, OPTIONSDESCPFX + option_name)
    try:
        with open(desc_path, "rt", encoding="utf-8", errors="replace") as fd:
            return fd.read()
    except FileNotFoundError:
        return "No explanation available."


def _has_all_scripts(method_name: str, method_dir: str) -> bool:
    for script in METHOD_SCRIPTS:
        script_path = os.path.join(method_dir, script)
        if not os.path.isfile(script_path):
            _warn(
                f'Ignoring access method "{method_name}": the script "{script_path}" is missing'
            )
            return False
    return True


def _parse_names_file(method: AccessMethod) -> List[MethodOption]:
    names_path = os.path.join(method.path, METHODOPTIONSFILE)
    try:
        with open(names_path, "rt", encoding="utf-8", errors="replace") as fd:
            lines = fd.read().splitlines()
    except FileNotFoundError:
        _warn(
            f'Ignoring access method "{method.name}": it has no "{METHODOPTIONSFILE}" file'
        )
        return []

    options = []
    for lineno, line in enumerate(lines, start=1):
        if not line.strip() or line.lstrip().startswith("#"):
            continue
        m = _NAMES_LINE_REGEX.fullmatch(line.strip())
        if not m:
            _warn(f"{names_path}:{lineno}: Ignoring malformed option line")
            continue
        option_name = m.group("option")
        options.append(
            MethodOption(
                method,
                option_name,
                index=m.group("index"),
                summary=(m.group("summary") or "").strip(),
                description=_read_description(method.path, option_name),
            )
        )
    # sorted() is stable, so options sharing an index keep their file order
    return sorted(options, key=lambda o: o.index)


def read_methods(methods_dir: str, options: List[MethodOption]) -> None:
    """Append the options of all valid access methods in `methods_dir`

    A directory that does not exist is not an error; the local override
    directory is often absent.
    """
    try:
        entries = sorted(os.listdir(methods_dir))
    except FileNotFoundError:
        _debug(f"No access methods directory at {methods_dir}")
        return

    for method_name in entries:
        if method_name.startswith("."):
            continue
        method_dir = os.path.join(methods_dir, method_name)
        if not os.path.isdir(method_dir):
            continue
        if not _METHOD_NAME_REGEX.fullmatch(method_name):
            _warn(f'Ignoring access method "{method_dir}": invalid method name')
            continue
        if not _has_all_scripts(method_name, method_dir):
            continue
        method = AccessMethod(method_name, method_dir)
        method_options = _parse_names_file(method)
        _debug(
            f'Found access method "{method_name}" with {len(method_options)} option(s) in {methods_dir}'
        )
        options.extend(method_options)
