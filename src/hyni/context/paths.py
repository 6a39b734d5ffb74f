from __future__ import annotations

import re
from typing import Any, Optional, Sequence, Union

from .errors import PathError

PathStep = Union[str, int]
Path = Sequence[PathStep]

_INDEX_RE = re.compile(r"[0-9]+")


def _as_index(step: PathStep) -> Optional[int]:
    if isinstance(step, bool):
        return None
    if isinstance(step, int):
        return step
    if isinstance(step, str) and _INDEX_RE.fullmatch(step):
        return int(step)
    return None


def format_path(path: Path) -> str:
    return ".".join(str(step) for step in path) or "<root>"


def resolve_path(value: Any, path: Path) -> Any:
    """Walk ``value`` one step at a time and return what the last step reaches.

    Integer steps (and strings made only of digits) index into lists; every
    other step is a key into a dict. The value is never modified.
    """

    current = value
    for position, step in enumerate(path):
        index = _as_index(step)
        if index is not None:
            if not isinstance(current, (list, tuple)) or not 0 <= index < len(current):
                raise PathError(
                    f"Invalid array access at step {position} of {format_path(path)}: "
                    f"index {step!r}"
                )
            current = current[index]
        else:
            if not isinstance(current, dict) or step not in current:
                raise PathError(
                    f"Invalid object access at step {position} of {format_path(path)}: "
                    f"key {step!r}"
                )
            current = current[step]
    return current
