import os
import pathlib
from typing import Iterable, List, Optional


def assemble_classpath(
    client: Iterable[Optional[pathlib.Path]],
    base_libraries: Iterable[Optional[pathlib.Path]],
    mod_libraries: Iterable[Optional[pathlib.Path]],
    graphics_shim: pathlib.Path,
    separator: str = os.pathsep,
) -> str:
    """
    Joins verified artifact paths in canonical order: client, base libraries,
    modloader libraries, then the graphics shim. ``None`` entries (skipped
    verify-only libraries) are dropped and repeated paths keep their first position.
    """
    entries: List[str] = []
    seen = set()
    for group in (client, base_libraries, mod_libraries, [graphics_shim]):
        for path in group:
            if path is None:
                continue
            entry = str(pathlib.Path(path).absolute())
            if entry not in seen:
                seen.add(entry)
                entries.append(entry)
    return separator.join(entries)
