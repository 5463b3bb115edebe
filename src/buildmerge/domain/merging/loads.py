"""Keep load statements in step with the symbols a file uses."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

from buildmerge.domain.rule import Load
from buildmerge.domain.syntax import CallExpr, DotExpr, Ident, walk

if TYPE_CHECKING:
    from collections.abc import Collection, Iterator, Mapping, Sequence

    from buildmerge.config.policy import LoadInfo
    from buildmerge.domain.rule import File

log = getLogger(__name__)


def fix_loads(file: File, known_loads: Sequence[LoadInfo]) -> None:
    """Add, trim and delete loads of known sources to match symbol usage.

    Symbols loaded from sources outside ``known_loads`` are never touched
    and are never loaded again from a known source. New load statements are
    created in the order of ``known_loads``. The file is synced first; the
    caller syncs again to materialise the changes.
    """

    known_files = {load.name for load in known_loads}
    known_symbols: dict[str, str] = {}
    for load in known_loads:
        for symbol in load.symbols:
            known_symbols[symbol] = load.name

    file.sync()

    loads: list[Load] = []
    other_symbols: set[str] = set()
    for load in file.loads:
        if load.name in known_files:
            loads.append(load)
        else:
            other_symbols.update(load.symbols())

    used: dict[str, set[str]] = {}
    for symbol in used_symbols(file):
        source = known_symbols.get(symbol)
        if source is None or symbol in other_symbols:
            continue
        used.setdefault(source, set()).add(symbol)

    for known in known_loads:
        first = True
        for load in loads:
            if load.name != known.name:
                continue
            if first:
                fix_load(load, known.name, used.get(known.name, set()), known_symbols)
                first = False
            else:
                fix_load(load, known.name, set(), known_symbols)
            if load.is_empty():
                log.debug("%s: removing empty load of %s", file.path, load.name)
                load.delete()
        if first:
            created = fix_load(None, known.name, used.get(known.name, set()), known_symbols)
            if created is not None:
                created.insert(file, new_load_index(file, known.after))


def used_symbols(file: File) -> Iterator[str]:
    """Names called anywhere in the file, plus identifiers passed directly to a call.

    ``pkg.fn(...)`` counts as a use of ``pkg``; ``wrapper(kind, ...)`` as a
    use of both ``wrapper`` and ``kind``.
    """

    for stmt in file.stmts:
        for node in walk(stmt):
            if not isinstance(node, CallExpr):
                continue
            func = node.func
            if isinstance(func, DotExpr):
                func = func.x
            if not isinstance(func, Ident):
                continue
            yield func.name
            for arg in node.args:
                if isinstance(arg, Ident):
                    yield arg.name


def fix_load(
    load: Load | None,
    source: str,
    symbols: Collection[str],
    known_symbols: Mapping[str, str],
) -> Load | None:
    """Make ``load`` provide ``symbols``, dropping known symbols that are not used.

    Symbols that do not belong to any known source are kept. With no
    ``load``, a new one is created when ``symbols`` is not empty.
    """

    if load is None:
        if not symbols:
            return None
        load = Load.new(source)
    for symbol in sorted(symbols):
        load.add(symbol)
    for symbol in load.symbols():
        if symbol in known_symbols and symbol not in symbols:
            load.remove(symbol)
    return load


def new_load_index(file: File, after: Collection[str]) -> int:
    """Index a new load must be inserted at so it follows every call in ``after``."""

    if not after:
        return 0
    index = 0
    for rule in file.rules:
        if rule.kind in after and rule.index >= index:
            index = rule.index + 1
    return index
