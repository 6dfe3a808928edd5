"""Import-system integration for package loaders."""

import sys
from contextlib import contextmanager
from importlib.abc import MetaPathFinder
from importlib.machinery import ModuleSpec
from typing import Iterator, Optional

from .error_handling import MissingDependencyError
from .loader import Resolvable


class PackageFinder(MetaPathFinder):
    """Meta path finder that resolves imports through a root package loader."""

    def __init__(self, root: Resolvable):
        self.root = root

    def find_spec(self, fullname, path=None, target=None) -> Optional[ModuleSpec]:
        try:
            return self.root.resolve_symbol(fullname)
        except MissingDependencyError:
            # let the rest of sys.meta_path have a go
            return None

    def install(self) -> "PackageFinder":
        # after the builtin, frozen and path finders so artifacts cannot shadow them
        if self not in sys.meta_path:
            sys.meta_path.append(self)
        return self

    def uninstall(self) -> None:
        if self in sys.meta_path:
            sys.meta_path.remove(self)

    def __repr__(self) -> str:
        return f"PackageFinder({self.root.source})"


@contextmanager
def installed(root: Resolvable) -> Iterator[PackageFinder]:
    """Make ``root``'s package graph importable for the duration of the block."""
    finder = PackageFinder(root).install()
    try:
        yield finder
    finally:
        finder.uninstall()
