"""
Per-package loaders for a graph of packages with private libraries.

A package has two kinds of dependencies: private libraries, which are visible
only to the package's own lookups and are searched right after its own
artifact, and package dependencies, other packages whose loaders are consulted
in declared order when the local scope has no match.
"""

import os
import threading
import zipfile
from collections import abc
from dataclasses import dataclass
from importlib.machinery import ModuleSpec, PathFinder
from pathlib import Path, PurePosixPath
from typing import (
    Any,
    Iterable,
    List,
    Optional,
    Protocol,
    Sequence,
    Set,
    TextIO,
    Tuple,
    Union,
)

from .error_handling import (
    ErrorCategory,
    MalformedLocationError,
    MissingDependencyError,
    get_error_handler,
)
from .source import Source
from .structured_logging import (
    log_classpath_built,
    log_missing_dependency,
    log_resource_lookup,
    log_symbol_resolved,
)

Resource = Union[Path, zipfile.Path]

ARTIFACT_MARKER = "= "
INDENT = "- "
REPEAT_MARKER = "(*) "

# PathFinder fills the interpreter-wide sys.path_importer_cache
_lookup_lock = threading.Lock()


class Resolvable(Protocol):
    """Anything that resolves symbols and resources on behalf of a package."""

    source: Source

    def resolve_symbol(self, name: str) -> ModuleSpec:
        """Return a spec for ``name`` or raise MissingDependencyError."""

    def resolve_resource(self, path: str) -> Optional[Resource]:
        """Return the first matching resource, or None."""


def to_location(value: Any) -> Path:
    """
    Convert a path-like value into an absolute location.

    Raises:
        MalformedLocationError: If the value is not usable as a location
    """
    try:
        raw = os.fspath(value)
    except TypeError as e:
        _report_malformed(value, "not a path-like object", e)
        raise MalformedLocationError(value, "not a path-like object") from e

    if isinstance(raw, bytes):
        raw = os.fsdecode(raw)
    if not raw:
        _report_malformed(value, "empty path")
        raise MalformedLocationError(value, "empty path")
    if "\x00" in raw:
        _report_malformed(value, "embedded NUL character")
        raise MalformedLocationError(value, "embedded NUL character")

    return Path(raw).absolute()


def _report_malformed(value: Any, reason: str, exception: Optional[Exception] = None):
    get_error_handler().critical(
        ErrorCategory.LOCATION,
        f"Cannot convert {value!r} into a loadable location: {reason}",
        "loader",
        "to_location",
        exception=exception,
        suggestions=["Fix the artifact paths handed to the loader graph"],
    )


def _relative_resource(path: str) -> Optional[PurePosixPath]:
    rel = PurePosixPath(path.lstrip("/"))
    if not rel.parts or ".." in rel.parts:
        return None
    return rel


@dataclass(frozen=True, eq=False, repr=False)
class PackageLoader:
    """
    Loads symbols and resources for one package.

    The node owns its artifact and private library locations and holds
    non-owning references to the loaders of its direct package dependencies.
    It is immutable once constructed and safe to share between threads.
    """

    source: Source
    classes: Path
    private_deps: Tuple[Path, ...] = ()
    package_deps: Sequence["PackageLoader"] = ()

    def __post_init__(self):
        object.__setattr__(self, "classes", to_location(self.classes))
        object.__setattr__(
            self, "private_deps", tuple(to_location(p) for p in self.private_deps)
        )
        deps = self.package_deps
        if isinstance(deps, list) or not isinstance(deps, abc.Sequence):
            object.__setattr__(self, "package_deps", tuple(self.package_deps))

    @property
    def locations(self) -> List[Path]:
        """The local lookup scope: own artifact, then private libraries."""
        return [self.classes, *self.private_deps]

    def accumulate_private_deps(self, into: Set[Path]) -> Set[Path]:
        """
        Add every private library path in the transitive graph to ``into``.

        Args:
            into: Caller-owned set receiving the paths

        Returns:
            The same set, for convenience
        """
        self._accumulate_private_deps(into, set())
        return into

    def _accumulate_private_deps(self, into: Set[Path], seen: Set[Source]) -> None:
        if self.source in seen:
            return
        seen.add(self.source)
        into.update(self.private_deps)
        for dep in self.package_deps:
            dep._accumulate_private_deps(into, seen)

    def classpath(self) -> List[Path]:
        """
        Flatten the graph rooted here into an ordered, deduplicated path list.

        Each package contributes its artifact followed by its private
        libraries the first time it is reached in a depth-first, pre-order
        walk; later visits of the same source contribute nothing.
        """
        cp: List[Path] = []
        self._build_classpath(cp, set())
        log_classpath_built(str(self.source), len(cp))
        return cp

    def _build_classpath(self, cp: List[Path], seen: Set[Source]) -> None:
        if self.source in seen:
            return
        seen.add(self.source)
        cp.append(self.classes)
        cp.extend(self.private_deps)
        for dep in self.package_deps:
            dep._build_classpath(cp, seen)

    def dump(self, out: TextIO, indent: str = "", seen: Optional[Set[Source]] = None):
        """Write an indented tree of this package and its dependencies to ``out``."""
        if seen is None:
            seen = set()
        if self.source in seen:
            print(f"{indent}{REPEAT_MARKER}{self.source}", file=out)
            return
        seen.add(self.source)
        print(f"{indent}{self.source}", file=out)
        print(f"{indent}{ARTIFACT_MARKER}{self.classes}", file=out)
        dindent = indent + INDENT
        for path in self.private_deps:
            print(f"{dindent}{path}", file=out)
        for dep in self.package_deps:
            dep.dump(out, dindent, seen)

    def resolve_symbol(self, name: str) -> ModuleSpec:
        """
        Resolve a module name to a spec, searching locally then dependencies.

        Raises:
            MissingDependencyError: If no reachable package provides ``name``
        """
        portions: List[ModuleSpec] = []
        spec = self._resolve_symbol(name, set(), portions)
        if spec is None and portions:
            spec = _namespace_spec(name, portions)
        if spec is None:
            log_missing_dependency(str(self.source), name)
            raise MissingDependencyError(self.source, name)
        log_symbol_resolved(str(self.source), name, spec.origin)
        return spec

    def _resolve_symbol(
        self, name: str, seen: Set[Source], portions: List[ModuleSpec]
    ) -> Optional[ModuleSpec]:
        # a source that already failed for this name fails again
        if self.source in seen:
            return None
        seen.add(self.source)
        spec = self.find_local_spec(name)
        if spec is not None:
            if spec.loader is not None:
                return spec
            # a bare directory is only a namespace portion, keep looking
            portions.append(spec)
        for dep in self.package_deps:
            spec = dep._resolve_symbol(name, seen, portions)
            if spec is not None:
                return spec
        return None

    def find_local_spec(self, name: str) -> Optional[ModuleSpec]:
        """Look ``name`` up in this package's own artifact and private libraries only."""
        parts = name.split(".")
        if not all(part.isidentifier() for part in parts):
            return None

        with _lookup_lock:
            return _find_spec_in(parts, [str(p) for p in self.locations])

    def resolve_resource(self, path: str) -> Optional[Resource]:
        """Return the first resource at ``path`` in this package or its dependencies."""
        found = self._resolve_resource(path, set())
        log_resource_lookup(str(self.source), path, found is not None)
        return found

    def _resolve_resource(self, path: str, seen: Set[Source]) -> Optional[Resource]:
        if self.source in seen:
            return None
        seen.add(self.source)
        found = self.find_local_resource(path)
        if found is not None:
            return found
        for dep in self.package_deps:
            found = dep._resolve_resource(path, seen)
            if found is not None:
                return found
        return None

    def find_local_resource(self, path: str) -> Optional[Resource]:
        rel = _relative_resource(path)
        if rel is None:
            return None
        for location in self.locations:
            found = _resource_in(location, rel)
            if found is not None:
                return found
        return None

    def __repr__(self) -> str:
        return f"PackageLoader({self.source})"


def _find_spec_in(parts: List[str], search: Iterable[str]) -> Optional[ModuleSpec]:
    spec = None
    for index in range(len(parts)):
        if spec is not None:
            if spec.submodule_search_locations is None:
                return None
            search = list(spec.submodule_search_locations)
        spec = PathFinder.find_spec(".".join(parts[: index + 1]), list(search))
        if spec is None:
            return None
    return spec


def _namespace_spec(name: str, portions: List[ModuleSpec]) -> ModuleSpec:
    """Merge namespace portions found across the graph into one package spec."""
    spec = ModuleSpec(name, None, is_package=True)
    for portion in portions:
        for location in portion.submodule_search_locations or ():
            if location not in spec.submodule_search_locations:
                spec.submodule_search_locations.append(location)
    return spec


def _resource_in(location: Path, rel: PurePosixPath) -> Optional[Resource]:
    if location.is_dir():
        candidate = location.joinpath(*rel.parts)
        return candidate if candidate.is_file() else None
    if location.is_file() and zipfile.is_zipfile(location):
        candidate = zipfile.Path(location, at=str(rel))
        return candidate if candidate.is_file() else None
    return None
