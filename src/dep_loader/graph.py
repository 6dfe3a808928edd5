"""
Loader graph arena and graph description files.

All loaders of a graph live in one owning collection keyed by source identity.
Dependency edges are stored as source keys and resolved through the arena on
access, so a package may be declared before the packages it depends on and
diamond-shared packages are a single node referenced from several parents.
"""

import json
from collections import abc
from pathlib import Path
from typing import (
    Any,
    Dict,
    Iterable,
    Iterator,
    List,
    Optional,
    Set,
    TextIO,
    Tuple,
    Union,
)

import toml

from .error_handling import ErrorCategory, GraphError, get_error_handler
from .loader import PackageLoader
from .source import Source
from .structured_logging import log_graph_loaded

SourceLike = Union[Source, str]


def as_source(value: SourceLike) -> Source:
    return value if isinstance(value, Source) else Source.parse(value)


class GraphEdges(abc.Sequence):
    """Read-only view of a node's dependency edges, resolved through the arena."""

    def __init__(self, graph: "LoaderGraph", targets: Tuple[Source, ...]):
        self._graph = graph
        self.targets = targets

    def __getitem__(self, index):
        if isinstance(index, slice):
            return [self._graph[target] for target in self.targets[index]]
        return self._graph[self.targets[index]]

    def __len__(self) -> int:
        return len(self.targets)

    def __repr__(self) -> str:
        return f"GraphEdges({', '.join(str(t) for t in self.targets)})"


class LoaderGraph:
    """Owning collection of package loaders."""

    def __init__(self):
        self._loaders: Dict[Source, PackageLoader] = {}

    def add(
        self,
        source: SourceLike,
        classes: Any,
        private_deps: Iterable[Any] = (),
        depends_on: Iterable[SourceLike] = (),
    ) -> PackageLoader:
        """
        Create and register the loader for one package.

        Args:
            source: Source identity of the package
            classes: Location of the package's own artifact
            private_deps: Locations of libraries private to the package
            depends_on: Sources of the package's direct dependencies

        Returns:
            The new loader

        Raises:
            GraphError: If the source is already registered
            MalformedLocationError: If a location cannot be used
        """
        source = as_source(source)
        if source in self._loaders:
            raise GraphError(f"Duplicate package in graph: {source}")

        edges = GraphEdges(self, tuple(as_source(dep) for dep in depends_on))
        loader = PackageLoader(
            source=source,
            classes=classes,
            private_deps=tuple(private_deps),
            package_deps=edges,
        )
        self._loaders[source] = loader
        return loader

    def get(self, source: SourceLike) -> Optional[PackageLoader]:
        return self._loaders.get(as_source(source))

    def __getitem__(self, source: SourceLike) -> PackageLoader:
        return self._loaders[as_source(source)]

    def __contains__(self, source: object) -> bool:
        if isinstance(source, str):
            try:
                source = Source.parse(source)
            except ValueError:
                return False
        return source in self._loaders

    def __iter__(self) -> Iterator[PackageLoader]:
        return iter(self._loaders.values())

    def __len__(self) -> int:
        return len(self._loaders)

    def dangling_edges(self) -> List[Tuple[Source, Source]]:
        """Edges that point at sources with no registered loader."""
        dangling = []
        for loader in self._loaders.values():
            for target in _edge_targets(loader):
                if target not in self._loaders:
                    dangling.append((loader.source, target))
        return dangling

    def validate(self) -> None:
        """Raise GraphError if any edge cannot be resolved."""
        dangling = self.dangling_edges()
        if dangling:
            listed = ", ".join(f"{src} -> {dst}" for src, dst in dangling)
            raise GraphError(f"Unknown package dependencies: {listed}")

    def roots(self) -> List[PackageLoader]:
        """Loaders that no other loader depends on, in insertion order."""
        depended = {
            target
            for loader in self._loaders.values()
            for target in _edge_targets(loader)
            if target != loader.source
        }
        return [
            loader for source, loader in self._loaders.items() if source not in depended
        ]

    def dump(self, out: TextIO) -> None:
        """
        Dump the tree of every root, then of every loader no root reaches.

        Packages already printed are shown as repeats, so a cycle that hangs
        off no root is still printed once.
        """
        seen: Set[Source] = set()
        for loader in self.roots():
            loader.dump(out, "", seen)
        for source, loader in self._loaders.items():
            if source not in seen:
                loader.dump(out, "", seen)


def _edge_targets(loader: PackageLoader) -> Tuple[Source, ...]:
    deps = loader.package_deps
    if isinstance(deps, GraphEdges):
        return deps.targets
    return tuple(dep.source for dep in deps)


def build_graph(data: Dict[str, Any], base_dir: Optional[Path] = None) -> LoaderGraph:
    """
    Build a loader graph from a parsed graph description.

    The description holds a ``package`` list; each entry has ``source``,
    ``classes`` and optional ``private`` and ``depends`` lists. Relative
    locations are taken relative to ``base_dir``.

    Raises:
        GraphError: If the description is malformed
    """
    base_dir = base_dir or Path.cwd()
    packages = data.get("package")
    if not isinstance(packages, list):
        raise GraphError("Graph description must contain a 'package' list")

    graph = LoaderGraph()
    for index, entry in enumerate(packages):
        if not isinstance(entry, dict):
            raise GraphError(f"package[{index}] must be a table")
        for key in ("source", "classes"):
            if not isinstance(entry.get(key), str):
                raise GraphError(f"package[{index}] is missing '{key}'")

        private = entry.get("private", [])
        depends = entry.get("depends", [])
        for key, value in (("private", private), ("depends", depends)):
            if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
                raise GraphError(f"package[{index}].{key} must be a list of strings")

        try:
            source = Source.parse(entry["source"])
            graph.add(
                source,
                base_dir / entry["classes"],
                [base_dir / path for path in private],
                [Source.parse(dep) for dep in depends],
            )
        except GraphError:
            raise
        except ValueError as e:
            raise GraphError(f"package[{index}]: {e}") from e

    graph.validate()
    return graph


def load_graph(graph_file: Union[str, Path]) -> LoaderGraph:
    """
    Load a graph description file (``.toml`` or ``.json``).

    Raises:
        GraphError: If the file cannot be read or describes an invalid graph
    """
    path = Path(graph_file)
    try:
        content = path.read_text(encoding="utf-8")
        if path.suffix.lower() == ".json":
            data = json.loads(content)
        else:
            data = toml.loads(content)
    except (OSError, ValueError, toml.TomlDecodeError) as e:
        get_error_handler().error(
            ErrorCategory.FILESYSTEM,
            f"Cannot read graph description: {e}",
            "graph",
            "load_graph",
            exception=e,
            details={"graph_file": path.name},
        )
        raise GraphError(f"Cannot read graph description {path}: {e}") from e

    if not isinstance(data, dict):
        raise GraphError(f"Graph description {path} must be a table")

    try:
        graph = build_graph(data, path.parent.absolute())
    except GraphError as e:
        get_error_handler().error(
            ErrorCategory.GRAPH,
            str(e),
            "graph",
            "load_graph",
            details={"graph_file": path.name},
            suggestions=["Check the package entries of the graph description"],
        )
        raise

    log_graph_loaded(str(path), len(graph), len(graph.roots()))
    return graph
