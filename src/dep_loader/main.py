import json
import sys
from pathlib import Path
from typing import Optional

import click
from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .cli_config import (
    OUTPUT_FORMATS,
    LoaderConfig,
    apply_config_section,
    create_sample_config,
    get_config,
    load_config_file,
    validate_config_values,
)
from .error_handling import GraphError, MissingDependencyError
from .graph import LoaderGraph, load_graph
from .loader import PackageLoader
from .structured_logging import configure_logging, describe_loggers

__version__ = "1.0.0"

console = Console()
err_console = Console(stderr=True)

output_format_option = click.option(
    "--output-format",
    "-f",
    type=click.Choice(OUTPUT_FORMATS),
    default=None,
    help="Output format (defaults to the configured format)",
)


def _graph(ctx: click.Context) -> LoaderGraph:
    """Load the graph named on the command line or in the configuration."""
    graph_file = ctx.obj.get("graph_file") or get_config().graph.graph_file
    if not Path(graph_file).exists():
        raise click.ClickException(f"Graph file does not exist: {graph_file}")
    try:
        return load_graph(graph_file)
    except GraphError as e:
        raise click.ClickException(str(e))


def _root(graph: LoaderGraph, root: str) -> PackageLoader:
    try:
        loader = graph.get(root)
    except ValueError as e:
        raise click.ClickException(str(e))
    if loader is None:
        raise click.ClickException(f"Unknown package: {root}")
    return loader


def _format(output_format: Optional[str]) -> str:
    return output_format or get_config().output.output_format


def _emit_json(data) -> None:
    click.echo(json.dumps(data, indent=2))


@click.group(invoke_without_command=True)
@click.option("--version", is_flag=True, help="Show version information")
@click.option(
    "--graph",
    "-g",
    "graph_file",
    type=click.Path(dir_okay=False),
    help="Graph description file (TOML or JSON)",
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"], case_sensitive=False),
    help="Override the configured log level",
)
@click.pass_context
def cli(ctx, version, graph_file, log_level):
    """
    Dep-Loader: per-package loaders for package dependency graphs

    Builds classpaths, resolves modules and resources, and dumps the loader
    tree of packages that carry private libraries.
    """
    if version:
        console.print(f"Dep-Loader version {__version__}", style="bold blue")
        ctx.exit()

    config = get_config()
    configure_logging(
        log_level or config.logging.log_level,
        config.logging.enable_json,
        config.logging.log_format,
    )

    ctx.ensure_object(dict)
    ctx.obj["graph_file"] = graph_file

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())


@cli.command()
@click.argument("root")
@click.option("--lines", is_flag=True, help="Print one entry per line")
@output_format_option
@click.pass_context
def classpath(ctx, root: str, lines: bool, output_format: Optional[str]):
    """Print the flattened classpath of ROOT."""
    entries = [str(path) for path in _root(_graph(ctx), root).classpath()]

    if _format(output_format) == "json":
        _emit_json({"source": root, "classpath": entries})
    elif lines:
        for entry in entries:
            click.echo(entry)
    else:
        click.echo(get_config().graph.classpath_separator.join(entries))


@cli.command("private-deps")
@click.argument("root")
@output_format_option
@click.pass_context
def private_deps(ctx, root: str, output_format: Optional[str]):
    """Print every private library reachable from ROOT."""
    paths = sorted(str(p) for p in _root(_graph(ctx), root).accumulate_private_deps(set()))

    if _format(output_format) == "json":
        _emit_json({"source": root, "private_deps": paths})
    else:
        for path in paths:
            click.echo(path)


@cli.command()
@click.argument("root")
@click.argument("name")
@output_format_option
@click.pass_context
def resolve(ctx, root: str, name: str, output_format: Optional[str]):
    """Resolve module NAME through the loader of ROOT."""
    loader = _root(_graph(ctx), root)
    try:
        spec = loader.resolve_symbol(name)
    except MissingDependencyError as e:
        raise click.ClickException(str(e))

    if _format(output_format) == "json":
        _emit_json(
            {
                "name": spec.name,
                "origin": spec.origin,
                "package": spec.submodule_search_locations is not None,
            }
        )
    else:
        click.echo(f"{spec.name} {spec.origin or '(namespace)'}")


@cli.command()
@click.argument("root")
@click.argument("path")
@click.pass_context
def resource(ctx, root: str, path: str):
    """Locate resource PATH through the loader of ROOT."""
    found = _root(_graph(ctx), root).resolve_resource(path)
    if found is None:
        if not get_config().output.quiet:
            err_console.print(f"Resource not found: {path}", style="yellow")
        ctx.exit(1)
    click.echo(str(found))


@cli.command()
@click.argument("root", required=False)
@click.pass_context
def dump(ctx, root: Optional[str]):
    """Print the loader tree of ROOT, or of the whole graph."""
    graph = _graph(ctx)
    if root is not None:
        _root(graph, root).dump(sys.stdout)
    else:
        graph.dump(sys.stdout)


@cli.command()
@click.pass_context
def packages(ctx):
    """List the packages of the graph."""
    graph = _graph(ctx)
    roots = {loader.source for loader in graph.roots()}

    table = Table(title="📦 Packages", box=box.ROUNDED, title_style="bold cyan")
    table.add_column("Source", style="cyan", no_wrap=True)
    table.add_column("Artifact", style="blue")
    table.add_column("Private", justify="center")
    table.add_column("Depends On")
    table.add_column("Root", justify="center")

    for loader in graph:
        table.add_row(
            str(loader.source),
            str(loader.classes),
            str(len(loader.private_deps)),
            ", ".join(str(dep.source) for dep in loader.package_deps) or "-",
            "✓" if loader.source in roots else "",
        )
    console.print(table)


@cli.command()
def info():
    """Show information about graph files and usage examples."""
    info_text = """
[bold blue]📄 Graph Description Files:[/bold blue]

• [green]dep-loader.toml[/green] - default graph file ([cyan]--graph[/cyan] to override)
• Each [yellow]package[/yellow] table has [cyan]source[/cyan], [cyan]classes[/cyan],
  optional [cyan]private[/cyan] (library paths) and [cyan]depends[/cyan] (sources)

[bold blue]🔍 Lookup Order:[/bold blue]

• Package artifact, then its private libraries
• Then each package dependency, in declared order, recursively
• First match wins

[bold blue]🌍 Environment Variables:[/bold blue]

• [cyan]DEP_LOADER_GRAPH[/cyan] - Default graph file
• [cyan]DEP_LOADER_OUTPUT_FORMAT[/cyan] - console or json
• [cyan]DEP_LOADER_LOG_LEVEL[/cyan] - Logging level
• [cyan]DEP_LOADER_CLASSPATH_SEPARATOR[/cyan] - Classpath separator

[bold blue]💡 Usage Examples:[/bold blue]

  dep-loader classpath git:https://example.com/app.git
  dep-loader resolve app mypkg.module
  dep-loader resource app data/defaults.json
  dep-loader dump
"""
    console.print(
        Panel(info_text, title="[bold]Dep-Loader Information[/bold]", border_style="blue")
    )


@cli.group()
def config():
    """Configuration management commands."""
    pass


@config.command("init")
@click.option(
    "--path",
    type=click.Path(),
    default=".dep-loader.json",
    help="Path where to create the config file",
    show_default=True,
)
@click.option("--force", is_flag=True, help="Overwrite existing config file")
def config_init(path: str, force: bool):
    """Create a sample configuration file."""
    config_path = Path(path)

    if config_path.exists() and not force:
        console.print(f"⚠️  Config file already exists at {config_path}", style="yellow")
        console.print("Use --force to overwrite", style="dim")
        return

    try:
        config_path.write_text(create_sample_config(), encoding="utf-8")
    except OSError as e:
        raise click.ClickException(f"Failed to create config file: {e}")

    console.print(f"✅ Created configuration file at {config_path}", style="green")


@config.command("show")
def config_show():
    """Show current configuration settings."""
    current = get_config()

    console.print(Panel("[bold blue]🔧 Configuration[/bold blue]", border_style="blue"))

    console.print("\n[bold cyan]🕸  Graph Settings:[/bold cyan]")
    console.print(f"  Graph File: {current.graph.graph_file}")
    console.print(f"  Classpath Separator: {current.graph.classpath_separator!r}")

    console.print("\n[bold cyan]📤 Output Settings:[/bold cyan]")
    console.print(f"  Output Format: {current.output.output_format}")
    console.print(f"  Quiet: {current.output.quiet}")

    console.print("\n[bold cyan]📝 Logging Settings:[/bold cyan]")
    console.print(f"  Log Level: {current.logging.log_level}")
    console.print(f"  JSON Logs: {current.logging.enable_json}")
    for name, level in describe_loggers().items():
        console.print(f"  {name}: {level}")


@config.command("validate")
@click.argument("config_file", type=click.Path(exists=True, dir_okay=False))
def config_validate(config_file: str):
    """Validate a configuration file."""
    config_data = load_config_file(Path(config_file))
    if config_data is None:
        raise click.ClickException(f"Could not load config from {config_file}")

    candidate = LoaderConfig()
    for section_name in ("graph", "output", "logging"):
        if section_name in config_data:
            apply_config_section(
                getattr(candidate, section_name), config_data[section_name], section_name
            )

    errors = validate_config_values(candidate)
    if errors:
        for error in errors:
            console.print(f"  • {error}", style="red")
        raise click.ClickException("Configuration validation failed")

    console.print(f"✅ Configuration file {config_file} is valid", style="green")


def main():
    cli(obj={})


if __name__ == "__main__":
    main()
