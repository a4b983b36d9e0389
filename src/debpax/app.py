"""debpax: build Debian binary packages from TOML descriptions."""

import logging
from contextlib import contextmanager
from pathlib import Path

import typer
from debian.arfile import ArError, ArFile
from debian.debfile import DebFile
from rich.console import Console
from rich.table import Table

from debpax import constants
from debpax.build import build_package
from debpax.errors import DebpaxError
from debpax.loader import load_description
from debpax.models.packages import PackageSpec
from debpax.models.version import OPERATORS, compare_versions

logger = logging.getLogger(__name__)

cli = typer.Typer(no_args_is_help=True)


@contextmanager
def _report_errors():
    """Turn package errors into an ``Error: ...`` line and exit status 1."""
    try:
        yield
    except (DebpaxError, ValueError) as e:
        logger.debug("command failed", exc_info=True)
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1) from e


@cli.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug output"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Only show warnings and errors"),
):
    """Build Debian binary packages."""
    if verbose:
        logging.getLogger("debpax").setLevel(logging.DEBUG)
    elif quiet:
        logging.getLogger("debpax").setLevel(logging.WARNING)


@cli.command()
def build(
    config: Path = typer.Argument(Path(constants.DEFAULT_CONFIG), help="Package description file"),
    dist: Path | None = typer.Option(None, help="Output directory [default: DEBPAX_DIST_DIR or dist]"),
    files_base: str | None = typer.Option(None, help="Install directory for files without a destination"),
    build_time: str | None = typer.Option(None, help="Archive timestamp (epoch seconds or a date)"),
):
    """Build every package in a description file."""
    with _report_errors():
        description = load_description(config)
        out = dist or description.options.dist or constants.DIST_DIR
        base = files_base or description.options.files_base
        for project in description.projects:
            result = project.build(out, files_base=base, build_time=build_time)
            typer.echo(str(result.path))


@cli.command()
def control(
    config: Path = typer.Argument(Path(constants.DEFAULT_CONFIG), help="Package description file"),
):
    """Print the control paragraph of every package in a description file."""
    with _report_errors():
        description = load_description(config)
        paragraphs = []
        for project in description.projects:
            spec = project.spec
            if project.buildno is not None:
                spec = spec.model_copy(update={"buildno": project.buildno})
            paragraphs.append(spec.generate_control())
        typer.echo("\n".join(paragraphs), nl=False)


@cli.command()
def inspect(deb: Path = typer.Argument(..., exists=True, dir_okay=False, help="Package to inspect")):
    """Show the members, control fields and checksums of a .deb file."""
    console = Console()
    with _report_errors():
        try:
            members = ArFile(str(deb)).getmembers()
            pkg = DebFile(str(deb))
        except ArError as e:
            raise DebpaxError(f"{deb}: {e}") from e

        table = Table(title=deb.name)
        table.add_column("Member")
        table.add_column("Size", justify="right")
        for member in members:
            table.add_row(member.name, str(member.size))
        console.print(table)

        try:
            console.print(pkg.control.debcontrol().dump(), markup=False, highlight=False)
            for path, digest in sorted(pkg.md5sums(encoding="utf-8").items()):
                console.print(f"{digest}  {path}", markup=False, highlight=False)
        finally:
            pkg.close()


@cli.command("compare-versions")
def compare_versions_cmd(
    a: str = typer.Argument(..., help="Left-hand version"),
    op: str = typer.Argument(..., help=f"Relation: {', '.join(OPERATORS)}"),
    b: str = typer.Argument(..., help="Right-hand version"),
):
    """Exit 0 when ``A OP B`` holds, 1 otherwise."""
    with _report_errors():
        holds = compare_versions(a, op, b)
    raise typer.Exit(code=0 if holds else 1)


@cli.command()
def crate(
    path: Path = typer.Argument(Path("."), help="Crate directory holding Cargo.toml"),
    arch: str | None = typer.Option(None, help="Package architecture [default: all]"),
    dist: Path | None = typer.Option(None, help="Output directory"),
    build_time: str | None = typer.Option(None, help="Archive timestamp (epoch seconds or a date)"),
):
    """Package the release binary of an already built Rust crate."""
    with _report_errors():
        overrides = {"arch": arch} if arch else {}
        spec = PackageSpec.from_cargo_toml(path, overrides)
        result = build_package(spec, dist or constants.DIST_DIR, build_time=build_time)
        typer.echo(str(result.path))


if __name__ == "__main__":
    cli()
