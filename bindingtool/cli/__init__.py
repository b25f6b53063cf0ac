"""
binding-tool CLI.

Command-line interface for generating service bindings.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import NoReturn

import click

from bindingtool import __version__
from bindingtool.errors import BindingToolError

LOG_LEVEL_ENV = "BT_LOG_LEVEL"
LOG_FORMAT = "%(levelname)s %(name)s: %(message)s"
CA_CERTIFICATES_TYPE = "ca-certificates"


class _ClickHandler(logging.Handler):
    """Logging handler writing through click to stderr."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            click.echo(self.format(record), err=True)
        except Exception:
            self.handleError(record)


def _configure_logging(verbose: bool) -> None:
    level_name = os.environ.get(LOG_LEVEL_ENV) or ("DEBUG" if verbose else "WARNING")
    level = logging.getLevelName(level_name.upper())
    if not isinstance(level, int):
        raise click.UsageError(f"{LOG_LEVEL_ENV} has unknown level {level_name!r}")

    package_logger = logging.getLogger("bindingtool")
    package_logger.setLevel(level)
    if not any(isinstance(h, _ClickHandler) for h in package_logger.handlers):
        handler = _ClickHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        package_logger.addHandler(handler)


def _fail(error: BindingToolError) -> NoReturn:
    click.echo(f"Error: {error}", err=True)
    raise SystemExit(1)


@click.group()
@click.version_option(version=__version__)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def main(verbose: bool) -> None:
    """binding-tool: Generate Kubernetes service bindings for buildpacks."""
    _configure_logging(verbose)


@main.command("dependency-mapping")
@click.option("--buildpack", "-b", help="Buildpack id, owner/repo[@version]")
@click.option("--toml", "-t", "toml_path", help="Path to a local buildpack.toml")
@click.option("--name", "-n", help="Binding name (defaults to dependency-mapping)")
@click.option("--force", "-f", is_flag=True, help="Overwrite entries that differ")
@click.option("--strict", is_flag=True, help="Fail on invalid dependency entries")
@click.option("--stack", help="Only include dependencies for this stack id")
@click.option("--cache-dir", help="Keep downloaded artifacts in this directory")
@click.option(
    "--binaries",
    is_flag=True,
    help="Keep artifacts in <binding>/binaries and point entries at them",
)
@click.option("--json", "as_json", is_flag=True, help="Print the report as JSON")
def dependency_mapping(
    buildpack: str | None,
    toml_path: str | None,
    name: str | None,
    force: bool,
    strict: bool,
    stack: str | None,
    cache_dir: str | None,
    binaries: bool,
    as_json: bool,
) -> None:
    """Create a dependency-mapping binding for a buildpack and its order groups."""
    from bindingtool.bindings import (
        DEPENDENCY_MAPPING_TYPE,
        BindingMaterializer,
        FilesystemBindingStore,
    )
    from bindingtool.config import FetchConfig
    from bindingtool.core.models import BuildpackReference
    from bindingtool.fetch import DependencyFetcher, create_client
    from bindingtool.manifest import ManifestSource, ParsePolicy
    from bindingtool.report import RunReport
    from bindingtool.resolver import DependencyResolver

    if (buildpack is None) == (toml_path is None):
        raise click.UsageError("exactly one of --buildpack or --toml is required")
    if binaries and cache_dir:
        raise click.UsageError("--binaries and --cache-dir cannot be combined")

    binding_name = name or DEPENDENCY_MAPPING_TYPE

    try:
        config = FetchConfig.from_env()
        store = FilesystemBindingStore.from_env()
        if buildpack is not None:
            reference = BuildpackReference.parse(buildpack)
        else:
            reference = BuildpackReference.local(toml_path)

        artifact_dir = Path(cache_dir) if cache_dir else None
        location_prefix = None
        if binaries:
            artifact_dir = store.binding_dir(binding_name) / "binaries"
            location_prefix = f"/bindings/{binding_name}/binaries"

        policy = ParsePolicy.STRICT if strict else ParsePolicy.LENIENT
        with create_client(config) as client:
            resolver = DependencyResolver(
                ManifestSource(client, config), policy=policy, stack=stack
            )
            resolution = resolver.resolve(reference)

            fetcher = DependencyFetcher(config, client, cache_dir=artifact_dir)
            outcomes = fetcher.fetch_all(resolution.dependencies())

        materializer = BindingMaterializer(
            store,
            DEPENDENCY_MAPPING_TYPE,
            name=binding_name,
            force=force,
            location_prefix=location_prefix,
        )
        result = materializer.materialize(outcomes)
    except BindingToolError as e:
        _fail(e)
    except KeyboardInterrupt:
        click.echo("Interrupted", err=True)
        raise SystemExit(130)

    report = RunReport.build(resolution, outcomes, result)
    click.echo(report.to_json() if as_json else report.render_text())
    if report.exit_code:
        raise SystemExit(report.exit_code)


@main.command()
@click.option("--type", "-t", "binding_type", required=True, help="Binding type")
@click.option("--name", "-n", help="Binding name (defaults to the type)")
@click.option(
    "--param",
    "-p",
    "params",
    multiple=True,
    required=True,
    help="Entry as key=value; key=@path copies the file",
)
@click.option("--force", "-f", is_flag=True, help="Overwrite entries that differ")
def add(binding_type: str, name: str | None, params: tuple[str, ...], force: bool) -> None:
    """Add entries to a binding of any type."""
    entries: list[tuple[str, str | Path]] = []
    for param in params:
        key, sep, value = param.partition("=")
        if not sep or not key:
            raise click.UsageError(f"parameter [{param}] should have format key=value")
        entries.append((key, Path(value[1:]) if value.startswith("@") else value))

    _write_entries(binding_type, name, entries, force)


@main.command("ca-certs")
@click.option(
    "--cert", "-c", "certs", multiple=True, required=True, help="Path to a CA certificate"
)
@click.option("--name", "-n", help="Binding name (defaults to ca-certificates)")
@click.option("--force", "-f", is_flag=True, help="Overwrite entries that differ")
def ca_certs(certs: tuple[str, ...], name: str | None, force: bool) -> None:
    """Add CA certificates to a ca-certificates binding."""
    entries: list[tuple[str, str | Path]] = [(Path(cert).name, Path(cert)) for cert in certs]
    _write_entries(CA_CERTIFICATES_TYPE, name, entries, force)


def _write_entries(
    binding_type: str,
    name: str | None,
    entries: list[tuple[str, str | Path]],
    force: bool,
) -> None:
    from bindingtool.bindings import FilesystemBindingStore, WriteStatus

    store = FilesystemBindingStore.from_env()
    conflicts = []

    try:
        binding_dir = store.binding_dir(name or binding_type)
        for key, value in entries:
            if isinstance(value, Path):
                status = store.put_file(binding_type, key, value, name=name, force=force)
            else:
                status = store.put(binding_type, key, value, name=name, force=force)
            click.echo(f"{status.value}: {binding_dir / key}")
            if status == WriteStatus.CONFLICT:
                conflicts.append(key)
    except BindingToolError as e:
        _fail(e)

    if conflicts:
        click.echo(
            f"Error: {len(conflicts)} entries already exist with different values "
            f"({', '.join(conflicts)}); use --force to overwrite",
            err=True,
        )
        raise SystemExit(1)
