"""Typer CLI entrypoint for nuspec_builder."""

from __future__ import annotations

import logging
from pathlib import Path

import typer
import yaml

from nuspec_builder.config import AppSettings, load_settings
from nuspec_builder.manifest.builder import build_all_manifests, unit_status_counts
from nuspec_builder.pipeline import RunOptions, run_pipeline
from nuspec_builder.logging_utils import configure_logging
from nuspec_builder.scan.bundles import discover_bundles, iter_units

EXIT_INPUT_MISSING = 3
EXIT_PACK_FAILED = 4
EXIT_UNITS_FAILED = 5
ASSIGNMENT_KEYS: dict[str, str] = {
    "INPUT": "input_root",
    "OUTPUT": "output_root",
    "NUGET": "nuget_path",
}

app = typer.Typer(
    add_completion=False,
    help="nuspec_builder command line interface.",
    no_args_is_help=True,
)


def _load_and_optionally_configure_logger(
    config_file: Path | None,
    configure: bool,
) -> tuple[AppSettings, logging.Logger]:
    settings = load_settings(config_file=config_file)
    if configure:
        logger = configure_logging(
            settings.paths.logs_root / settings.logging.file_name,
            level=settings.logging.level,
        )
    else:
        logger = logging.getLogger("nuspec_builder")
    return settings, logger


def _parse_assignments(values: list[str] | None) -> dict[str, Path]:
    """Parse ``INPUT=... OUTPUT=... NUGET=...`` pairs with case-insensitive keys."""

    parsed: dict[str, Path] = {}
    for item in values or []:
        key, separator, value = item.partition("=")
        normalized_key = key.strip().upper()
        if not separator or normalized_key not in ASSIGNMENT_KEYS or value.strip() == "":
            allowed = ", ".join(f"{name}=<path>" for name in ASSIGNMENT_KEYS)
            raise typer.BadParameter(f"invalid assignment '{item}'; expected one of: {allowed}")
        parsed[ASSIGNMENT_KEYS[normalized_key]] = Path(value.strip())
    return parsed


def _apply_path_overrides(
    settings: AppSettings,
    *,
    assignments: list[str] | None,
    input_root: Path | None,
    output_root: Path | None,
    nuget_path: Path | None,
    require: tuple[str, ...],
) -> AppSettings:
    overrides = _parse_assignments(assignments)
    for name, value in (("input_root", input_root), ("output_root", output_root), ("nuget_path", nuget_path)):
        if value is not None:
            overrides[name] = value
    updated = settings.with_paths(**overrides)
    missing = [name for name in updated.paths.missing_required() if name in require]
    if missing:
        rendered = ", ".join(missing)
        raise typer.BadParameter(
            f"missing required value(s): {rendered}. Pass --input/--output/--nuget, "
            "INPUT=/OUTPUT=/NUGET= assignments, or set them in the settings file."
        )
    return updated


_CONFIG_FILE_OPTION = typer.Option(
    None,
    "--config-file",
    help="Optional settings YAML path.",
    exists=False,
    file_okay=True,
    dir_okay=False,
    readable=True,
)
_INPUT_OPTION = typer.Option(None, "--input", help="Working-tree root to scan for bundle folders.")
_OUTPUT_OPTION = typer.Option(None, "--output", help="Directory receiving generated manifests.")
_NUGET_OPTION = typer.Option(None, "--nuget", help="Path to the packaging executable.")
_ASSIGNMENTS_ARGUMENT = typer.Argument(None, help="Optional INPUT=<path> OUTPUT=<path> NUGET=<path> assignments.")


@app.command("show-config")
def show_config(
    config_file: Path | None = _CONFIG_FILE_OPTION,
) -> None:
    """Print the effective configuration after env overrides."""

    settings, _ = _load_and_optionally_configure_logger(config_file, configure=False)
    rendered = yaml.safe_dump(settings.as_dict(), sort_keys=False, allow_unicode=True)
    typer.echo(rendered)


@app.command("discover")
def discover_cmd(
    assignments: list[str] | None = _ASSIGNMENTS_ARGUMENT,
    input_root: Path | None = _INPUT_OPTION,
    config_file: Path | None = _CONFIG_FILE_OPTION,
) -> None:
    """List bundle groups and the packageable units inside them."""

    settings, logger = _load_and_optionally_configure_logger(config_file, configure=True)
    settings = _apply_path_overrides(
        settings,
        assignments=assignments,
        input_root=input_root,
        output_root=None,
        nuget_path=None,
        require=("input_root",),
    )
    root = settings.paths.input_root
    if root is None or not root.is_dir():
        typer.echo(f"Directory \"{root}\" does not exist.", err=True)
        raise typer.Exit(code=EXIT_INPUT_MISSING)

    groups = discover_bundles(
        root,
        bundle_marker=settings.scan.bundle_marker,
        vcs_marker=settings.scan.vcs_marker,
        logger=logger,
    )
    for group in groups:
        typer.echo(f"{group.marker_dir}")
        for unit in iter_units([group]):
            typer.echo(f"  {unit.package_id}: {unit.root}")
    typer.echo(f"bundle_groups_total: {len(groups)}")
    typer.echo(f"units_total: {sum(len(group.units) for group in groups)}")


@app.command("build-manifests")
def build_manifests_cmd(
    assignments: list[str] | None = _ASSIGNMENTS_ARGUMENT,
    input_root: Path | None = _INPUT_OPTION,
    output_root: Path | None = _OUTPUT_OPTION,
    dry_run: bool = typer.Option(False, "--dry-run", help="Build manifests in memory without writing them."),
    config_file: Path | None = _CONFIG_FILE_OPTION,
) -> None:
    """Discover units and write one manifest per unit without packing."""

    settings, logger = _load_and_optionally_configure_logger(config_file, configure=True)
    settings = _apply_path_overrides(
        settings,
        assignments=assignments,
        input_root=input_root,
        output_root=output_root,
        nuget_path=None,
        require=("input_root", "output_root"),
    )
    root = settings.paths.input_root
    output_dir = settings.paths.output_root
    if root is None or output_dir is None or not root.is_dir():
        typer.echo(f"Directory \"{root}\" does not exist.", err=True)
        raise typer.Exit(code=EXIT_INPUT_MISSING)

    groups = discover_bundles(
        root,
        bundle_marker=settings.scan.bundle_marker,
        vcs_marker=settings.scan.vcs_marker,
        logger=logger,
    )
    results = build_all_manifests(
        iter_units(groups),
        output_dir=output_dir,
        manifest_config=settings.manifest,
        scan_config=settings.scan,
        dry_run=dry_run,
        logger=logger,
    )
    for result in results:
        if result.record is not None:
            typer.echo(f"Package {result.unit.package_id} has been created in {result.unit.root}.")
    counts = unit_status_counts(results)
    typer.echo(f"units_total: {len(results)}")
    for status, count in counts.items():
        typer.echo(f"units_{status.lower()}: {count}")
    if counts["FAILED"]:
        raise typer.Exit(code=EXIT_UNITS_FAILED)


@app.command("run")
def run_cmd(
    assignments: list[str] | None = _ASSIGNMENTS_ARGUMENT,
    input_root: Path | None = _INPUT_OPTION,
    output_root: Path | None = _OUTPUT_OPTION,
    nuget_path: Path | None = _NUGET_OPTION,
    concurrency: int | None = typer.Option(
        None,
        "--concurrency",
        min=1,
        help="Maximum packing processes running at once (default from settings, normally 1).",
    ),
    timeout: float | None = typer.Option(
        None,
        "--timeout",
        min=0.001,
        help="Per-process timeout in seconds.",
    ),
    dry_run: bool = typer.Option(False, "--dry-run", help="Discover and build manifests without writing or packing."),
    skip_pack: bool = typer.Option(False, "--skip-pack", help="Write manifests but do not invoke the packaging tool."),
    config_file: Path | None = _CONFIG_FILE_OPTION,
) -> None:
    """Discover bundles, write manifests and pack them one at a time."""

    settings, logger = _load_and_optionally_configure_logger(config_file, configure=True)
    settings = _apply_path_overrides(
        settings,
        assignments=assignments,
        input_root=input_root,
        output_root=output_root,
        nuget_path=nuget_path,
        require=("input_root", "output_root", "nuget_path"),
    )
    pack_updates: dict[str, object] = {}
    if concurrency is not None:
        pack_updates["concurrency"] = concurrency
    if timeout is not None:
        pack_updates["timeout_seconds"] = timeout
    if pack_updates:
        settings = settings.model_copy(update={"pack": settings.pack.model_copy(update=pack_updates)})

    result = run_pipeline(
        settings,
        options=RunOptions(dry_run=dry_run, skip_pack=skip_pack),
        output_sink=typer.echo,
        logger=logger,
    )

    summary = result.summary
    typer.echo(f"run_id: {summary['run_id']}")
    typer.echo(f"bundle_groups_total: {summary['bundle_groups_total']}")
    typer.echo(f"units_total: {summary['units_total']}")
    typer.echo(f"manifests_written: {summary['manifests_written']}")
    for status, count in summary["unit_status_counts"].items():
        typer.echo(f"units_{status.lower()}: {count}")
    if result.pack_summary is not None:
        for key, value in result.pack_summary.counts().items():
            typer.echo(f"pack_{key}: {value}")
    typer.echo(f"summary_path: {result.summary_path}")

    if result.input_missing:
        typer.echo(f"Directory \"{settings.paths.input_root}\" does not exist.", err=True)
        raise typer.Exit(code=EXIT_INPUT_MISSING)
    if result.pack_summary is not None and not result.pack_summary.ok:
        raise typer.Exit(code=EXIT_PACK_FAILED)
    if not result.ok:
        raise typer.Exit(code=EXIT_UNITS_FAILED)


def main() -> None:
    """Console-script entrypoint."""

    app()


if __name__ == "__main__":
    main()
