"""End-to-end run: discover bundles, write manifests, pack them."""

from __future__ import annotations

import json
import logging
import os
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, cast
from uuid import uuid4

import polars as pl

from nuspec_builder.config import AppSettings
from nuspec_builder.manifest.builder import UnitResult, build_all_manifests, unit_status_counts, written_records
from nuspec_builder.manifest.version import VersionReader, read_product_version
from nuspec_builder.pack.orchestrator import Launcher, OutputSink, PackOrchestrator, PackSummary
from nuspec_builder.scan.bundles import BundleGroup, PackageableUnit, discover_bundles, iter_units
from nuspec_builder.utils.paths import atomic_temp_path, write_text_atomically

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class RunOptions:
    """Runtime switches for a pipeline run."""

    dry_run: bool = False
    skip_pack: bool = False
    write_summary: bool = True


@dataclass(frozen=True, slots=True)
class RunResult:
    """Everything a caller needs to report on a run."""

    run_id: str
    input_missing: bool
    groups: tuple[BundleGroup, ...]
    units: tuple[PackageableUnit, ...]
    unit_results: tuple[UnitResult, ...]
    pack_summary: PackSummary | None
    summary: dict[str, Any]
    summary_path: Path | None
    results_path: Path | None

    @property
    def ok(self) -> bool:
        units_ok = all(result.status != "FAILED" for result in self.unit_results)
        pack_ok = self.pack_summary is None or self.pack_summary.ok
        return units_ok and pack_ok


def require_paths(settings: AppSettings) -> tuple[Path, Path, Path]:
    """Return (input_root, output_root, nuget_path), failing fast when any is unset."""

    missing = settings.paths.missing_required()
    if missing:
        raise ValueError(f"Missing required path settings: {', '.join(missing)}")
    return (
        cast(Path, settings.paths.input_root),
        cast(Path, settings.paths.output_root),
        cast(Path, settings.paths.nuget_path),
    )


RESULTS_SCHEMA: dict[str, pl.DataType] = {
    "package_id": pl.String,
    "unit_root": pl.String,
    "unit_status": pl.String,
    "version": pl.String,
    "file_count": pl.Int64,
    "manifest_path": pl.String,
    "pack_state": pl.String,
    "pack_return_code": pl.Int64,
    "error_message": pl.String,
}


def _results_frame(unit_results: tuple[UnitResult, ...], pack_summary: PackSummary | None) -> pl.DataFrame:
    """One row per unit joined with the pack job that consumed its manifest."""

    jobs_by_manifest = {str(job.manifest_path): job for job in (pack_summary.jobs if pack_summary else ())}
    rows: list[dict[str, object]] = []
    for result in unit_results:
        manifest_path = str(result.record.manifest_path) if result.record else None
        job = jobs_by_manifest.get(manifest_path) if manifest_path else None
        rows.append(
            {
                "package_id": result.unit.package_id,
                "unit_root": str(result.unit.root),
                "unit_status": result.status,
                "version": result.record.version if result.record else None,
                "file_count": result.record.file_count if result.record else None,
                "manifest_path": manifest_path,
                "pack_state": job.state if job else None,
                "pack_return_code": job.return_code if job else None,
                "error_message": result.error_message or (job.error_message if job else None),
            }
        )
    if not rows:
        return pl.DataFrame(schema=RESULTS_SCHEMA)
    return pl.DataFrame(rows, schema_overrides=RESULTS_SCHEMA)


def _write_parquet_atomically(df: pl.DataFrame, output_path: Path) -> Path:
    """Write parquet atomically to output path."""

    output_path.parent.mkdir(parents=True, exist_ok=True)
    temp_path = atomic_temp_path(output_path)
    try:
        df.write_parquet(temp_path)
        os.replace(temp_path, output_path)
    finally:
        if temp_path.exists():
            temp_path.unlink()
    return output_path


def run_pipeline(
    settings: AppSettings,
    *,
    options: RunOptions | None = None,
    output_sink: OutputSink | None = None,
    launcher: Launcher | None = None,
    version_reader: VersionReader = read_product_version,
    logger: logging.Logger | None = None,
) -> RunResult:
    """Discover units, generate their manifests and pack them one by one."""

    effective_logger = logger or LOGGER
    run_options = options or RunOptions()
    input_root, output_root, nuget_path = require_paths(settings)

    run_id = f"nuspec-run-{uuid4().hex[:12]}"
    started_ts = datetime.now(timezone.utc)
    started_mono = time.monotonic()
    effective_logger.info(
        "run.start run_id=%s input_root=%s output_root=%s nuget_path=%s dry_run=%s skip_pack=%s",
        run_id,
        input_root,
        output_root,
        nuget_path,
        run_options.dry_run,
        run_options.skip_pack,
    )

    input_missing = not input_root.is_dir()
    groups = tuple(
        discover_bundles(
            input_root,
            bundle_marker=settings.scan.bundle_marker,
            vcs_marker=settings.scan.vcs_marker,
            logger=effective_logger,
        )
    )
    units = tuple(iter_units(groups))

    unit_results = tuple(
        build_all_manifests(
            units,
            output_dir=output_root,
            manifest_config=settings.manifest,
            scan_config=settings.scan,
            dry_run=run_options.dry_run,
            version_reader=version_reader,
            logger=effective_logger,
        )
    )
    records = written_records(unit_results)

    pack_summary: PackSummary | None = None
    if not (run_options.dry_run or run_options.skip_pack):
        orchestrator_kwargs: dict[str, Any] = {}
        if launcher is not None:
            orchestrator_kwargs["launcher"] = launcher
        orchestrator = PackOrchestrator(
            nuget_path,
            concurrency=settings.pack.concurrency,
            timeout_seconds=settings.pack.timeout_seconds,
            extra_args=settings.pack.extra_args,
            output_sink=output_sink,
            logger=effective_logger,
            **orchestrator_kwargs,
        )
        pack_summary = orchestrator.pack_all(record.manifest_path for record in records)

    finished_ts = datetime.now(timezone.utc)
    summary: dict[str, Any] = {
        "run_id": run_id,
        "started_ts": started_ts.isoformat(),
        "finished_ts": finished_ts.isoformat(),
        "duration_sec": round(time.monotonic() - started_mono, 3),
        "input_root": str(input_root),
        "input_missing": input_missing,
        "output_root": str(output_root),
        "nuget_path": str(nuget_path),
        "bundle_groups_total": len(groups),
        "units_total": len(units),
        "unit_status_counts": unit_status_counts(unit_results),
        "manifests_written": len(records),
        "pack": pack_summary.counts() if pack_summary else None,
        "failed_units": [
            {"package_id": result.unit.package_id, "error": result.error_message}
            for result in unit_results
            if result.status == "FAILED"
        ][:200],
    }

    summary_path: Path | None = None
    results_path: Path | None = None
    if run_options.write_summary:
        artifacts_dir = settings.paths.artifacts_root / "run_summaries"
        summary_path = write_text_atomically(
            artifacts_dir / f"{run_id}_summary.json",
            json.dumps(summary, indent=2, sort_keys=True, default=str) + "\n",
        )
        results_path = _write_parquet_atomically(
            _results_frame(unit_results, pack_summary),
            artifacts_dir / f"{run_id}_unit_results.parquet",
        )

    effective_logger.info(
        "run.finished run_id=%s units=%s manifests=%s pack=%s summary_path=%s",
        run_id,
        len(units),
        len(records),
        summary["pack"],
        summary_path,
    )
    return RunResult(
        run_id=run_id,
        input_missing=input_missing,
        groups=groups,
        units=units,
        unit_results=unit_results,
        pack_summary=pack_summary,
        summary=summary,
        summary_path=summary_path,
        results_path=results_path,
    )
