"""Command-line interface for the logo_metrics project."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Iterable
from urllib.parse import urlparse

from tqdm import tqdm

from .config import Settings, settings
from .extract.acquire import SourceError, load_source
from .extract.decode import ImageDecodeError, decode_image
from .features.metrics import MetricExtractor, MetricsError
from .interpret.client import InterpretationClient, InterpretationError
from .io.archive import ArchiveStore
from .io.models import AnalysisResponse, LogoMetrics
from .io.outputs import write_json, write_metrics_table
from .render.overlay import render_overlay, save_overlay
from .render.report import write_report


def parse_args(argv: Iterable[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments for the metric extraction pipeline."""
    parser = argparse.ArgumentParser(
        description="Extract geometric metrics from logo images."
    )
    parser.add_argument(
        "--input",
        nargs="+",
        default=[],
        metavar="SRC",
        help="Image sources: file paths, http(s) URLs or data URIs.",
    )
    parser.add_argument(
        "--list",
        default=None,
        help="Path to a text file containing image sources, one per line.",
    )
    parser.add_argument(
        "--out",
        default=None,
        help="Directory path where metric outputs will be written.",
    )
    parser.add_argument(
        "--max-side",
        type=int,
        default=None,
        help="Downscale images so their longer side is at most this many pixels.",
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=None,
        help="Number of row bands scanned in parallel per image.",
    )
    parser.add_argument(
        "--overlay",
        action="store_true",
        help="Write a structural overlay PNG next to each metrics file.",
    )
    parser.add_argument(
        "--analyze",
        action="store_true",
        help="Send metrics to the interpretation service for a critique and score.",
    )
    parser.add_argument(
        "--report",
        action="store_true",
        help="Write a PDF report for each image.",
    )
    parser.add_argument(
        "--archive",
        default=None,
        help="Directory of the result archive to append to.",
    )
    parser.add_argument(
        "--show-archive",
        default=None,
        metavar="DIR",
        help="List the entries of an existing archive and exit.",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Logging level (defaults to LOGO_METRICS_LOG_LEVEL).",
    )
    args = parser.parse_args(list(argv) if argv is not None else None)
    if not args.show_archive and not args.input and not args.list:
        parser.error("one of --input, --list or --show-archive is required")
    if (args.input or args.list) and not args.out:
        parser.error("--out is required when processing images")
    return args


def read_input(path: Path) -> list[str]:
    """Read newline separated entries from *path* and return non-empty lines."""
    if not path.exists():
        raise FileNotFoundError(f"Input file does not exist: {path}")
    lines = [line.strip() for line in path.read_text(encoding="utf-8-sig").splitlines()]
    return [line for line in lines if line and not line.startswith("#")]


def _source_label(source: str, index: int) -> str:
    if source.startswith("data:"):
        return f"inline-{index}"
    if source.startswith(("http://", "https://")):
        parsed = urlparse(source)
        name = parsed.path.rsplit("/", 1)[-1] or parsed.netloc
    else:
        name = Path(source).name
    stem = name.rsplit(".", 1)[0] if "." in name else name
    sanitized = "".join(ch if ch.isalnum() or ch in "._-" else "_" for ch in stem)
    sanitized = sanitized.strip("._-")
    return sanitized or f"image-{index}"


def _unique_labels(sources: list[str]) -> list[str]:
    seen: dict[str, int] = {}
    labels: list[str] = []
    for index, source in enumerate(sources, start=1):
        label = _source_label(source, index)
        count = seen.get(label, 0) + 1
        seen[label] = count
        labels.append(label if count == 1 else f"{label}_{count}")
    return labels


def _process_source(
    source: str,
    label: str,
    args: argparse.Namespace,
    config: Settings,
    extractor: MetricExtractor,
    out_dir: Path,
    client: InterpretationClient | None,
    archive: ArchiveStore | None,
) -> LogoMetrics | None:
    """Load, decode and measure one image, then write the requested outputs."""
    max_side = args.max_side if args.max_side is not None else config.max_side
    try:
        image_bytes, mime = load_source(source)
        decoded = decode_image(image_bytes, mime, max_side=max_side)
    except (SourceError, ImageDecodeError) as exc:
        print(f"[warn] {label}: {exc}")
        return None

    try:
        metrics = extractor.extract(decoded.buffer, decoded.original_size)
    except MetricsError as exc:
        print(f"[warn] {label}: extraction failed ({exc})")
        return None

    metrics_path = write_json(out_dir / f"{label}.metrics.json", metrics.to_dict())
    print(f"[saved] {label}: {metrics_path}")

    if args.overlay:
        overlay_path = save_overlay(out_dir / f"{label}.overlay.png", decoded.buffer, metrics)
        print(f"[overlay] {label}: {overlay_path}")

    analysis: AnalysisResponse | None = None
    if client is not None:
        try:
            analysis = client.analyze(metrics)
        except InterpretationError as exc:
            print(f"[warn] {label}: interpretation failed ({exc})")
        else:
            write_json(out_dir / f"{label}.analysis.json", analysis.to_dict())
            print(f"[analysis] {label}: score {analysis.score:g}")

    if args.report:
        report_path = write_report(
            out_dir / f"{label}.report.pdf",
            metrics,
            analysis,
            overlay=render_overlay(decoded.buffer, metrics),
        )
        print(f"[report] {label}: {report_path}")

    if archive is not None:
        archived_source = label if source.startswith("data:") else source
        entry = archive.save(metrics, analysis, source=archived_source)
        print(f"[archive] {label}: {entry.entry_id}")

    return metrics


def _show_archive(root: Path) -> int:
    store = ArchiveStore(root)
    entries = store.entries()
    if not entries:
        print(f"[archive] no entries in {root}")
        return 0
    for entry in entries:
        score = f"{entry.analysis.score:g}" if entry.analysis else "-"
        metrics = entry.metrics
        print(
            f"{entry.entry_id}  {entry.created_at}  {entry.source or '-'}  "
            f"symmetry={metrics.symmetry_vertical.value}/{metrics.symmetry_horizontal.value}  "
            f"density={metrics.density:.2f}%  score={score}"
        )
    return 0


def main(argv: Iterable[str] | None = None) -> int:
    """Entry point for the CLI."""
    args = parse_args(argv)
    config = settings
    level_name = (args.log_level or config.log_level).upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )

    if args.show_archive:
        return _show_archive(Path(args.show_archive))

    sources = list(args.input)
    if args.list:
        sources.extend(read_input(Path(args.list)))
    print(f"[input] {len(sources)} image sources")

    out_dir = Path(args.out)
    out_dir.mkdir(parents=True, exist_ok=True)
    workers = args.workers if args.workers is not None else config.workers
    extractor = MetricExtractor(workers=max(1, workers))
    client = InterpretationClient(config=config) if args.analyze else None
    archive = ArchiveStore(args.archive) if args.archive else None

    rows: list[tuple[str, LogoMetrics]] = []
    labels = _unique_labels(sources)
    for source, label in tqdm(
        list(zip(sources, labels)), desc="Extracting metrics", unit="image", leave=False
    ):
        metrics = _process_source(
            source, label, args, config, extractor, out_dir, client, archive
        )
        if metrics is not None:
            rows.append((label, metrics))

    write_metrics_table(rows, out_dir)

    total = len(sources)
    extracted = len(rows)
    coverage_pct = (extracted / total * 100.0) if total else 0.0
    print(f"Total images: {total}")
    print(f"Extracted: {extracted} (coverage {coverage_pct:.1f}%)")
    print(f"Failed: {total - extracted}")
    return 0 if extracted or not total else 1


if __name__ == "__main__":
    raise SystemExit(main())
