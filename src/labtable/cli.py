#!/usr/bin/env python
"""
Command-line interface for lab-report table reconstruction.

Usage:
    labtable --input <pdf_image_or_words_json> --output <output_dir> [options]

Examples:
    # Reconstruct the table of a scanned report
    labtable --input report.pdf --output ./output --format all

    # Rebuild a table from previously captured OCR words
    labtable --input words.json --output ./output --format markdown

    # Debug mode with word box visualization
    labtable --input report.jpg --output ./output --debug
"""

import argparse
import logging
import sys
import threading
import time
from pathlib import Path

from . import __version__
from .config import PipelineConfig, get_config, setup_logging

logger = logging.getLogger("labtable")

FORMAT_CHOICES = ["html", "markdown", "csv", "tsv", "json", "docx", "all"]


def setup_argparser() -> argparse.ArgumentParser:
    """Create argument parser."""
    parser = argparse.ArgumentParser(
        prog="labtable",
        description="Lab Report Table Reconstruction - rebuild result tables from scanned lab reports",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  Reconstruct a PDF report and export every format:
    labtable --input report.pdf --output ./output --format all

  Rebuild from an OCR word dump (JSON list of {text, bbox}):
    labtable --input words.json --output ./output

  One table per page instead of one merged table:
    labtable --input report.pdf --output ./output --per-page
        """
    )

    parser.add_argument(
        "--input", "-i",
        required=True,
        help="Input PDF, image, or JSON file of recognized words"
    )

    parser.add_argument(
        "--output", "-o",
        default="output",
        help="Output directory for generated files (default: ./output)"
    )

    parser.add_argument(
        "--format", "-f",
        nargs="+",
        default=["html", "tsv"],
        choices=FORMAT_CHOICES,
        help="Output format(s) (default: html tsv)"
    )

    parser.add_argument(
        "--words",
        action="store_true",
        help="Treat the input as a JSON word dump regardless of its extension"
    )

    parser.add_argument(
        "--lang",
        default=None,
        help="Tesseract language(s), e.g. 'eng' or 'nld+eng' (default: eng)"
    )

    parser.add_argument(
        "--row-tolerance",
        type=float,
        default=None,
        help="Row clustering tolerance in pixels at baseline resolution (default: 10)"
    )

    parser.add_argument(
        "--gap-threshold",
        type=float,
        default=None,
        help="Column gap threshold in pixels at baseline resolution (default: 20)"
    )

    parser.add_argument(
        "--render-scale",
        type=float,
        default=None,
        help="PDF render scale, 1.0 == 72 dpi (default: 1.5)"
    )

    parser.add_argument(
        "--no-enhance",
        action="store_true",
        help="Disable image enhancement before OCR"
    )

    parser.add_argument(
        "--no-text-layer",
        action="store_true",
        help="Always OCR PDF pages, even when they carry embedded text"
    )

    parser.add_argument(
        "--per-page",
        action="store_true",
        help="Build one table per page instead of one merged table"
    )

    parser.add_argument(
        "--clean-text",
        action="store_true",
        help="Apply OCR-noise cleanup to cell text"
    )

    parser.add_argument(
        "--max-pages",
        type=int,
        default=None,
        help="Process at most this many PDF pages"
    )

    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug mode (outputs debug images with word boxes)"
    )

    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose output"
    )

    parser.add_argument(
        "--quiet", "-q",
        action="store_true",
        help="Suppress non-error output"
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}"
    )

    return parser


def build_config(args) -> PipelineConfig:
    """Apply command-line overrides on top of the environment config."""
    config = get_config()

    if args.lang:
        config.ocr.language = args.lang
    if args.row_tolerance is not None:
        if args.row_tolerance <= 0:
            raise ValueError("--row-tolerance must be positive")
        config.reconstruction.row.tolerance = args.row_tolerance
    if args.gap_threshold is not None:
        if args.gap_threshold < 0:
            raise ValueError("--gap-threshold must not be negative")
        config.reconstruction.column.gap_threshold = args.gap_threshold
    if args.render_scale is not None:
        if args.render_scale <= 0:
            raise ValueError("--render-scale must be positive")
        config.render.scale = args.render_scale
    if args.no_enhance:
        config.enhance.enabled = False
    if args.no_text_layer:
        config.render.use_text_fast_path = False
    if args.per_page:
        config.merge_pages = False
    if args.clean_text:
        config.reconstruction.cleanup.enabled = True
    if args.max_pages:
        config.max_pages = args.max_pages
    if args.debug:
        config.debug_mode = True

    return config


def check_dependencies(input_type: str) -> bool:
    """Check if the dependencies needed for this input are available."""
    missing = []
    optional_missing = []

    try:
        import numpy  # noqa: F401
    except ImportError:
        missing.append("numpy")

    # Word dumps only need the reconstruction core
    if input_type in ("pdf", "image"):
        try:
            import cv2  # noqa: F401
        except ImportError:
            missing.append("opencv-python")

        try:
            import pytesseract
            try:
                pytesseract.get_tesseract_version()
            except Exception:
                missing.append("tesseract-ocr (system package)")
        except ImportError:
            missing.append("pytesseract")

    if input_type == "pdf":
        try:
            import pdf2image  # noqa: F401
        except ImportError:
            missing.append("pdf2image (for PDF rendering)")

        try:
            import fitz  # noqa: F401
        except ImportError:
            optional_missing.append("PyMuPDF (for the embedded-text fast path)")

    try:
        import docx  # noqa: F401
    except ImportError:
        optional_missing.append("python-docx (for DOCX export)")

    if missing:
        logger.error("Missing required dependencies:")
        for dep in missing:
            logger.error(f"  - {dep}")
        logger.error("\nInstall with: pip install -e .")
        return False

    if optional_missing:
        logger.warning("Missing optional dependencies (some features may be limited):")
        for dep in optional_missing:
            logger.warning(f"  - {dep}")

    return True


def run_pipeline(args, input_type: str, cancel_event: threading.Event) -> int:
    """Run the reconstruction pipeline and export the result."""
    from .utils.assembler import LabReportAssembler
    from .utils.builder import TableBuilder
    from .utils.export import GridExporter
    from .utils.io import ensure_dir, load_words_json, save_json

    start_time = time.time()
    config = build_config(args)

    input_path = Path(args.input)
    output_dir = ensure_dir(args.output)
    exporter = GridExporter(output_dir, input_path.stem)

    report = None
    if input_type == "words":
        words = load_words_json(input_path)
        logger.info(f"Loaded {len(words)} words from {input_path}")
        tables = [TableBuilder(config.reconstruction).build(words)]
    else:
        assembler = LabReportAssembler(config, output_dir=output_dir)
        report = assembler.process_file(input_path, cancel_event)
        save_json(report.to_dict(), output_dir / f"{input_path.stem}_report.json")
        with open(output_dir / f"{input_path.stem}_analysis.txt", 'w', encoding='utf-8') as f:
            f.write(report.analysis_text())
        tables = report.tables

    if not tables:
        logger.warning("No table could be reconstructed")

    exported = {}
    for i, table in enumerate(tables):
        if len(tables) > 1:
            exporter.base_name = f"{input_path.stem}_table_{i + 1:02d}"
        exported.update({f"{fmt}[{i}]": path for fmt, path in exporter.export(table, args.format).items()})

    elapsed = time.time() - start_time

    if not args.quiet:
        print("\n" + "=" * 60)
        print("TABLE RECONSTRUCTION COMPLETE")
        print("=" * 60)
        print(f"Source: {input_path}")
        print(f"Output: {output_dir}")
        if report is not None:
            sources = ", ".join(f"p{p.page_number}:{p.source}" for p in report.pages)
            print(f"Pages processed: {len(report.pages)} ({sources})")
        print(f"Processing time: {elapsed:.2f}s")
        for i, table in enumerate(tables):
            print(f"  Table {i + 1}: {table.num_rows} rows x {table.num_cols} columns, "
                  f"header rows {sorted(table.header_row_indices)}")
        print(f"Files written: {len(exported)}")
        print("=" * 60)

    return 0


def main(argv=None):
    """Main entry point."""
    parser = setup_argparser()
    args = parser.parse_args(argv)

    if args.verbose:
        setup_logging(logging.DEBUG)
    elif args.quiet:
        setup_logging(logging.ERROR)
    else:
        setup_logging(logging.INFO)

    from .utils.assembler import ProcessingCancelled
    from .utils.io import detect_input_type

    input_path = Path(args.input)
    if not input_path.exists():
        logger.error(f"Input file not found: {input_path}")
        sys.exit(1)

    input_type = "words" if args.words else detect_input_type(input_path)
    if input_type == "unknown":
        logger.error(f"Unsupported input type: {input_path}")
        sys.exit(1)

    if not check_dependencies(input_type):
        sys.exit(1)

    cancel_event = threading.Event()
    try:
        exit_code = run_pipeline(args, input_type, cancel_event)
        sys.exit(exit_code)
    except KeyboardInterrupt:
        cancel_event.set()
        logger.info("Interrupted by user")
        sys.exit(130)
    except ProcessingCancelled:
        logger.info("Processing cancelled")
        sys.exit(130)
    except Exception as e:
        logger.error(f"Unexpected error: {e}")
        if args.debug:
            raise
        sys.exit(1)


if __name__ == "__main__":
    main()
