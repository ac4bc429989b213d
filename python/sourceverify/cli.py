"""Command-line interface for SourceVerify."""
import argparse
import json
import logging
import sys
from pathlib import Path

from .errors import CalibrationError, InvalidInput
from .pipeline import SignalPipeline
from .registry import SignalRegistry
from .scoring import describe_table


def _configure_logging(verbose: bool):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


def analyze_command(args):
    """Analyze an image file command."""
    content_path = Path(args.file)
    if not content_path.exists():
        print(f"Error: File not found: {args.file}", file=sys.stderr)
        sys.exit(1)

    try:
        pipeline = SignalPipeline(
            max_workers=args.workers,
            timeout=args.timeout,
            calibration=args.calibration,
        )
        result = pipeline.analyze_file(content_path)
    except InvalidInput as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)
    except CalibrationError as e:
        print(f"Error: Invalid calibration: {e}", file=sys.stderr)
        sys.exit(2)
    except OSError as e:
        print(f"Error: Cannot read file: {e}", file=sys.stderr)
        sys.exit(1)

    if args.json:
        print(json.dumps(result.to_dict(), indent=2, ensure_ascii=False))
        sys.exit(0)

    print(f"\n{'='*60}")
    print("  AI Image Analysis Report")
    print(f"{'='*60}\n")
    print(f"File: {content_path.resolve()}")
    print(f"Verdict: {result.verdict.value.upper()}")
    print(f"AI score: {result.ai_score:.1f}")
    print(f"Confidence: {result.confidence:.1f}%")
    print(f"Processing time: {result.processing_time_ms} ms")

    leaning = sorted(
        (s for s in result.signals if not s.insufficient_data),
        key=lambda s: abs(s.score - 50) * s.weight,
        reverse=True,
    )
    if leaning:
        print("\nStrongest signals:")
        for signal in leaning[:args.top]:
            print(f"  {signal.icon} {signal.name}: {signal.score:.0f} (weight {signal.weight:g})")
            print(f"      {signal.description}")

    skipped = [s for s in result.signals if s.insufficient_data]
    if skipped:
        print(f"\nInsufficient data: {len(skipped)} signal(s)")

    if result.faults:
        print("\nFaults:")
        for fault in result.faults:
            print(f"  • {fault.analyzer_id}: {fault.error_type}: {fault.message}")

    print(f"\n{'='*60}\n")
    sys.exit(0)


def signals_command(args):
    """List registered analyzers command."""
    try:
        registry = SignalRegistry.from_calibration(args.calibration)
    except CalibrationError as e:
        print(f"Error: Invalid calibration: {e}", file=sys.stderr)
        sys.exit(2)

    if args.json:
        print(json.dumps([
            {
                "id": analyzer.id,
                "name": analyzer.config.name,
                "category": analyzer.category.value,
                "weight": analyzer.weight,
                "minSize": analyzer.config.min_size,
                "scoring": describe_table(analyzer.config.table),
            }
            for analyzer in registry
        ], indent=2, ensure_ascii=False))
        return

    for info in registry.list_analyzers():
        print(f"{info.id:<28} {info.category.value:<12} {info.weight:>5g}")
    print(f"\n{len(registry)} analyzers, total weight {registry.total_weight:g}")


def main(argv=None):
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="sourceverify",
        description="Estimate whether an image is AI-generated from statistical signals"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Analyze command
    analyze_parser = subparsers.add_parser("analyze", help="Analyze an image file")
    analyze_parser.add_argument("file", help="Image file to analyze")
    analyze_parser.add_argument("-j", "--json", action="store_true", help="Output as JSON")
    analyze_parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")
    analyze_parser.add_argument("-w", "--workers", type=int, default=1,
                                help="Number of parallel threads for analysis (default: 1)")
    analyze_parser.add_argument("-t", "--timeout", type=float, default=None,
                                help="Deadline in seconds for all analyzers")
    analyze_parser.add_argument("-c", "--calibration", help="Path to a calibration JSON file")
    analyze_parser.add_argument("-n", "--top", type=int, default=10,
                                help="Number of signals to show in the report (default: 10)")
    analyze_parser.set_defaults(func=analyze_command)

    # Signals command
    signals_parser = subparsers.add_parser("signals", help="List registered analyzers")
    signals_parser.add_argument("-j", "--json", action="store_true", help="Output as JSON")
    signals_parser.add_argument("-c", "--calibration", help="Path to a calibration JSON file")
    signals_parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")
    signals_parser.set_defaults(func=signals_command)

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    _configure_logging(args.verbose)
    args.func(args)


if __name__ == "__main__":
    main()
