"""
Main entry point for the cosmogony builder.

This script provides the command-line interface for building an
administrative zone hierarchy from a file of boundary relations.
"""

import argparse
import gc
import sys
import time
from pathlib import Path

import psutil

# Add the current directory to Python path for imports
sys.path.insert(0, str(Path(__file__).parent))

from cosmogony_builder.config import BuilderConfig
from cosmogony_builder.logging_config import setup_logging
from cosmogony_builder.builder import CosmogonyBuilder
from cosmogony_builder.output.output_generator import OutputGenerator
from cosmogony_builder.exceptions import CosmogonyError, InvariantViolationError


def parse_arguments(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Cosmogony Builder - Build an administrative zone hierarchy from boundary relations"
    )

    parser.add_argument(
        "--input",
        required=True,
        help="Path to relations file (JSON array or JSON lines)"
    )

    parser.add_argument(
        "--output",
        required=True,
        help="Output directory for results"
    )

    parser.add_argument(
        "--workers",
        type=int,
        default=1,
        help="Number of worker threads (default: 1)"
    )

    parser.add_argument(
        "--duplicate-threshold",
        type=float,
        default=0.98,
        help="Intersection over union at which siblings are duplicates (default: 0.98)"
    )

    parser.add_argument(
        "--overlap-min-ratio",
        type=float,
        default=0.01,
        help="Smallest sibling overlap reported as a warning (default: 0.01)"
    )

    parser.add_argument(
        "--coordinate-precision",
        type=int,
        default=7,
        help="Decimals kept on coordinates when joining fragments (default: 7)"
    )

    parser.add_argument(
        "--verify-polygon-containment",
        action="store_true",
        help="Flag children whose polygon lies mostly outside their parent"
    )

    parser.add_argument(
        "--polygon-containment-ratio",
        type=float,
        default=0.9,
        help="Minimum inside fraction for the containment check (default: 0.9)"
    )

    parser.add_argument(
        "--max-repair-area-loss",
        type=float,
        default=0.5,
        help="Largest fraction of its area an invalid boundary may lose to repair (default: 0.5)"
    )

    parser.add_argument(
        "--no-progress",
        action="store_true",
        help="Disable progress bars"
    )

    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default="INFO",
        help="Logging level (default: INFO)"
    )

    return parser.parse_args(argv)


class PerformanceMonitor:
    """Monitor and log performance metrics during application execution."""

    def __init__(self, logger=None):
        """Initialize performance monitor."""
        self.logger = logger
        self.process = psutil.Process()
        self.start_time = time.time()
        self.checkpoints = {}
        self.memory_snapshots = []

    def _report(self, message: str):
        if self.logger:
            self.logger.info(message)
        else:
            print(message)

    def log_memory_usage(self, checkpoint_name: str):
        """Log current memory usage."""
        memory_mb = self.process.memory_info().rss / 1024 / 1024

        snapshot = {
            'checkpoint': checkpoint_name,
            'timestamp': time.time(),
            'memory_mb': memory_mb,
            'memory_percent': self.process.memory_percent()
        }
        self.memory_snapshots.append(snapshot)

        self._report(f"Memory usage at {checkpoint_name}: {memory_mb:.1f} MB ({snapshot['memory_percent']:.1f}%)")

    def start_checkpoint(self, name: str):
        """Start timing a checkpoint."""
        self.checkpoints[name] = {'start': time.time()}
        self.log_memory_usage(f"{name}_start")

    def end_checkpoint(self, name: str):
        """End timing a checkpoint."""
        if name in self.checkpoints:
            end_time = time.time()
            duration = end_time - self.checkpoints[name]['start']
            self.checkpoints[name]['end'] = end_time
            self.checkpoints[name]['duration'] = duration

            self.log_memory_usage(f"{name}_end")
            self._report(f"Checkpoint {name} completed in {duration:.2f} seconds")

    def get_peak_memory(self) -> float:
        """Get peak memory usage in MB."""
        if not self.memory_snapshots:
            return 0.0
        return max(snapshot['memory_mb'] for snapshot in self.memory_snapshots)

    def get_memory_growth(self) -> float:
        """Get memory growth from start to end in MB."""
        if len(self.memory_snapshots) < 2:
            return 0.0
        return self.memory_snapshots[-1]['memory_mb'] - self.memory_snapshots[0]['memory_mb']

    def force_garbage_collection(self):
        """Force garbage collection and log memory impact."""
        before_memory = self.process.memory_info().rss / 1024 / 1024
        collected = gc.collect()
        after_memory = self.process.memory_info().rss / 1024 / 1024

        self._report(f"Garbage collection: freed {before_memory - after_memory:.1f} MB, "
                     f"collected {collected} objects")

    def get_performance_summary(self) -> dict:
        """Get comprehensive performance summary."""
        return {
            'total_execution_time': time.time() - self.start_time,
            'peak_memory_mb': self.get_peak_memory(),
            'memory_growth_mb': self.get_memory_growth(),
            'checkpoints': self.checkpoints.copy(),
            'memory_snapshots': len(self.memory_snapshots)
        }


def print_processing_summary(result):
    """Print a summary of build results to console."""
    stats = result.stats
    print("\n" + "=" * 60)
    print("COSMOGONY BUILD COMPLETED")
    print("=" * 60)

    print("\nProcessing Summary:")
    print(f"  Relations read: {stats.relations_read:,}")
    print(f"  Relations skipped: {stats.relations_skipped:,}")
    print(f"  Zones assembled: {stats.zones_assembled:,} ({stats.get_assembly_rate():.2f}%)")
    print(f"  Processing time: {stats.processing_time:.2f} seconds")

    print("\nHierarchy:")
    print(f"  Zones emitted: {stats.zones_emitted:,}")
    print(f"  Roots: {stats.roots:,}")
    for level, count in sorted(stats.zones_per_level.items()):
        print(f"  Level {level}: {count:,}")

    print("\nData Quality:")
    print(f"  Zones dropped: {stats.total_dropped():,}")
    print(f"  Duplicates collapsed: {stats.duplicates_collapsed:,}")
    print(f"  Overlaps flagged: {stats.overlaps_flagged:,}")
    print(f"  Level repairs: {stats.level_repairs:,}")
    for kind, count in result.warnings_by_kind().items():
        print(f"  {kind}: {count:,}")


def main(argv=None):
    """Main application entry point."""
    args = parse_arguments(argv)
    perf_monitor = None

    try:
        print("Cosmogony Builder Starting...")
        print(f"Relations file: {args.input}")
        print(f"Output directory: {args.output}")

        config = BuilderConfig(
            input_file=args.input,
            output_directory=args.output,
            workers=args.workers,
            duplicate_iou_threshold=args.duplicate_threshold,
            overlap_min_ratio=args.overlap_min_ratio,
            coordinate_precision=args.coordinate_precision,
            verify_polygon_containment=args.verify_polygon_containment,
            polygon_containment_ratio=args.polygon_containment_ratio,
            max_repair_area_loss=args.max_repair_area_loss,
            show_progress=not args.no_progress,
            log_level=args.log_level
        )

        logger = setup_logging(config)

        perf_monitor = PerformanceMonitor(logger.logger)
        perf_monitor.start_checkpoint("initialization")

        logger.info("Cosmogony Builder initialized")
        logger.info(f"Configuration: {config.to_dict()}")

        builder = CosmogonyBuilder(config, logger)
        output_generator = OutputGenerator(config, logger)

        perf_monitor.end_checkpoint("initialization")

        perf_monitor.start_checkpoint("hierarchy_build")
        print("Starting hierarchy build...")
        result = builder.run_complete_build()
        perf_monitor.end_checkpoint("hierarchy_build")

        perf_monitor.start_checkpoint("output_generation")
        print("Generating output files...")
        generated_files = output_generator.generate_all_outputs(result)
        perf_monitor.end_checkpoint("output_generation")

        perf_monitor.force_garbage_collection()

        print_processing_summary(result)

        print("\nGenerated Output Files:")
        for file_type, file_path in generated_files.items():
            if file_path:
                print(f"  {file_type}: {Path(file_path).name}")

        perf_summary = perf_monitor.get_performance_summary()
        print("\nPerformance Summary:")
        print(f"  Total execution time: {perf_summary['total_execution_time']:.2f} seconds")
        print(f"  Peak memory usage: {perf_summary['peak_memory_mb']:.1f} MB")
        print(f"  Memory growth: {perf_summary['memory_growth_mb']:.1f} MB")
        if perf_summary['checkpoints']:
            print("  Phase timings:")
            for checkpoint, timing in perf_summary['checkpoints'].items():
                if 'duration' in timing:
                    print(f"    {checkpoint}: {timing['duration']:.2f}s")

        print("Cosmogony build completed successfully!")
        logger.info("Application completed successfully")

    except InvariantViolationError as e:
        print(f"\nInvariant Violation: {e}", file=sys.stderr)
        for diagnostic in e.diagnostics:
            print(f"  {diagnostic}", file=sys.stderr)
        sys.exit(2)

    except CosmogonyError as e:
        print(f"\nBuild Error: {e}", file=sys.stderr)
        if e.error_code:
            print(f"Error code: {e.error_code}", file=sys.stderr)
        sys.exit(3)

    except FileNotFoundError as e:
        print(f"\nFile Error: {e}", file=sys.stderr)
        print("Please check that the relations file exists and is accessible.", file=sys.stderr)
        sys.exit(4)

    except KeyboardInterrupt:
        print("\nProcess interrupted by user", file=sys.stderr)
        sys.exit(130)

    except Exception as e:
        print(f"\nError: Unexpected error: {e}", file=sys.stderr)
        print("Please check the log files for more details.", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
