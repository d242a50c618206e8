"""
Logging configuration for the cosmogony builder.

This module provides the logging wrapper used by the build orchestrator and
the command-line entry point, with configurable levels, optional file output
and phase-oriented helpers.
"""

import logging
import sys
from pathlib import Path
from typing import Optional
from datetime import datetime


class CosmogonyLogger:
    """Custom logger for hierarchy build operations."""

    def __init__(self, name: str = "cosmogony_builder", level: str = "INFO",
                 log_file: Optional[str] = None):
        """
        Initialize the build logger.

        Args:
            name: Logger name
            level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
            log_file: Optional file path for log output
        """
        self.logger = logging.getLogger(name)
        self.logger.setLevel(getattr(logging, level.upper()))

        # Clear any existing handlers
        self.logger.handlers.clear()

        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(formatter)
        self.logger.addHandler(console_handler)

        if log_file:
            self._setup_file_handler(log_file, formatter)

    def _setup_file_handler(self, log_file: str, formatter: logging.Formatter):
        """Set up file logging handler."""
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_file, mode='a', encoding='utf-8')
        file_handler.setFormatter(formatter)
        self.logger.addHandler(file_handler)

    def info(self, message: str):
        """Log info message."""
        self.logger.info(message)

    def debug(self, message: str):
        """Log debug message."""
        self.logger.debug(message)

    def warning(self, message: str):
        """Log warning message."""
        self.logger.warning(message)

    def error(self, message: str):
        """Log error message."""
        self.logger.error(message)

    def critical(self, message: str):
        """Log critical message."""
        self.logger.critical(message)

    def log_processing_start(self, relations_count: int, workers: int):
        """Log the start of a build with input counts."""
        self.info("=" * 60)
        self.info("COSMOGONY BUILD STARTED")
        self.info("=" * 60)
        self.info(f"Processing {relations_count:,} boundary relations")
        self.info(f"Worker pool size: {workers}")
        self.info(f"Started at: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")

    def log_processing_complete(self, stats):
        """Log build completion with statistics."""
        self.info("=" * 60)
        self.info("COSMOGONY BUILD COMPLETED")
        self.info("=" * 60)
        self.info(f"Relations read: {stats.relations_read:,}")
        self.info(f"Zones assembled: {stats.zones_assembled:,} ({stats.get_assembly_rate():.2f}%)")

        for reason, count in sorted(stats.zones_dropped.items()):
            self.info(f"Zones dropped ({reason}): {count:,}")

        self.info(f"Duplicates collapsed: {stats.duplicates_collapsed:,}")
        self.info(f"Overlaps flagged: {stats.overlaps_flagged:,}")
        self.info(f"Level repairs: {stats.level_repairs:,}")
        self.info(f"Roots: {stats.roots:,}")
        self.info(f"Zones emitted: {stats.zones_emitted:,}")
        self.info(f"Processing time: {stats.processing_time:.2f} seconds")
        self.info(f"Completed at: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")

    def log_phase_start(self, phase_name: str):
        """Log the start of a processing phase."""
        self.info("-" * 40)
        self.info(f"Starting {phase_name}")
        self.info("-" * 40)

    def log_phase_complete(self, phase_name: str, count: int, duration: float):
        """Log the completion of a processing phase."""
        self.info(f"Completed {phase_name}")
        self.info(f"Zones processed: {count:,}")
        self.info(f"Duration: {duration:.2f} seconds")

    def log_data_quality_warning(self, message: str):
        """Log data quality warnings."""
        self.warning(f"DATA QUALITY: {message}")

    def log_file_operation(self, operation: str, file_path: str, record_count: int):
        """Log file operations."""
        self.info(f"{operation}: {file_path} ({record_count:,} records)")


def setup_logging(config) -> CosmogonyLogger:
    """
    Set up logging based on configuration.

    Args:
        config: BuilderConfig instance

    Returns:
        Configured CosmogonyLogger instance
    """
    log_file = None
    if config.log_file:
        log_file = config.log_file
    elif config.output_directory:
        # Create default log file in output directory
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        log_file = Path(config.output_directory) / f"cosmogony_log_{timestamp}.txt"

    return CosmogonyLogger(
        name="cosmogony_builder",
        level=config.log_level,
        log_file=str(log_file) if log_file else None
    )
