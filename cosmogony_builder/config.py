"""
Configuration management for the cosmogony builder.

This module provides dataclasses for managing build configuration (input and
output paths, geometry tolerances, parallelism) and for tracking processing
statistics.
"""

from dataclasses import dataclass, field
from typing import Dict, Optional
import os
from pathlib import Path


VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class BuilderConfig:
    """Configuration class for hierarchy construction parameters."""

    # Input relations file (JSON array or JSON lines); optional for in-memory builds
    input_file: Optional[str] = None

    # Output configuration
    output_directory: Optional[str] = None

    # Worker pool size; 1 runs every pass in-process
    workers: int = 1

    # Intersection-over-union at or above which same-level siblings are duplicates
    duplicate_iou_threshold: float = 0.98

    # Minimum overlap, as a fraction of the smaller sibling, worth flagging
    overlap_min_ratio: float = 0.01

    # Decimal places kept on coordinates before joining fragments
    coordinate_precision: int = 7

    # Rings with an area at or below this value are dropped as degenerate
    min_ring_area: float = 0.0

    # Largest fraction of its area an invalid geometry may lose to repair
    max_repair_area_loss: float = 0.5

    # Exclave check: flag children mostly outside their assigned parent
    verify_polygon_containment: bool = False
    polygon_containment_ratio: float = 0.9

    # Progress bars for the parallel passes
    show_progress: bool = True

    # Logging configuration
    log_level: str = "INFO"
    log_file: Optional[str] = None

    def __post_init__(self):
        """Validate configuration after initialization."""
        self._validate_paths()
        self._validate_thresholds()
        self._validate_runtime()
        self._ensure_output_directory()

    def _validate_paths(self):
        """Validate that the input file exists when one is configured."""
        if self.input_file is not None and not os.path.exists(self.input_file):
            raise FileNotFoundError(f"Relations file not found: {self.input_file}")

    def _validate_thresholds(self):
        """Validate ratio and tolerance settings."""
        ratios = [
            ('duplicate_iou_threshold', self.duplicate_iou_threshold),
            ('overlap_min_ratio', self.overlap_min_ratio),
            ('polygon_containment_ratio', self.polygon_containment_ratio),
            ('max_repair_area_loss', self.max_repair_area_loss),
        ]

        for name, value in ratios:
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"{name} must be between 0 and 1: {value}")

        if self.duplicate_iou_threshold == 0.0:
            raise ValueError("duplicate_iou_threshold must be greater than 0")

        if self.min_ring_area < 0:
            raise ValueError(f"min_ring_area cannot be negative: {self.min_ring_area}")

        if not 0 <= self.coordinate_precision <= 15:
            raise ValueError(
                f"coordinate_precision must be between 0 and 15: {self.coordinate_precision}"
            )

    def _validate_runtime(self):
        """Validate worker count and logging level."""
        if self.workers < 1:
            raise ValueError(f"workers must be at least 1: {self.workers}")

        self.log_level = self.log_level.upper()
        if self.log_level not in VALID_LOG_LEVELS:
            raise ValueError(
                f"log_level must be one of {', '.join(VALID_LOG_LEVELS)}: {self.log_level}"
            )

    def _ensure_output_directory(self):
        """Create output directory if it doesn't exist."""
        if self.output_directory:
            Path(self.output_directory).mkdir(parents=True, exist_ok=True)

    @classmethod
    def from_dict(cls, config_dict: Dict) -> 'BuilderConfig':
        """Create configuration from dictionary."""
        return cls(**config_dict)

    def to_dict(self) -> Dict:
        """Convert configuration to dictionary."""
        return {
            'input_file': self.input_file,
            'output_directory': self.output_directory,
            'workers': self.workers,
            'duplicate_iou_threshold': self.duplicate_iou_threshold,
            'overlap_min_ratio': self.overlap_min_ratio,
            'coordinate_precision': self.coordinate_precision,
            'min_ring_area': self.min_ring_area,
            'max_repair_area_loss': self.max_repair_area_loss,
            'verify_polygon_containment': self.verify_polygon_containment,
            'polygon_containment_ratio': self.polygon_containment_ratio,
            'show_progress': self.show_progress,
            'log_level': self.log_level,
            'log_file': self.log_file
        }


@dataclass
class ProcessingStats:
    """Statistics tracking for a hierarchy build."""

    relations_read: int = 0
    relations_skipped: int = 0
    zones_assembled: int = 0
    zones_dropped: Dict[str, int] = field(default_factory=dict)
    containment_failures: int = 0
    roots: int = 0
    duplicates_collapsed: int = 0
    overlaps_flagged: int = 0
    level_repairs: int = 0
    zones_emitted: int = 0
    zones_per_level: Dict[int, int] = field(default_factory=dict)
    phase_durations: Dict[str, float] = field(default_factory=dict)
    processing_time: float = 0.0

    def record_drop(self, reason: str, count: int = 1):
        """Count zones dropped for a given reason."""
        self.zones_dropped[reason] = self.zones_dropped.get(reason, 0) + count

    def total_dropped(self) -> int:
        """Get total number of dropped zones across all reasons."""
        return sum(self.zones_dropped.values())

    def get_assembly_rate(self) -> float:
        """Calculate the percentage of administrative relations that assembled."""
        candidates = self.relations_read - self.relations_skipped
        if candidates <= 0:
            return 0.0

        return (self.zones_assembled / candidates) * 100

    def get_emission_rate(self) -> float:
        """Calculate the percentage of read relations that reached the output."""
        if self.relations_read == 0:
            return 0.0

        return (self.zones_emitted / self.relations_read) * 100

    def to_dict(self) -> Dict:
        """Convert statistics to dictionary."""
        return {
            'relations_read': self.relations_read,
            'relations_skipped': self.relations_skipped,
            'zones_assembled': self.zones_assembled,
            'zones_dropped': dict(self.zones_dropped),
            'containment_failures': self.containment_failures,
            'roots': self.roots,
            'duplicates_collapsed': self.duplicates_collapsed,
            'overlaps_flagged': self.overlaps_flagged,
            'level_repairs': self.level_repairs,
            'zones_emitted': self.zones_emitted,
            'zones_per_level': dict(sorted(self.zones_per_level.items())),
            'phase_durations': dict(self.phase_durations),
            'processing_time': self.processing_time
        }
