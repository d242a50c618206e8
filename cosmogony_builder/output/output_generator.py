"""
Output generation and file management for the cosmogony builder.

This module provides the OutputGenerator class for writing the emitted
hierarchy, the data-quality warnings and a summary report, with timestamped
file names.
"""

import json
import os
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

import pandas as pd

from ..builder import CosmogonyResult
from ..config import BuilderConfig
from ..exceptions import OutputGenerationError
from ..logging_config import CosmogonyLogger
from ..models import DataQualityWarning, ZoneRecord


WARNING_COLUMNS = ['kind', 'zone_id', 'related_ids', 'severity', 'message']


class OutputGenerator:
    """
    Generates the output files of a build.

    The zone file holds one JSON record per line in emission order, so a
    consumer can always resolve a record's parent from lines it has already
    read.
    """

    def __init__(self, config: BuilderConfig, logger: Optional[CosmogonyLogger] = None):
        """
        Initialize the OutputGenerator.

        Args:
            config: Configuration object with output directory and settings
            logger: Optional logger instance for logging operations
        """
        if not config.output_directory:
            raise OutputGenerationError("No output directory configured")

        self.config = config
        self.logger = logger or CosmogonyLogger()
        self.timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")

        Path(self.config.output_directory).mkdir(parents=True, exist_ok=True)

        self.file_patterns = {
            'zones': 'zones_{timestamp}.jsonl',
            'warnings': 'data_quality_warnings_{timestamp}.csv',
            'summary_report': 'cosmogony_summary_report_{timestamp}.txt'
        }

    def generate_all_outputs(self, result: CosmogonyResult) -> Dict[str, str]:
        """
        Generate all output files for a build.

        Args:
            result: Result of CosmogonyBuilder.build

        Returns:
            Dictionary mapping output type to generated file path
        """
        self.logger.info("Starting output file generation")
        generated_files = {}

        try:
            generated_files['zones'] = self.write_zones(result.zones)
            generated_files['warnings'] = self.write_warnings(result.warnings)
            generated_files['summary_report'] = self.write_summary_report(result)

            self.logger.info(f"Generated {len(generated_files)} output files")
            return generated_files

        except Exception as e:
            self.logger.error(f"Error generating output files: {e}")
            raise

    def _path_for(self, output_type: str) -> str:
        filename = self.file_patterns[output_type].format(timestamp=self.timestamp)
        return os.path.join(self.config.output_directory, filename)

    def write_zones(self, zones: List[ZoneRecord]) -> str:
        """
        Write zone records as JSON lines.

        Args:
            zones: Records in emission order

        Returns:
            Path to the generated file

        Raises:
            OutputGenerationError: If the file cannot be written
        """
        file_path = self._path_for('zones')
        try:
            with open(file_path, 'w', encoding='utf-8') as f:
                for record in zones:
                    f.write(json.dumps(record.to_dict(), ensure_ascii=False))
                    f.write('\n')
        except (OSError, TypeError, ValueError) as e:
            raise OutputGenerationError(
                f"Failed to write zones: {e}",
                output_type='zones',
                output_path=file_path,
                record_count=len(zones),
                original_error=e
            )

        self.logger.log_file_operation("Generated zones file", file_path, len(zones))
        return file_path

    def write_warnings(self, warnings: List[DataQualityWarning]) -> str:
        """
        Write data-quality warnings as CSV.

        Args:
            warnings: Warnings in deterministic order

        Returns:
            Path to the generated file
        """
        file_path = self._path_for('warnings')
        df = self.warnings_dataframe(warnings)
        try:
            df.to_csv(file_path, index=False, encoding='utf-8')
        except OSError as e:
            raise OutputGenerationError(
                f"Failed to write warnings: {e}",
                output_type='warnings',
                output_path=file_path,
                record_count=len(df),
                original_error=e
            )

        self.logger.log_file_operation("Generated warnings file", file_path, len(df))
        return file_path

    @staticmethod
    def warnings_dataframe(warnings: List[DataQualityWarning]) -> pd.DataFrame:
        """Build the warnings table; empty input gives an empty table with headers."""
        if not warnings:
            return pd.DataFrame(columns=WARNING_COLUMNS)

        df = pd.DataFrame([warning.to_dict() for warning in warnings], columns=WARNING_COLUMNS)
        df['zone_id'] = df['zone_id'].astype('Int64')
        return df

    @staticmethod
    def zones_dataframe(zones: List[ZoneRecord]) -> pd.DataFrame:
        """Tabular view of the emitted zones without geometry."""
        columns = ['zone_id', 'parent_id', 'admin_level', 'name', 'depth', 'issue_count']
        if not zones:
            return pd.DataFrame(columns=columns)

        rows = [[record.zone_id, record.parent_id, record.admin_level, record.name,
                 record.depth, len(record.issues)] for record in zones]
        df = pd.DataFrame(rows, columns=columns)
        df['parent_id'] = df['parent_id'].astype('Int64')
        return df

    def write_summary_report(self, result: CosmogonyResult) -> str:
        """
        Write the text summary report.

        Args:
            result: Result of the build

        Returns:
            Path to generated summary report file
        """
        file_path = self._path_for('summary_report')
        stats = result.stats
        zones_df = self.zones_dataframe(result.zones)
        warnings_df = self.warnings_dataframe(result.warnings)

        try:
            with open(file_path, 'w', encoding='utf-8') as f:
                f.write("COSMOGONY SUMMARY REPORT\n")
                f.write("=" * 50 + "\n\n")

                f.write(f"Report Generated: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}\n")
                f.write(f"Processing Time: {stats.processing_time:.2f} seconds\n")
                f.write("Configuration:\n")
                f.write(f"  Input File: {self.config.input_file or 'in-memory relations'}\n")
                f.write(f"  Workers: {self.config.workers}\n")
                f.write(f"  Duplicate IoU Threshold: {self.config.duplicate_iou_threshold}\n")
                f.write(f"  Overlap Min Ratio: {self.config.overlap_min_ratio}\n")
                f.write(f"  Polygon Containment Check: "
                        f"{'enabled' if self.config.verify_polygon_containment else 'disabled'}\n\n")

                f.write("PROCESSING SUMMARY\n")
                f.write("-" * 20 + "\n")
                f.write(f"Relations Read: {stats.relations_read:,}\n")
                f.write(f"Relations Skipped: {stats.relations_skipped:,}\n")
                f.write(f"Zones Assembled: {stats.zones_assembled:,} ({stats.get_assembly_rate():.2f}%)\n")
                for reason, count in sorted(stats.zones_dropped.items()):
                    f.write(f"Zones Dropped ({reason}): {count:,}\n")
                f.write(f"Duplicates Collapsed: {stats.duplicates_collapsed:,}\n")
                f.write(f"Overlaps Flagged: {stats.overlaps_flagged:,}\n")
                f.write(f"Level Repairs: {stats.level_repairs:,}\n")
                f.write(f"Roots: {stats.roots:,}\n")
                f.write(f"Zones Emitted: {stats.zones_emitted:,} ({stats.get_emission_rate():.2f}%)\n\n")

                f.write("ZONES PER ADMIN LEVEL\n")
                f.write("-" * 21 + "\n")
                if not zones_df.empty:
                    for level, count in zones_df['admin_level'].value_counts().sort_index().items():
                        f.write(f"Level {level}: {count:,}\n")
                f.write("\n")

                f.write("HIERARCHY DEPTH DISTRIBUTION\n")
                f.write("-" * 28 + "\n")
                if not zones_df.empty:
                    for depth, count in zones_df['depth'].value_counts().sort_index().items():
                        f.write(f"Depth {depth}: {count:,}\n")
                f.write("\n")

                f.write("DATA QUALITY WARNINGS\n")
                f.write("-" * 21 + "\n")
                f.write(f"Total Warnings: {len(warnings_df):,}\n")
                if not warnings_df.empty:
                    for kind, count in warnings_df['kind'].value_counts().sort_index().items():
                        f.write(f"{kind}: {count:,}\n")
                f.write("\n")

                if stats.phase_durations:
                    f.write("PHASE DURATIONS\n")
                    f.write("-" * 15 + "\n")
                    for phase, duration in stats.phase_durations.items():
                        f.write(f"{phase}: {duration:.2f} seconds\n")

        except OSError as e:
            raise OutputGenerationError(
                f"Failed to write summary report: {e}",
                output_type='summary_report',
                output_path=file_path,
                original_error=e
            )

        self.logger.info(f"Generated summary report: {file_path}")
        return file_path

    def get_output_file_info(self) -> Dict[str, str]:
        """
        Get information about output file naming patterns.

        Returns:
            Dictionary with file pattern information
        """
        return {
            'timestamp': self.timestamp,
            'output_directory': self.config.output_directory,
            'file_patterns': self.file_patterns.copy()
        }
