"""
Build orchestration for the cosmogony builder.

This module provides the CosmogonyBuilder class that runs every phase of a
hierarchy build in order (assembly, containment, duplicate resolution,
level repair, validation, emission) with a barrier between phases and
aggregates the results with statistics.
"""

import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from .config import BuilderConfig, ProcessingStats
from .data_loader import RelationLoader
from .exceptions import ConfigurationError
from .geometry.assembler import GeometryAssembler
from .hierarchy.containment_resolver import ContainmentResolver
from .hierarchy.context import BuildContext
from .hierarchy.duplicate_resolver import DuplicateResolver
from .hierarchy.emitter import HierarchyEmitter
from .hierarchy.hierarchy_validator import HierarchyValidator
from .hierarchy.level_repair import LevelRepair
from .logging_config import CosmogonyLogger
from .models import BoundaryRelation, DataQualityWarning, ZoneRecord


@dataclass
class CosmogonyResult:
    """Outcome of a build: the emitted tree, the warnings and the statistics."""

    zones: List[ZoneRecord]
    warnings: List[DataQualityWarning]
    stats: ProcessingStats
    error_summary: Dict[str, Any] = field(default_factory=dict)

    def warnings_by_kind(self) -> Dict[str, int]:
        """Count warnings per kind."""
        counts: Dict[str, int] = {}
        for warning in self.warnings:
            counts[warning.kind] = counts.get(warning.kind, 0) + 1
        return dict(sorted(counts.items()))


class CosmogonyBuilder:
    """
    Orchestrates a complete hierarchy build.

    Every build starts from a fresh BuildContext, so one builder can run
    several builds with the same configuration.
    """

    def __init__(self, config: BuilderConfig, logger: Optional[CosmogonyLogger] = None):
        """
        Initialize the CosmogonyBuilder.

        Args:
            config: Configuration object with build parameters
            logger: Optional logger instance for logging operations
        """
        self.config = config
        self.logger = logger or CosmogonyLogger(level=config.log_level)
        self._reset()

    def _reset(self):
        """Create a fresh context and components bound to it."""
        self.context = BuildContext.create(self.config, logger=self.logger.logger)
        self.error_handler = self.context.error_handler
        self.processing_stats = self.context.stats

        self.relation_loader = RelationLoader(
            logger=self.logger.logger,
            error_handler=self.error_handler
        )
        self.assembler = GeometryAssembler(
            config=self.config,
            error_handler=self.error_handler,
            logger=self.logger.logger
        )

    def run_complete_build(self) -> CosmogonyResult:
        """
        Load relations from the configured input file and build the hierarchy.

        Returns:
            CosmogonyResult for the loaded relations

        Raises:
            ConfigurationError: If no input file is configured
        """
        if not self.config.input_file:
            raise ConfigurationError("No input file configured", config_key='input_file')

        self.logger.log_phase_start("Data Loading")
        load_start = time.time()
        relations = self.relation_loader.load_relations(self.config.input_file)
        self.logger.log_phase_complete("Data Loading", len(relations), time.time() - load_start)

        return self.build(relations)

    def build(self, relations: List[BoundaryRelation]) -> CosmogonyResult:
        """
        Build the hierarchy for a set of relations.

        Args:
            relations: Boundary relations, administrative or not

        Returns:
            CosmogonyResult with zones in parent-before-child order

        Raises:
            InvariantViolationError: If an internal hierarchy invariant breaks
        """
        self._reset()
        start_time = time.time()
        stats = self.processing_stats

        try:
            stats.relations_read = len(relations)
            self.logger.log_processing_start(len(relations), self.config.workers)

            # Repeated ids and relations without admin level both count as skipped
            admin_relations, _ = self.relation_loader.select_admin_relations(
                self._unique_relations(relations)
            )
            stats.relations_skipped = len(relations) - len(admin_relations)

            self._run_phase("Geometry Assembly", lambda: self._assemble(admin_relations))
            self._run_phase("Containment Resolution", self._resolve_containment)
            self._run_phase("Duplicate Resolution", self._resolve_duplicates)
            self._run_phase("Level Repair", self._repair_levels)
            self._run_phase("Hierarchy Validation", self._validate)

            zones = self._run_phase("Emission", self._emit)
            warnings = self.error_handler.get_warnings()

            stats.processing_time = time.time() - start_time
            self.logger.log_processing_complete(stats)

            result = CosmogonyResult(
                zones=zones,
                warnings=warnings,
                stats=stats,
                error_summary=self.error_handler.get_error_summary()
            )
            for kind, count in result.warnings_by_kind().items():
                self.logger.log_data_quality_warning(f"{count:,} zone(s) flagged '{kind}'")

            return result

        except Exception as e:
            self.logger.error(f"Error in hierarchy build: {e}")
            raise

    def _run_phase(self, phase_name: str, phase: Callable[[], Any]) -> Any:
        """Run one phase, logging its duration and registry size."""
        self.logger.log_phase_start(phase_name)
        phase_start = time.time()

        result = phase()

        duration = time.time() - phase_start
        self.processing_stats.phase_durations[phase_name] = duration
        self.logger.log_phase_complete(phase_name, len(self.context.registry), duration)
        return result

    def _unique_relations(self, relations: List[BoundaryRelation]) -> List[BoundaryRelation]:
        """Keep the first relation for each id."""
        seen = set()
        unique = []
        for relation in relations:
            if relation.relation_id in seen:
                self.logger.warning(f"Relation {relation.relation_id} appears more than once; keeping the first")
                continue
            seen.add(relation.relation_id)
            unique.append(relation)
        return unique

    def _assemble(self, relations: List[BoundaryRelation]):
        """Assemble zones in parallel and register the successful ones."""
        outcome = self.context.pool.run_pass(
            "assembly", relations, self.assembler.build_zone,
            key=lambda relation: relation.relation_id
        )

        for relation_id in sorted(outcome.failures):
            warning = self.error_handler.handle_zone_error(
                outcome.failures[relation_id], relation_id, 'assembly'
            )
            self.processing_stats.record_drop(warning.kind)

        for relation_id in sorted(outcome.results):
            self.context.registry.add(outcome.results[relation_id])

        self.processing_stats.zones_assembled = len(outcome.results)
        self.logger.info(
            f"Assembled {len(outcome.results):,} zones, {len(outcome.failures):,} relation(s) dropped"
        )

        self.context.registry.prepare_geometries()
        self.context.refresh_index()

    def _resolve_containment(self):
        removed = ContainmentResolver(self.context).resolve_all()
        self.processing_stats.containment_failures = removed
        if removed:
            self.processing_stats.record_drop('containment_failure', removed)

    def _resolve_duplicates(self):
        collapsed, flagged = DuplicateResolver(self.context).resolve()
        self.processing_stats.duplicates_collapsed = collapsed
        self.processing_stats.overlaps_flagged = flagged
        if collapsed:
            self.processing_stats.record_drop('duplicate_collapsed', collapsed)
        self.context.refresh_index()

    def _repair_levels(self):
        self.processing_stats.level_repairs = LevelRepair(self.context).repair()

    def _validate(self):
        HierarchyValidator(self.context.registry, self.logger.logger).validate()

    def _emit(self) -> List[ZoneRecord]:
        """Attach issues to zones and emit the tree."""
        registry = self.context.registry

        issues: Dict[int, set] = {}
        for warning in self.error_handler.get_warnings():
            if warning.zone_id is not None:
                issues.setdefault(warning.zone_id, set()).add(warning.kind)
        for zone in registry:
            zone.issues = sorted(issues.get(zone.zone_id, ()))

        zones = list(HierarchyEmitter(registry, self.logger.logger).emit())

        stats = self.processing_stats
        stats.zones_emitted = len(zones)
        stats.roots = sum(1 for record in zones if record.parent_id is None)
        stats.zones_per_level = registry.level_counts()
        return zones
