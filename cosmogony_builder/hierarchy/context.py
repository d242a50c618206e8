"""
Build context shared by the hierarchy passes.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from ..config import BuilderConfig, ProcessingStats
from ..geometry.spatial_index import SpatialIndex
from ..utils.error_handler import ErrorHandler
from ..utils.parallel import WorkerPool
from .registry import ZoneRegistry


@dataclass
class BuildContext:
    """
    Everything a pass needs, passed explicitly instead of held globally.

    The index is rebuilt between passes (``refresh_index``) and is never
    mutated while a pass runs.
    """

    config: BuilderConfig
    registry: ZoneRegistry
    error_handler: ErrorHandler
    logger: logging.Logger
    pool: WorkerPool
    stats: ProcessingStats = field(default_factory=ProcessingStats)
    index: Optional[SpatialIndex] = None

    @classmethod
    def create(cls, config: Optional[BuilderConfig] = None,
               registry: Optional[ZoneRegistry] = None,
               logger: Optional[logging.Logger] = None) -> 'BuildContext':
        """
        Create a context with default collaborators.

        Args:
            config: Build configuration (defaults to BuilderConfig())
            registry: Zone registry (defaults to an empty one)
            logger: Optional logger instance

        Returns:
            BuildContext ready for a build
        """
        config = config or BuilderConfig()
        logger = logger or logging.getLogger("cosmogony_builder")
        return cls(
            config=config,
            registry=registry if registry is not None else ZoneRegistry(logger=logger),
            error_handler=ErrorHandler(logger),
            logger=logger,
            pool=WorkerPool(config.workers, config.show_progress, logger)
        )

    def refresh_index(self) -> SpatialIndex:
        """Rebuild the spatial index from the zones currently registered."""
        self.index = SpatialIndex.from_zones(self.registry, logger=self.logger)
        return self.index
