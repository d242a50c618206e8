"""
Shared fixtures for the cosmogony builder tests.

Zones are built from axis-aligned rectangles so expected containment and
areas can be worked out by hand.
"""

import logging

import pytest
from shapely.geometry import MultiPolygon, box

from cosmogony_builder.config import BuilderConfig
from cosmogony_builder.geometry.assembler import GeometryAssembler
from cosmogony_builder.hierarchy.context import BuildContext
from cosmogony_builder.models import BoundaryFragment, BoundaryRelation, Zone


def rectangle_coords(x0, y0, width, height):
    """Closed counter-clockwise ring for a rectangle."""
    return [(x0, y0), (x0 + width, y0), (x0 + width, y0 + height), (x0, y0 + height), (x0, y0)]


@pytest.fixture
def config():
    """Configuration with progress bars disabled."""
    return BuilderConfig(show_progress=False, log_level="DEBUG")


@pytest.fixture
def logger():
    return logging.getLogger("cosmogony_builder.tests")


@pytest.fixture
def make_relation():
    """Factory for rectangle relations: make_relation(id, level, x0, y0, w, h, name=..., tags=...)."""

    def _make(relation_id, admin_level, x0, y0, width, height, name="", tags=None, split=False):
        ring = rectangle_coords(x0, y0, width, height)
        if split:
            # Two open fragments, the second one stored backwards
            fragments = [
                BoundaryFragment(relation_id, ring[:3]),
                BoundaryFragment(relation_id, list(reversed(ring[2:]))),
            ]
        else:
            fragments = [BoundaryFragment(relation_id, ring)]
        return BoundaryRelation(
            relation_id=relation_id,
            admin_level=admin_level,
            name=name,
            attributes=tags or {},
            fragments=fragments
        )

    return _make


@pytest.fixture
def make_zone():
    """Factory for registry zones from a rectangle: make_zone(id, level, x0, y0, w, h, name=...)."""

    def _make(zone_id, admin_level, x0, y0, width, height, name="", attributes=None):
        geometry = MultiPolygon([box(x0, y0, x0 + width, y0 + height)])
        return Zone(
            zone_id=zone_id,
            admin_level=admin_level,
            name=name,
            attributes=attributes or {},
            geometry=geometry,
            bbox=tuple(geometry.bounds),
            area=geometry.area,
            representative_point=(x0 + width / 2, y0 + height / 2),
        )

    return _make


@pytest.fixture
def make_context(config, logger):
    """Factory assembling relations into a ready-to-resolve BuildContext."""

    def _make(relations, build_config=None):
        context = BuildContext.create(build_config or config, logger=logger)
        assembler = GeometryAssembler(context.config, context.error_handler, logger)
        for relation in relations:
            context.registry.add(assembler.build_zone(relation))
        context.registry.prepare_geometries()
        context.refresh_index()
        return context

    return _make


@pytest.fixture
def nested_relations(make_relation):
    """Level 2 (100x100) containing level 4 (40x40) containing level 8 (10x10)."""
    return [
        make_relation(1, 2, 0, 0, 100, 100, name="Country"),
        make_relation(2, 4, 10, 10, 40, 40, name="Region"),
        make_relation(3, 8, 20, 20, 10, 10, name="City"),
    ]
