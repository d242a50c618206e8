"""
Tests for the spatial index and the zone registry.
"""

import pytest

from cosmogony_builder.exceptions import InconsistentIndexError
from cosmogony_builder.geometry.spatial_index import SpatialIndex
from cosmogony_builder.hierarchy.registry import ZoneRegistry


@pytest.fixture
def zones(make_zone):
    return [
        make_zone(30, 2, 0, 0, 100, 100),
        make_zone(10, 4, 10, 10, 40, 40),
        make_zone(20, 8, 60, 60, 10, 10),
    ]


def test_query_returns_sorted_ids(zones):
    index = SpatialIndex.from_zones(zones)

    assert len(index) == 3
    assert index.query((0, 0, 100, 100)) == [10, 20, 30]
    assert index.query((55, 55, 65, 65)) == [20, 30]


def test_query_point(zones):
    index = SpatialIndex.from_zones(zones)

    assert index.query_point(15, 15) == [10, 30]
    assert index.query_point(500, 500) == []


def test_touching_bbox_is_included(zones):
    index = SpatialIndex.from_zones(zones)

    assert 20 in index.query((70, 70, 80, 80))


def test_empty_index():
    index = SpatialIndex([])

    assert len(index) == 0
    assert index.query((0, 0, 1, 1)) == []
    assert index.query_point(0, 0) == []


def test_intersecting_pairs(zones, make_zone):
    index = SpatialIndex.from_zones(zones + [
        make_zone(5, 8, 70, 70, 5, 5),
        make_zone(40, 8, 500, 500, 1, 1),
    ])

    # 5 touches 20 at a corner; 40 is isolated
    assert index.intersecting_pairs() == [(5, 20), (5, 30), (10, 30), (20, 30)]
    assert SpatialIndex([]).intersecting_pairs() == []


def test_registry_rejects_duplicate_ids(make_zone):
    registry = ZoneRegistry([make_zone(1, 2, 0, 0, 1, 1)])

    with pytest.raises(ValueError):
        registry.add(make_zone(1, 4, 0, 0, 1, 1))


def test_registry_require_unknown_id(zones):
    registry = ZoneRegistry(zones)

    assert [zone.zone_id for zone in registry.require([10, 30])] == [10, 30]
    with pytest.raises(InconsistentIndexError) as exc_info:
        registry.require([10, 99])
    assert exc_info.value.zone_ids == [99]


def test_registry_discard_relinks_children(zones):
    registry = ZoneRegistry(zones)
    registry.reparent(10, 30)
    registry.reparent(20, 10)

    moved = registry.discard(10)

    assert moved == [20]
    assert 10 not in registry
    assert registry.get(20).parent_id == 30
    assert registry.get(30).child_ids == [20]


def test_registry_reparent_to_root(zones):
    registry = ZoneRegistry(zones)
    registry.reparent(20, 30)

    registry.reparent(20, None)

    assert registry.get(20).parent_id is None
    assert registry.get(30).child_ids == []
    assert [zone.zone_id for zone in registry.roots()] == [10, 20, 30]


def test_zone_geometry_is_immutable(zones):
    with pytest.raises(AttributeError):
        zones[0].admin_level = 6
