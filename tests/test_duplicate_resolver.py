"""
Tests for duplicate collapse and overlap flagging.
"""

import pytest
from shapely.errors import GEOSException

from cosmogony_builder.hierarchy.containment_resolver import ContainmentResolver
from cosmogony_builder.hierarchy.duplicate_resolver import (
    DuplicateResolver,
    name_similarity,
    survivor_key
)


def resolved_context(make_context, relations):
    context = make_context(relations)
    ContainmentResolver(context).resolve_all()
    return context


def test_identical_siblings_collapse_to_richer_zone(make_context, make_relation):
    context = resolved_context(make_context, [
        make_relation(1, 2, 0, 0, 100, 100, name="Country"),
        make_relation(20, 6, 10, 10, 30, 30),
        make_relation(30, 6, 10, 10, 30, 30, name="Springfield", tags={"population": "30720"}),
    ])

    collapsed, flagged = DuplicateResolver(context).resolve()

    assert (collapsed, flagged) == (1, 0)
    assert 20 not in context.registry
    assert context.registry.get(1).child_ids == [30]
    warnings = context.error_handler.get_warnings()
    assert [warning.kind for warning in warnings] == ['duplicate_collapsed']
    assert warnings[0].zone_id == 20
    assert warnings[0].related_ids == [30]


def test_children_of_dropped_duplicate_move_to_survivor(make_context, make_relation):
    context = resolved_context(make_context, [
        make_relation(1, 6, 0, 0, 50, 50, name="Springfield"),
        make_relation(2, 6, 0, 0, 50, 50),
        make_relation(3, 8, 10, 10, 5, 5, name="Downtown"),
    ])
    # Put the child under the duplicate that is about to be dropped
    context.registry.reparent(3, 2)

    DuplicateResolver(context).resolve()

    assert 2 not in context.registry
    assert context.registry.get(3).parent_id == 1
    assert context.registry.get(1).child_ids == [3]


def test_duplicates_resolved_transitively(make_context, make_relation):
    context = resolved_context(make_context, [
        make_relation(5, 4, 0, 0, 100, 100),
        make_relation(6, 4, 0, 0, 100, 100.5),
        make_relation(7, 4, 0, 0, 100, 101, name="Region", tags={"ref": "R"}),
    ])

    collapsed, _ = DuplicateResolver(context).resolve()

    assert collapsed == 2
    assert context.registry.ids() == [7]


def test_partial_overlap_flagged_on_both_zones(make_context, make_relation):
    context = resolved_context(make_context, [
        make_relation(1, 8, 0, 0, 10, 10, name="Saint-Denis"),
        make_relation(2, 8, 5, 0, 10, 10, name="St Denis"),
    ])

    collapsed, flagged = DuplicateResolver(context).resolve()

    assert (collapsed, flagged) == (0, 1)
    warnings = context.error_handler.get_warnings()
    assert [(w.kind, w.zone_id, w.related_ids) for w in warnings] == [
        ('partial_overlap', 1, [2]),
        ('partial_overlap', 2, [1]),
    ]
    assert warnings[0].context['overlap_ratio'] == pytest.approx(0.5)
    assert warnings[0].context['name_similarity'] > 0


def test_touching_siblings_not_flagged(make_context, make_relation):
    context = resolved_context(make_context, [
        make_relation(1, 8, 0, 0, 10, 10),
        make_relation(2, 8, 10, 0, 10, 10),
    ])

    assert DuplicateResolver(context).resolve() == (0, 0)


def test_candidate_pairs_only_for_intersecting_bboxes(make_context, make_relation):
    relations = [make_relation(zone_id, 8, (zone_id % 10) * 20, (zone_id // 10) * 20, 10, 10)
                 for zone_id in range(1, 51)]
    relations.append(make_relation(100, 8, 25, 0, 10, 10))
    context = resolved_context(make_context, relations)
    resolver = DuplicateResolver(context)

    assert resolver.candidate_pairs() == [(1, 100)]

    resolver._compared.add((1, 100))
    assert resolver.candidate_pairs() == []


def test_failed_comparison_recorded_on_both_zones(make_context, make_relation, monkeypatch):
    context = resolved_context(make_context, [
        make_relation(1, 8, 0, 0, 10, 10),
        make_relation(2, 8, 5, 0, 10, 10),
    ])
    resolver = DuplicateResolver(context)

    def failing_measure(pair):
        raise GEOSException("TopologyException: side location conflict")

    monkeypatch.setattr(resolver, "measure", failing_measure)

    assert resolver.resolve() == (0, 0)
    assert context.registry.ids() == [1, 2]
    warnings = context.error_handler.get_warnings()
    assert [(w.kind, w.zone_id, w.related_ids) for w in warnings] == [
        ('overlap_check_failed', 1, [2]),
        ('overlap_check_failed', 2, [1]),
    ]
    assert warnings[0].context['error_type'] == 'GEOSException'


def test_different_levels_are_not_siblings(make_context, make_relation):
    context = resolved_context(make_context, [
        make_relation(1, 6, 0, 0, 10, 10),
        make_relation(2, 8, 0, 0, 10, 10),
    ])
    resolver = DuplicateResolver(context)

    assert resolver.sibling_groups() == []
    assert resolver.resolve() == (0, 0)
    assert context.registry.get(2).parent_id == 1


def test_survivor_key_prefers_name_then_attributes_then_id(make_zone):
    unnamed_rich = make_zone(1, 6, 0, 0, 1, 1, attributes={"a": "1", "b": "2"})
    named = make_zone(2, 6, 0, 0, 1, 1, name="Springfield")
    named_rich = make_zone(3, 6, 0, 0, 1, 1, name="Springfield", attributes={"a": "1"})
    named_rich_later = make_zone(4, 6, 0, 0, 1, 1, name="Springfield", attributes={"a": "1"})

    best = max([unnamed_rich, named, named_rich, named_rich_later], key=survivor_key)

    assert best is named_rich


def test_name_similarity():
    assert name_similarity("Springfield", "springfield") == 100.0
    assert name_similarity("", "Springfield") == 0.0
    assert name_similarity("Saint Denis", "Denis Saint") == 100.0
