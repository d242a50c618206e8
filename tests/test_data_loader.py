"""
Tests for relation loading.
"""

import json

import pytest

from cosmogony_builder.data_loader import RelationLoader
from cosmogony_builder.exceptions import DataLoadError, FileAccessError
from cosmogony_builder.geometry.assembler import GeometryAssembler
from cosmogony_builder.utils.error_handler import ErrorHandler, RetryConfig

from conftest import rectangle_coords


def relation_record(relation_id, admin_level, name="", **extra):
    record = {
        "id": relation_id,
        "admin_level": admin_level,
        "name": name,
        "fragments": [{"coords": rectangle_coords(0, 0, 10, 10), "role": "outer"}],
    }
    record.update(extra)
    return record


@pytest.fixture
def loader(logger):
    return RelationLoader(logger, ErrorHandler(logger), RetryConfig(max_attempts=1, base_delay=0.0))


def test_load_json_array(loader, tmp_path):
    path = tmp_path / "relations.json"
    path.write_text(json.dumps([
        relation_record(1, 2, "France", tags={"wikidata": "Q142"}),
        relation_record(2, "8", "Paris"),
    ]))

    relations = loader.load_relations(str(path))

    assert [relation.relation_id for relation in relations] == [1, 2]
    assert relations[0].attributes == {"wikidata": "Q142"}
    assert relations[1].admin_level == 8
    assert relations[0].fragments[0].coords[1] == (10, 0)


def test_load_json_lines(loader, tmp_path):
    path = tmp_path / "relations.jsonl"
    lines = [json.dumps(relation_record(1, 2)), "", json.dumps(relation_record(2, 4))]
    path.write_text("\n".join(lines))

    relations = loader.load_relations(str(path))

    assert [relation.admin_level for relation in relations] == [2, 4]


def test_bad_json_line_reports_line_number(loader, tmp_path):
    path = tmp_path / "relations.jsonl"
    path.write_text(json.dumps(relation_record(1, 2)) + "\n{not json\n")

    with pytest.raises(DataLoadError) as exc_info:
        loader.load_relations(str(path))

    assert exc_info.value.line_number == 2


def test_flat_fragment_list_attached(loader, tmp_path):
    path = tmp_path / "relations.json"
    ring = rectangle_coords(0, 0, 5, 5)
    path.write_text(json.dumps({
        "relations": [{"id": 3, "admin_level": 6, "name": "Springfield"}],
        "fragments": [
            {"relation_id": 3, "coords": ring[:3]},
            {"relation_id": 3, "coords": ring[2:]},
            {"relation_id": 99, "coords": ring},
        ],
    }))

    relations = loader.load_relations(str(path))

    assert len(relations) == 1
    assert len(relations[0].fragments) == 2


def test_bare_coordinate_fragments(loader):
    relation = loader.parse_relation({"relation_id": 4, "admin_level": 8,
                                      "fragments": [rectangle_coords(0, 0, 1, 1)]})

    assert relation.relation_id == 4
    assert relation.fragments[0].relation_id == 4
    assert relation.fragments[0].coords[0] == (0, 0)


def test_record_without_id_rejected(loader):
    with pytest.raises(DataLoadError):
        loader.parse_relation({"admin_level": 8}, "relations.json", 3)


def test_malformed_fragment_rejected(loader):
    with pytest.raises(DataLoadError) as exc_info:
        loader.parse_relation({"id": 5, "admin_level": 8, "fragments": [{"role": "outer"}]},
                              "relations.json", 7)

    assert exc_info.value.line_number == 7


def test_missing_file(loader, tmp_path):
    with pytest.raises(FileAccessError):
        loader.load_relations(str(tmp_path / "missing.json"))


def test_empty_file(loader, tmp_path):
    path = tmp_path / "empty.json"
    path.write_text("   \n")

    with pytest.raises(DataLoadError):
        loader.load_relations(str(path))


def test_select_admin_relations_records_skips(loader):
    relations = [
        loader.parse_relation(relation_record(1, 2)),
        loader.parse_relation(relation_record(2, None, "Route 66")),
    ]

    selected, skipped = loader.select_admin_relations(relations)

    assert [relation.relation_id for relation in selected] == [1]
    assert skipped == 1
    warnings = loader.error_handler.get_warnings()
    assert [(w.kind, w.zone_id) for w in warnings] == [('missing_admin_level', 2)]


def test_ring_role_tags_do_not_decide_holes(loader, config, logger):
    relation = loader.parse_relation({"id": 6, "admin_level": 8, "fragments": [
        {"coords": rectangle_coords(0, 0, 10, 10), "role": "inner"},
        {"coords": rectangle_coords(2, 2, 2, 2), "role": "outer"},
    ]})

    geometry = GeometryAssembler(config, ErrorHandler(logger), logger).assemble(relation.fragments)

    assert len(geometry.geoms) == 1
    assert len(geometry.geoms[0].interiors) == 1
    assert geometry.area == pytest.approx(96.0)
