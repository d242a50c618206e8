"""
Relation loading module.

This module provides the RelationLoader class for reading boundary relations
exported by the upstream extract, either as a JSON array, as JSON lines or
as an object holding a ``relations`` list and an optional flat ``fragments``
list.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from .exceptions import DataLoadError, FileAccessError
from .geometry.assembler import group_fragments_by_relation
from .models import BoundaryFragment, BoundaryRelation
from .utils.error_handler import (
    ErrorHandler, RetryConfig, safe_file_operation,
    create_error_context, log_error_details
)


class RelationLoader:
    """
    Handles loading of boundary relations for the hierarchy build.

    Each relation record looks like::

        {"id": 7444, "admin_level": 8, "name": "Paris",
         "tags": {"wikidata": "Q90"},
         "fragments": [{"coords": [[2.22, 48.81], ...], "role": "outer"}]}
    """

    def __init__(self, logger: Optional[logging.Logger] = None,
                 error_handler: Optional[ErrorHandler] = None,
                 retry_config: Optional[RetryConfig] = None):
        """
        Initialize the RelationLoader.

        Args:
            logger: Optional logger instance for logging operations
            error_handler: Optional error handler collecting warnings
            retry_config: Optional retry configuration for file operations
        """
        self.logger = logger or logging.getLogger(__name__)
        self.error_handler = error_handler or ErrorHandler(self.logger)
        self.retry_config = retry_config or RetryConfig(max_attempts=3, base_delay=1.0)

    def load_relations(self, file_path: str) -> List[BoundaryRelation]:
        """
        Load every relation from a file.

        Args:
            file_path: Path to the relations file

        Returns:
            List of BoundaryRelation, administrative or not

        Raises:
            FileAccessError: If the file cannot be read
            DataLoadError: If the file content is malformed
        """
        self.logger.info(f"Loading relations from: {file_path}")

        file_path_obj = Path(file_path)
        if not file_path_obj.is_file():
            raise FileAccessError(
                f"Relations file not found or not a file: {file_path}",
                file_path=str(file_path),
                operation="read"
            )

        def read_text():
            return file_path_obj.read_text(encoding='utf-8')

        text = safe_file_operation(
            operation=read_text,
            file_path=file_path,
            operation_name="read relations",
            retry_config=self.retry_config,
            logger=self.logger
        )

        try:
            records, fragment_records = self._parse_document(text, str(file_path))
            relations = [self.parse_relation(record, str(file_path), line_number)
                         for line_number, record in records]
            self._attach_fragments(relations, fragment_records, str(file_path))

        except DataLoadError:
            raise
        except Exception as e:
            context = create_error_context(
                operation="load_relations",
                file_path=str(file_path),
                error_type=type(e).__name__
            )
            log_error_details(self.logger, e, context)

            raise DataLoadError(
                f"Unexpected error loading relations from {file_path}: {str(e)}",
                file_path=str(file_path),
                original_error=e
            )

        if not relations:
            raise DataLoadError("Relations file contains no data", file_path=str(file_path))

        self.logger.info(f"Loaded {len(relations):,} relations")
        return relations

    def parse_relation(self, record: Dict[str, Any], file_path: Optional[str] = None,
                       line_number: Optional[int] = None) -> BoundaryRelation:
        """
        Build a BoundaryRelation from one decoded record.

        Args:
            record: Decoded JSON object
            file_path: Source file, for error reporting
            line_number: Source line (JSON lines) or array position

        Returns:
            BoundaryRelation

        Raises:
            DataLoadError: If the record lacks an id or has malformed fragments
        """
        if not isinstance(record, dict):
            raise DataLoadError(f"Relation record must be an object, got {type(record).__name__}",
                                file_path=file_path, line_number=line_number)

        relation_id = record.get('id', record.get('relation_id'))
        if relation_id is None:
            raise DataLoadError("Relation record has no id", file_path=file_path, line_number=line_number)

        try:
            fragments = [self._parse_fragment(relation_id, fragment)
                         for fragment in record.get('fragments') or []]
            return BoundaryRelation(
                relation_id=relation_id,
                admin_level=record.get('admin_level'),
                name=record.get('name', ''),
                attributes=record.get('tags', record.get('attributes')) or {},
                fragments=fragments
            )
        except (KeyError, TypeError, ValueError) as e:
            raise DataLoadError(
                f"Malformed relation {relation_id}: {e}",
                file_path=file_path,
                line_number=line_number,
                original_error=e
            )

    def select_admin_relations(self, relations: List[BoundaryRelation]) -> Tuple[List[BoundaryRelation], int]:
        """
        Keep the relations carrying an admin level.

        Every skipped relation is recorded as a ``missing_admin_level`` warning.

        Args:
            relations: All loaded relations

        Returns:
            Tuple of (administrative relations, number skipped)
        """
        selected = []
        skipped = 0
        for relation in relations:
            if relation.is_admin():
                selected.append(relation)
                continue
            skipped += 1
            self.error_handler.record_warning(
                'missing_admin_level',
                relation.relation_id,
                f"Relation {relation.relation_id} ({relation.name or 'unnamed'}) has no admin level",
                severity='low'
            )

        if skipped:
            self.logger.info(f"Skipped {skipped:,} relations without admin level")
        return selected, skipped

    def _parse_document(self, text: str, file_path: str) -> Tuple[List[Tuple[int, Any]], List[Any]]:
        """Decode a whole document into (position, record) pairs and flat fragments."""
        stripped = text.strip()
        if not stripped:
            return [], []

        try:
            document = json.loads(stripped)
        except json.JSONDecodeError:
            # Not a single document: JSON lines
            return self._parse_json_lines(text, file_path), []

        if isinstance(document, list):
            return list(enumerate(document, start=1)), []
        if isinstance(document, dict) and 'relations' in document:
            return list(enumerate(document['relations'], start=1)), document.get('fragments') or []
        if isinstance(document, dict):
            return [(1, document)], []

        raise DataLoadError(f"Unsupported relations document of type {type(document).__name__}",
                            file_path=file_path)

    @staticmethod
    def _parse_json_lines(text: str, file_path: str) -> List[Tuple[int, Any]]:
        records = []
        for line_number, line in enumerate(text.splitlines(), start=1):
            if not line.strip():
                continue
            try:
                records.append((line_number, json.loads(line)))
            except json.JSONDecodeError as e:
                raise DataLoadError(
                    f"Invalid JSON on line {line_number}: {e.msg}",
                    file_path=file_path,
                    line_number=line_number,
                    original_error=e
                )
        return records

    @staticmethod
    def _parse_fragment(relation_id: Any, fragment: Any) -> BoundaryFragment:
        """Accept either {"coords": [...]} or a bare coordinate list; ring roles are ignored."""
        if isinstance(fragment, dict):
            return BoundaryFragment(
                relation_id=int(fragment.get('relation_id', relation_id)),
                coords=fragment['coords'] if 'coords' in fragment else fragment['coordinates']
            )
        return BoundaryFragment(relation_id=int(relation_id), coords=list(fragment))

    def _attach_fragments(self, relations: List[BoundaryRelation],
                          fragment_records: List[Any], file_path: str):
        """Attach fragments given as a separate flat list to their relations."""
        if not fragment_records:
            return

        by_id = {relation.relation_id: relation for relation in relations}
        fragments = []
        for position, record in enumerate(fragment_records, start=1):
            if not isinstance(record, dict) or 'relation_id' not in record:
                raise DataLoadError("Flat fragment record needs a relation_id",
                                    file_path=file_path, line_number=position)
            fragments.append(self._parse_fragment(record['relation_id'], record))

        for relation_id, group in group_fragments_by_relation(fragments).items():
            if relation_id not in by_id:
                self.logger.warning(f"{len(group)} fragment(s) reference unknown relation {relation_id}")
                continue
            by_id[relation_id].fragments.extend(group)
