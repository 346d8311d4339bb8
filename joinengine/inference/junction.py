"""
Junction Detector

A table whose columns resolve to two or more foreign keys is a junction
(many-to-many bridge). A table with exactly one resolved FK column is a simple
child table. Sibling joins over shared columns do not count.
"""

from collections import OrderedDict
from itertools import combinations
from typing import Dict, List, Sequence, Tuple

from loguru import logger

from joinengine.inference.matcher import Candidate, MatchKind
from joinengine.inference.models import JunctionInfo


class JunctionDetector:
    """
    Usage:
        detector = JunctionDetector(min_foreign_keys=2)
        junctions = detector.detect(candidates)
        ("public", "order_items") in junctions
    """

    def __init__(self, min_foreign_keys: int = 2):
        self.min_foreign_keys = min_foreign_keys

    def detect(self, candidates: Sequence[Candidate]) -> Dict[Tuple[str, str], JunctionInfo]:
        # (schema, table) -> column -> referenced tables, in discovery order
        resolved: Dict[Tuple[str, str], "OrderedDict[str, List[str]]"] = {}
        for cand in candidates:
            if cand.kind == MatchKind.SHARED_COLUMN:
                continue
            table_key = (cand.source.schema, cand.source.name)
            columns = resolved.setdefault(table_key, OrderedDict())
            targets = columns.setdefault(cand.source_column.name, [])
            target_name = cand.target.qualified_name
            if target_name not in targets:
                targets.append(target_name)

        junctions: Dict[Tuple[str, str], JunctionInfo] = {}
        for (schema, table), columns in resolved.items():
            if len(columns) < self.min_foreign_keys:
                continue

            referenced: List[str] = []
            for targets in columns.values():
                for target in targets:
                    if target not in referenced:
                        referenced.append(target)

            pairs = tuple(
                (a, b) for a, b in combinations(referenced, 2)
            )
            junctions[(schema, table)] = JunctionInfo(
                schema=schema,
                table=table,
                foreign_key_columns=tuple(columns.keys()),
                referenced_tables=tuple(referenced),
                bridged_pairs=pairs,
            )
            logger.debug(
                f"Junction table {schema}.{table}: {len(columns)} FK columns bridging {len(referenced)} tables"
            )

        return junctions
