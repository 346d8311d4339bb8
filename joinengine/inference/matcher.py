"""
Relationship Pattern Matcher

Proposes candidate equality joins between constraint-free tables from naming
conventions and type compatibility.

Strategy:
1. Columns shaped like <ref>_id / <ref>_key / <ref>Id: look <ref> up against
   every other table's logical and physical name variants.
2. Bare `id` columns that are not the table's own primary key: the owning
   table's name tokens are tried as references (partial tier only).
3. Columns named like another table's non-`id` primary key (e.g. `sku`) with a
   compatible type.
4. Declared foreign keys, when the source database has them.
5. Sibling joins: two tables carrying the same reference-shaped column or
   business identifier (orders.customer_id, invoices.customer_id; uuid, code)
   with compatible types. Column pairs already proposed by 1-4 are skipped.

Per source column only the best tier of strategies 1-3 survives:
exact > variant > partial.
Several targets tied in the best tier are all kept and flagged ambiguous.
"""

import re
from dataclasses import dataclass, replace
from enum import IntEnum
from typing import Dict, List, Optional, Sequence, Set, Tuple

from loguru import logger

from joinengine.inference.models import column_key, join_key
from joinengine.schema.models import ColumnInfo, TableInfo
from joinengine.schema.naming import (
    compact,
    extract_reference,
    is_bare_id,
    is_shared_identifier,
    singularize,
    types_compatible,
)

_MIN_PARTIAL_LENGTH = 3
_TOKEN_SPLIT = re.compile(r"[^a-z0-9]+")


class MatchTier(IntEnum):
    PARTIAL = 1
    VARIANT = 2
    EXACT = 3


class MatchKind:
    NAME = "name"
    PRIMARY_KEY_NAME = "primary-key-name"
    DECLARED = "declared"
    SHARED_COLUMN = "shared-column"


@dataclass(frozen=True)
class Candidate:
    """One source column -> target column proposal before scoring"""
    source: TableInfo
    source_column: ColumnInfo
    target: TableInfo
    target_column: ColumnInfo
    kind: str
    tier: MatchTier
    reference: str = ""
    matched_name: str = ""
    via_logical: bool = False
    via_suffix: bool = False
    ambiguous: bool = False

    @property
    def key(self) -> str:
        return join_key(
            column_key(self.source.schema, self.source.name, self.source_column.name),
            column_key(self.target.schema, self.target.name, self.target_column.name),
        )


def _partial_overlap(ref: str, variants) -> bool:
    if len(ref) < _MIN_PARTIAL_LENGTH:
        return False
    for variant in variants:
        if len(variant) < _MIN_PARTIAL_LENGTH:
            continue
        if ref in variant or variant in ref:
            return True
    return False


def match_tier(ref: str, table: TableInfo) -> Optional[Tuple[MatchTier, bool, str]]:
    """
    Compare a compact reference against a table's names.

    Logical names (from the metadata store) are tried before physical names;
    on equal tiers the logical match wins.

    Returns:
        (tier, via_logical, matched_name) or None when nothing overlaps
    """
    sources = []
    if table.logical_from_metadata:
        sources.append((table.logical_name, table.logical_variants, True))
    sources.append((compact(table.name), table.physical_variants, False))

    best: Optional[Tuple[MatchTier, bool, str]] = None
    for name, variants, via_logical in sources:
        singular = singularize(name)
        if ref == singular:
            tier = MatchTier.EXACT
        elif ref in variants or singularize(ref) == singular:
            tier = MatchTier.VARIANT
        elif _partial_overlap(ref, variants):
            tier = MatchTier.PARTIAL
        else:
            continue
        if best is None or tier > best[0]:
            best = (tier, via_logical, name)
    return best


def table_tokens(table: TableInfo) -> List[str]:
    """Name tokens of a table used as references for bare `id` columns"""
    raw = [table.name]
    if table.display_name:
        raw.append(table.display_name)
    tokens: List[str] = []
    for name in raw:
        for token in _TOKEN_SPLIT.split(name.lower()):
            if len(token) >= _MIN_PARTIAL_LENGTH and token not in tokens:
                tokens.append(token)
    return tokens


class RelationshipMatcher:
    """
    Usage:
        matcher = RelationshipMatcher(tables)
        candidates = matcher.match()
    """

    def __init__(self, tables: Sequence[TableInfo]):
        self.tables = list(tables)
        self._by_name: Dict[Tuple[str, str], TableInfo] = {(t.schema, t.name): t for t in self.tables}

    def match(self) -> List[Candidate]:
        candidates: List[Candidate] = []
        for table in self.tables:
            for column in table.columns:
                candidates.extend(self._match_column(table, column))
            candidates.extend(self._declared(table))
        candidates.extend(self._shared_columns({c.key for c in candidates}))
        logger.debug(f"Matcher produced {len(candidates)} candidates over {len(self.tables)} tables")
        return candidates

    # ------------------------------------------------------------------
    # Naming-convention matches
    # ------------------------------------------------------------------

    def _match_column(self, source: TableInfo, column: ColumnInfo) -> List[Candidate]:
        found: List[Candidate] = []

        ref = extract_reference(column.name)
        if ref:
            found.extend(self._by_reference(source, column, ref, via_suffix=True))
        elif is_bare_id(column.name) and not column.looks_like_pk:
            for token in table_tokens(source):
                found.extend(
                    self._by_reference(source, column, token, via_suffix=False, max_tier=MatchTier.PARTIAL)
                )

        found.extend(self._by_primary_key_name(source, column))
        return self._keep_best_tier(found)

    def _by_reference(
        self,
        source: TableInfo,
        column: ColumnInfo,
        ref: str,
        via_suffix: bool,
        max_tier: MatchTier = MatchTier.EXACT,
    ) -> List[Candidate]:
        found = []
        for target in self.tables:
            if target is source:
                continue
            target_column = target.primary_key_column
            if target_column is None:
                continue
            hit = match_tier(ref, target)
            if hit is None:
                continue
            tier, via_logical, matched_name = hit
            found.append(
                Candidate(
                    source=source,
                    source_column=column,
                    target=target,
                    target_column=target_column,
                    kind=MatchKind.NAME,
                    tier=min(tier, max_tier),
                    reference=ref,
                    matched_name=matched_name,
                    via_logical=via_logical,
                    via_suffix=via_suffix,
                )
            )
        return found

    def _by_primary_key_name(self, source: TableInfo, column: ColumnInfo) -> List[Candidate]:
        found = []
        name = compact(column.name)
        for target in self.tables:
            if target is source:
                continue
            pk = target.primary_key_column
            if pk is None or is_bare_id(pk.name) or compact(pk.name) != name:
                continue
            if not types_compatible(column.data_type, pk.data_type):
                continue
            found.append(
                Candidate(
                    source=source,
                    source_column=column,
                    target=target,
                    target_column=pk,
                    kind=MatchKind.PRIMARY_KEY_NAME,
                    tier=MatchTier.EXACT,
                    reference=name,
                    matched_name=pk.name,
                )
            )
        return found

    @staticmethod
    def _keep_best_tier(found: List[Candidate]) -> List[Candidate]:
        if not found:
            return []

        # One candidate per target; the best tier for that target wins
        per_target: Dict[Tuple[str, str, str], Candidate] = {}
        for cand in found:
            key = (cand.target.schema, cand.target.name, cand.target_column.name)
            current = per_target.get(key)
            if current is None or cand.tier > current.tier:
                per_target[key] = cand

        best_tier = max(c.tier for c in per_target.values())
        best = [c for c in per_target.values() if c.tier == best_tier]
        if len(best) > 1:
            best = [replace(c, ambiguous=True) for c in best]
        return best

    # ------------------------------------------------------------------
    # Declared foreign keys
    # ------------------------------------------------------------------

    def _declared(self, source: TableInfo) -> List[Candidate]:
        found = []
        for fk in source.foreign_keys:
            target = self._by_name.get((fk.referred_schema, fk.referred_table))
            if target is None:
                continue
            source_column = source.column(fk.column)
            target_column = target.column(fk.referred_column)
            if source_column is None or target_column is None:
                continue
            found.append(
                Candidate(
                    source=source,
                    source_column=source_column,
                    target=target,
                    target_column=target_column,
                    kind=MatchKind.DECLARED,
                    tier=MatchTier.EXACT,
                    reference=fk.referred_table,
                    matched_name=fk.referred_table,
                    via_suffix=extract_reference(fk.column) is not None,
                )
            )
        return found

    # ------------------------------------------------------------------
    # Sibling joins over shared identifier columns
    # ------------------------------------------------------------------

    def _shared_columns(self, taken: Set[str]) -> List[Candidate]:
        found = []
        ordered = sorted(self.tables, key=lambda t: (t.schema, t.name))
        for i, left in enumerate(ordered):
            for right in ordered[i + 1:]:
                by_name = {c.name.lower(): c for c in right.columns}
                for column in left.columns:
                    other = by_name.get(column.name.lower())
                    if other is None or not is_shared_identifier(column.name):
                        continue
                    if not types_compatible(column.data_type, other.data_type):
                        continue
                    cand = Candidate(
                        source=left,
                        source_column=column,
                        target=right,
                        target_column=other,
                        kind=MatchKind.SHARED_COLUMN,
                        tier=MatchTier.PARTIAL,
                        reference=compact(column.name),
                        matched_name=other.name,
                        via_suffix=extract_reference(column.name) is not None,
                    )
                    if cand.key not in taken:
                        found.append(cand)
        return found
