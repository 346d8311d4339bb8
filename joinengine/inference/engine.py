"""
Join inference pipeline: matcher -> junction detector -> scorer.

Runs once per schema snapshot. Pure CPU work over immutable TableInfo values,
so it is safe to run in a worker thread.
"""

import time
from dataclasses import replace
from typing import Dict, List, Optional, Sequence

from loguru import logger

from joinengine.inference.junction import JunctionDetector
from joinengine.inference.matcher import Candidate, MatchKind, RelationshipMatcher
from joinengine.inference.models import (
    InferenceResult,
    JoinSuggestion,
    suggestion_id,
)
from joinengine.inference.scoring import ConfidenceScorer, Score, ScoringWeights, order_patterns
from joinengine.schema.models import TableInfo


def infer_cardinality(cand: Candidate) -> str:
    """
    - Source column UNIQUE and target UNIQUE => 1:1
    - Sibling join over a shared column that is not unique on both sides => N:N
    - Else many source rows refer to one target row => N:1
    """
    if cand.kind == MatchKind.SHARED_COLUMN:
        return "1:1" if cand.source_column.unique and cand.target_column.unique else "N:N"
    if cand.source_column.unique and (cand.target_column.unique or cand.target_column.looks_like_pk):
        return "1:1"
    return "N:1"


def _to_suggestion(cand: Candidate, score: Score, is_junction: bool) -> JoinSuggestion:
    return JoinSuggestion(
        id=suggestion_id(cand.key),
        left_schema=cand.source.schema,
        left_table=cand.source.name,
        left_column=cand.source_column.name,
        left_type=cand.source_column.data_type,
        right_schema=cand.target.schema,
        right_table=cand.target.name,
        right_column=cand.target_column.name,
        right_type=cand.target_column.data_type,
        confidence=score.confidence,
        confidence_level=score.level,
        low_confidence=score.low_confidence,
        reasoning=score.reasoning,
        is_junction=is_junction,
        patterns=score.patterns,
        cardinality=infer_cardinality(cand),
        left_logical_name=cand.source.display_name or cand.source.name,
        right_logical_name=cand.target.display_name or cand.target.name,
    )


def deduplicate(suggestions: Sequence[JoinSuggestion]) -> List[JoinSuggestion]:
    """
    Collapse suggestions sharing an unordered join key.

    The highest confidence wins (first seen on ties); patterns and the
    junction flag are merged from every duplicate.
    """
    merged: Dict[str, JoinSuggestion] = {}
    for s in suggestions:
        current = merged.get(s.key)
        if current is None:
            merged[s.key] = s
            continue
        winner = s if s.confidence > current.confidence else current
        merged[s.key] = replace(
            winner,
            patterns=order_patterns(current.patterns + s.patterns),
            is_junction=current.is_junction or s.is_junction,
        )
    return list(merged.values())


def rank(suggestions: Sequence[JoinSuggestion]) -> List[JoinSuggestion]:
    return sorted(suggestions, key=lambda s: (-s.confidence, s.key))


class JoinInferenceEngine:
    """
    Usage:
        engine = JoinInferenceEngine()
        result = engine.infer(snapshot.tables)
        for s in result.suggestions: ...
    """

    def __init__(self, weights: Optional[ScoringWeights] = None):
        self.scorer = ConfidenceScorer(weights)
        self.junction_detector = JunctionDetector()

    def infer(self, tables: Sequence[TableInfo]) -> InferenceResult:
        started = time.perf_counter()

        candidates = RelationshipMatcher(tables).match()
        junctions = self.junction_detector.detect(candidates)

        suggestions = []
        for cand in candidates:
            is_junction = cand.kind != MatchKind.SHARED_COLUMN and (cand.source.schema, cand.source.name) in junctions
            score = self.scorer.score(cand, is_junction=is_junction)
            suggestions.append(_to_suggestion(cand, score, is_junction))

        ranked = tuple(rank(deduplicate(suggestions)))
        elapsed_ms = round((time.perf_counter() - started) * 1000, 2)

        logger.info(
            f"Inferred {len(ranked)} join suggestions from {len(tables)} tables "
            f"({len(junctions)} junctions) in {elapsed_ms}ms"
        )
        for s in ranked:
            logger.debug(
                f"  {s.left_table}.{s.left_column} -> {s.right_table}.{s.right_column} "
                f"({round(s.confidence * 100)}%, {', '.join(s.patterns)})"
            )

        return InferenceResult(
            suggestions=ranked,
            junctions=tuple(junctions.values()),
            total_tables=len(tables),
            processing_time_ms=elapsed_ms,
        )
