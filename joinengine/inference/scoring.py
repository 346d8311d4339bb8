"""
Confidence Scorer

Scores a matcher candidate in [0, 1]:

    base     0.50 partial name overlap
             0.60 same identifier column in two tables (sibling join)
             0.70 singular/plural variant of the target name
             0.80 reference equals the singularised target name
    bonus   +0.10 same declared base type (compatible families are only tagged)
            +0.05 target column is the primary key
            +0.05 both columns indexed
            +0.05 source uses a suffix pattern (<ref>_id) rather than bare id
            +0.10 matched through the metadata logical-name map
    penalty -0.15 tied with other targets of the same tier (ambiguous)

Declared foreign keys score 1.0. All weights come from settings.
"""

from dataclasses import dataclass
from typing import List, Optional, Tuple

from joinengine.config.settings import Settings, settings
from joinengine.inference.matcher import Candidate, MatchKind, MatchTier
from joinengine.schema.naming import types_compatible


class Pattern:
    """Matched-pattern tags attached to suggestions"""
    EXACT_NAME = "exact-name-match"
    PARTIAL_NAME = "partial-name-match"
    TYPE_MATCH = "type-match"
    TYPE_COMPATIBLE = "type-compatible"
    PRIMARY_KEY = "primary-key"
    INDEXED = "indexed"
    ID_SUFFIX = "id-suffix"
    LOGICAL_NAME = "logical-name"
    JUNCTION = "junction"
    AMBIGUOUS = "ambiguous"
    DECLARED_FK = "declared-foreign-key"
    PRIMARY_KEY_NAME = "primary-key-name-match"
    SHARED_COLUMN = "shared-column"


# Stable ordering for merged pattern lists
PATTERN_ORDER = (
    Pattern.DECLARED_FK,
    Pattern.EXACT_NAME,
    Pattern.PRIMARY_KEY_NAME,
    Pattern.PARTIAL_NAME,
    Pattern.SHARED_COLUMN,
    Pattern.TYPE_MATCH,
    Pattern.TYPE_COMPATIBLE,
    Pattern.PRIMARY_KEY,
    Pattern.INDEXED,
    Pattern.ID_SUFFIX,
    Pattern.LOGICAL_NAME,
    Pattern.JUNCTION,
    Pattern.AMBIGUOUS,
)


def order_patterns(patterns) -> Tuple[str, ...]:
    unique = set(patterns)
    known = [p for p in PATTERN_ORDER if p in unique]
    extra = sorted(unique - set(PATTERN_ORDER))
    return tuple(known + extra)


@dataclass(frozen=True)
class ScoringWeights:
    partial_match: float = 0.50
    variant_match: float = 0.70
    exact_match: float = 0.80
    shared_column: float = 0.60
    type_match_bonus: float = 0.10
    primary_key_bonus: float = 0.05
    indexed_bonus: float = 0.05
    id_suffix_bonus: float = 0.05
    logical_name_bonus: float = 0.10
    ambiguity_penalty: float = 0.15
    declared_fk: float = 1.0
    low_confidence_floor: float = 0.40
    high_confidence_threshold: float = 0.70

    @classmethod
    def from_settings(cls, config: Optional[Settings] = None) -> "ScoringWeights":
        config = config or settings
        return cls(
            partial_match=config.score_partial_match,
            variant_match=config.score_variant_match,
            exact_match=config.score_exact_match,
            shared_column=config.score_shared_column,
            type_match_bonus=config.score_type_match_bonus,
            primary_key_bonus=config.score_primary_key_bonus,
            indexed_bonus=config.score_indexed_bonus,
            id_suffix_bonus=config.score_id_suffix_bonus,
            logical_name_bonus=config.score_logical_name_bonus,
            ambiguity_penalty=config.score_ambiguity_penalty,
            declared_fk=config.score_declared_fk,
            low_confidence_floor=config.low_confidence_floor,
            high_confidence_threshold=config.high_confidence_threshold,
        )


@dataclass(frozen=True)
class Score:
    confidence: float
    level: str
    low_confidence: bool
    patterns: Tuple[str, ...]
    reasoning: str


def clamp(value: float) -> float:
    return round(max(0.0, min(1.0, value)), 4)


class ConfidenceScorer:
    def __init__(self, weights: Optional[ScoringWeights] = None):
        self.weights = weights or ScoringWeights.from_settings()

    def confidence_level(self, score: float) -> str:
        if score >= self.weights.high_confidence_threshold:
            return "high"
        if score >= self.weights.low_confidence_floor:
            return "medium"
        return "low"

    def finalize(self, raw: float, patterns, reasons: List[str]) -> Score:
        confidence = clamp(raw)
        return Score(
            confidence=confidence,
            level=self.confidence_level(confidence),
            low_confidence=confidence < self.weights.low_confidence_floor,
            patterns=order_patterns(patterns),
            reasoning="; ".join(reasons),
        )

    def score(self, cand: Candidate, is_junction: bool = False) -> Score:
        w = self.weights
        src = cand.source_column
        dst = cand.target_column
        patterns: List[str] = []
        reasons: List[str] = []

        if cand.kind == MatchKind.DECLARED:
            raw = w.declared_fk
            patterns.append(Pattern.DECLARED_FK)
            reasons.append(f"declared foreign key {cand.source.name}.{src.name} -> {cand.target.name}.{dst.name}")
        elif cand.kind == MatchKind.PRIMARY_KEY_NAME:
            raw = w.exact_match
            patterns.append(Pattern.PRIMARY_KEY_NAME)
            reasons.append(f"column '{src.name}' matches primary key of {cand.target.name}")
        elif cand.kind == MatchKind.SHARED_COLUMN:
            raw = w.shared_column
            patterns.append(Pattern.SHARED_COLUMN)
            reasons.append(f"{cand.source.name} and {cand.target.name} both carry '{src.name}'")
        elif cand.tier == MatchTier.EXACT:
            raw = w.exact_match
            patterns.append(Pattern.EXACT_NAME)
            reasons.append(f"'{src.name}' references '{cand.matched_name}' (exact name match)")
        elif cand.tier == MatchTier.VARIANT:
            raw = w.variant_match
            patterns.append(Pattern.EXACT_NAME)
            reasons.append(f"'{src.name}' references '{cand.matched_name}' (singular/plural variant)")
        else:
            raw = w.partial_match
            patterns.append(Pattern.PARTIAL_NAME)
            reasons.append(f"'{src.name}' partially matches '{cand.matched_name}'")

        if src.base_type and src.base_type == dst.base_type:
            patterns.append(Pattern.TYPE_MATCH)
            reasons.append(f"same type {src.data_type}")
            if cand.kind != MatchKind.DECLARED:
                raw += w.type_match_bonus
        elif types_compatible(src.data_type, dst.data_type):
            patterns.append(Pattern.TYPE_COMPATIBLE)
            reasons.append(f"compatible types {src.data_type}/{dst.data_type}")

        if dst.looks_like_pk:
            patterns.append(Pattern.PRIMARY_KEY)
            if cand.kind != MatchKind.DECLARED:
                raw += w.primary_key_bonus

        if src.indexed and dst.indexed:
            patterns.append(Pattern.INDEXED)
            if cand.kind != MatchKind.DECLARED:
                raw += w.indexed_bonus

        if cand.via_suffix:
            patterns.append(Pattern.ID_SUFFIX)
            if cand.kind != MatchKind.DECLARED:
                raw += w.id_suffix_bonus

        if cand.via_logical:
            patterns.append(Pattern.LOGICAL_NAME)
            reasons.append("matched via logical table name")
            raw += w.logical_name_bonus

        if cand.ambiguous:
            patterns.append(Pattern.AMBIGUOUS)
            reasons.append("tied with other candidate tables")
            raw -= w.ambiguity_penalty

        if is_junction:
            patterns.append(Pattern.JUNCTION)
            reasons.append(f"{cand.source.name} links multiple tables (junction)")

        return self.finalize(raw, patterns, reasons)
