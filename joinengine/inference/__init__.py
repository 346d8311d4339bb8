"""
Join inference - matcher, junction detection, scoring, caching
"""

from joinengine.inference.models import (
    InferenceResult,
    JoinSuggestion,
    JunctionInfo,
    column_key,
    join_key,
)
from joinengine.inference.scoring import ConfidenceScorer, Pattern, ScoringWeights
from joinengine.inference.engine import JoinInferenceEngine
from joinengine.inference.cache import CacheEntry, SuggestionCache, cache_key
from joinengine.inference.path_finder import JoinPathFinder

__all__ = [
    "InferenceResult",
    "JoinSuggestion",
    "JunctionInfo",
    "column_key",
    "join_key",
    "ConfidenceScorer",
    "Pattern",
    "ScoringWeights",
    "JoinInferenceEngine",
    "CacheEntry",
    "SuggestionCache",
    "cache_key",
    "JoinPathFinder",
]
