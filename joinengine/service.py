"""
Join Engine Service

Entry point used by the API and by embedding applications:
- get_join_suggestions: cached relationship inference per (data source, schema)
- validate_and_compile: validator + compiler for a query model
- attach_joins: write the best inferred join paths into a query model
- invalidate: drop cached suggestions after schema-affecting ingestion events

Database I/O runs in worker threads, bounded by the configured timeout.
"""

import asyncio
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from loguru import logger
from sqlalchemy.engine import Engine

from joinengine.config.settings import Settings, settings as default_settings
from joinengine.inference.cache import CacheEntry, SuggestionCache
from joinengine.inference.engine import JoinInferenceEngine
from joinengine.inference.models import InferenceResult, JoinSuggestion
from joinengine.inference.scoring import ScoringWeights
from joinengine.infra.database import Database, get_database
from joinengine.models.query_model import QueryModel, attach_suggested_joins
from joinengine.schema.introspection import SchemaIntrospector
from joinengine.schema.metadata import MetadataResolver
from joinengine.schema.models import SchemaSnapshot
from joinengine.sql.compiler import CompiledQuery, SQLCompiler
from joinengine.utils.errors import MetadataUnavailable, SchemaIntrospectionError
from joinengine.validation.errors import ValidationIssue
from joinengine.validation.validator import ModelValidator


class JoinEngineService:
    """
    Usage:
        service = JoinEngineService(engine)
        suggestions = await service.get_join_suggestions(2, "public")
        outcome = await service.validate_and_compile(model, 2, "public")
        if isinstance(outcome, CompiledQuery): ...
    """

    def __init__(
        self,
        engine: Optional[Engine] = None,
        config: Optional[Settings] = None,
        cache: Optional[SuggestionCache] = None,
    ):
        self.settings = config or default_settings
        self.database = Database(engine=engine) if engine is not None else get_database()
        self.engine = self.database.engine
        self.metadata = MetadataResolver(self.engine, self.settings.metadata_table)
        self.introspector = SchemaIntrospector(
            self.engine,
            self.settings.max_tables,
            self.settings.metadata_table,
        )
        self.inference = JoinInferenceEngine(ScoringWeights.from_settings(self.settings))
        self.cache = cache or SuggestionCache(self.settings.suggestion_cache_ttl_seconds)
        self.compiler = SQLCompiler()

    async def _io(self, func: Callable, *args):
        return await asyncio.wait_for(
            asyncio.to_thread(func, *args),
            timeout=self.settings.io_timeout_seconds,
        )

    async def _compute(self, data_source_id: int, schema_name: str) -> Tuple[SchemaSnapshot, InferenceResult]:
        metadata_available = True
        try:
            logical_names = await self._io(self.metadata.resolve, data_source_id, schema_name)
        except MetadataUnavailable as e:
            logger.warning(f"{e} - falling back to physical table names")
            logical_names, metadata_available = {}, False
        except asyncio.TimeoutError:
            logger.warning(
                f"Metadata lookup timed out for ds{data_source_id}:{schema_name} - falling back to physical table names"
            )
            logical_names, metadata_available = {}, False

        try:
            snapshot = await self._io(
                self.introspector.snapshot,
                data_source_id,
                schema_name,
                logical_names,
                metadata_available,
            )
        except asyncio.TimeoutError as e:
            raise SchemaIntrospectionError(
                f"Schema introspection timed out after {self.settings.io_timeout_seconds}s "
                f"for ds{data_source_id}:{schema_name}"
            ) from e

        result = await asyncio.to_thread(self.inference.infer, snapshot.tables)
        return snapshot, result

    async def get_suggestion_entry(
        self,
        data_source_id: int,
        schema_name: str,
        force_refresh: bool = False,
    ) -> Tuple[CacheEntry, bool]:
        """Return (cache entry, cache_hit) for a data source schema"""
        return await self.cache.get_or_compute(
            data_source_id,
            schema_name,
            lambda: self._compute(data_source_id, schema_name),
            force_refresh=force_refresh,
        )

    async def get_join_suggestions(
        self,
        data_source_id: int,
        schema_name: str,
        force_refresh: bool = False,
    ) -> List[JoinSuggestion]:
        """
        Inferred joins for a data source schema, highest confidence first.

        Raises:
            SchemaIntrospectionError: target database unreachable
        """
        entry, _ = await self.get_suggestion_entry(data_source_id, schema_name, force_refresh)
        return list(entry.suggestions)

    async def validate(
        self,
        query_model: QueryModel,
        data_source_id: int,
        schema_name: str,
    ) -> List[ValidationIssue]:
        """Validate a query model without compiling it"""
        entry, _ = await self.get_suggestion_entry(data_source_id, schema_name)
        validator = ModelValidator(
            entry.schema,
            entry.suggestions,
            allow_user_authored_joins=self.settings.allow_user_authored_joins,
        )
        return validator.validate(query_model)

    async def validate_and_compile(
        self,
        query_model: QueryModel,
        data_source_id: int,
        schema_name: str,
    ) -> Union[CompiledQuery, List[ValidationIssue]]:
        """
        Validate a query model against the live schema and cached suggestions,
        compiling it when valid.

        Returns:
            CompiledQuery on success, otherwise the complete list of issues

        Raises:
            SchemaIntrospectionError: target database unreachable
            CompilationError: internal error rendering a model that passed validation
        """
        issues = await self.validate(query_model, data_source_id, schema_name)
        if issues:
            return issues
        return self.compiler.compile(query_model)

    async def attach_joins(self, query_model: QueryModel, data_source_id: int, schema_name: str) -> QueryModel:
        """Return a copy of the model with inferred join paths written into it"""
        entry, _ = await self.get_suggestion_entry(data_source_id, schema_name)
        return attach_suggested_joins(
            query_model,
            entry.suggestions,
            max_hops=self.settings.auto_join_max_hops,
        )

    async def ping(self) -> bool:
        """True when the target database answers within the I/O timeout"""
        try:
            return await self._io(self.database.ping)
        except asyncio.TimeoutError:
            logger.error("Target database ping timed out")
            return False

    def invalidate(self, data_source_id: int, schema_name: Optional[str] = None) -> int:
        return self.cache.invalidate(data_source_id, schema_name)

    @staticmethod
    def describe(entry: CacheEntry, cache_hit: bool) -> Dict[str, Any]:
        """Summary metadata of one suggestion set"""
        result = entry.result
        return {
            "total_tables": result.total_tables,
            "total_suggestions": len(result.suggestions),
            "by_confidence": result.counts_by_level(),
            "junction_tables": [j.to_dict() for j in result.junctions],
            "processing_time_ms": result.processing_time_ms,
            "cache_hit": cache_hit,
            "metadata_available": entry.schema.metadata_available,
        }


# Global service instance (lazy initialization)
_service_instance: Optional[JoinEngineService] = None


def get_service() -> JoinEngineService:
    """Get or create global service instance"""
    global _service_instance
    if _service_instance is None:
        _service_instance = JoinEngineService()
    return _service_instance


def set_service(service: Optional[JoinEngineService]) -> None:
    """Replace the global service instance (tests, embedding applications)"""
    global _service_instance
    _service_instance = service
