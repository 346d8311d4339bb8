"""
Custom error classes for the engine
"""


class EngineError(Exception):
    """Base exception for engine errors"""
    pass


class MetadataUnavailable(EngineError):
    """Metadata store could not be reached; inference degrades to physical names"""

    def __init__(self, data_source_id: int, schema_name: str, reason: str = ""):
        self.data_source_id = data_source_id
        self.schema_name = schema_name
        self.reason = reason
        super().__init__(
            f"Table metadata unavailable for data source {data_source_id} "
            f"(schema '{schema_name}'): {reason}"
        )


class SchemaIntrospectionError(EngineError):
    """Target database schema could not be introspected"""
    pass


class CompilationError(EngineError):
    """Internal error while rendering a validated query model"""
    pass
