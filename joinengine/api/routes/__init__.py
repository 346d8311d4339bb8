"""
Internal API routes
"""

from joinengine.api.routes import query_models, schema_events, suggestions

__all__ = ["query_models", "schema_events", "suggestions"]
