"""
FastAPI dependencies
"""

from joinengine.service import JoinEngineService, get_service


def service_dependency() -> JoinEngineService:
    """Shared JoinEngineService (overridable in tests via app.dependency_overrides)"""
    return get_service()
