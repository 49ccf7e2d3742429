"""Repository modules - Backend access and local caches"""
from .api_client import StageChangeApiClient
from .config_repo import StageConfigRepository
from .project_cache import ProjectCache, PROJECTS_KEY, QUERY_COUNTS_KEY, project_queries_key

__all__ = [
    "StageChangeApiClient",
    "StageConfigRepository",
    "ProjectCache",
    "PROJECTS_KEY",
    "QUERY_COUNTS_KEY",
    "project_queries_key",
]
