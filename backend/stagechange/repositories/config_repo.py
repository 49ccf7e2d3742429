"""Stage Config Repository - Configuration bundle with a staleness window"""
from datetime import datetime
from typing import Dict, Optional, Tuple

from ..domain.models import StageChangeConfig
from ..config.settings import settings
from ..utils.time import utc_now, is_stale
from ..utils.logger import get_logger
from .api_client import StageChangeApiClient

logger = get_logger(__name__)


class StageConfigRepository:
    """
    Fetch stage change configuration per project

    Stage/reason definitions change rarely, so a bundle is reused for
    config_stale_seconds before it is fetched again.
    """

    def __init__(
        self,
        api_client: StageChangeApiClient,
        stale_seconds: Optional[int] = None
    ):
        self.api_client = api_client
        self.stale_seconds = stale_seconds if stale_seconds is not None else settings.config_stale_seconds
        self._cache: Dict[str, Tuple[StageChangeConfig, datetime]] = {}

    async def get_config(self, project_id: str) -> StageChangeConfig:
        cached = self._cache.get(project_id)
        if cached and not is_stale(cached[1], self.stale_seconds):
            return cached[0]

        config = await self.api_client.get_stage_change_config(project_id)
        self._cache[project_id] = (config, utc_now())

        logger.info(
            f"Loaded stage change config: {len(config.stages)} stages, {len(config.reasons)} reasons",
            extra={"project_id": project_id}
        )
        return config

    def invalidate(self, project_id: Optional[str] = None) -> None:
        if project_id is None:
            self._cache.clear()
        else:
            self._cache.pop(project_id, None)
