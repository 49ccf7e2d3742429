"""Workflow Registry - Open transition workflow sessions for the host"""
from typing import Dict, List, Optional

from ..domain.errors import ConflictError, SessionNotFoundError
from ..engine.transition_workflow import TransitionWorkflow
from ..repositories.api_client import StageChangeApiClient
from ..repositories.config_repo import StageConfigRepository
from ..repositories.project_cache import ProjectCache, PROJECTS_KEY
from .feedback import CollectingFeedbackSink
from ..utils.logger import get_logger

logger = get_logger(__name__)


class WorkflowRegistry:
    """
    Keeps one workflow per open stage change UI

    A project can have at most one unclosed workflow at a time. Closed
    workflows are dropped from the registry.
    """

    def __init__(
        self,
        api_client: StageChangeApiClient,
        config_repo: Optional[StageConfigRepository] = None,
        project_cache: Optional[ProjectCache] = None
    ):
        self.api_client = api_client
        self.config_repo = config_repo or StageConfigRepository(api_client)
        self.project_cache = project_cache or ProjectCache()
        self._sessions: Dict[str, TransitionWorkflow] = {}
        self._feedback: Dict[str, CollectingFeedbackSink] = {}

    async def open(
        self,
        project_id: str,
        current_status: Optional[str] = None,
        sender_name: Optional[str] = None
    ) -> TransitionWorkflow:
        existing = self.find_for_project(project_id)
        if existing is not None:
            raise ConflictError(
                "A stage change is already in progress for this project",
                details={"session_id": existing.session_id, "state": existing.state.value}
            )

        if current_status is None:
            project = self.project_cache.get_project(project_id)
            if project is not None:
                current_status = project.get("currentStatus")

        feedback = CollectingFeedbackSink()
        workflow = TransitionWorkflow(
            project_id,
            self.api_client,
            self.config_repo,
            self.project_cache,
            feedback=feedback,
            current_status=current_status,
            sender_name=sender_name,
        )
        await workflow.open()

        self._sessions[workflow.session_id] = workflow
        self._feedback[workflow.session_id] = feedback
        logger.info(
            "Opened workflow session",
            extra={"session_id": workflow.session_id, "project_id": project_id}
        )
        return workflow

    def get(self, session_id: str) -> TransitionWorkflow:
        workflow = self._sessions.get(session_id)
        if workflow is None:
            raise SessionNotFoundError(f"Workflow session not found: {session_id}")
        return workflow

    def feedback_for(self, session_id: str) -> CollectingFeedbackSink:
        self.get(session_id)
        return self._feedback[session_id]

    def find_for_project(self, project_id: str) -> Optional[TransitionWorkflow]:
        return next(
            (w for w in self._sessions.values() if w.project_id == project_id and not w.is_closed),
            None
        )

    def release(self, session_id: str) -> None:
        """Forget a session once its workflow is closed"""
        workflow = self._sessions.get(session_id)
        if workflow is not None and workflow.is_closed:
            self._sessions.pop(session_id, None)
            self._feedback.pop(session_id, None)

    def close(self, session_id: str) -> TransitionWorkflow:
        workflow = self.get(session_id)
        workflow.close()
        self.release(session_id)
        return workflow

    @property
    def session_ids(self) -> List[str]:
        return list(self._sessions)

    async def projects(self, refresh: bool = False) -> list:
        """Cached project list; refetched when stale or on request"""
        if refresh:
            self.project_cache.invalidate(PROJECTS_KEY)
        return await self.project_cache.get_or_fetch(PROJECTS_KEY, self.api_client.list_projects)
