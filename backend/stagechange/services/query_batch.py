"""Query Batch - Ad-hoc follow-up queries held until the transition commits"""
from typing import Any, Dict, List, Optional

from ..domain.models import PendingQuery, QueryBatchResult
from ..domain.errors import ApiError, NotFoundError, SideEffectError
from ..utils.idgen import generate_query_id
from ..utils.logger import get_logger

logger = get_logger(__name__)

EDITABLE_FIELDS = ("query_date", "description", "money_in", "money_out", "our_query")


class QueryBatch:
    """
    Locally held list of pending queries

    Items only reach the backend through persist(), which runs after a
    successful commit. Items without a description or query text are ignored.
    """

    def __init__(self):
        self._items: List[PendingQuery] = []

    @property
    def items(self) -> List[PendingQuery]:
        return list(self._items)

    def meaningful_items(self) -> List[PendingQuery]:
        return [q for q in self._items if q.has_content]

    def __len__(self) -> int:
        return len(self._items)

    def add(self, **values: Any) -> PendingQuery:
        query = PendingQuery(id=generate_query_id(), **values)
        self._items.append(query)
        return query

    def bulk_import(self, rows: List[Dict[str, Any]]) -> List[PendingQuery]:
        """Append pasted/imported rows; keys may be camelCase or snake_case"""
        imported = []
        for row in rows:
            data = {k: v for k, v in row.items() if k != "id"}
            query = PendingQuery.model_validate({"id": generate_query_id(), **data})
            self._items.append(query)
            imported.append(query)
        return imported

    def update(self, query_id: str, **values: Any) -> PendingQuery:
        index = self._index_of(query_id)
        unknown = set(values) - set(EDITABLE_FIELDS)
        if unknown:
            raise ValueError(f"Unknown query fields: {', '.join(sorted(unknown))}")

        merged = self._items[index].model_dump()
        merged.update(values)
        self._items[index] = PendingQuery.model_validate(merged)
        return self._items[index]

    def remove(self, query_id: str) -> None:
        del self._items[self._index_of(query_id)]

    def clear(self) -> None:
        self._items = []

    def _index_of(self, query_id: str) -> int:
        for index, query in enumerate(self._items):
            if query.id == query_id:
                return index
        raise NotFoundError(f"Pending query not found: {query_id}")

    async def persist(self, api_client, project_id: str) -> QueryBatchResult:
        """
        Create each meaningful query in order

        A failed item does not stop the rest. Failures are logged and reported
        in the result; nothing here can undo the committed transition.
        """
        result = QueryBatchResult()

        for query in self.meaningful_items():
            try:
                await api_client.create_query(project_id, query.to_payload(project_id))
            except ApiError as e:
                error = SideEffectError(
                    f"Failed to create query: {e.message}",
                    details={"query_id": query.id}
                )
                logger.warning(
                    error.message,
                    extra={
                        "project_id": project_id,
                        "query_id": query.id,
                        "error_code": error.error_code
                    }
                )
                result.failed_ids.append(query.id)
                continue
            except Exception as e:
                logger.error(
                    f"Unexpected error creating query: {e}",
                    exc_info=True,
                    extra={"project_id": project_id, "query_id": query.id}
                )
                result.failed_ids.append(query.id)
                continue
            result.created_ids.append(query.id)

        if result.attempted:
            logger.info(
                f"Persisted {len(result.created_ids)}/{result.attempted} pending queries",
                extra={"project_id": project_id}
            )
        return result

    def find(self, query_id: str) -> Optional[PendingQuery]:
        return next((q for q in self._items if q.id == query_id), None)
