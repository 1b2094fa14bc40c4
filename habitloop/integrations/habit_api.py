"""HTTP client for the habitloop definition store."""

import logging
import os
from typing import List, Optional
from urllib.parse import quote

import requests
from dotenv import load_dotenv
from pydantic import ValidationError

from habitloop.engine.errors import NetworkError, WriteError
from habitloop.models.completion import CompletionLogEntry
from habitloop.models.constants import DEFAULT_API_URL, DEFAULT_HTTP_TIMEOUT_SEC
from habitloop.models.task_definition import TaskDefinition

load_dotenv()

logger = logging.getLogger(__name__)


class HabitApiClient:
    """Client for the task definition / completion log API."""

    def __init__(self, base_url: Optional[str] = None, timeout: Optional[float] = None):
        """Initialize the client.

        Args:
            base_url: API root (e.g. ``http://localhost:8000/api``). If None,
                reads HABITLOOP_API_URL.
            timeout: Per-request timeout in seconds. If None, reads
                HABITLOOP_HTTP_TIMEOUT_SEC.
        """
        self.base_url = (base_url or os.getenv("HABITLOOP_API_URL", DEFAULT_API_URL)).rstrip("/")
        self.timeout = float(timeout or os.getenv("HABITLOOP_HTTP_TIMEOUT_SEC", DEFAULT_HTTP_TIMEOUT_SEC))
        self.headers = {
            "Accept": "application/json",
            "Content-Type": "application/json",
        }

    def _get_json(self, path: str, params: Optional[dict] = None):
        url = f"{self.base_url}{path}"
        try:
            response = requests.get(url, headers=self.headers, params=params, timeout=self.timeout)
            response.raise_for_status()
            return response.json()
        except (requests.RequestException, ValueError) as e:
            raise NetworkError(f"GET {url} failed: {e}") from e

    def list_definitions(self, user_id: str, active_only: bool = True) -> List[TaskDefinition]:
        """Fetch a user's task definitions.

        Rows that fail validation are skipped with a warning; malformed
        schedules are an editing-boundary problem and never reach the engine.

        Raises:
            NetworkError: If the request fails or the body is not a JSON array
        """
        params = {"is_active": "true"} if active_only else None
        rows = self._get_json(f"/taskType/user/{quote(str(user_id), safe='')}", params=params)
        if not isinstance(rows, list):
            raise NetworkError("Expected array response for task definitions")

        definitions: List[TaskDefinition] = []
        for row in rows:
            try:
                definitions.append(TaskDefinition.model_validate(row))
            except ValidationError as e:
                logger.warning(f"Skipping malformed task definition {row.get('id') if isinstance(row, dict) else row!r}: {e}")
        return definitions

    def list_log_entries(self, definition_id: int) -> List[CompletionLogEntry]:
        """Fetch all completion log entries of one definition.

        Raises:
            NetworkError: If the request fails or the body is malformed
        """
        rows = self._get_json(f"/taskItem/type/{definition_id}")
        if not isinstance(rows, list):
            raise NetworkError(f"Expected array response for log entries of {definition_id}")
        try:
            return [CompletionLogEntry.model_validate(row) for row in rows]
        except ValidationError as e:
            raise NetworkError(f"Malformed log entries for definition {definition_id}: {e}") from e

    def create_log_entry(
        self,
        definition_id: int,
        name: Optional[str] = None,
        amount: Optional[float] = None,
        description: Optional[str] = None,
        category: Optional[str] = None,
    ) -> CompletionLogEntry:
        """Append one completion log entry.

        Raises:
            WriteError: If the request fails or the server rejects it
        """
        url = f"{self.base_url}/taskItem"
        payload = {
            "taskTypeID": definition_id,
            "name": name,
            "amount": amount,
            "description": description,
            "taskCategory": category,
        }
        try:
            response = requests.post(url, headers=self.headers, json=payload, timeout=self.timeout)
            response.raise_for_status()
            created = CompletionLogEntry.model_validate(response.json())
        except (requests.RequestException, ValueError) as e:
            # pydantic's ValidationError is a ValueError
            raise WriteError(f"Failed to create log entry for definition {definition_id}: {e}") from e
        logger.debug(f"Created log entry {created.id} for definition {definition_id}")
        return created
