"""Monday.com GraphQL connector for reading boards."""
from __future__ import annotations

import json
import logging
from typing import Any, Dict, Iterable, List, Optional
from urllib import error as urlerror
from urllib import request as urlrequest

from .board import Board, ColumnValue, Group, Task
from .errors import CollaboratorError


logger = logging.getLogger(__name__)


class MondayAPIError(CollaboratorError):
    """Raised when Monday.com returns an error response."""


BOARD_QUERY = """
query getAllItemsInGroupsByBoardId($boardID: [ID!]) {
  boards(ids: $boardID) {
    id
    name
    groups {
      id
      title
      items_page(limit: 500) {
        items {
          id
          name
          column_values {
            id
            text
            column {
              title
            }
          }
        }
      }
    }
  }
}
"""


class MondayClient:
    """Very small Monday.com GraphQL wrapper for board reads."""

    base_url = "https://api.monday.com/v2"
    api_version = "2024-01"

    def __init__(self, api_key: str, *, timeout_seconds: int = 15) -> None:
        self.api_key = api_key
        self.timeout_seconds = timeout_seconds

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def get_board(self, board_id: int | str) -> Board:
        """Return the board with all of its groups and items.

        Raises:
            MondayAPIError: if the request fails or the board does not exist.
        """
        payload = self._request(BOARD_QUERY, variables={"boardID": [str(board_id)]})

        boards = (payload.get("data") or {}).get("boards") or []
        if not boards:
            raise MondayAPIError(f"Board {board_id} not found or not accessible")

        board = self._board_from_payload(boards[0])
        logger.info(
            f"Fetched board '{board.name}' ({board.id}) with "
            f"{len(board.groups)} groups and {board.task_count} items"
        )
        return board

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _board_from_payload(self, raw: Dict[str, Any]) -> Board:
        groups = [self._group_from_payload(group) for group in raw.get("groups") or []]
        return Board(id=str(raw.get("id")), name=raw.get("name") or "", groups=groups)

    def _group_from_payload(self, raw: Dict[str, Any]) -> Group:
        page = raw.get("items_page") or {}
        tasks = [self._task_from_payload(item) for item in page.get("items") or []]
        return Group(title=raw.get("title") or "", tasks=tasks, group_id=raw.get("id"))

    def _task_from_payload(self, raw: Dict[str, Any]) -> Task:
        return Task(
            name=raw.get("name") or "",
            column_values=self._column_values(raw.get("column_values") or []),
            item_id=str(raw["id"]) if raw.get("id") is not None else None,
        )

    def _column_values(self, cells: Iterable[Dict[str, Any]]) -> List[ColumnValue]:
        values: List[ColumnValue] = []
        for cell in cells:
            column = cell.get("column") or {}
            # older API versions put the title on the value itself
            title = column.get("title") or cell.get("title") or ""
            values.append(ColumnValue(title=title, text=cell.get("text")))
        return values

    def _request(
        self,
        query: str,
        *,
        variables: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        body = {"query": query, "variables": variables or {}}
        data = json.dumps(body).encode("utf-8")
        headers = {
            "Authorization": self.api_key,
            "API-Version": self.api_version,
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

        req = urlrequest.Request(self.base_url, data=data, method="POST", headers=headers)
        logger.debug(f"POST {self.base_url} variables={variables}")

        try:
            with urlrequest.urlopen(req, timeout=self.timeout_seconds) as resp:
                payload = json.loads(resp.read().decode("utf-8"))
        except json.JSONDecodeError as exc:
            raise MondayAPIError(f"Monday.com API returned a non-JSON response: {exc}") from exc
        except urlerror.HTTPError as exc:  # pragma: no cover - network path
            detail = exc.read().decode("utf-8", errors="ignore")
            raise MondayAPIError(
                f"Monday.com API request failed with status {exc.code}: {detail}"
            ) from exc
        except urlerror.URLError as exc:  # pragma: no cover - network path
            raise MondayAPIError(f"Monday.com API network error: {exc}") from exc

        self._raise_for_errors(payload)
        return payload

    def _raise_for_errors(self, payload: Dict[str, Any]) -> None:
        errors = payload.get("errors")
        if errors:
            messages = "; ".join(
                str(err.get("message", err)) if isinstance(err, dict) else str(err)
                for err in errors
            )
            raise MondayAPIError(f"Monday.com API returned errors: {messages}")
        if payload.get("error_message"):
            code = payload.get("error_code", "unknown")
            raise MondayAPIError(
                f"Monday.com API error {code}: {payload['error_message']}"
            )
