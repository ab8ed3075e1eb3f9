"""Error raised when a plan limit or role check refuses an action."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

from fastapi import HTTPException, status


@dataclass
class FeatureGateError(Exception):
    """A plan denial carrying the numbers behind it.

    ``limit`` and ``current`` echo the evaluator so clients can render
    "3 of 3 lists used". An unlimited limit is reported as ``None``.
    """

    code: str
    message: str
    limit: Optional[int] = None
    current: Optional[int] = None
    status_code: int = status.HTTP_403_FORBIDDEN

    def __post_init__(self) -> None:
        super().__init__(self.message)

    @property
    def payload(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"error": self.code, "message": self.message}
        if self.limit is not None:
            body["limit"] = self.limit
        if self.current is not None:
            body["current"] = self.current
        return body

    def to_http_exception(self) -> HTTPException:
        return HTTPException(status_code=self.status_code, detail=self.payload)
