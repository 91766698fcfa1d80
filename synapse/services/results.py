"""
synapse.services.results — Service Call Outcomes
=================================================

Write operations never raise into the HTTP layer.  Store failures are
logged where they happen and folded into a :class:`ServiceResult` with a
short, user-presentable ``error`` string ("Failed to …").
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True, slots=True)
class ServiceResult:
    success: bool
    id: str | None = None
    error: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def ok(cls, id: str | None = None, **extra: Any) -> ServiceResult:
        return cls(success=True, id=id, extra=extra)

    @classmethod
    def fail(cls, error: str, **extra: Any) -> ServiceResult:
        return cls(success=False, error=error, extra=extra)

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"success": self.success}
        if self.id is not None:
            body["id"] = self.id
        if self.error is not None:
            body["error"] = self.error
        body.update(self.extra)
        return body
