"""Function stages — wrap a plain callable as a pipeline stage."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from deployforge.models.secrets import EnvironmentScope
from deployforge.stages.base import BaseStage, StageContext

StageHandler = Callable[[StageContext], "dict[str, Any] | None"]


class FunctionStage(BaseStage):
    """Runs *handler(context)*.  Raising fails the stage; returning passes it."""

    def __init__(
        self,
        stage_id: str,
        handler: StageHandler,
        *,
        display_name: str | None = None,
        scope: EnvironmentScope | None = None,
        timeout_seconds: float | None = None,
    ) -> None:
        self._stage_id = stage_id
        self._handler = handler
        self._display_name = display_name or stage_id
        self.scope = scope
        self.timeout_seconds = timeout_seconds

    @property
    def stage_id(self) -> str:
        return self._stage_id

    @property
    def display_name(self) -> str:
        return self._display_name

    def execute(self, context: StageContext) -> dict[str, Any]:
        result = self._handler(context)
        return dict(result) if result else {"status": "passed"}
