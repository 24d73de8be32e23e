"""Run lifecycle models: handle, status snapshot and terminal outcome."""

from pydantic import BaseModel, ConfigDict, Field
from typing import Annotated, Any, Literal, Optional, Union

SUCCESS_STATUSES = frozenset({"completed", "succeeded"})
FAILURE_STATUSES = frozenset({"failed"})


class RunHandle(BaseModel):
    """Identifies one submitted run. Immutable."""
    model_config = ConfigDict(frozen=True)

    run_id: str = Field(..., min_length=1)
    stream_url: Optional[str] = None


class RunStatus(BaseModel):
    """One status fetch of a run."""
    status: str = "unknown"
    outputs: Any = None
    error: Optional[str] = None

    @property
    def is_success(self) -> bool:
        return self.status.lower() in SUCCESS_STATUSES and self.outputs is not None

    @property
    def is_failure(self) -> bool:
        return self.status.lower() in FAILURE_STATUSES


class Succeeded(BaseModel):
    kind: Literal["succeeded"] = "succeeded"
    outputs: Any


class Failed(BaseModel):
    kind: Literal["failed"] = "failed"
    reason: str


class TimedOut(BaseModel):
    kind: Literal["timed_out"] = "timed_out"
    attempts: int = 0


class Cancelled(BaseModel):
    kind: Literal["cancelled"] = "cancelled"


RunOutcome = Annotated[
    Union[Succeeded, Failed, TimedOut, Cancelled],
    Field(discriminator="kind"),
]
