"""Worker schema - canonical definition."""

from typing import List

from pydantic import BaseModel, Field, computed_field, model_validator

from finmoe.common.constants import LoadConstants
from finmoe.core.types import Specialization, WorkerStatus


class Worker(BaseModel):
    """Expert worker as persisted and published to viewers.

    ``current_load`` is a synthetic percentage, not measured resource use.
    """
    id: str = Field(..., description="Worker identifier, e.g. 'credit-agent'")
    name: str = Field(..., description="Display name")
    specialization: Specialization = Field(..., description="Task domain")
    status: WorkerStatus = Field(default=WorkerStatus.IDLE)
    current_load: float = Field(..., ge=0.0, le=LoadConstants.MAX_LOAD)
    processing_queue: List[str] = Field(
        default_factory=list, description="In-flight request ids, oldest first"
    )
    load_threshold: float = Field(..., ge=0.0, le=LoadConstants.MAX_LOAD)
    model: str = Field(default="", description="Model identifier used by this expert")
    tokens_per_minute: int = Field(default=0, ge=0)
    response_time: float = Field(default=0.0, ge=0.0, description="Seconds")
    instance_count: int = Field(default=1, ge=1)

    @computed_field  # type: ignore[misc]
    @property
    def is_scaling(self) -> bool:
        """True while load exceeds the worker's scaling threshold."""
        return self.current_load > self.load_threshold

    @model_validator(mode="after")
    def _check_overload_status(self) -> "Worker":
        overloaded = self.current_load > LoadConstants.OVERLOAD_THRESHOLD
        if overloaded != (self.status == WorkerStatus.OVERLOADED):
            raise ValueError(
                f"status {self.status.value} inconsistent with load {self.current_load:.1f}"
            )
        return self
