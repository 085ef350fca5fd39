"""Value types for browsing history records."""

import math
from datetime import datetime
from typing import Annotated, Any

from pydantic import AfterValidator, Field, field_validator, model_validator

from history_ranker.data_model import StrictBaseModel, ensure_aware


AwareDatetime = Annotated[datetime, AfterValidator(ensure_aware)]


def clamp_unit(value: float) -> float:
    """Clamp a value into [0, 1], mapping NaN to 0."""
    if math.isnan(value):
        return 0.0
    return max(0.0, min(1.0, value))


class Page(StrictBaseModel):
    """A visited page, keyed by a stable page_id.

    Created and updated by the navigation collaborator. The ranking engine
    only ever changes ``personal_score``.
    """

    page_id: Annotated[str, Field(min_length=1, description="Stable page key")]
    url: Annotated[str, Field(min_length=1, description="Page URL")]
    title: str = Field(default="", description="Page title")
    domain: str = Field(default="", description="Host name of the URL")
    first_visit: AwareDatetime = Field(description="First visit timestamp")
    last_visit: AwareDatetime = Field(description="Most recent visit timestamp")
    visit_count: Annotated[int, Field(ge=0)] = 0
    total_active_time: Annotated[float, Field(ge=0.0, description="Seconds")] = 0.0
    personal_score: float = Field(default=0.5, description="Learned preference")

    @field_validator("personal_score", mode="before")
    @classmethod
    def clamp_personal_score(cls, v: Any) -> float:
        """Keep personal_score inside [0, 1]."""
        return clamp_unit(float(v))

    @model_validator(mode="after")
    def validate_visit_order(self) -> "Page":
        """Ensure last_visit is not before first_visit."""
        if self.last_visit < self.first_visit:
            msg = "last_visit must not precede first_visit"
            raise ValueError(msg)
        return self

    def with_personal_score(self, score: float) -> "Page":
        """Return a copy with a new (clamped) personal score."""
        return self.model_validate({**self.model_dump(), "personal_score": score})


class Visit(StrictBaseModel):
    """A single visit to a page. Immutable once closed."""

    visit_id: Annotated[str, Field(min_length=1)]
    page_id: Annotated[str, Field(min_length=1)]
    session_id: Annotated[str, Field(min_length=1)]
    start_time: AwareDatetime
    total_active_time: Annotated[float, Field(ge=0.0, description="Seconds")] = 0.0
    end_time: AwareDatetime | None = None
    from_page_id: str | None = None
    is_back_navigation: bool = False

    @model_validator(mode="after")
    def validate_end_time(self) -> "Visit":
        """Ensure end_time is not before start_time."""
        if self.end_time is not None and self.end_time < self.start_time:
            msg = "end_time must not precede start_time"
            raise ValueError(msg)
        return self


class Edge(StrictBaseModel):
    """Aggregated page-to-page transition, identified by (from, to)."""

    from_page_id: Annotated[str, Field(min_length=1)]
    to_page_id: Annotated[str, Field(min_length=1)]
    session_id: Annotated[str, Field(min_length=1)]
    count: Annotated[int, Field(ge=0, description="Traversal count")] = 1
    first_traversal: AwareDatetime
    last_traversal: AwareDatetime

    @model_validator(mode="after")
    def validate_traversal_order(self) -> "Edge":
        """Ensure last_traversal is not before first_traversal."""
        if self.last_traversal < self.first_traversal:
            msg = "last_traversal must not precede first_traversal"
            raise ValueError(msg)
        return self


class Session(StrictBaseModel):
    """A browsing session."""

    session_id: Annotated[str, Field(min_length=1)]
    start_time: AwareDatetime
    last_activity_at: AwareDatetime
    total_active_time: Annotated[float, Field(ge=0.0, description="Seconds")] = 0.0
    is_active: bool = False
    end_time: AwareDatetime | None = None

    @model_validator(mode="after")
    def validate_activity_order(self) -> "Session":
        """Ensure last activity is not before the session start."""
        if self.last_activity_at < self.start_time:
            msg = "last_activity_at must not precede start_time"
            raise ValueError(msg)
        return self
