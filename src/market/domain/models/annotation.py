from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

# Labeling payloads are opaque documents; only the HTTP layer checks their shape.
AnnotationPayload = dict[str, Any]


class AnnotationRaw(BaseModel):
    id: str | None = Field(default=None, description="Annotation identifier.")
    task_id: str = Field(description="Task the annotation was submitted for.")
    labeler_user_id: str = Field(description="Labeler who submitted it.")
    payload: AnnotationPayload = Field(description="Submitted labeling document.")
    created_at: datetime | None = Field(default=None, description="Submission time.")
