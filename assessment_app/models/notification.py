from datetime import datetime
from uuid import uuid4

from pydantic import BaseModel, Field

from assessment_app.models.application import utc_now
from assessment_app.models.enumerations import NotificationVariant


class Notification(BaseModel):
    """
    User-visible, dismissible message raised by explicit (non-auto) actions.
    """

    id: str = Field(default_factory=lambda: str(uuid4()))
    title: str = Field(..., max_length=120)
    message: str = ""
    variant: NotificationVariant = NotificationVariant.DEFAULT
    created_at: datetime = Field(default_factory=utc_now)
