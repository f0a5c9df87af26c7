"""
Push notification contract.
"""

from pydantic import BaseModel, Field


class Notification(BaseModel):
    """Provider-agnostic push message."""

    title: str = Field(..., description="Notification title")
    body: str = Field(default="", description="Notification body")
    payload: dict[str, str] = Field(
        default_factory=dict,
        description="Data delivered to the app for deep-linking",
    )
