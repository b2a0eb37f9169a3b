"""Backend error body schema."""
from pydantic import BaseModel, ConfigDict


class APIErrorResponse(BaseModel):
    """Structured error body returned by the backend on failures."""

    model_config = ConfigDict(frozen=True)

    error: str
    message: str
    help: str = ""
