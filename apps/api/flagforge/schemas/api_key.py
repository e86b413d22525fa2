"""
API Key schemas.
"""

from datetime import datetime
from pydantic import BaseModel, Field, model_validator

from flagforge.models.api_key import APIKeyType


class APIKeyCreate(BaseModel):
    """
    API key creation schema.

    `environment`, `projects` and `encrypt_payload` only matter for client
    (SDK) keys.
    """
    name: str = Field(min_length=1, max_length=255)
    description: str | None = Field(None, max_length=1000)
    key_type: APIKeyType = APIKeyType.CLIENT
    environment: str | None = Field(None, max_length=100)
    projects: list[str] = Field(default_factory=list)
    encrypt_payload: bool = False
    expires_at: datetime | None = None

    @model_validator(mode="after")
    def client_only_payload_options(self) -> "APIKeyCreate":
        if self.key_type != APIKeyType.CLIENT and (self.projects or self.encrypt_payload):
            raise ValueError("projects and encrypt_payload apply to client keys only")
        return self
