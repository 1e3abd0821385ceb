"""
Pydantic schemas for the API.

Request and response bodies use camelCase field names on the wire. Transcript
messages reuse the transcript models directly so a finished request's
messages can be posted back unchanged.
"""

from typing import Literal, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ..models import Capability, Message


class ChatRequest(BaseModel):
    """Request body for /api/chat."""

    messages: list[Message] = Field(
        ..., description="Transcript so far, oldest first", min_length=1
    )
    enabled_tool_ids: Optional[list[str]] = Field(
        default=None,
        validation_alias=AliasChoices("enabledToolIds", "enabledServers", "enabled_tool_ids"),
        serialization_alias="enabledToolIds",
        description=(
            "Tool ids enabled for this request. Unknown ids are ignored. "
            "When omitted, the catalog's default-enabled tools are used."
        ),
    )

    model_config = {
        "json_schema_extra": {
            "example": {
                "messages": [
                    {
                        "id": "msg-1",
                        "role": "user",
                        "parts": [{"type": "text", "text": "What is 2 + 2?"}],
                    }
                ],
                "enabledToolIds": ["calculator", "weather"],
            }
        }
    }


class CapabilityInfo(BaseModel):
    """A selectable tool as listed by /api/tools."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    name: str
    description: str
    icon: str = ""
    default_enabled: bool = True

    @classmethod
    def from_capability(cls, capability: Capability) -> "CapabilityInfo":
        return cls(
            id=capability.id,
            name=capability.name,
            description=capability.description,
            icon=capability.icon,
            default_enabled=capability.default_enabled,
        )


class CapabilityListResponse(BaseModel):
    """Response body for /api/tools."""

    object: Literal["list"] = "list"
    data: list[CapabilityInfo]


class HealthResponse(BaseModel):
    """Response body for /health endpoint."""

    status: Literal["healthy", "unhealthy"]
    version: str
    model: str


class ErrorResponse(BaseModel):
    """Error body returned with 4xx/5xx responses."""

    detail: str
