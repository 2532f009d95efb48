from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Any, List, Optional


def coerce_model_name(value: Any) -> Optional[str]:
    """Empty means absent; any other value is looked up by its string form."""
    if not value:
        return None
    return value if isinstance(value, str) else str(value)


class Message(BaseModel):
    model_config = ConfigDict(extra="allow")

    role: str
    content: str


class ChatRequest(BaseModel):
    # Unknown OpenAI parameters (stream, top_p, n, ...) are accepted and dropped
    model_config = ConfigDict(extra="ignore")

    model: Optional[str] = None
    messages: List[Message] = Field(min_length=1)
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None

    # Only `messages` can make a request invalid; unusable tuning values
    # fall back to their defaults
    @field_validator("model", mode="before")
    @classmethod
    def _lenient_model(cls, value: Any) -> Optional[str]:
        return coerce_model_name(value)

    @field_validator("temperature", mode="before")
    @classmethod
    def _lenient_temperature(cls, value: Any) -> Optional[float]:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return None
        return value

    @field_validator("max_tokens", mode="before")
    @classmethod
    def _lenient_max_tokens(cls, value: Any) -> Optional[int]:
        if isinstance(value, bool):
            return None
        if isinstance(value, float) and value.is_integer():
            return int(value)
        return value if isinstance(value, int) else None


class Choice(BaseModel):
    index: int
    message: Message
    logprobs: Optional[Any] = None
    finish_reason: Optional[str] = None


class Usage(BaseModel):
    model_config = ConfigDict(extra="allow")

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class ChatResponse(BaseModel):
    id: str
    object: str = "chat.completion"
    created: int
    model: str
    choices: List[Choice]
    usage: Usage
    system_fingerprint: Optional[str] = None


class ErrorDetail(BaseModel):
    model_config = ConfigDict(extra="allow")

    message: str
    type: str


class ErrorResponse(BaseModel):
    error: ErrorDetail


class ModelCard(BaseModel):
    id: str
    object: str = "model"
    owned_by: str = "nvidia-nim"
    upstream: Optional[str] = None


class ModelList(BaseModel):
    object: str = "list"
    data: List[ModelCard]
