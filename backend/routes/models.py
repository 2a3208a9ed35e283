"""Pydantic request/response models for API endpoints."""

from pydantic import BaseModel


class CreatePersona(BaseModel):
    name: str
    description: str = ""
    system_instruction: str
    avatar: str = ""
    model: str | None = None


class UpdatePersona(BaseModel):
    name: str | None = None
    description: str | None = None
    system_instruction: str | None = None
    avatar: str | None = None
    model: str | None = None


class CreateSession(BaseModel):
    name: str = ""
    participant_ids: list[str]


class InviteBody(BaseModel):
    persona_id: str


class SendMessageBody(BaseModel):
    content: str


class AutoModeBody(BaseModel):
    enabled: bool


class SessionConfigBody(BaseModel):
    api_key: str = ""
    base_url: str = ""
    model: str = ""
    moderator_model: str | None = None


class FetchModelsBody(BaseModel):
    base_url: str | None = None
    api_key: str | None = None
