"""
Request and response models for the public and admin HTTP surface.
"""

from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, ConfigDict


class StateResponse(BaseModel):
    count: int
    target: int
    ca: Optional[str] = None
    launched: bool
    locked: bool
    lock_msg: str
    decree: str
    tide_warning: str
    blessed: str


class ClickResponse(BaseModel):
    count: int
    target: int
    launched: bool


class ErrorResponse(BaseModel):
    error: str
    message: Optional[str] = None


class PingResponse(BaseModel):
    ok: bool
    time: Optional[str] = None
    error: Optional[str] = None


class TelegramChat(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: Union[int, str]


class TelegramMessage(BaseModel):
    model_config = ConfigDict(extra="allow")

    chat: Optional[TelegramChat] = None
    text: Optional[str] = None


class TelegramUpdate(BaseModel):
    model_config = ConfigDict(extra="allow")

    update_id: Optional[int] = None
    message: Optional[TelegramMessage] = None


class WebhookAck(BaseModel):
    ok: bool = True


def update_to_dict(update: TelegramUpdate) -> Dict[str, Any]:
    return update.model_dump(exclude_none=True)
