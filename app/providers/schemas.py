# FILE: app/providers/schemas.py
"""
Provider configuration schemas.

AIConfig describes one channel (google | openai | compatible | openrouter),
its credential, optional base URL and model inventory. Across all configs
exactly one ModelInstance carries is_primary=True; the config store keeps
that invariant.

ConnectivityReport is a point-in-time probe result. failure_kind lets the
connectivity monitor tell timeouts, rate limits and plain failures apart.
"""
from typing import List, Literal, Optional
from pydantic import BaseModel, Field


AIChannel = Literal["google", "openai", "compatible", "openrouter"]

INTERNAL_CONFIG_ID = "google-internal"
INTERNAL_MODEL_ID = "m-internal"


# ============== MODELS ==============

class ModelInstance(BaseModel):
    id: str
    name: str = "New Model"
    model_id: str = ""
    is_primary: bool = False
    is_secondary: bool = False
    custom_params: Optional[str] = None  # JSON object text, merged into request bodies


class AIConfig(BaseModel):
    id: str
    channel: AIChannel = "compatible"
    api_key: str = ""
    base_url: Optional[str] = None
    models: List[ModelInstance] = Field(default_factory=list)
    is_internal: bool = False


# ============== API ==============

class ModelInstanceIn(BaseModel):
    name: str = "New Model"
    model_id: str = ""
    is_secondary: bool = False
    custom_params: Optional[str] = None


class AIConfigCreate(BaseModel):
    channel: AIChannel = "compatible"
    api_key: str = ""
    base_url: Optional[str] = None
    models: List[ModelInstanceIn] = Field(default_factory=list)


class AIConfigUpdate(BaseModel):
    channel: Optional[AIChannel] = None
    api_key: Optional[str] = None
    base_url: Optional[str] = None


class AIConfigOut(BaseModel):
    """AIConfig as exposed over HTTP: the key is masked."""
    id: str
    channel: AIChannel
    api_key_masked: str
    has_api_key: bool
    base_url: Optional[str]
    models: List[ModelInstance]
    is_internal: bool

    @classmethod
    def from_config(cls, config: AIConfig) -> "AIConfigOut":
        return cls(
            id=config.id,
            channel=config.channel,
            api_key_masked=mask_api_key(config.api_key),
            has_api_key=bool(config.api_key),
            base_url=config.base_url,
            models=config.models,
            is_internal=config.is_internal,
        )


class SetPrimaryRequest(BaseModel):
    config_id: str
    model_id: str


class ActiveModelOut(BaseModel):
    config_id: str
    channel: AIChannel
    model: ModelInstance


# ============== CONNECTIVITY ==============

class ConnectivityReport(BaseModel):
    success: bool
    message: str
    latency: Optional[int] = None  # ms
    model_id: Optional[str] = None
    channel: Optional[str] = None
    timestamp: int  # epoch ms
    failure_kind: Optional[str] = None  # config | timeout | network | http | rate_limit


def mask_api_key(key: str) -> str:
    if not key:
        return ""
    if len(key) <= 8:
        return "*" * len(key)
    return f"{key[:4]}...{key[-4:]}"
