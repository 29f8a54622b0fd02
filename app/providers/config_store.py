# FILE: app/providers/config_store.py
"""
Persisted AI channel configuration.

The whole config list lives as one JSON document in the `settings` table
under STORAGE_KEY. A reserved internal Google config (managed key, fixed
model list) is always present:

- absent from storage  -> prepended on load
- present in storage   -> model list replaced by the built-in one; only the
                          primary flag is taken from storage

Exactly one model across all configs is primary. load_configs() repairs
stored data that breaks this, set_primary_model() moves the flag atomically.
"""
from __future__ import annotations

import json
import logging
import os
from typing import Any, Dict, List, Optional, Tuple
from uuid import uuid4

from sqlalchemy.orm import Session

from app.providers.models import Setting
from app.providers.schemas import (
    AIConfig,
    AIConfigCreate,
    AIConfigUpdate,
    ModelInstance,
    ModelInstanceIn,
    INTERNAL_CONFIG_ID,
    INTERNAL_MODEL_ID,
)

logger = logging.getLogger(__name__)

STORAGE_KEY = "ai_planner_configs_v5"

# Managed credential for the internal channel (and fallback for user Google configs)
MANAGED_KEY_ENV = "GOOGLE_API_KEY"


# =============================================================================
# EXCEPTIONS
# =============================================================================

class ConfigStoreError(Exception):
    """Base exception for config store operations."""
    pass


class ConfigNotFoundError(ConfigStoreError):
    """No config with the given id."""
    pass


class ModelNotFoundError(ConfigStoreError):
    """No model with the given id inside the config."""
    pass


class InternalConfigError(ConfigStoreError):
    """Operation would remove or empty the internal config."""
    pass


# =============================================================================
# INTERNAL CONFIG
# =============================================================================

def internal_config() -> AIConfig:
    """Fresh copy of the built-in internal config."""
    return AIConfig(
        id=INTERNAL_CONFIG_ID,
        channel="google",
        api_key="",
        is_internal=True,
        models=[
            ModelInstance(
                id=INTERNAL_MODEL_ID,
                name="Studio Native (Gemini 3 Pro)",
                model_id="gemini-3-pro-preview",
                is_primary=True,
            )
        ],
    )


def resolve_api_key(config: AIConfig) -> str:
    """Credential to send for a config; Google channels fall back to the managed key."""
    if config.channel == "google":
        if config.is_internal:
            return os.getenv(MANAGED_KEY_ENV, "")
        return config.api_key or os.getenv(MANAGED_KEY_ENV, "")
    return config.api_key


def parse_custom_params(raw: Optional[str]) -> Dict[str, Any]:
    """Decode a model's extra request parameters.

    Only a JSON object is accepted; anything else is ignored (returns {}).
    """
    if not raw or not raw.strip():
        return {}
    try:
        value = json.loads(raw)
    except ValueError:
        logger.warning("[config_store] Ignoring malformed custom params: %.80s", raw)
        return {}
    if not isinstance(value, dict):
        logger.warning("[config_store] Ignoring non-object custom params: %.80s", raw)
        return {}
    return value


# =============================================================================
# LOAD / SAVE
# =============================================================================

def _read_stored(db: Session) -> List[AIConfig]:
    row = db.get(Setting, STORAGE_KEY)
    if row is None:
        return []
    try:
        items = json.loads(row.value)
    except ValueError:
        logger.warning("[config_store] Stored configs are not valid JSON, starting empty")
        return []
    if not isinstance(items, list):
        return []

    configs: List[AIConfig] = []
    for item in items:
        try:
            configs.append(AIConfig.model_validate(item))
        except Exception as e:
            logger.warning("[config_store] Dropping invalid stored config: %s", e)
    return configs


def _normalize_primary(configs: List[AIConfig]) -> None:
    seen = False
    for config in configs:
        for model in config.models:
            if model.is_primary:
                if seen:
                    model.is_primary = False
                seen = True
    if not seen:
        for config in configs:
            if config.is_internal and config.models:
                config.models[0].is_primary = True
                break


def load_configs(db: Session) -> List[AIConfig]:
    """Load the config list with the internal config injected / re-synced."""
    stored = _read_stored(db)

    stored_internal = next((c for c in stored if c.id == INTERNAL_CONFIG_ID), None)
    if stored_internal is None:
        injected = internal_config()
        # Stored primaries win; _normalize_primary restores the default otherwise
        injected.models[0].is_primary = False
        configs = [injected] + stored
    else:
        stored_primary_ids = {m.id for m in stored_internal.models if m.is_primary}
        synced = internal_config()
        for model in synced.models:
            model.is_primary = model.id in stored_primary_ids
        configs = [synced if c.id == INTERNAL_CONFIG_ID else c for c in stored]

    _normalize_primary(configs)
    return configs


def save_configs(db: Session, configs: List[AIConfig]) -> None:
    payload = []
    for config in configs:
        data = config.model_dump()
        if config.is_internal:
            data["api_key"] = ""  # managed, never persisted
        payload.append(data)

    row = db.get(Setting, STORAGE_KEY)
    if row is None:
        row = Setting(key=STORAGE_KEY, value=json.dumps(payload))
        db.add(row)
    else:
        row.value = json.dumps(payload)
    db.commit()


# =============================================================================
# LOOKUPS
# =============================================================================

def _find_config(configs: List[AIConfig], config_id: str) -> AIConfig:
    for config in configs:
        if config.id == config_id:
            return config
    raise ConfigNotFoundError(f"Config not found: {config_id}")


def _find_model(config: AIConfig, model_id: str) -> ModelInstance:
    for model in config.models:
        if model.id == model_id:
            return model
    raise ModelNotFoundError(f"Model not found: {model_id} (config {config.id})")


def get_config(db: Session, config_id: str) -> AIConfig:
    return _find_config(load_configs(db), config_id)


def get_active_model(db: Session) -> Tuple[AIConfig, ModelInstance]:
    """Config + model currently marked primary (internal model as fallback)."""
    configs = load_configs(db)
    for config in configs:
        for model in config.models:
            if model.is_primary:
                return config, model
    fallback = internal_config()
    return fallback, fallback.models[0]


# =============================================================================
# MUTATIONS
# =============================================================================

def set_primary_model(db: Session, config_id: str, model_id: str) -> List[AIConfig]:
    configs = load_configs(db)
    target = _find_model(_find_config(configs, config_id), model_id)

    for config in configs:
        for model in config.models:
            model.is_primary = False
    target.is_primary = True

    save_configs(db, configs)
    logger.info("[config_store] Primary model -> %s/%s", config_id, model_id)
    return configs


def add_config(db: Session, data: AIConfigCreate) -> AIConfig:
    configs = load_configs(db)
    models = [
        ModelInstance(id=f"m-{uuid4().hex[:12]}", **m.model_dump())
        for m in data.models
    ] or [ModelInstance(id=f"m-{uuid4().hex[:12]}")]

    config = AIConfig(
        id=f"c-{uuid4().hex[:12]}",
        channel=data.channel,
        api_key=data.api_key,
        base_url=data.base_url,
        models=models,
    )
    configs.append(config)
    save_configs(db, configs)
    logger.info("[config_store] Added config %s (%s)", config.id, config.channel)
    return config


def update_config(db: Session, config_id: str, data: AIConfigUpdate) -> AIConfig:
    configs = load_configs(db)
    config = _find_config(configs, config_id)
    if config.is_internal:
        raise InternalConfigError("The internal config is managed and cannot be edited")

    if data.channel is not None:
        config.channel = data.channel
    if data.api_key is not None:
        config.api_key = data.api_key
    if data.base_url is not None:
        config.base_url = data.base_url or None

    save_configs(db, configs)
    return config


def remove_config(db: Session, config_id: str) -> None:
    configs = load_configs(db)
    config = _find_config(configs, config_id)
    if config.is_internal:
        raise InternalConfigError("The internal config cannot be removed")

    remaining = [c for c in configs if c.id != config_id]
    _normalize_primary(remaining)
    save_configs(db, remaining)
    logger.info("[config_store] Removed config %s", config_id)


def add_model(db: Session, config_id: str, data: ModelInstanceIn) -> ModelInstance:
    configs = load_configs(db)
    config = _find_config(configs, config_id)
    if config.is_internal:
        raise InternalConfigError("The internal config has a fixed model list")

    model = ModelInstance(id=f"m-{uuid4().hex[:12]}", **data.model_dump())
    config.models.append(model)
    save_configs(db, configs)
    return model


def update_model(db: Session, config_id: str, model_id: str, data: ModelInstanceIn) -> ModelInstance:
    configs = load_configs(db)
    config = _find_config(configs, config_id)
    if config.is_internal:
        raise InternalConfigError("The internal config has a fixed model list")

    model = _find_model(config, model_id)
    model.name = data.name
    model.model_id = data.model_id
    model.is_secondary = data.is_secondary
    model.custom_params = data.custom_params
    save_configs(db, configs)
    return model


def remove_model(db: Session, config_id: str, model_id: str) -> None:
    configs = load_configs(db)
    config = _find_config(configs, config_id)
    _find_model(config, model_id)
    if config.is_internal and len(config.models) <= 1:
        raise InternalConfigError("The internal config must keep at least one model")

    config.models = [m for m in config.models if m.id != model_id]
    _normalize_primary(configs)
    save_configs(db, configs)
