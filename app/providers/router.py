# FILE: app/providers/router.py
"""
AI channel configuration endpoints.

Keys are write-only: responses carry api_key_masked / has_api_key.
"""
from typing import List
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.db import get_db
from app.providers import config_store
from app.providers.config_store import (
    ConfigNotFoundError,
    ConfigStoreError,
    ModelNotFoundError,
)
from app.providers.schemas import (
    ActiveModelOut,
    AIConfigCreate,
    AIConfigOut,
    AIConfigUpdate,
    ModelInstance,
    ModelInstanceIn,
    SetPrimaryRequest,
)

router = APIRouter(prefix="/providers", tags=["providers"])


def _http_error(e: ConfigStoreError) -> HTTPException:
    if isinstance(e, (ConfigNotFoundError, ModelNotFoundError)):
        return HTTPException(status_code=404, detail=str(e))
    return HTTPException(status_code=400, detail=str(e))


# ============== CONFIGS ==============

@router.get("/configs", response_model=List[AIConfigOut])
def list_configs(db: Session = Depends(get_db)):
    return [AIConfigOut.from_config(c) for c in config_store.load_configs(db)]


@router.post("/configs", response_model=AIConfigOut)
def add_config(data: AIConfigCreate, db: Session = Depends(get_db)):
    return AIConfigOut.from_config(config_store.add_config(db, data))


@router.patch("/configs/{config_id}", response_model=AIConfigOut)
def update_config(config_id: str, data: AIConfigUpdate, db: Session = Depends(get_db)):
    try:
        return AIConfigOut.from_config(config_store.update_config(db, config_id, data))
    except ConfigStoreError as e:
        raise _http_error(e)


@router.delete("/configs/{config_id}")
def remove_config(config_id: str, db: Session = Depends(get_db)):
    try:
        config_store.remove_config(db, config_id)
    except ConfigStoreError as e:
        raise _http_error(e)
    return {"status": "deleted", "config_id": config_id}


# ============== MODELS ==============

@router.post("/configs/{config_id}/models", response_model=ModelInstance)
def add_model(config_id: str, data: ModelInstanceIn, db: Session = Depends(get_db)):
    try:
        return config_store.add_model(db, config_id, data)
    except ConfigStoreError as e:
        raise _http_error(e)


@router.put("/configs/{config_id}/models/{model_id}", response_model=ModelInstance)
def update_model(config_id: str, model_id: str, data: ModelInstanceIn, db: Session = Depends(get_db)):
    try:
        return config_store.update_model(db, config_id, model_id, data)
    except ConfigStoreError as e:
        raise _http_error(e)


@router.delete("/configs/{config_id}/models/{model_id}")
def remove_model(config_id: str, model_id: str, db: Session = Depends(get_db)):
    try:
        config_store.remove_model(db, config_id, model_id)
    except ConfigStoreError as e:
        raise _http_error(e)
    return {"status": "deleted", "model_id": model_id}


# ============== PRIMARY ==============

@router.get("/active", response_model=ActiveModelOut)
def active_model(db: Session = Depends(get_db)):
    config, model = config_store.get_active_model(db)
    return ActiveModelOut(config_id=config.id, channel=config.channel, model=model)


@router.post("/primary", response_model=ActiveModelOut)
def set_primary(req: SetPrimaryRequest, db: Session = Depends(get_db)):
    try:
        config_store.set_primary_model(db, req.config_id, req.model_id)
    except ConfigStoreError as e:
        raise _http_error(e)
    config, model = config_store.get_active_model(db)
    return ActiveModelOut(config_id=config.id, channel=config.channel, model=model)
