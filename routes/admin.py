from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from core.db import get_db
from core.errors import ConfigurationNotFound
from models.mpesa_configuration import MpesaConfiguration
from models.user import User
from routes.auth import require_admin
from schemas.mpesa_config import MpesaConfigAuditOut, MpesaConfigCreate, MpesaConfigOut, MpesaConfigUpdate
from services.provider_config import (
    activate_config,
    create_config,
    get_active_config,
    list_audit,
    list_configs,
    mask_secret,
    save_active_config,
)

router = APIRouter(prefix="/admin", tags=["admin"])


def _masked(config: MpesaConfiguration) -> MpesaConfigOut:
    return MpesaConfigOut(
        id=config.id,
        configuration_name=config.configuration_name,
        business_short_code=config.business_short_code,
        consumer_key=mask_secret(config.consumer_key),
        consumer_secret=mask_secret(config.consumer_secret),
        passkey=mask_secret(config.passkey),
        callback_url=config.callback_url,
        is_active=config.is_active,
        created_at=config.created_at,
        updated_at=config.updated_at,
    )


@router.get("/mpesa-config", response_model=MpesaConfigOut)
def read_mpesa_config(_: User = Depends(require_admin), db: Session = Depends(get_db)):
    try:
        return _masked(get_active_config(db))
    except ConfigurationNotFound as exc:
        raise HTTPException(status_code=404, detail=exc.message)


@router.put("/mpesa-config", response_model=MpesaConfigOut)
def update_mpesa_config(data: MpesaConfigUpdate, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    return _masked(save_active_config(db, data, changed_by=admin.id))


@router.get("/mpesa-configs", response_model=List[MpesaConfigOut])
def read_mpesa_configs(_: User = Depends(require_admin), db: Session = Depends(get_db)):
    return [_masked(config) for config in list_configs(db)]


@router.post("/mpesa-configs", response_model=MpesaConfigOut, status_code=status.HTTP_201_CREATED)
def add_mpesa_config(data: MpesaConfigCreate, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    return _masked(create_config(db, data, changed_by=admin.id))


@router.post("/mpesa-configs/{config_id}/activate", response_model=MpesaConfigOut)
def activate_mpesa_config(config_id: int, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    try:
        return _masked(activate_config(db, config_id, changed_by=admin.id))
    except ConfigurationNotFound as exc:
        raise HTTPException(status_code=404, detail=exc.message)


@router.get("/mpesa-config-audit", response_model=List[MpesaConfigAuditOut])
def read_mpesa_config_audit(limit: int = 50, _: User = Depends(require_admin), db: Session = Depends(get_db)):
    return list_audit(db, limit=min(max(limit, 1), 200))
