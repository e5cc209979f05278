"""
Daraja credentials rows.

Administrators may keep several named rows (sandbox, production, a rotated
key pair) but exactly one is active at a time; the payment initiator only
ever reads that one. Every change is written to ``mpesa_configuration_audit``
together with the row change, naming the fields touched but never their values.
"""
import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from core.db import transaction
from core.errors import ConfigurationNotFound
from models.mpesa_configuration import MpesaConfiguration
from models.mpesa_configuration_audit import MpesaConfigurationAudit
from schemas.mpesa_config import MpesaConfigCreate, MpesaConfigUpdate

logger = logging.getLogger(__name__)

CREDENTIAL_FIELDS = ("business_short_code", "consumer_key", "consumer_secret", "passkey", "callback_url")


def get_active_config(db: Session) -> MpesaConfiguration:
    """The single active credentials row. There is no fallback when it is missing."""
    config = (
        db.query(MpesaConfiguration)
        .filter(MpesaConfiguration.is_active.is_(True))
        .order_by(MpesaConfiguration.updated_at.desc())
        .first()
    )
    if config is None:
        raise ConfigurationNotFound()
    return config


def list_configs(db: Session) -> List[MpesaConfiguration]:
    return (
        db.query(MpesaConfiguration)
        .order_by(MpesaConfiguration.created_at.desc(), MpesaConfiguration.id.desc())
        .all()
    )


def list_audit(db: Session, limit: int = 50) -> List[MpesaConfigurationAudit]:
    return (
        db.query(MpesaConfigurationAudit)
        .order_by(MpesaConfigurationAudit.changed_at.desc(), MpesaConfigurationAudit.id.desc())
        .limit(limit)
        .all()
    )


def _record(db: Session, config: MpesaConfiguration, action: str, changed_by: Optional[int], description: str):
    db.add(
        MpesaConfigurationAudit(
            configuration_id=config.id,
            action=action,
            changed_by=changed_by,
            change_description=description,
        )
    )


def _deactivate_others(db: Session, keep_id: Optional[int] = None):
    query = db.query(MpesaConfiguration).filter(MpesaConfiguration.is_active.is_(True))
    if keep_id is not None:
        query = query.filter(MpesaConfiguration.id != keep_id)
    query.update({MpesaConfiguration.is_active: False}, synchronize_session="fetch")


def _apply_credentials(config: MpesaConfiguration, data: MpesaConfigUpdate) -> List[str]:
    changed = []
    for field in CREDENTIAL_FIELDS:
        value = str(getattr(data, field))
        if getattr(config, field, None) != value:
            setattr(config, field, value)
            changed.append(field)
    return changed


def save_active_config(db: Session, data: MpesaConfigUpdate, changed_by: Optional[int] = None) -> MpesaConfiguration:
    """Edit the active row in place, or create it when there is none."""
    with transaction(db):
        try:
            config = get_active_config(db)
            action = "updated"
        except ConfigurationNotFound:
            config = MpesaConfiguration(is_active=True, created_by=changed_by)
            db.add(config)
            action = "created"
        changed = _apply_credentials(config, data)
        db.flush()
        _record(db, config, action, changed_by, f"Changed: {', '.join(changed)}" if changed else "No changes")
    db.refresh(config)
    logger.info("M-Pesa configuration %s %s by user %s", config.id, action, changed_by)
    return config


def create_config(db: Session, data: MpesaConfigCreate, changed_by: Optional[int] = None) -> MpesaConfiguration:
    """Add a named row. It starts inactive unless asked otherwise or no row is active yet."""
    with transaction(db):
        has_active = (
            db.query(MpesaConfiguration.id).filter(MpesaConfiguration.is_active.is_(True)).first() is not None
        )
        activate = data.activate or not has_active
        if activate:
            _deactivate_others(db)
        config = MpesaConfiguration(
            configuration_name=data.configuration_name,
            is_active=activate,
            created_by=changed_by,
        )
        _apply_credentials(config, data)
        db.add(config)
        db.flush()
        _record(db, config, "created", changed_by, f"Created '{config.configuration_name}'")
        if activate:
            _record(db, config, "activated", changed_by, f"Activated '{config.configuration_name}'")
    db.refresh(config)
    logger.info("M-Pesa configuration %s created by user %s (active=%s)", config.id, changed_by, activate)
    return config


def activate_config(db: Session, config_id: int, changed_by: Optional[int] = None) -> MpesaConfiguration:
    """Make ``config_id`` the only active row, in one transaction."""
    config = db.get(MpesaConfiguration, config_id)
    if config is None:
        raise ConfigurationNotFound(f"MPESA configuration {config_id} not found")
    with transaction(db):
        _deactivate_others(db, keep_id=config.id)
        config.is_active = True
        _record(db, config, "activated", changed_by, f"Activated '{config.configuration_name}'")
    db.refresh(config)
    logger.info("M-Pesa configuration %s activated by user %s", config.id, changed_by)
    return config


def mask_secret(value: str, visible: int = 4) -> str:
    if not value:
        return ""
    if len(value) <= visible:
        return "*" * len(value)
    return "*" * (len(value) - visible) + value[-visible:]
