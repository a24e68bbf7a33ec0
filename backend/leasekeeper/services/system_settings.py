"""System settings: runtime key/value configuration owned by super admins."""

import json
import logging
import re
from decimal import Decimal, InvalidOperation
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from leasekeeper.core.errors import ValidationFailed
from leasekeeper.models.enums import AuditAction
from leasekeeper.models.setting import SystemSetting
from leasekeeper.services.audit import AuditService

logger = logging.getLogger(__name__)

SETTING_TYPES = ("STRING", "NUMBER", "BOOLEAN", "JSON")
KEY_PATTERN = re.compile(r"^[a-z][a-z0-9_.\-]{0,99}$")


def parse_value(value: str, setting_type: str) -> Any:
    """Parse a stored value by its type. Raises ValidationFailed when it does not parse."""
    if setting_type == "STRING":
        return value
    if setting_type == "NUMBER":
        try:
            number = Decimal(value)
        except InvalidOperation:
            raise ValidationFailed(f"'{value}' is not a number")
        if not number.is_finite():
            raise ValidationFailed(f"'{value}' is not a finite number")
        return number
    if setting_type == "BOOLEAN":
        lowered = value.strip().lower()
        if lowered not in ("true", "false"):
            raise ValidationFailed("BOOLEAN settings must be 'true' or 'false'")
        return lowered == "true"
    if setting_type == "JSON":
        try:
            return json.loads(value)
        except ValueError:
            raise ValidationFailed("Value is not valid JSON")
    raise ValidationFailed(f"Unknown setting type '{setting_type}'")


class SystemSettingsService:
    def __init__(self, db: AsyncSession, ip_address: Optional[str] = None):
        self.db = db
        self.ip_address = ip_address
        self.audit = AuditService(db)

    async def list_settings(self) -> list[SystemSetting]:
        result = await self.db.execute(select(SystemSetting).order_by(SystemSetting.key))
        return list(result.scalars().all())

    async def get_value(self, key: str, default: Any = None) -> Any:
        setting = await self.db.scalar(select(SystemSetting).where(SystemSetting.key == key))
        if setting is None:
            return default
        return parse_value(setting.value, setting.type)

    async def set_setting(
        self,
        key: str,
        value: str,
        user_id: UUID,
        setting_type: Optional[str] = None,
        description: Optional[str] = None,
    ) -> SystemSetting:
        """Create or replace a setting. The type is kept unless a new one is given."""
        if not KEY_PATTERN.match(key):
            raise ValidationFailed(
                "Setting keys are lowercase letters, digits, '.', '_' or '-' and start with a letter"
            )

        setting = await self.db.scalar(select(SystemSetting).where(SystemSetting.key == key))
        resolved_type = setting_type or (setting.type if setting else "STRING")
        if resolved_type not in SETTING_TYPES:
            raise ValidationFailed(f"type must be one of {', '.join(SETTING_TYPES)}")
        parse_value(value, resolved_type)

        previous = setting.value if setting else None
        if setting is None:
            setting = SystemSetting(key=key, value=value, type=resolved_type, description=description)
            self.db.add(setting)
        else:
            setting.value = value
            setting.type = resolved_type
            if description is not None:
                setting.description = description
        setting.updated_by_id = user_id
        await self.db.flush()

        await self.audit.log(
            action=AuditAction.SYSTEM_SETTING_CHANGED,
            resource_type="system_setting",
            resource_id=setting.id,
            user_id=user_id,
            details={"key": key, "previous": previous, "value": value, "type": resolved_type},
            ip_address=self.ip_address,
        )
        await self.db.commit()
        logger.info(f"[SETTINGS] '{key}' set by {user_id}")
        return setting
