from __future__ import annotations

import json
import logging
from typing import Any

from sqlalchemy.orm import Session

from notify_scheduler.cache import CacheManager, cache, cache_key
from notify_scheduler.config import settings
from notify_scheduler.models import Setting


logger = logging.getLogger(__name__)

CACHE_PREFIX = 'settings'

NOTIFICATIONS_ENABLED = 'notifications_enabled'
NOTIFICATION_LOOKAHEAD_DAYS = 'notification_lookahead_days'

_TRUTHY = ('1', 'true', 'yes', 'y', 'on')
_MISSING = {'__missing__': True}


class ConfigProvider:
    def get(self, key: str, default: Any = None) -> Any:
        raise NotImplementedError

    def set(self, key: str, value: Any, *, type: str = 'string', group: str = 'general', description: str = '') -> None:
        raise NotImplementedError

    def invalidate(self, key: str) -> None:
        raise NotImplementedError

    def get_int(self, key: str, default: int) -> int:
        value = self.get(key, default)
        try:
            return int(value)
        except (TypeError, ValueError):
            logger.warning('setting_not_an_integer key=%s value=%r', key, value)
            return default

    def get_bool(self, key: str, default: bool) -> bool:
        value = self.get(key, default)
        if isinstance(value, bool):
            return value
        if value is None:
            return default
        return str(value).strip().lower() in _TRUTHY


def _encode(value: Any, value_type: str) -> str | None:
    if value is None:
        return None
    if value_type == 'json':
        return json.dumps(value)
    if value_type == 'boolean':
        return '1' if value else '0'
    return str(value)


def _decode(raw: str | None, value_type: str) -> Any:
    if raw is None:
        return None
    if value_type == 'integer':
        try:
            return int(raw)
        except ValueError:
            return raw
    if value_type == 'boolean':
        return raw.strip().lower() in _TRUTHY
    if value_type == 'json':
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            return raw
    return raw


class DatabaseConfigProvider(ConfigProvider):
    """Settings table lookups fronted by the shared cache."""

    def __init__(self, db: Session, *, cache_manager: CacheManager = cache, ttl: int | None = None) -> None:
        self.db = db
        self.cache = cache_manager
        self.ttl = ttl if ttl is not None else settings.settings_cache_ttl

    def _key(self, key: str) -> str:
        return cache_key(CACHE_PREFIX, key)

    def get(self, key: str, default: Any = None) -> Any:
        cached = self.cache.get_cached(self._key(key))
        if cached is not None:
            return default if cached == _MISSING else cached

        row = self.db.query(Setting).filter(Setting.key == key).first()
        value = _decode(row.value, row.type) if row else None
        # Absent keys are cached too so repeated misses stay off the database.
        self.cache.set_cached(self._key(key), _MISSING if value is None else value, self.ttl)
        return default if value is None else value

    def set(self, key: str, value: Any, *, type: str = 'string', group: str = 'general', description: str = '') -> None:
        row = self.db.query(Setting).filter(Setting.key == key).first()
        if not row:
            row = Setting(key=key)
            self.db.add(row)
        row.value = _encode(value, type)
        row.type = type
        row.group = group
        if description:
            row.description = description
        self.db.commit()
        self.invalidate(key)
        logger.info('setting_updated key=%s group=%s', key, group)

    def invalidate(self, key: str) -> None:
        self.cache.invalidate(self._key(key))

    def invalidate_all(self) -> None:
        self.cache.invalidate_prefix(f'{CACHE_PREFIX}:')


DEFAULT_SETTINGS = (
    (NOTIFICATIONS_ENABLED, True, 'boolean', 'Master switch for class notification scheduling'),
    (NOTIFICATION_LOOKAHEAD_DAYS, settings.notification_lookahead_days, 'integer', 'Days ahead the timetable sweep materializes'),
)


def seed_default_settings(db: Session) -> list[str]:
    """Insert missing notification settings; existing values are left alone."""
    provider = DatabaseConfigProvider(db)
    created: list[str] = []
    for key, value, value_type, description in DEFAULT_SETTINGS:
        if db.query(Setting.id).filter(Setting.key == key).first():
            continue
        provider.set(key, value, type=value_type, group='notifications', description=description)
        created.append(key)
    return created
