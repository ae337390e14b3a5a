from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

from glusterapi.errors import ConfigurationError
from glusterapi.naming import SizeLimit


class GlusterSettings(BaseSettings):
    """Параметры узла. Читаются один раз при старте и дальше не меняются."""

    model_config = SettingsConfigDict(env_prefix="GLUSTER_", env_file=".env", extra="ignore", frozen=True)

    port: int = 8080
    max_gb: int = 100
    replicas: int = 2
    pool_name: str = ""
    vg_name: str = ""
    base_path: str = ""
    secret: str = ""
    # None = без дедлайна (как у транспорта по умолчанию): зависший сосед блокирует запрос.
    peer_timeout_seconds: Optional[float] = None
    json_logs: bool = False
    log_level: str = "INFO"

    @property
    def size_limit(self) -> SizeLimit:
        return SizeLimit(max_gigabytes=self.max_gb)

    def require_complete(self) -> "GlusterSettings":
        if not (self.base_path and self.pool_name and self.vg_name and self.secret):
            raise ConfigurationError()
        return self


@lru_cache()
def get_settings() -> GlusterSettings:
    return GlusterSettings().require_complete()
