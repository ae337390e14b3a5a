import json
from functools import lru_cache
from typing import List, Optional

from pydantic import BaseModel
from pydantic_settings import BaseSettings, SettingsConfigDict

from portal.core.errors import ConfigurationError


def _split_list(raw: str, env_name: str) -> List[str]:
    # CSV или JSON-массив
    raw = (raw or "").strip()
    if not raw:
        return []
    if raw.startswith("["):
        parsed = json.loads(raw)
        if not isinstance(parsed, list):
            raise ValueError(f"{env_name} must be a JSON array or a comma-separated string")
        return [str(item).strip() for item in parsed if str(item).strip()]
    return [item.strip() for item in raw.split(",") if item.strip()]


class GlusterApiConfig(BaseModel):
    url: str = ""
    secret: str = ""
    # IP gluster-узлов через запятую, из них собираются Endpoints в проекте
    ips: str = ""
    storage_class: str = ""

    @property
    def ip_list(self) -> List[str]:
        return _split_list(self.ips, "gluster_api.ips")


class ClusterConfig(BaseModel):
    id: str
    url: str = ""
    token: str = ""
    verify_tls: bool = True
    gluster_api: Optional[GlusterApiConfig] = None


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore", frozen=True)

    app_name: str = "Self-Service Portal API"
    # Pydantic-settings (v2) пытается парсить List из env как JSON ещё до валидации,
    # поэтому списки храним строкой и парсим сами (CSV или JSON-массив).
    frontend_cors_origins: str = "http://localhost:4173"
    json_logs: bool = False
    log_level: str = "INFO"

    # Токены: HS256 по SECRET_KEY или RS256 по ключам из JWKS_URL (Keycloak).
    # Хотя бы одно из двух обязательно, иначе портал не стартует.
    secret_key: str = ""
    jwks_url: str = ""
    signing_key_ttl_seconds: int = 8 * 60 * 60
    jwks_min_refresh_seconds: int = 60

    # 0 = не задано, операции с томами отвечают ConfigurationError
    max_volume_gb: int = 0
    openshift_clusters: str = "[]"

    ldap_host: str = ""
    ldap_port: int = 389
    ldap_bind_dn: str = ""
    ldap_password: str = ""
    ldap_base: str = ""
    ldap_user_filter: str = "(cn=%s)"
    ldap_use_ssl: bool = False
    ldap_group_blacklist: str = ""

    # Пусто = без обхода проверок
    acl_superadmin_group: str = ""
    acl_owner_group_key: str = "uos_group"
    acl_owner_tag: str = "Creator"

    # OTC (OpenStack): Keystone v3, пароль сервисного пользователя
    otc_auth_url: str = ""
    otc_username: str = ""
    otc_password: str = ""
    otc_project_id: str = ""
    otc_user_domain_name: str = ""
    otc_region: str = ""

    aws_region: str = ""

    # None = без дедлайна
    upstream_timeout_seconds: Optional[float] = None

    @property
    def frontend_cors_origins_list(self) -> List[str]:
        return _split_list(self.frontend_cors_origins, "FRONTEND_CORS_ORIGINS")

    @property
    def ldap_group_blacklist_list(self) -> List[str]:
        return _split_list(self.ldap_group_blacklist, "LDAP_GROUP_BLACKLIST")

    @property
    def clusters(self) -> List[ClusterConfig]:
        raw = (self.openshift_clusters or "").strip() or "[]"
        parsed = json.loads(raw)
        if not isinstance(parsed, list):
            raise ValueError("OPENSHIFT_CLUSTERS must be a JSON array")
        return [ClusterConfig.model_validate(item) for item in parsed]

    def require_token_keys(self) -> "Settings":
        if not (self.secret_key or self.jwks_url):
            raise ConfigurationError("Neither SECRET_KEY nor JWKS_URL is set")
        return self


@lru_cache()
def get_settings() -> Settings:
    return Settings().require_token_keys()


settings = get_settings()
