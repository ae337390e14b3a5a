"""Группы пользователя из LDAP / Active Directory.

ldap3 синхронный, поэтому поиск выполняется в отдельном потоке.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Iterable

from ldap3 import NONE, SUBTREE, Connection, Server
from ldap3.core.exceptions import LDAPException, LDAPInvalidDnError
from ldap3.utils.conv import escape_filter_chars
from ldap3.utils.dn import parse_dn

from portal.core.config import Settings
from portal.core.errors import ConfigurationError, ExecutionError

logger = logging.getLogger(__name__)

LDAP_API_ERROR = "An Error has occured while getting your LDAP groups. Please create an Issue."


def group_cn(dn: str) -> str:
    """Значение первой RDN: `CN=DG_ADMINS,OU=Groups,DC=x` -> `DG_ADMINS`.

    Пустая строка, если DN не разбирается или первая RDN составная.
    """
    try:
        parts = parse_dn(dn)
    except LDAPInvalidDnError:
        logger.error("Could not parse DN dn=%s", dn)
        return ""
    if not parts:
        return ""
    _attr, value, separator = parts[0]
    if separator == "+":
        logger.error("Unexpected attributes length dn=%s", dn)
        return ""
    return value


def drop_blacklisted(groups: Iterable[str], blacklist: Iterable[str]) -> list[str]:
    ignored = {group.lower() for group in blacklist}
    return [group for group in groups if group and group.lower() not in ignored]


class DirectoryClient:
    def __init__(self, settings: Settings) -> None:
        self.host = settings.ldap_host
        self.port = settings.ldap_port
        self.use_ssl = settings.ldap_use_ssl
        self.bind_dn = settings.ldap_bind_dn
        self.password = settings.ldap_password
        self.base = settings.ldap_base
        self.user_filter = settings.ldap_user_filter
        self.blacklist = settings.ldap_group_blacklist_list

    def _connect(self) -> Connection:
        if not (self.host and self.base and self.bind_dn and self.password):
            logger.error("LDAP configuration incomplete. Must set host, base, dn and password")
            raise ConfigurationError()
        server = Server(self.host, port=self.port, use_ssl=self.use_ssl, get_info=NONE)
        return Connection(server, user=self.bind_dn, password=self.password, read_only=True, auto_bind=True)

    def _member_of(self, username: str) -> list[str]:
        with self._connect() as conn:
            conn.search(
                self.base,
                self.user_filter % escape_filter_chars(username),
                search_scope=SUBTREE,
                attributes=["memberOf"],
            )
            entries = [item for item in conn.response or [] if item.get("type") == "searchResEntry"]

        if len(entries) > 1:
            logger.error("Multiple LDAP users returned username=%s count=%s", username, len(entries))
            raise ExecutionError(LDAP_API_ERROR)
        if not entries:
            logger.warning("LDAP user not found username=%s", username)
            return []
        values = entries[0].get("attributes", {}).get("memberOf") or []
        if isinstance(values, str):
            values = [values]
        return list(values)

    async def get_groups_of_user(self, username: str) -> list[str]:
        try:
            member_of = await asyncio.to_thread(self._member_of, username)
        except LDAPException as exc:
            logger.error("LDAP search failed username=%s error=%s", username, exc)
            raise ExecutionError(LDAP_API_ERROR) from exc
        return drop_blacklisted((group_cn(dn) for dn in member_of), self.blacklist)
