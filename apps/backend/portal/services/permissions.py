"""Проверка прав пользователя на ресурс.

Права не хранятся в портале: список тех, кому можно, каждый раз читается
из системы-владельца ресурса. Тип ресурса выбирается явно через `AclKind`:

- `role_binding`:    проект OpenShift: subjects role binding `admin`
                      (+ пользователи группы `operator`, если она там есть);
- `directory_group`: сервер OTC: группа из метаданных сервера
                      (по умолчанию ключ `uos_group`) против LDAP-групп пользователя;
- `tag_owner`:       инстанс EC2: значение тега (по умолчанию `Creator`)
                      против имени пользователя.

Правило одно для всех типов:
1. пользователь из группы суперадминов проходит без дальнейших проверок;
2. не удалось получить список: `ExecutionError` (не "разрешено" и не "запрещено");
3. доступ есть, если пересечение идентификаторов пользователя и списка не пусто,
   иначе `PermissionDeniedError` со списком тех, у кого доступ есть.

Сравнение везде без учёта регистра.
"""

from __future__ import annotations

import abc
import enum
import logging
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Optional, Protocol

from portal.clients.openshift import OpenShiftClient
from portal.core.errors import ConfigurationError, ExecutionError, PermissionDeniedError, ValidationError

logger = logging.getLogger(__name__)

ADMIN_ROLE = "admin"
OPERATOR_GROUP = "operator"


class AclKind(str, enum.Enum):
    role_binding = "role_binding"
    directory_group = "directory_group"
    tag_owner = "tag_owner"


class AuthorizationSet(frozenset):
    """Нормализованное (lower-case) множество идентификаторов без дублей."""

    @classmethod
    def of(cls, names: Iterable[str]) -> "AuthorizationSet":
        return cls(name.strip().lower() for name in names if name and name.strip())


@dataclass(frozen=True)
class ProjectRef:
    cluster_id: str
    project: str

    def __str__(self) -> str:
        return self.project


@dataclass(frozen=True)
class ServerRef:
    """Сервер по id или, если id нет, по имени."""

    server_id: str = ""
    name: str = ""

    def __str__(self) -> str:
        return self.server_id or self.name


@dataclass(frozen=True)
class InstanceRef:
    instance_id: str

    def __str__(self) -> str:
        return self.instance_id


class GroupSource(Protocol):
    async def get_groups_of_user(self, username: str) -> list[str]: ...


class ServerSource(Protocol):
    async def get_server(self, server_id: str) -> dict[str, Any]: ...

    async def find_server(self, name: str) -> dict[str, Any]: ...


class TagSource(Protocol):
    async def get_tags(self, instance_id: str) -> dict[str, list[str]]: ...


class Principal:
    """Пользователь текущего запроса.

    LDAP-группы читаются один раз за запрос и только если понадобились.
    """

    def __init__(self, username: str, directory: Optional[GroupSource] = None) -> None:
        self.username = username
        self.directory = directory
        self._groups: Optional[AuthorizationSet] = None

    @property
    def identifier(self) -> str:
        return self.username.strip().lower()

    async def groups(self) -> AuthorizationSet:
        if self._groups is None:
            if self.directory is None:
                raise ConfigurationError()
            self._groups = AuthorizationSet.of(await self.directory.get_groups_of_user(self.username))
        return self._groups


class PermissionResolver(abc.ABC):
    kind: AclKind

    @abc.abstractmethod
    async def resolve(self, resource: Any) -> AuthorizationSet:
        """Кому разрешено администрировать ресурс."""

    async def principal_identifiers(self, principal: Principal) -> AuthorizationSet:
        return AuthorizationSet.of([principal.username])

    def denied(self, resource: Any, authorized: list[str]) -> PermissionDeniedError:
        return PermissionDeniedError(resource, authorized)


class RoleBindingResolver(PermissionResolver):
    kind = AclKind.role_binding

    def __init__(self, openshift: OpenShiftClient) -> None:
        self.openshift = openshift

    async def admins_and_operators(self, ref: ProjectRef) -> tuple[AuthorizationSet, AuthorizationSet]:
        users: list[str] = []
        groups: list[str] = []
        for binding in await self.openshift.role_bindings(ref.cluster_id, ref.project):
            if (binding.get("roleRef") or {}).get("name") != ADMIN_ROLE:
                continue
            users.extend(subject.get("name", "") for subject in binding.get("subjects") or [])
            groups.extend(binding.get("groupNames") or [])

        admins = AuthorizationSet.of(users)
        operators = AuthorizationSet()
        if OPERATOR_GROUP in AuthorizationSet.of(groups):
            operators = AuthorizationSet.of(await self.openshift.group_users(ref.cluster_id, OPERATOR_GROUP))
        return admins, operators

    async def resolve(self, resource: ProjectRef) -> AuthorizationSet:
        admins, operators = await self.admins_and_operators(resource)
        return AuthorizationSet(admins | operators)

    def denied(self, resource: ProjectRef, authorized: list[str]) -> PermissionDeniedError:
        return PermissionDeniedError(
            resource,
            authorized,
            f"You don't have admin permissions on the project: {resource.project}. "
            f"The following users have admin permissions: {', '.join(authorized)}",
        )


class DirectoryGroupResolver(PermissionResolver):
    kind = AclKind.directory_group

    def __init__(self, servers: ServerSource, owner_group_key: str = "uos_group") -> None:
        self.servers = servers
        self.owner_group_key = owner_group_key

    def owner_group(self, server: Mapping[str, Any]) -> str:
        return str((server.get("metadata") or {}).get(self.owner_group_key) or "")

    async def resolve(self, resource: ServerRef) -> AuthorizationSet:
        # Метаданные из запроса клиента не используем: читаем сервер заново.
        if resource.server_id:
            server = await self.servers.get_server(resource.server_id)
        elif resource.name:
            server = await self.servers.find_server(resource.name)
        else:
            raise ValidationError()
        group = self.owner_group(server)
        if not group:
            logger.error(
                "Owner group not found in metadata server=%s key=%s metadata=%s",
                resource,
                self.owner_group_key,
                server.get("metadata"),
            )
            raise ExecutionError()
        return AuthorizationSet.of([group])

    async def principal_identifiers(self, principal: Principal) -> AuthorizationSet:
        return await principal.groups()

    def denied(self, resource: ServerRef, authorized: list[str]) -> PermissionDeniedError:
        return PermissionDeniedError(
            resource,
            authorized,
            f"You don't have permissions on the server: {resource}. "
            f"Members of the following groups have access: {', '.join(authorized)}",
        )


class TagOwnerResolver(PermissionResolver):
    kind = AclKind.tag_owner

    def __init__(self, tags: TagSource, owner_tag: str = "Creator") -> None:
        self.tags = tags
        self.owner_tag = owner_tag

    async def resolve(self, resource: InstanceRef) -> AuthorizationSet:
        tags = await self.tags.get_tags(resource.instance_id)
        return AuthorizationSet.of(tags.get(self.owner_tag, []))

    def denied(self, resource: InstanceRef, authorized: list[str]) -> PermissionDeniedError:
        return PermissionDeniedError(
            resource,
            authorized,
            f"You are not the owner of the instance: {resource.instance_id}. Owners: {', '.join(authorized)}",
        )


class PermissionService:
    def __init__(self, resolvers: Iterable[PermissionResolver], superadmin_group: str = "") -> None:
        self.resolvers: Mapping[AclKind, PermissionResolver] = {resolver.kind: resolver for resolver in resolvers}
        self.superadmin_group = superadmin_group.strip().lower()

    def resolver(self, kind: AclKind) -> PermissionResolver:
        try:
            return self.resolvers[kind]
        except KeyError:
            logger.error("No permission resolver configured kind=%s", kind.value)
            raise ConfigurationError() from None

    async def is_superadmin(self, principal: Principal) -> bool:
        if not self.superadmin_group:
            return False
        return self.superadmin_group in await principal.groups()

    async def check(self, principal: Principal, resource: Any, kind: AclKind) -> None:
        if await self.is_superadmin(principal):
            logger.info("Access granted to superadmin user=%s resource=%s kind=%s", principal.username, resource, kind.value)
            return

        resolver = self.resolver(kind)
        authorized = await resolver.resolve(resource)
        identifiers = await resolver.principal_identifiers(principal)

        if identifiers & authorized:
            logger.info("Access granted user=%s resource=%s kind=%s", principal.username, resource, kind.value)
            return

        logger.info(
            "Access denied user=%s resource=%s kind=%s authorized=%s",
            principal.username,
            resource,
            kind.value,
            sorted(authorized),
        )
        raise resolver.denied(resource, sorted(authorized))

    async def check_all(self, principal: Principal, resources: Iterable[Any], kind: AclKind) -> None:
        """Все ресурсы или ни одного: первая же неудача прерывает проверку."""
        for resource in resources:
            await self.check(principal, resource, kind)

    async def visible_servers(
        self, principal: Principal, servers: Iterable[Mapping[str, Any]], show_all: bool = True
    ) -> list[Mapping[str, Any]]:
        """Серверы, чья группа-владелец есть среди групп пользователя.

        Суперадмин с `show_all` видит все серверы.
        """
        servers = list(servers)
        if show_all and await self.is_superadmin(principal):
            return servers

        resolver = self.resolver(AclKind.directory_group)
        if not isinstance(resolver, DirectoryGroupResolver):
            raise ConfigurationError()
        groups = await principal.groups()
        return [server for server in servers if resolver.owner_group(server).strip().lower() in groups]

    async def project_admins(self, ref: ProjectRef) -> list[str]:
        resolver = self.resolver(AclKind.role_binding)
        if not isinstance(resolver, RoleBindingResolver):
            raise ConfigurationError()
        admins, _operators = await resolver.admins_and_operators(ref)
        return sorted(admins)
