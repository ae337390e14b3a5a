from typing import Any

from pydantic import BaseModel, Field

from portal.services.permissions import ServerRef


class ServerSelection(BaseModel):
    # Метаданные серверов из запроса игнорируются, берём только id (или имя, если id нет)
    servers: list[dict] = Field(default_factory=list)

    @property
    def server_refs(self) -> list[ServerRef]:
        return [ServerRef(str(server.get("id") or ""), str(server.get("name") or "")) for server in self.servers]


class ServerSummary(BaseModel):
    id: str
    name: str = ""
    status: str = ""
    metadata: dict[str, Any] = Field(default_factory=dict)


class ServerList(BaseModel):
    servers: list[ServerSummary]


class GroupList(BaseModel):
    groups: list[str]
