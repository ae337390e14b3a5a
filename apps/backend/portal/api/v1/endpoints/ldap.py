from fastapi import APIRouter, Depends

from portal.api.v1.deps import get_current_username, get_directory
from portal.api.v1.schemas.instances import GroupList
from portal.clients.directory import DirectoryClient

router = APIRouter()


@router.get("/groups", response_model=GroupList)
async def list_groups(
    username: str = Depends(get_current_username),
    directory: DirectoryClient = Depends(get_directory),
):
    """LDAP-группы текущего пользователя без групп из blacklist."""
    return GroupList(groups=await directory.get_groups_of_user(username))
