from pydantic import BaseModel, ConfigDict, Field


class ApiResponse(BaseModel):
    message: str


class ProjectCommand(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    cluster_id: str = Field(default="", alias="clusterid")
    project: str = ""


class NewVolumeCommand(ProjectCommand):
    size: str = ""
    pvc_name: str = Field(default="", alias="pvcName")
    mode: str = ""
    technology: str = "gluster"


class GrowVolumeCommand(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    cluster_id: str = Field(default="", alias="clusterid")
    pv_name: str = Field(default="", alias="pvName")
    new_size: str = Field(default="", alias="newSize")


class NewVolumeData(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    pv_name: str = Field(alias="pvName")
    path: str


class NewVolumeResponse(BaseModel):
    message: str
    data: NewVolumeData


class AdminList(BaseModel):
    admins: list[str]
