"""Модели запросов/ответов агента. Имена полей совпадают с JSON-контрактом."""

from pydantic import BaseModel


class CreateLVCommand(BaseModel):
    size: str = ""
    mountPoint: str = ""
    lvName: str = ""


class CreateVolumeCommand(BaseModel):
    project: str = ""
    size: str = ""


class GrowVolumeCommand(BaseModel):
    pvName: str = ""
    newSize: str = ""


class DeleteVolumeCommand(BaseModel):
    # имя gluster-тома (vol_<project>_pv<N>)
    lvName: str = ""


class VolInfo(BaseModel):
    totalKiloBytes: int
    usedKiloBytes: int


class ApiResponse(BaseModel):
    message: str
