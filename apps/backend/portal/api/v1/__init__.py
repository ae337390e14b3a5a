from fastapi import APIRouter

from portal.api.v1.endpoints import ec2, ldap, otc, projects, volumes

api_router = APIRouter()

api_router.include_router(volumes.router, prefix="/ose", tags=["Volumes"])
api_router.include_router(projects.router, prefix="/ose", tags=["Projects"])
api_router.include_router(ldap.router, prefix="/ldap", tags=["LDAP"])
api_router.include_router(otc.router, prefix="/otc", tags=["OTC"])
api_router.include_router(ec2.router, prefix="/aws", tags=["AWS"])
