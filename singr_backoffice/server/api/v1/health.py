"""
Liveness and version checks.

Load balancers and the deploy pipeline poll these; neither touches the
database or any third party.
"""

from fastapi import APIRouter

from singr_backoffice.server.core import constant

router = APIRouter()


@router.get(
    "/health",
    summary="Liveness Check",
    description="Report that the back office process is up and serving requests.",
    response_description="Always `{\"status\": \"ok\"}` while the process is alive.",
)
async def health_check():
    return {"status": "ok"}


@router.get(
    "/version",
    summary="Back office version",
    description="Report the release of the back office and the version of the JSON schema it serves.",
    response_description="Release and schema version.",
)
async def version():
    """The schema version only changes when a response shape breaks."""
    return {"version": constant.API_VERSION, "schema_version": constant.SCHEMA_VERSION}
