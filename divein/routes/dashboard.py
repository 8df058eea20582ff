# divein/routes/dashboard.py
from fastapi import APIRouter, Depends, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from divein.models.users import Principal
from divein.routes.auth.auth import get_current_user
from divein.services.application_store import ApplicationStore, get_application_store
from divein.services.auth_service import AuthService, get_auth_service
from divein.services.dashboard_service import build_dashboard
from divein.services.opportunity_store import OpportunityStore, get_opportunity_store

router = APIRouter(tags=["dashboard"])


@router.get("")
async def get_dashboard(
    current_user: Principal = Depends(get_current_user),
    opportunity_store: OpportunityStore = Depends(get_opportunity_store),
    application_store: ApplicationStore = Depends(get_application_store),
    auth_service: AuthService = Depends(get_auth_service),
):
    """
    Organization overview: every own opportunity (any status) with its
    applications, plus active/total counts.
    """
    organization = await auth_service.get_organization(current_user.id)
    overview = await build_dashboard(current_user, opportunity_store, application_store, organization)
    return JSONResponse(
        status_code=status.HTTP_200_OK,
        content={"success": True, "data": jsonable_encoder(overview)},
    )
