# divein/routes/opportunities.py
"""
Opportunities API - public discovery and apply flow, plus owner-only management.
"""
import logging
from typing import Optional
from fastapi import APIRouter, Depends, Query, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from divein.errors import PermissionDeniedError
from divein.models.applications import ApplicantInput
from divein.models.opportunities import Opportunity, OpportunityCreate, OpportunityStatusUpdate, OpportunityUpdate
from divein.models.users import Principal
from divein.routes.auth.auth import get_current_user, get_optional_principal
from divein.services.application_store import ApplicationStore, get_application_store
from divein.services.discovery_service import ALL_CATEGORIES, CATEGORIES, filter_opportunities
from divein.services.opportunity_store import OpportunityStore, get_opportunity_store
from divein.services.ownership_service import can_mutate, can_view_applications
from divein.services.submission_service import submit_application

logger = logging.getLogger(__name__)

router = APIRouter(tags=["opportunities"])


async def _load_owned(opportunity_id: str, principal: Principal, store: OpportunityStore) -> Opportunity:
    opportunity = await store.get_by_id(opportunity_id)
    if not can_mutate(principal, opportunity):
        logger.warning("User %s denied mutation of opportunity %s", principal.id, opportunity_id)
        raise PermissionDeniedError("Nu ai permisiunea să modifici această oportunitate")
    return opportunity


# -----------------------
# Public
# -----------------------
@router.get("")
async def list_opportunities(
    q: str = Query("", description="Search text matched against title and description"),
    category: str = Query(ALL_CATEGORIES, description='Exact category, or "toate" for all'),
    store: OpportunityStore = Depends(get_opportunity_store),
):
    """
    Active opportunities, newest first, narrowed by search text and category.
    """
    active = await store.query_active()
    results = filter_opportunities(active, q, category)
    return JSONResponse(
        status_code=status.HTTP_200_OK,
        content={
            "success": True,
            "data": jsonable_encoder([opp.model_dump() for opp in results]),
            "count": len(results),
            "total": len(active),
        },
    )


@router.get("/categories")
async def list_categories():
    return {"success": True, "data": CATEGORIES}


@router.get("/{opportunity_id}")
async def get_opportunity(
    opportunity_id: str,
    principal: Optional[Principal] = Depends(get_optional_principal),
    store: OpportunityStore = Depends(get_opportunity_store),
):
    """
    One opportunity. Visitors only see active ones; the author also sees inactive ones.
    """
    opportunity = await store.get_by_id(opportunity_id)
    if not can_mutate(principal, opportunity):
        opportunity = await store.get_by_id(opportunity_id, active_only=True)
    return {"success": True, "data": jsonable_encoder(opportunity.model_dump())}


@router.post("/{opportunity_id}/applications", status_code=status.HTTP_201_CREATED)
async def apply_to_opportunity(
    opportunity_id: str,
    applicant: ApplicantInput,
    opportunity_store: OpportunityStore = Depends(get_opportunity_store),
    application_store: ApplicationStore = Depends(get_application_store),
):
    """
    Submit an application. No account needed.

    The opportunity is re-read on every submission. The redirect URL is only
    returned once the application has been stored.
    """
    opportunity = await opportunity_store.get_by_id(opportunity_id, active_only=True)
    application_id = await submit_application(opportunity, applicant, application_store)
    return JSONResponse(
        status_code=status.HTTP_201_CREATED,
        content={
            "success": True,
            "message": "Aplicația ta a fost trimisă cu succes!",
            "data": {
                "application_id": application_id,
                "opportunity_id": opportunity.id,
                "status": "pending",
                "redirect_url": opportunity.external_link,
            },
        },
    )


# -----------------------
# Owner only
# -----------------------
@router.post("", status_code=status.HTTP_201_CREATED)
async def create_opportunity(
    data: OpportunityCreate,
    current_user: Principal = Depends(get_current_user),
    store: OpportunityStore = Depends(get_opportunity_store),
):
    if not current_user.is_organization:
        raise PermissionDeniedError("Doar organizațiile pot publica oportunități")

    opportunity = Opportunity(author_id=current_user.id, status="active", **data.model_dump())
    created = await store.insert(opportunity)
    return JSONResponse(
        status_code=status.HTTP_201_CREATED,
        content={
            "success": True,
            "message": "Oportunitatea a fost adăugată cu succes.",
            "data": jsonable_encoder(created.model_dump()),
        },
    )


@router.put("/{opportunity_id}")
async def update_opportunity(
    opportunity_id: str,
    data: OpportunityUpdate,
    current_user: Principal = Depends(get_current_user),
    store: OpportunityStore = Depends(get_opportunity_store),
):
    await _load_owned(opportunity_id, current_user, store)
    updated = await store.update(opportunity_id, data.model_dump(exclude_unset=True), current_user.id)
    return {
        "success": True,
        "message": "Oportunitatea a fost actualizată cu succes.",
        "data": jsonable_encoder(updated.model_dump()),
    }


@router.patch("/{opportunity_id}/status")
async def set_opportunity_status(
    opportunity_id: str,
    data: OpportunityStatusUpdate,
    current_user: Principal = Depends(get_current_user),
    store: OpportunityStore = Depends(get_opportunity_store),
):
    await _load_owned(opportunity_id, current_user, store)
    updated = await store.update(opportunity_id, {"status": data.status}, current_user.id)
    return {"success": True, "data": jsonable_encoder(updated.model_dump())}


@router.delete("/{opportunity_id}")
async def delete_opportunity(
    opportunity_id: str,
    current_user: Principal = Depends(get_current_user),
    store: OpportunityStore = Depends(get_opportunity_store),
):
    await _load_owned(opportunity_id, current_user, store)
    await store.delete(opportunity_id, current_user.id)
    return {"success": True, "message": "Oportunitatea a fost ștearsă cu succes"}


@router.get("/{opportunity_id}/applications")
async def list_applications(
    opportunity_id: str,
    current_user: Principal = Depends(get_current_user),
    opportunity_store: OpportunityStore = Depends(get_opportunity_store),
    application_store: ApplicationStore = Depends(get_application_store),
):
    opportunity = await opportunity_store.get_by_id(opportunity_id)
    if not can_view_applications(current_user, opportunity):
        raise PermissionDeniedError("Nu ai permisiunea să vezi aplicațiile acestei oportunități")

    applications = await application_store.query_by_opportunity_ids([opportunity.id])
    return {
        "success": True,
        "data": jsonable_encoder([app.model_dump() for app in applications]),
        "count": len(applications),
    }
