"""
Dashboard Service
Builds the organization overview: own opportunities, their applications and headline stats.
"""
import logging
from typing import Any, Dict, List, Optional

from divein.models.applications import Application
from divein.models.opportunities import Opportunity
from divein.models.users import Principal
from divein.services.application_store import ApplicationStore
from divein.services.opportunity_store import OpportunityStore
from divein.services.ownership_service import visible_applications

logger = logging.getLogger(__name__)


def group_by_opportunity(applications: List[Application]) -> Dict[str, List[Application]]:
    grouped: Dict[str, List[Application]] = {}
    for application in applications:
        grouped.setdefault(application.opportunity_id, []).append(application)
    return grouped


def compute_stats(opportunities: List[Opportunity], applications: List[Application]) -> Dict[str, int]:
    active = sum(1 for opp in opportunities if opp.status == "active")
    return {
        "total_opportunities": len(opportunities),
        "active_opportunities": active,
        "inactive_opportunities": len(opportunities) - active,
        "total_applications": len(applications),
    }


async def build_dashboard(
    principal: Principal,
    opportunity_store: OpportunityStore,
    application_store: ApplicationStore,
    organization: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    opportunities = await opportunity_store.query_by_author(principal.id)
    applications: List[Application] = []
    if opportunities:
        fetched = await application_store.query_by_opportunity_ids([opp.id for opp in opportunities])
        applications = visible_applications(principal, opportunities, fetched)

    grouped = group_by_opportunity(applications)
    logger.info(
        "Dashboard for %s: %d opportunities, %d applications",
        principal.id, len(opportunities), len(applications),
    )
    return {
        "organization": organization,
        "stats": compute_stats(opportunities, applications),
        "opportunities": [
            {
                **opp.model_dump(),
                "application_count": len(grouped.get(opp.id, [])),
                "applications": [app.model_dump() for app in grouped.get(opp.id, [])],
            }
            for opp in opportunities
        ],
    }
