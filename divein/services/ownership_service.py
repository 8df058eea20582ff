from typing import Iterable, List, Optional

from divein.models.applications import Application
from divein.models.opportunities import Opportunity
from divein.models.users import Principal


def _is_owner(principal: Optional[Principal], opportunity: Opportunity) -> bool:
    if principal is None or not principal.is_organization:
        return False
    return bool(principal.id) and principal.id == opportunity.author_id


def can_mutate(principal: Optional[Principal], opportunity: Opportunity) -> bool:
    """Edit, status toggle and delete are reserved to the authoring organization."""
    return _is_owner(principal, opportunity)


def can_view_applications(principal: Optional[Principal], opportunity: Opportunity) -> bool:
    return _is_owner(principal, opportunity)


def visible_applications(
    principal: Optional[Principal],
    opportunities: Iterable[Opportunity],
    applications: Iterable[Application],
) -> List[Application]:
    """Keep only applications whose opportunity the principal may view."""
    allowed = {opp.id for opp in opportunities if can_view_applications(principal, opp)}
    return [app for app in applications if app.opportunity_id in allowed]
