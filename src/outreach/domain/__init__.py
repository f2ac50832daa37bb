from outreach.domain.funnels import (
    FunnelRules,
    FunnelStageCounts,
    StageDefinition,
    classify,
    stage_activities,
)
from outreach.domain.models import Activity, Contact, Project
from outreach.domain.roster import ProspectRow, prospect_roster
from outreach.domain.rules import ValidationError, clamp_percentage

__all__ = [
    "Activity",
    "Contact",
    "FunnelRules",
    "FunnelStageCounts",
    "Project",
    "ProspectRow",
    "StageDefinition",
    "ValidationError",
    "clamp_percentage",
    "classify",
    "prospect_roster",
    "stage_activities",
]
