"""
Read-only tools for the team assistant.

Every tool runs as the requesting principal through the same services (and
therefore the same row policy) a direct request would use. Tools return plain
dicts; errors come back as {"error": "..."} so the model can explain them.
"""

from __future__ import annotations

import json
import logging
from datetime import date
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from core.exceptions import APIException
from core.policy import Collection, Op, allow, is_staff, scope_profiles
from models import Profile
from services import announcements as announcement_service
from services import meets as meet_service
from services.assignments import list_assignments_for_meet
from services.results import normalize_event_query, top_results

logger = logging.getLogger(__name__)

NO_COMPARABLE_TIMES = (
    "No comparable times found for that event. Marks may be missing, "
    "non-time (DNF/DQ), or stored in a different format."
)


def _clamp(value: Any, default: int, low: int, high: int) -> int:
    try:
        number = int(value if value is not None else default)
    except (TypeError, ValueError):
        number = default
    return max(low, min(high, number))


def _uuid_arg(tool_input: Dict[str, Any], key: str) -> Optional[UUID]:
    raw = tool_input.get(key)
    if not raw:
        return None
    try:
        return UUID(str(raw))
    except ValueError:
        return None


def _announcement(a) -> Dict[str, Any]:
    return {"id": a.id, "title": a.title, "body": a.body, "pinned": a.pinned, "created_at": a.created_at}


def _meet(m) -> Dict[str, Any]:
    return {"id": m.id, "name": m.name, "meet_date": m.meet_date, "location": m.location}


def tool_definitions() -> List[Dict[str, Any]]:
    """Tools available to the assistant (Anthropic format)."""
    return [
        {
            "name": "get_pinned_announcements",
            "description": "Get pinned team announcements, newest first.",
            "input_schema": {"type": "object", "properties": {}, "required": []},
        },
        {
            "name": "get_recent_announcements",
            "description": "Get the most recent team announcements.",
            "input_schema": {
                "type": "object",
                "properties": {"limit": {"type": "integer", "description": "How many (default 5, max 20)"}},
                "required": [],
            },
        },
        {
            "name": "get_next_meet",
            "description": "Get the next upcoming meet (today or later) with its date and location.",
            "input_schema": {"type": "object", "properties": {}, "required": []},
        },
        {
            "name": "get_meet_locations",
            "description": "List meets with their dates and locations, soonest first.",
            "input_schema": {
                "type": "object",
                "properties": {"limit": {"type": "integer", "description": "How many (default 10, max 50)"}},
                "required": [],
            },
        },
        {
            "name": "get_assignments_for_meet",
            "description": "Event assignments for a meet. Coaches see the whole team; athletes see only their own.",
            "input_schema": {
                "type": "object",
                "properties": {"meet_id": {"type": "string", "description": "Meet id"}},
                "required": ["meet_id"],
            },
        },
        {
            "name": "get_my_assignments_for_meet",
            "description": "The requesting user's own event assignments for a meet.",
            "input_schema": {
                "type": "object",
                "properties": {"meet_id": {"type": "string", "description": "Meet id"}},
                "required": ["meet_id"],
            },
        },
        {
            "name": "get_fastest_result",
            "description": "Fastest recorded time for an event (e.g. '100m'), optionally within one meet.",
            "input_schema": {
                "type": "object",
                "properties": {
                    "event": {"type": "string", "description": "Event name, e.g. '100m' or '1600 meters'"},
                    "limit_to_meet_id": {"type": "string", "description": "Only consider this meet"},
                },
                "required": ["event"],
            },
        },
        {
            "name": "get_top_results",
            "description": "Top N fastest recorded times for an event, optionally within one meet.",
            "input_schema": {
                "type": "object",
                "properties": {
                    "event": {"type": "string", "description": "Event name, e.g. '400m'"},
                    "limit": {"type": "integer", "description": "How many (default 5, max 20)"},
                    "limit_to_meet_id": {"type": "string", "description": "Only consider this meet"},
                },
                "required": ["event"],
            },
        },
        {
            "name": "lookup_profile_by_name",
            "description": "Find team members by (partial) name. Returns user ids, names and roles.",
            "input_schema": {
                "type": "object",
                "properties": {
                    "name": {"type": "string", "description": "Full or partial name"},
                    "limit": {"type": "integer", "description": "How many (default 5, max 10)"},
                },
                "required": ["name"],
            },
        },
        {
            "name": "get_profile_contact",
            "description": "Phone and email for a team member. Coaching staff only.",
            "input_schema": {
                "type": "object",
                "properties": {"user_id": {"type": "string", "description": "Profile user id"}},
                "required": ["user_id"],
            },
        },
    ]


class AssistantToolbox:
    """Executes assistant tool calls on behalf of one principal."""

    def __init__(self, db: Session, principal_id: UUID, today: Optional[date] = None):
        self.db = db
        self.principal_id = principal_id
        self.today = today or date.today()

    def execute(self, tool_name: str, tool_input: Optional[Dict[str, Any]]) -> str:
        """Run a tool and return its JSON result."""
        tool_input = tool_input or {}
        handler = getattr(self, f"_tool_{tool_name}", None)
        try:
            if handler is None:
                result = {"error": f"Unknown tool: {tool_name}"}
            else:
                result = handler(tool_input)
        except APIException as e:
            result = {"error": e.detail}
        except Exception as e:
            logger.warning(f"Tool execution error for {tool_name}: {e}")
            result = {"error": "The lookup failed. Try a narrower question."}
        return json.dumps(result, default=str)

    def _tool_get_pinned_announcements(self, tool_input):
        rows = announcement_service.list_announcements(self.db, pinned_only=True, limit=10)
        return {"announcements": [_announcement(a) for a in rows]}

    def _tool_get_recent_announcements(self, tool_input):
        limit = _clamp(tool_input.get("limit"), 5, 1, 20)
        rows = announcement_service.list_recent_announcements(self.db, limit=limit)
        return {"announcements": [_announcement(a) for a in rows]}

    def _tool_get_next_meet(self, tool_input):
        rows = meet_service.list_meets(self.db, upcoming_from=self.today, limit=1)
        return {"meet": _meet(rows[0]) if rows else None}

    def _tool_get_meet_locations(self, tool_input):
        limit = _clamp(tool_input.get("limit"), 10, 1, 50)
        rows = meet_service.list_meets(self.db, ascending=True, limit=limit)
        return {"meets": [_meet(m) for m in rows]}

    def _assignments(self, tool_input, only_mine: bool):
        meet_id = _uuid_arg(tool_input, "meet_id")
        if meet_id is None:
            return {"error": "meet_id is required."}
        views = list_assignments_for_meet(self.db, self.principal_id, meet_id)
        if only_mine:
            views = [v for v in views if v.athlete_id == self.principal_id]
        return {
            "assignments": [
                {
                    "id": v.id,
                    "event": v.event_name,
                    "athlete_id": v.athlete_id,
                    "athlete_name": v.athlete_name,
                    "status": v.status,
                }
                for v in views
            ]
        }

    def _tool_get_assignments_for_meet(self, tool_input):
        return self._assignments(tool_input, only_mine=False)

    def _tool_get_my_assignments_for_meet(self, tool_input):
        return self._assignments(tool_input, only_mine=True)

    def _ranked(self, tool_input, limit: int):
        event = str(tool_input.get("event") or "")
        if not normalize_event_query(event):
            return {"error": "event is required (e.g., '100m')."}
        meet_id = _uuid_arg(tool_input, "limit_to_meet_id")

        scored = top_results(self.db, self.principal_id, event, limit=limit, meet_id=meet_id)
        if not scored:
            return {"results": [], "note": NO_COMPARABLE_TIMES}
        return {
            "results": [
                {
                    "athlete_name": view.athlete_name or str(view.athlete_id),
                    "athlete_id": view.athlete_id,
                    "time": view.mark,
                    "time_seconds": seconds,
                    "meet": view.meet_name,
                    "meet_date": view.meet_date,
                    "event": view.event_name,
                }
                for seconds, view in scored
            ]
        }

    def _tool_get_fastest_result(self, tool_input):
        return self._ranked(tool_input, limit=1)

    def _tool_get_top_results(self, tool_input):
        return self._ranked(tool_input, limit=_clamp(tool_input.get("limit"), 5, 1, 20))

    def _tool_lookup_profile_by_name(self, tool_input):
        name = str(tool_input.get("name") or "").strip()
        if not name:
            return {"error": "name is required."}
        limit = _clamp(tool_input.get("limit"), 5, 1, 10)

        query = self.db.query(Profile).filter(Profile.full_name.icontains(name, autoescape=True))
        rows = scope_profiles(query, self.db, self.principal_id).order_by(Profile.full_name.asc()).limit(limit).all()
        return {"matches": [{"user_id": p.user_id, "full_name": p.full_name, "role": p.role} for p in rows]}

    def _tool_get_profile_contact(self, tool_input):
        user_id = _uuid_arg(tool_input, "user_id")
        if user_id is None:
            return {"error": "user_id is required."}
        if not is_staff(self.db, self.principal_id):
            return {"error": "Athletes are not allowed to access phone/email information."}

        profile = self.db.get(Profile, user_id)
        if profile is None or not allow(self.db, Op.READ, Collection.PROFILE, profile, self.principal_id):
            return {"error": "No profile found."}
        return {
            "profile": {
                "user_id": profile.user_id,
                "full_name": profile.full_name,
                "email": profile.email,
                "phone": profile.phone,
                "role": profile.role,
            }
        }
