"""
Team assistant.

Answers questions about meets, announcements, assignments and results with an
Anthropic tool-use loop. Tools run as the requesting principal (see
services.assistant_tools), so the assistant can never see more than the user
could through the API. Failures degrade to a short apologetic answer.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional
from uuid import UUID

from anthropic import Anthropic
from sqlalchemy.orm import Session

from core.config import settings
from models import Profile
from services.assistant_tools import AssistantToolbox, tool_definitions

logger = logging.getLogger(__name__)

APOLOGY = "Sorry, I couldn't answer that right now. Please try again in a moment."
UNAVAILABLE = "The team assistant isn't configured right now. Please ask a coach directly."
NO_ANSWER = "I'm not sure. Can you rephrase the question?"
ROUNDS_EXHAUSTED = (
    "I wasn't able to pull everything needed to answer that in one pass. "
    "Try specifying the event (e.g., \"100m\"), and optionally a meet name/date "
    "or a specific athlete name."
)

SYSTEM_PROMPT = """You are the Track Team Portal assistant.

Rules:
- Use tools to retrieve facts from the database. Do not guess.
- For "fastest", "best", "top", "PR", or ranking questions, use get_fastest_result or get_top_results.
- Role rules:
  - Coaches can access team-wide assignments/results and athlete profile contact (phone/email).
  - Athletes can access their own assignments/results only.
  - Athletes may ask about meets, locations, and announcements.
- If a tool returns an error or no results, explain what is missing and suggest a narrower query.
Never say "I ran out of tool steps".
User role: {role}. User name: {name}."""


def _trim_history(history: Optional[List[Dict[str, Any]]], limit: int) -> List[Dict[str, str]]:
    turns = [
        {"role": m["role"], "content": m["content"]}
        for m in (history or [])
        if isinstance(m, dict)
        and m.get("role") in ("user", "assistant")
        and isinstance(m.get("content"), str)
        and m["content"].strip()
    ]
    turns = turns[-limit:] if limit > 0 else []
    # The conversation sent upstream must open with a user turn.
    while turns and turns[0]["role"] != "user":
        turns.pop(0)
    return turns


def _block_to_dict(block) -> Dict[str, Any]:
    if block.type == "tool_use":
        return {"type": "tool_use", "id": block.id, "name": block.name, "input": block.input}
    return {"type": "text", "text": getattr(block, "text", "")}


class TeamAssistant:
    def __init__(self, db: Session, client: Optional[Anthropic] = None):
        self.db = db
        self.client = client
        if self.client is None and settings.ANTHROPIC_API_KEY:
            self.client = Anthropic(api_key=settings.ANTHROPIC_API_KEY)
        self.model = settings.ASSISTANT_MODEL
        self.max_rounds = settings.ASSISTANT_MAX_TOOL_ROUNDS

    def _system_prompt(self, principal_id: UUID) -> str:
        profile = self.db.get(Profile, principal_id)
        role = (profile.role if profile else None) or "athlete"
        name = (profile.full_name if profile else None) or "User"
        return SYSTEM_PROMPT.format(role=role, name=name)

    def chat(
        self,
        principal_id: UUID,
        message: str,
        history: Optional[List[Dict[str, Any]]] = None,
    ) -> Dict[str, Any]:
        """
        Run one question through the tool loop.

        Returns {"response", "error", "tool_calls", "rounds"}; never raises for
        upstream or tool failures.
        """
        if self.client is None:
            return {"response": UNAVAILABLE, "error": True, "tool_calls": 0, "rounds": 0}

        messages: List[Dict[str, Any]] = _trim_history(history, settings.ASSISTANT_HISTORY_LIMIT)
        messages.append({"role": "user", "content": message})
        toolbox = AssistantToolbox(self.db, principal_id)
        tool_calls = 0
        rounds = 0

        try:
            system_prompt = self._system_prompt(principal_id)
            while rounds < self.max_rounds:
                rounds += 1
                response = self.client.messages.create(
                    model=self.model,
                    system=system_prompt,
                    messages=messages,
                    max_tokens=settings.ASSISTANT_MAX_OUTPUT_TOKENS,
                    temperature=0.2,
                    tools=tool_definitions(),
                )

                tool_uses = [b for b in response.content if b.type == "tool_use"]
                if response.stop_reason != "tool_use" or not tool_uses:
                    text = "".join(getattr(b, "text", "") for b in response.content if b.type == "text").strip()
                    return {"response": text or NO_ANSWER, "error": False, "tool_calls": tool_calls, "rounds": rounds}

                tool_results = []
                for block in tool_uses:
                    logger.info(
                        f"Assistant calling tool: {block.name}",
                        extra={"extra_fields": {"principal_id": str(principal_id), "tool": block.name}},
                    )
                    tool_results.append({
                        "type": "tool_result",
                        "tool_use_id": block.id,
                        "content": toolbox.execute(block.name, block.input),
                    })
                    tool_calls += 1

                messages.append({"role": "assistant", "content": [_block_to_dict(b) for b in response.content]})
                messages.append({"role": "user", "content": tool_results})
        except Exception as e:
            logger.error(f"Assistant query failed for {principal_id}: {e}", exc_info=True)
            return {"response": APOLOGY, "error": True, "tool_calls": tool_calls, "rounds": rounds}

        logger.info(f"Assistant exhausted {self.max_rounds} tool rounds for {principal_id}")
        return {"response": ROUNDS_EXHAUSTED, "error": False, "tool_calls": tool_calls, "rounds": rounds}


def get_team_assistant(db: Session) -> TeamAssistant:
    """Factory function for dependency injection."""
    return TeamAssistant(db)
