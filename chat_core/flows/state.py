"""State definition for the LangGraph turn pipeline."""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple, TypedDict

from chat_core.domain.models import CapabilityResult, GeoCoordinate, Intent


class TurnGraphState(TypedDict, total=False):
    """State shared across classify / locate / dispatch nodes."""

    turn_id: str
    text: str
    history: List[Tuple[str, str]]
    attachment: Optional[Dict[str, Any]]
    tool_context: Optional[str]
    intent: Optional[Intent]
    place: Optional[str]
    coordinates: Optional[GeoCoordinate]
    result: Optional[CapabilityResult]
