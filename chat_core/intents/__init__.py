"""意图分类与文本预处理。"""

from chat_core.intents.classifier import (
    PATTERN_GROUPS,
    IntentMatch,
    classify_intent,
    classify_with_reason,
    detect_place,
    extract_claim,
    extract_destination,
    extract_origin,
    extract_timezone_place,
    needs_location,
)

__all__ = [
    "PATTERN_GROUPS",
    "IntentMatch",
    "classify_intent",
    "classify_with_reason",
    "detect_place",
    "extract_claim",
    "extract_destination",
    "extract_origin",
    "extract_timezone_place",
    "needs_location",
]
