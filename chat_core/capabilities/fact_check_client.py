"""事实核查适配器：把用户原话作为待核查陈述发送。"""

from typing import Any, Dict

from chat_core.capabilities.http import post_json
from chat_core.capabilities.registry import FACT_CHECK_ENDPOINT
from chat_core.capabilities.search_client import SearchClient
from chat_core.config.settings import settings
from chat_core.domain.exceptions import CapabilityError
from chat_core.domain.models import CapabilityRequest, Prose
from chat_core.intents.classifier import extract_claim


class FactCheckClient:
    name = "fact_check"

    def __init__(self, cfg=settings):
        self._settings = cfg

    def build_payload(self, req: CapabilityRequest) -> Dict[str, Any]:
        return {"claim": extract_claim(req.text)}

    def invoke(self, req: CapabilityRequest) -> Prose:
        data = post_json(self._settings, FACT_CHECK_ENDPOINT, self.build_payload(req))
        explanation = data.get("content") or data.get("explanation") or data.get("summary")
        verdict = data.get("verdict")
        if not explanation and not verdict:
            raise CapabilityError(code="EMPTY_RESULT", message="fact-check returned no verdict")
        if verdict and explanation:
            text = f"Verdict: {verdict}\n\n{explanation}"
        else:
            text = f"Verdict: {verdict}" if verdict else explanation
        return Prose(text=text, citations=SearchClient._parse_citations(data))
