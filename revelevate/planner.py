from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import requests

from .errors import PlanGenerationError
from .llm import LLMClient
from .models import StrategicPlan
from .plan import parse_plan_response
from .plan_request import PlanRequest, build_plan_payload


logger = logging.getLogger(__name__)


@dataclass
class PlanResult:
    plan: StrategicPlan
    raw_response: Dict[str, Any]


class PlanGenerator:
    """Sends one plan request per call; retries are left to the user."""

    def __init__(
        self,
        client: LLMClient,
        temperature: float = 0.4,
        max_tokens: int = 6000,
    ) -> None:
        self.client = client
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.last_raw_response: Optional[Dict[str, Any]] = None

    def generate(self, request: PlanRequest) -> PlanResult:
        payload = build_plan_payload(
            request,
            model=self.client.model,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
        )
        self.last_raw_response = None
        try:
            raw = self.client.complete(payload)
            self.last_raw_response = raw
            plan = parse_plan_response(raw, request.timeline_months)
        except (requests.RequestException, ValueError) as exc:
            raise PlanGenerationError(str(exc)) from exc

        logger.info(
            "Generated plan with %d recommendations over %d months",
            len(plan.recommendations),
            request.timeline_months,
        )
        return PlanResult(plan=plan, raw_response=raw)
