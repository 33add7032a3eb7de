from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import requests

from .llm import LLMClient, extract_citations, extract_response_text
from .models import ChatMessage, Source


logger = logging.getLogger(__name__)

MAX_CITATIONS = 3

GREETING = (
    "Hello! I am your AI Business Strategist. Upload your sales ledger and I can run "
    "what-if analyses, competitor benchmarks, or market trend evaluations for your property. "
    "What's on your mind today?"
)
NO_DATA_REPLY = (
    "Please upload your hotel sales data first so I can ground my analysis in your "
    "property's real performance."
)
EMPTY_REPLY = (
    "I'm sorry, I couldn't analyze that specific scenario. Could you rephrase your query?"
)
ERROR_REPLY = (
    "I encountered an error connecting to my analytical engine. Please try again in a moment."
)

ASSISTANT_INSTRUCTIONS = """
You are a world-class hospitality business strategist and revenue engine.
1. For competitor pricing, local events, market trends or news, use real-time search
   data when available and integrate those figures into your what-if calculations.
2. Answer in structured Markdown with ### headers such as "Market Reality",
   "Strategic Projection" and "Tactical Roadmap".
3. Use Markdown tables for P&L transformations, benchmarks and multi-scenario projections.
4. Focus on ROI, yield management and flow-through. Be concise and data-heavy.
5. Acknowledge and reference any searched data clearly.
"""


def opening_transcript() -> List[ChatMessage]:
    return [ChatMessage(role="bot", text=GREETING)]


def build_chat_payload(
    model: str, question: str, hotel_context: str, temperature: float = 0.4
) -> Dict[str, Any]:
    return {
        "model": model,
        "temperature": temperature,
        "messages": [
            {"role": "system", "content": ASSISTANT_INSTRUCTIONS.strip()},
            {
                "role": "user",
                "content": f"HOTEL DATA:\n{hotel_context}\n\nUSER QUERY: {question}",
            },
        ],
    }


class StrategyAssistant:
    def __init__(self, client: Optional[LLMClient]) -> None:
        self.client = client

    def ask(self, question: str, hotel_context: str, has_data: bool) -> ChatMessage:
        """Answer one turn; never raises, the reply carries any failure notice."""

        if not has_data:
            return ChatMessage(role="bot", text=NO_DATA_REPLY)
        if self.client is None:
            return ChatMessage(role="bot", text=ERROR_REPLY)

        try:
            raw = self.client.complete(
                build_chat_payload(self.client.model, question, hotel_context)
            )
            text = extract_response_text(raw).strip() or EMPTY_REPLY
            sources = [
                Source(title=item["title"], uri=item["uri"])
                for item in extract_citations(raw)[:MAX_CITATIONS]
            ]
        except (requests.RequestException, ValueError):
            logger.exception("Assistant request failed")
            return ChatMessage(role="bot", text=ERROR_REPLY)

        return ChatMessage(role="bot", text=text, sources=sources)
