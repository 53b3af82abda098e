"""AI page copy with a deterministic fallback."""

from dataclasses import dataclass, field
import json
import re
from typing import Any

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import HumanMessage, SystemMessage
import structlog

from sitegen.contracts.dto import ProjectSpec

logger = structlog.get_logger()

# USD per 1M tokens
MODEL_PRICING: dict[str, dict[str, float]] = {
    "gpt-4o-mini": {"input": 0.15, "output": 0.60},
    "gpt-4o": {"input": 2.50, "output": 10.00},
    "gpt-4.1-mini": {"input": 0.40, "output": 1.60},
    "gpt-4.1": {"input": 2.00, "output": 8.00},
    "gpt-4-turbo": {"input": 10.00, "output": 30.00},
    "gpt-3.5-turbo": {"input": 0.50, "output": 1.50},
    "claude-sonnet-4": {"input": 3.00, "output": 15.00},
    "claude-3-5-haiku": {"input": 0.80, "output": 4.00},
}
DEFAULT_PRICING = MODEL_PRICING["gpt-4o-mini"]

SYSTEM_PROMPT = """You write website copy for small businesses.
Answer with a single JSON object and nothing else, shaped like:
{"headline": "...", "subheadline": "...", "sections": [{"heading": "...", "text": "..."}]}
Use two or three sections. Keep each text under 60 words. No markdown."""

PAGE_PROMPT = """Business: {name}
Industry: {industry}
Page: {page}
Description: {description}
Tagline: {tagline}
Location: {location}
Features: {modules}

Write the copy for the "{page}" page."""

_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


def calculate_cost(model: str, input_tokens: int, output_tokens: int) -> float:
    """Cost in USD. OpenRouter ``vendor/model`` ids are priced by their model part."""
    name = model.split("/", 1)[-1]
    pricing = MODEL_PRICING.get(name)
    if pricing is None:
        pricing = next(
            (p for key, p in MODEL_PRICING.items() if name.startswith(key)),
            DEFAULT_PRICING,
        )
    return (input_tokens / 1_000_000) * pricing["input"] + (output_tokens / 1_000_000) * pricing[
        "output"
    ]


def strip_fences(text: str) -> str:
    return _FENCE.sub("", text.strip()).strip()


def page_title(page: str) -> str:
    return page.replace("-", " ").title()


@dataclass
class PageCopy:
    page: str
    headline: str
    subheadline: str = ""
    sections: list[dict[str, str]] = field(default_factory=list)
    input_tokens: int = 0
    output_tokens: int = 0
    cost: float = 0.0
    generated: bool = False
    error: str | None = None

    @property
    def tokens(self) -> int:
        return self.input_tokens + self.output_tokens


def fallback_copy(spec: ProjectSpec, page: str) -> PageCopy:
    """Template copy used in test mode, without an API key, or after an LLM error."""
    name = spec.name
    industry = spec.industry.replace("-", " ")
    tagline = spec.tagline or f"Your local {industry}"
    if page == "home":
        return PageCopy(
            page=page,
            headline=f"Welcome to {name}",
            subheadline=tagline,
            sections=[
                {
                    "heading": "Why choose us",
                    "text": spec.description or f"{name} brings quality {industry} service to you.",
                },
                {"heading": "Visit us", "text": spec.location or "We look forward to seeing you."},
            ],
        )
    if page == "about":
        return PageCopy(
            page=page,
            headline=f"About {name}",
            sections=[
                {
                    "heading": "Our story",
                    "text": spec.description
                    or f"{name} is a {industry} built around its community.",
                }
            ],
        )
    if page == "contact":
        return PageCopy(
            page=page,
            headline="Get in touch",
            subheadline=f"We'd love to hear from you at {name}.",
        )
    return PageCopy(
        page=page,
        headline=page_title(page),
        subheadline=f"{page_title(page)} at {name}",
    )


def _parse_copy(page: str, text: str) -> PageCopy:
    data = json.loads(strip_fences(text))
    if not isinstance(data, dict) or not data.get("headline"):
        raise ValueError("response has no headline")
    sections = [
        {"heading": str(s.get("heading", "")), "text": str(s.get("text", ""))}
        for s in data.get("sections", [])
        if isinstance(s, dict)
    ]
    return PageCopy(
        page=page,
        headline=str(data["headline"]),
        subheadline=str(data.get("subheadline", "")),
        sections=sections,
        generated=True,
    )


class ContentGenerator:
    """Generates page copy through a chat model.

    ``llm`` is None when AI generation is disabled; every page then gets the
    fallback copy and costs nothing.
    """

    def __init__(self, llm: BaseChatModel | None, model: str = "gpt-4o-mini"):
        self.llm = llm
        self.model = model

    async def generate_page_copy(self, spec: ProjectSpec, page: str) -> PageCopy:
        """Copy for one page. LLM failures fall back and set ``error``; they never raise."""
        if self.llm is None or spec.test_mode:
            return fallback_copy(spec, page)

        prompt = PAGE_PROMPT.format(
            name=spec.name,
            industry=spec.industry,
            page=page,
            description=spec.description or "-",
            tagline=spec.tagline or "-",
            location=spec.location or "-",
            modules=", ".join(spec.modules) or "-",
        )
        try:
            response = await self.llm.ainvoke(
                [SystemMessage(content=SYSTEM_PROMPT), HumanMessage(content=prompt)]
            )
        except Exception as e:
            logger.warning("page_copy_llm_failed", page=page, error=str(e))
            copy = fallback_copy(spec, page)
            copy.error = f"{page}: {e}"
            return copy

        usage: dict[str, Any] = getattr(response, "usage_metadata", None) or {}
        input_tokens = int(usage.get("input_tokens", 0))
        output_tokens = int(usage.get("output_tokens", 0))
        try:
            copy = _parse_copy(page, str(response.content))
        except (ValueError, TypeError) as e:
            logger.warning(
                "page_copy_parse_failed",
                page=page,
                error=str(e),
                response=str(response.content)[:200],
            )
            copy = fallback_copy(spec, page)
            copy.error = f"{page}: unparseable response"

        copy.input_tokens = input_tokens
        copy.output_tokens = output_tokens
        copy.cost = calculate_cost(self.model, input_tokens, output_tokens)
        logger.debug("page_copy_generated", page=page, tokens=copy.tokens, cost=copy.cost)
        return copy
