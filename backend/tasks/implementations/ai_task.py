"""
AI Step Implementations: text analysis over the execution context.

Step types:
- ai-sentiment: Classify text sentiment via the sentiment model
- ai-keywords: Extract keywords locally (no external call)
"""

import re
from typing import Any, Dict, List

from tasks.base_task import BaseStepProcessor, StepRunContext
from workflow.coercion import is_truthy, to_text

STOP_WORDS = frozenset(
    ["this", "that", "with", "have", "will", "from", "they", "been", "were", "said"]
)
MAX_KEYWORDS = 10

_PUNCTUATION_RE = re.compile(r"[^\w\s]")


def extract_keywords(text: str) -> List[str]:
    """Return up to 10 distinct keywords in order of first appearance.

    Words of three characters or fewer and common stop words are dropped.
    """
    words = _PUNCTUATION_RE.sub("", (text or "").lower()).split()
    keywords: List[str] = []
    for word in words:
        if len(word) <= 3 or word in STOP_WORDS or word in keywords:
            continue
        keywords.append(word)
        if len(keywords) == MAX_KEYWORDS:
            break
    return keywords


def _resolve_text(config: Dict[str, Any], context: Dict[str, Any]) -> str:
    """Read the text to analyse from ``config.textField``, then ``text``."""
    text_field = config.get("textField")
    value = context.get(text_field) if text_field else None
    if not is_truthy(value):
        value = context.get("text")
    if not is_truthy(value):
        return ""
    return value if isinstance(value, str) else to_text(value)


class AISentimentStep(BaseStepProcessor):
    """Classify the sentiment of a context field."""

    block_type = "ai-sentiment"
    display_name = "Sentiment Analysis"
    description = "Detect whether text is positive, negative or neutral"
    icon = "🧠"

    async def execute(self, config: Dict[str, Any], context: Dict[str, Any], run: StepRunContext) -> Dict[str, Any]:
        text = _resolve_text(config, context)
        result = await run.adapter.classify_sentiment(text)
        return {
            "sentiment": {
                "label": str(result.get("label") or "neutral").lower(),
                "confidence": result.get("score") or 0,
                "original_text": text,
            }
        }

    @classmethod
    def get_config_schema(cls) -> Dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "textField": {
                    "type": "string",
                    "description": "Context field holding the text (falls back to 'text')",
                },
            },
        }


class AIKeywordsStep(BaseStepProcessor):
    """Extract keywords from a context field."""

    block_type = "ai-keywords"
    display_name = "Keyword Extraction"
    description = "Pull the most relevant words out of a piece of text"
    icon = "🔑"

    async def execute(self, config: Dict[str, Any], context: Dict[str, Any], run: StepRunContext) -> Dict[str, Any]:
        text = _resolve_text(config, context)
        return {"keywords": {"extracted": extract_keywords(text), "original_text": text}}

    @classmethod
    def get_config_schema(cls) -> Dict[str, Any]:
        return AISentimentStep.get_config_schema()


AI_STEP_TYPES = {
    "ai-sentiment": AISentimentStep,
    "ai-keywords": AIKeywordsStep,
}
