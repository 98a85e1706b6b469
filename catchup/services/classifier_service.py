# catchup/services/classifier_service.py
"""
Keyword classifier for smart categorization.

The classifier is an optional hint consumed BEFORE a store call; it is never
awaited while the store lock is held. Two backends:
    - RuleBasedClassifier: keyword lists, always available
    - OpenAIClassifier: asks a chat model, falls back to rules on any failure
"""

import asyncio
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from openai import AsyncOpenAI

from catchup.config import Settings
from catchup.infrastructure.observability.logging import get_logger
from catchup.models.domain.session_domain import Category

logger = get_logger(__name__)

DEFAULT_CATEGORY = Category.ACTIVITY

TIME_KEYWORDS = [
    "morning", "afternoon", "evening", "night", "am", "pm",
    "monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday",
    "today", "tomorrow", "weekend", "weekday", "hour", "time",
    "early", "late", "noon", "midnight", "dawn", "dusk", "clock",
]  # fmt: skip

LOCATION_KEYWORDS = [
    "park", "cafe", "restaurant", "bar", "mall", "downtown", "uptown",
    "beach", "mountain", "lake", "river", "street", "avenue", "road",
    "home", "office", "school", "university", "library", "gym",
    "near", "close", "far", "central", "north", "south", "east", "west",
]  # fmt: skip

FOOD_KEYWORDS = [
    "breakfast", "lunch", "dinner", "brunch", "snack", "coffee", "tea",
    "pizza", "burger", "sushi", "pasta", "salad", "sandwich", "soup",
    "bakery", "deli", "food", "eat", "drink",
    "cuisine", "menu", "order", "takeout", "delivery",
]  # fmt: skip

ACTIVITY_KEYWORDS = [
    "movie", "film", "concert", "show", "game", "sport", "exercise",
    "walk", "hike", "bike", "run", "swim", "play", "watch",
    "shopping", "museum", "gallery", "theater", "club", "party",
    "meeting", "discussion", "chat", "talk", "presentation",
]  # fmt: skip

_WORD_RE = re.compile(r"[a-z]+")
# Shorter keywords ("am", "bar") only match whole words, longer ones also plurals
_PREFIX_MIN_LENGTH = 4

# Checked in this order; the first list with a hit wins
_RULES: list[tuple[Category, list[str]]] = [
    (Category.TIME, TIME_KEYWORDS),
    (Category.LOCATION, LOCATION_KEYWORDS),
    (Category.FOOD, FOOD_KEYWORDS),
    (Category.ACTIVITY, ACTIVITY_KEYWORDS),
]

_DESCRIPTION_HINTS: list[tuple[Category, tuple[str, ...]]] = [
    (Category.TIME, ("time", "when", "schedule")),
    (Category.LOCATION, ("where", "place", "location")),
    (Category.FOOD, ("food", "eat", "restaurant")),
    (Category.ACTIVITY, ("activity", "play")),
]


@dataclass(frozen=True, slots=True)
class Categorization:
    category: Category
    confidence: float
    reasoning: str = ""


@dataclass(frozen=True, slots=True)
class DescriptionAnalysis:
    suggested_categories: list[Category] = field(default_factory=lambda: [DEFAULT_CATEGORY])
    context: str = "General meetup planning"
    keywords: list[str] = field(default_factory=list)


class KeywordClassifier(ABC):
    """Narrow interface the transport layer uses for smart categorization."""

    name: str = "base"

    @property
    def available(self) -> bool:
        return True

    @abstractmethod
    async def categorize(self, text: str) -> Categorization: ...

    @abstractmethod
    async def analyze_description(self, description: str) -> DescriptionAnalysis: ...


def _matches(word: str, keyword: str) -> bool:
    if word == keyword:
        return True
    return len(keyword) >= _PREFIX_MIN_LENGTH and word.startswith(keyword)


class RuleBasedClassifier(KeywordClassifier):
    name = "rules"

    async def categorize(self, text: str) -> Categorization:
        return self.categorize_sync(text)

    def categorize_sync(self, text: str) -> Categorization:
        words = _WORD_RE.findall(text.lower())
        for category, keywords in _RULES:
            if any(_matches(word, keyword) for word in words for keyword in keywords):
                return Categorization(
                    category=category,
                    confidence=0.8,
                    reasoning=f"Rule-based: contains {category.value} keywords",
                )
        return Categorization(category=DEFAULT_CATEGORY, confidence=0.5, reasoning="Default categorization")

    async def analyze_description(self, description: str) -> DescriptionAnalysis:
        return self.analyze_description_sync(description)

    def analyze_description_sync(self, description: str) -> DescriptionAnalysis:
        lowered = description.lower()
        suggested = [
            category for category, hints in _DESCRIPTION_HINTS if any(h in lowered for h in hints)
        ]
        words = [word for word in description.split() if len(word) > 2]
        context = f"Meetup: {description[:50]}..." if len(description) > 50 else f"Meetup: {description}"
        return DescriptionAnalysis(
            suggested_categories=suggested or [DEFAULT_CATEGORY],
            context=context,
            keywords=words[:5],
        )


class OpenAIClassifier(KeywordClassifier):
    """
    Chat-model classifier.

    Any API error, timeout or unparseable answer falls back to the rule-based
    result, so callers always get a category.
    """

    name = "openai"

    def __init__(self, api_key: str, model: str, timeout_seconds: float = 10.0, client=None):
        self.model = model
        self.timeout_seconds = timeout_seconds
        self.client = client or AsyncOpenAI(api_key=api_key, timeout=timeout_seconds)
        self._fallback = RuleBasedClassifier()
        logger.info("OpenAI classifier initialized", model=model, timeout=timeout_seconds)

    @staticmethod
    def _categorization_prompt(text: str) -> str:
        return f"""You are helping categorize keywords for a meetup planning app.

Categorize this keyword: "{text}"

Categories:
- time: When to meet (times, dates, days, schedules)
- location: Where to meet (places, venues, areas, addresses)
- food: What to eat (restaurants, cuisines, meals, drinks)
- activity: What to do (activities, entertainment, events)

Respond with ONLY the category name (time, location, food, or activity). No explanation needed."""

    @staticmethod
    def _description_prompt(description: str) -> str:
        return f"""Analyze this meetup description: "{description}"

Extract:
1. Most relevant categories (time, location, food, activity)
2. Key context about the meetup
3. Important keywords that participants might suggest

Respond in this format:
CATEGORIES: [list categories separated by commas]
CONTEXT: [brief context summary]
KEYWORDS: [relevant keywords separated by commas]"""

    async def _complete(self, prompt: str) -> str:
        response = await asyncio.wait_for(
            self.client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
                temperature=0,
            ),
            timeout=self.timeout_seconds,
        )
        return (response.choices[0].message.content or "").strip()

    async def categorize(self, text: str) -> Categorization:
        try:
            answer = await self._complete(self._categorization_prompt(text))
        except Exception as e:
            logger.warning("LLM categorization failed, using rules", error=str(e))
            return self._fallback.categorize_sync(text)

        return self.parse_categorization(answer, text)

    def parse_categorization(self, answer: str, text: str) -> Categorization:
        lowered = answer.lower()
        for category in Category:
            if category.value in lowered:
                return Categorization(
                    category=category,
                    confidence=0.9,
                    reasoning=f'LLM categorized "{text}" as {category.value}',
                )

        # Unclear answer: rules decide, with reduced confidence
        fallback = self._fallback.categorize_sync(text)
        return Categorization(category=fallback.category, confidence=0.6, reasoning=fallback.reasoning)

    async def analyze_description(self, description: str) -> DescriptionAnalysis:
        try:
            answer = await self._complete(self._description_prompt(description))
        except Exception as e:
            logger.warning("LLM description analysis failed, using rules", error=str(e))
            return self._fallback.analyze_description_sync(description)

        return self.parse_description_analysis(answer)

    @staticmethod
    def parse_description_analysis(answer: str) -> DescriptionAnalysis:
        categories: list[Category] = []
        context = ""
        keywords: list[str] = []
        valid = {c.value for c in Category}

        for line in answer.splitlines():
            line = line.strip()
            if line.startswith("CATEGORIES:"):
                names = [c.strip().lower() for c in line.removeprefix("CATEGORIES:").split(",")]
                categories = [Category(name) for name in names if name in valid]
            elif line.startswith("CONTEXT:"):
                context = line.removeprefix("CONTEXT:").strip()
            elif line.startswith("KEYWORDS:"):
                keywords = [k.strip() for k in line.removeprefix("KEYWORDS:").split(",") if k.strip()]

        return DescriptionAnalysis(
            suggested_categories=categories or [DEFAULT_CATEGORY],
            context=context or "General meetup planning",
            keywords=keywords,
        )


async def resolve_category(
    classifier: KeywordClassifier,
    text: str,
    suggested: str | None = None,
    confidence_threshold: float = 0.7,
) -> tuple[Category, Categorization]:
    """
    Pick a category for ``text``; a user suggestion wins over a low-confidence guess.

    Returns:
        (chosen category, raw classifier answer)
    """
    result = await classifier.categorize(text)
    if suggested and result.confidence < confidence_threshold:
        logger.info(
            "Using suggested category over low-confidence classification",
            suggested=suggested,
            classified=result.category.value,
            confidence=result.confidence,
        )
        return Category(suggested), result
    return result.category, result


def build_classifier(settings: Settings) -> KeywordClassifier:
    if settings.CLASSIFIER_BACKEND == "openai":
        if settings.OPENAI_API_KEY:
            return OpenAIClassifier(
                api_key=settings.OPENAI_API_KEY,
                model=settings.OPENAI_MODEL,
                timeout_seconds=settings.CLASSIFIER_TIMEOUT_SECONDS,
            )
        logger.warning("OPENAI_API_KEY not configured, using rule-based classifier")
    return RuleBasedClassifier()
