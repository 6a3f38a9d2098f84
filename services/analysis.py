# services/analysis.py
import json
import logging
from typing import List, Optional, Sequence

from ai_providers.base import ChatProvider
from ai_providers.errors import AllProvidersExhaustedError, SchemaValidationError
from ai_providers.pool import ProviderPool, SelectionPolicy
from services.generator import parse_json_payload
from services.schemas import WeakAreaAnalysis, WeakTopic, WrongAnswerRecord

logger = logging.getLogger(__name__)

DIFFICULTY_LEVELS = ("beginner", "intermediate", "advanced")

PROMPT_TIER_ONE = """You are an expert educational analyst. Analyze these wrong answers from a student and identify their weak areas with deep insights.

Wrong Answers Data:
{data}

Provide a comprehensive analysis with:

1. Summary: a brief 2-3 sentence overview of the student's main weak areas and learning patterns. Be specific and insightful.
2. Weak Topics: the top 3-5 specific topics/concepts the student struggles with most, ranked. For each:
   - topic name (be specific)
   - a clear explanation of WHY they struggle (type of mistakes, patterns you see)
   - count of mistakes in this area
   - difficulty level (beginner/intermediate/advanced)
3. Recommendations: 4-6 specific, actionable, personalized recommendations.
4. Learning Style Insights: a brief note on what the mistakes reveal about their learning approach.

Return the analysis in this EXACT JSON format and nothing else:
{{
  "summary": "2-3 sentence analysis",
  "weakTopics": [
    {{
      "topic": "Specific Topic Name",
      "reason": "Explanation of the struggle and patterns",
      "mistakeCount": number,
      "difficultyLevel": "beginner|intermediate|advanced"
    }}
  ],
  "recommendations": ["Specific, actionable recommendation"],
  "learningStyleInsights": "Brief insight about their learning approach"
}}

Be constructive, specific, and educational."""

PROMPT_TIER_TWO = """Analyze these wrong answers and identify the student's weak areas. Be specific and helpful.

Wrong Answers:
{data}

Identify:
1. A brief summary of the overall weak areas (2-3 sentences)
2. The top 3-5 topics the student struggles with most, ranked, each with a reason, mistake count and difficulty level (beginner|intermediate|advanced)
3. 4-6 specific, actionable recommendations for improvement
4. Brief learning style insights

Format as JSON with: summary, weakTopics (array of {{topic, reason, mistakeCount, difficultyLevel}}), recommendations (array of strings), learningStyleInsights"""

ANALYSIS_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "summary": {"type": "STRING"},
        "weakTopics": {
            "type": "ARRAY",
            "items": {
                "type": "OBJECT",
                "properties": {
                    "topic": {"type": "STRING"},
                    "reason": {"type": "STRING"},
                    "mistakeCount": {"type": "NUMBER"},
                    "difficultyLevel": {"type": "STRING"},
                },
            },
        },
        "recommendations": {"type": "ARRAY", "items": {"type": "STRING"}},
        "learningStyleInsights": {"type": "STRING"},
    },
    "required": ["summary", "weakTopics", "recommendations", "learningStyleInsights"],
}


def _serialize(records: Sequence[WrongAnswerRecord]) -> str:
    return json.dumps([r.to_dict() for r in records], indent=2, ensure_ascii=False, default=str)


def _mistake_count(value) -> int:
    try:
        return max(0, int(float(value)))
    except (TypeError, ValueError):
        return 0


def parse_analysis(text: str, source: str) -> WeakAreaAnalysis:
    data = parse_json_payload(text)
    if not isinstance(data, dict):
        raise SchemaValidationError("Analysis must be a JSON object")

    raw_topics = data.get("weakTopics")
    if not isinstance(raw_topics, list):
        raise SchemaValidationError("Analysis has no 'weakTopics' array")
    weak = []
    for i, t in enumerate(raw_topics):
        if not isinstance(t, dict) or not str(t.get("topic") or "").strip():
            raise SchemaValidationError(f"Weak topic {i} has no name")
        level = str(t.get("difficultyLevel") or "").strip().lower()
        weak.append(WeakTopic(
            topic=str(t["topic"]).strip(),
            reason=str(t.get("reason") or "").strip(),
            mistake_count=_mistake_count(t.get("mistakeCount")),
            difficulty_level=level if level in DIFFICULTY_LEVELS else "intermediate",
        ))

    recs = data.get("recommendations") or []
    if not isinstance(recs, list):
        raise SchemaValidationError("'recommendations' must be an array")

    return WeakAreaAnalysis(
        summary=str(data.get("summary") or "").strip(),
        weak_topics=tuple(weak),
        recommendations=tuple(str(r).strip() for r in recs if str(r).strip()),
        learning_style_insights=str(data.get("learningStyleInsights") or "").strip(),
        source=source,
    )


class TierOneAnalyzer:
    """Secondary provider family (chat completions), preferred for reasoning."""

    name = "tier1"

    def __init__(self, provider: Optional[ChatProvider], model_params: dict = None):
        self.provider = provider
        self.model_params = dict(model_params or {"temperature": 0.7, "max_tokens": 2000})

    @property
    def available(self) -> bool:
        return self.provider is not None

    def analyze(self, records: Sequence[WrongAnswerRecord]) -> WeakAreaAnalysis:
        logger.info("Analyzing %d wrong answer(s) with %s", len(records), self.provider.name)
        content = self.provider.chat_complete(PROMPT_TIER_ONE.format(data=_serialize(records)),
                                              self.model_params)
        return parse_analysis(content, f"{self.name}:{self.provider.name}")


class TierTwoAnalyzer:
    """Primary provider family through the pool, schema-constrained."""

    name = "tier2"

    def __init__(self, pool: ProviderPool, model_params: dict = None):
        self.pool = pool
        self.model_params = dict(model_params or {"model": "gemini-2.5-flash", "temperature": 0.7})

    @property
    def available(self) -> bool:
        return len(self.pool) > 0

    def analyze(self, records: Sequence[WrongAnswerRecord]) -> WeakAreaAnalysis:
        client = self.pool.acquire(SelectionPolicy.ROUND_ROBIN)
        logger.info("Analyzing %d wrong answer(s) with %s", len(records), client.name)
        raw = client.generate_structured(PROMPT_TIER_TWO.format(data=_serialize(records)), None,
                                         ANALYSIS_SCHEMA, self.model_params)
        return parse_analysis(client.extract_text(raw), f"{self.name}:{client.name}")


class AnalysisOrchestrator:
    """Ordered fallback chain of analyzers; the first success wins."""

    def __init__(self, analyzers: List):
        self.analyzers = list(analyzers)

    @classmethod
    def build(cls, pool: ProviderPool, chat_provider: Optional[ChatProvider] = None,
              tier_one_params: dict = None, tier_two_params: dict = None) -> "AnalysisOrchestrator":
        return cls([
            TierOneAnalyzer(chat_provider, tier_one_params),
            TierTwoAnalyzer(pool, tier_two_params),
        ])

    def analyze(self, records: Sequence[WrongAnswerRecord]) -> WeakAreaAnalysis:
        records = list(records or [])
        if not records:
            return WeakAreaAnalysis.empty()

        causes = []
        for analyzer in self.analyzers:
            if not analyzer.available:
                logger.info("Analyzer %s not configured, skipping", analyzer.name)
                continue
            try:
                analysis = analyzer.analyze(records)
            except Exception as e:
                logger.warning("Analyzer %s failed, falling back: %s", analyzer.name, e, exc_info=True)
                causes.append((analyzer.name, e))
                continue
            logger.info("Weak area analysis from %s: %d weak topic(s)",
                        analyzer.name, len(analysis.weak_topics))
            return analysis

        err = AllProvidersExhaustedError(causes)
        raise err from err.last_cause
