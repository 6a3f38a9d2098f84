# services/schemas.py
from dataclasses import dataclass, field
from typing import Any, List, Tuple


@dataclass(frozen=True)
class Topic:
    title: str
    description: str = ""

    def to_dict(self) -> dict:
        return {"title": self.title, "description": self.description}


@dataclass(frozen=True)
class Question:
    id: str
    question_text: str
    options: Tuple[str, ...]
    correct_answer: int
    explanation: str = ""

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "question": self.question_text,
            "options": list(self.options),
            "correctAnswer": self.correct_answer,
            "explanation": self.explanation,
        }


@dataclass(frozen=True)
class QuizBatch:
    topic: str
    questions: Tuple[Question, ...]

    def to_dict(self) -> dict:
        return {"topic": self.topic, "questions": [q.to_dict() for q in self.questions]}


@dataclass(frozen=True)
class WrongAnswerRecord:
    question: str
    user_answer: Any
    correct_answer: Any
    topic: str = ""
    explanation: str = ""

    @classmethod
    def from_dict(cls, d: dict) -> "WrongAnswerRecord":
        if not isinstance(d, dict):
            raise ValueError("wrong answer must be an object")
        question = d.get("question")
        if isinstance(question, str):
            question = question.strip()
        if not question:
            raise ValueError("wrong answer is missing 'question'")
        return cls(
            question=question,
            user_answer=d.get("userAnswer", d.get("user_answer")),
            correct_answer=d.get("correctAnswer", d.get("correct_answer")),
            topic=d.get("topic") or "",
            explanation=d.get("explanation") or "",
        )

    def to_dict(self) -> dict:
        return {
            "question": self.question,
            "topic": self.topic,
            "userAnswer": self.user_answer,
            "correctAnswer": self.correct_answer,
            "explanation": self.explanation,
        }


@dataclass(frozen=True)
class WeakTopic:
    topic: str
    reason: str = ""
    mistake_count: int = 0
    difficulty_level: str = "intermediate"

    def to_dict(self) -> dict:
        return {
            "topic": self.topic,
            "reason": self.reason,
            "mistakeCount": self.mistake_count,
            "difficultyLevel": self.difficulty_level,
        }


@dataclass(frozen=True)
class WeakAreaAnalysis:
    summary: str
    weak_topics: Tuple[WeakTopic, ...] = ()
    recommendations: Tuple[str, ...] = ()
    learning_style_insights: str = ""
    source: str = ""

    @classmethod
    def empty(cls) -> "WeakAreaAnalysis":
        return cls(summary="No incorrect answers to analyze yet.", source="none")

    def to_dict(self) -> dict:
        return {
            "summary": self.summary,
            "weakTopics": [w.to_dict() for w in self.weak_topics],
            "recommendations": list(self.recommendations),
            "learningStyleInsights": self.learning_style_insights,
            "source": self.source,
        }
