import json
import logging
import re
from dataclasses import dataclass, asdict, field
from typing import List, Dict, Any, Optional

from google import genai
from google.genai import types

from careerpath.ml.prompts import (
    FEEDBACK_CATEGORIES,
    FEEDBACK_PROMPT,
    FEEDBACK_SYSTEM,
    INTERVIEW_QUESTIONS_PROMPT,
    QUIZ_PROMPT,
)

logger = logging.getLogger(__name__)

FENCE_RE = re.compile(r"```(?:json)?[ \t]*\n?", re.IGNORECASE)


class GenerationError(Exception):
    """The model could not be reached or returned unusable output."""


@dataclass
class CategoryScore:
    name: str
    score: int
    comment: str


@dataclass
class Feedback:
    total_score: int
    category_scores: List[CategoryScore]
    strengths: List[str]
    areas_for_improvement: List[str]
    final_assessment: str

    def to_document(self) -> Dict[str, Any]:
        return {
            "totalScore": self.total_score,
            "categoryScores": [asdict(c) for c in self.category_scores],
            "strengths": self.strengths,
            "areasForImprovement": self.areas_for_improvement,
            "finalAssessment": self.final_assessment,
        }


@dataclass
class QuizContent:
    questions: List[str] = field(default_factory=list)
    answers: List[str] = field(default_factory=list)


def strip_fences(text: str) -> str:
    return FENCE_RE.sub("", text or "").strip()


def parse_model_json(text: str):
    """Parse a model reply that should be JSON, tolerating markdown fences."""
    cleaned = strip_fences(text)
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError as e:
        logger.error("Model returned malformed JSON: %r", cleaned[:200])
        raise GenerationError("Model returned malformed JSON") from e


def parse_questions(value) -> List[str]:
    """Normalise stored questions into a list of strings.

    Older quiz documents hold the list JSON-encoded in a string. Anything that
    does not decode to a list of strings yields an empty list.
    """
    if isinstance(value, str):
        try:
            value = json.loads(strip_fences(value))
        except json.JSONDecodeError:
            logger.error("Could not decode stored questions")
            return []
    if not isinstance(value, list):
        logger.error("Questions are not a list: %r", type(value).__name__)
        return []
    if not all(isinstance(q, str) for q in value):
        logger.error("Questions list holds non-string items")
        return []
    return [q.strip() for q in value if q.strip()]


def format_transcript(transcript: List[Dict[str, str]]) -> str:
    return "".join(f"- {m.get('role')}: {m.get('content')}\n" for m in transcript)


def _score(value) -> int:
    try:
        score = int(round(float(value)))
    except (TypeError, ValueError):
        raise GenerationError(f"Invalid score: {value!r}")
    if not 0 <= score <= 100:
        raise GenerationError(f"Score out of range: {score}")
    return score


def _string_list(value, key) -> List[str]:
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise GenerationError(f"'{key}' must be a list of strings")
    return value


def feedback_from_dict(data: Dict[str, Any]) -> Feedback:
    if not isinstance(data, dict):
        raise GenerationError("Feedback must be a JSON object")
    by_name = {}
    for item in data.get("categoryScores") or []:
        if isinstance(item, dict) and item.get("name") in FEEDBACK_CATEGORIES:
            by_name[item["name"]] = item
    missing = [name for name in FEEDBACK_CATEGORIES if name not in by_name]
    if missing:
        raise GenerationError(f"Missing feedback categories: {', '.join(missing)}")
    categories = [
        CategoryScore(name, _score(by_name[name].get("score")), str(by_name[name].get("comment", "")))
        for name in FEEDBACK_CATEGORIES
    ]
    return Feedback(
        total_score=_score(data.get("totalScore")),
        category_scores=categories,
        strengths=_string_list(data.get("strengths", []), "strengths"),
        areas_for_improvement=_string_list(data.get("areasForImprovement", []), "areasForImprovement"),
        final_assessment=str(data.get("finalAssessment", "")),
    )


class Engine:
    def __init__(self, model_name: str, api_key: Optional[str] = None, client=None):
        self.model_name = model_name
        self.api_key = api_key
        self._client = client

    @property
    def client(self):
        # Created on first use so the app starts without a key configured
        if self._client is None:
            self._client = genai.Client(api_key=self.api_key)
        return self._client

    def _generate(self, prompt: str, system: Optional[str] = None, json_output: bool = False) -> str:
        config = types.GenerateContentConfig(
            system_instruction=system,
            response_mime_type="application/json" if json_output else None,
        )
        try:
            response = self.client.models.generate_content(
                model=self.model_name,
                contents=prompt,
                config=config,
            )
            return response.text or ""
        except Exception as e:
            logger.exception("Text generation failed")
            raise GenerationError(str(e)) from e

    def generate_interview_questions(self, role, level, techstack, interview_type, amount) -> List[str]:
        prompt = INTERVIEW_QUESTIONS_PROMPT.format(
            role=role,
            level=level,
            techstack=", ".join(techstack) if isinstance(techstack, list) else techstack,
            type=interview_type,
            amount=amount,
        )
        questions = parse_questions(parse_model_json(self._generate(prompt)))
        if not questions:
            raise GenerationError("Model returned no interview questions")
        return questions

    def generate_feedback(self, transcript: List[Dict[str, str]]) -> Feedback:
        prompt = FEEDBACK_PROMPT.format(transcript=format_transcript(transcript))
        raw = self._generate(prompt, system=FEEDBACK_SYSTEM, json_output=True)
        return feedback_from_dict(parse_model_json(raw))

    def generate_quiz(self, notes: str) -> QuizContent:
        raw = self._generate(QUIZ_PROMPT.format(notes=notes))
        content = parse_model_json(raw)
        if not isinstance(content, dict):
            raise GenerationError("Quiz must be a JSON object")
        # answers[i] belongs to questions[i], so neither list is filtered
        questions = [q.strip() for q in _string_list(content.get("questions"), "questions")]
        answers = [a.strip() for a in _string_list(content.get("answers", []), "answers")]
        if not questions:
            raise GenerationError("Model returned no quiz questions")
        if len(answers) != len(questions):
            raise GenerationError(
                f"Quiz has {len(questions)} questions but {len(answers)} answers"
            )
        return QuizContent(questions=questions, answers=answers)
