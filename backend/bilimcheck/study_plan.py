"""Study plans synthesized by Gemini from a student's incorrect answers."""
from __future__ import annotations
import logging
from typing import Dict, List, Optional, Sequence

from pydantic import BaseModel, ConfigDict, ValidationError

from .errors import PlanTransportError, PlanValidationError
from .gemini_client import GeminiClient, GeminiResponseError, GeminiTransportError
from .schemas import (
	ResultQuestion,
	ResultSummary,
	StudyPlan,
	SubjectDetail,
	SubmissionResult,
	Topic,
	plan_schema,
)
from .settings import settings

logger = logging.getLogger(__name__)

NOT_ANSWERED = "Not answered"


class _TopicPayload(BaseModel):
	model_config = ConfigDict(strict=True)

	name: str
	desc: str


class _PlanPayload(BaseModel):
	topics: List[_TopicPayload]


def resolve_language(
	subject_detail: SubjectDetail,
	*,
	default: Optional[str] = None,
	language_subjects: Optional[Dict[str, str]] = None,
) -> str:
	"""Language subjects get a plan in their own language; everything else uses the default."""
	mapping = settings.language_subjects if language_subjects is None else language_subjects
	wanted = subject_detail.name.strip().casefold()
	for subject_name, language in mapping.items():
		if subject_name.strip().casefold() == wanted:
			return language
	return default or settings.plan_language


def _format_score(value: float) -> str:
	return f"{round(value, 1):g}"


def build_prompt(
	subject_detail: SubjectDetail,
	incorrect_questions: Sequence[ResultQuestion],
	result: ResultSummary,
	language: str,
) -> str:
	lines = [
		"You are an expert tutor. A student has just completed a test. Analyze their results and provide a study plan.",
		"",
		"Test data:",
		f"- Subject: {subject_detail.name}",
		f"- Grade: {subject_detail.grade}",
	]
	if subject_detail.topics and subject_detail.topics.strip():
		lines.append(f"- Topics: {subject_detail.topics.strip()}")
	lines.append(
		f"- Final Score: {_format_score(result.score_percentage)}% "
		f"({result.correct_answers} out of {result.total_questions} correct)"
	)
	lines.append("- Incorrectly answered questions:")
	for q in incorrect_questions:
		lines.append(f'- Question: "{q.question_text}"')
		lines.append(f'  - Your Answer: "{q.user_answer_text or NOT_ANSWERED}"')
		lines.append(f'  - Correct Answer: "{q.correct_answer_text or q.correct_answer}"')
	lines.extend(
		[
			"",
			"Based on these incorrect answers, identify key topics to study. "
			"For each topic give an explanation of the core concept.",
			f"Be encouraging and constructive. Return all information only in {language} language.",
		]
	)
	return "\n".join(lines)


def _strip_code_fence(raw: str) -> str:
	s = raw.strip()
	if s.startswith("```"):
		s = s.strip("`").strip()
		if s.lower().startswith("json"):
			s = s[4:].strip()
	return s


def parse_plan(raw: str) -> StudyPlan:
	try:
		payload = _PlanPayload.model_validate_json(_strip_code_fence(raw))
	except ValidationError as err:
		raise PlanValidationError(f"Study plan does not match the expected schema: {err.error_count()} error(s)", raw=raw) from err
	return StudyPlan(topics=[Topic(name=t.name, description=t.desc) for t in payload.topics])


class StudyPlanGenerator:
	def __init__(
		self,
		gemini: GeminiClient,
		*,
		language: Optional[str] = None,
		language_subjects: Optional[Dict[str, str]] = None,
	) -> None:
		self.gemini = gemini
		self.language = language
		self.language_subjects = language_subjects

	async def generate(self, subject_detail: SubjectDetail, submission: SubmissionResult) -> StudyPlan:
		incorrect = submission.incorrect_questions
		if not incorrect:
			logger.info("No incorrect answers for %s %s; no plan needed", subject_detail.name, subject_detail.grade)
			return StudyPlan(topics=[], needed=False)

		language = resolve_language(subject_detail, default=self.language, language_subjects=self.language_subjects)
		prompt = build_prompt(subject_detail, incorrect, submission.result, language)
		try:
			raw = await self.gemini.generate_structured(prompt, plan_schema())
		except GeminiTransportError as err:
			logger.warning("Study plan request failed: %s", err)
			raise PlanTransportError(str(err)) from err
		except GeminiResponseError as err:
			logger.error("Study plan response had no text: %s", err)
			raise PlanValidationError(str(err)) from err

		try:
			plan = parse_plan(raw)
		except PlanValidationError:
			logger.error("Study plan failed validation; raw output: %s", raw[:800])
			raise
		if plan.is_empty:
			logger.warning("Model returned an empty study plan for %s %s", subject_detail.name, subject_detail.grade)
		return plan
