"""Wire and domain shapes shared by the clients and the state machine."""
from __future__ import annotations
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Subject(BaseModel):
	model_config = ConfigDict(frozen=True, extra="ignore")

	id: int
	name: str
	grade: int
	questions_count: int = 0
	has_enough_questions: bool = False


class GradeOption(BaseModel):
	model_config = ConfigDict(frozen=True)

	grade: int
	id: int
	has_enough_questions: bool


class SubjectGroup(BaseModel):
	model_config = ConfigDict(frozen=True)

	name: str
	grades: List[GradeOption]

	@property
	def is_available(self) -> bool:
		return any(g.has_enough_questions for g in self.grades)


class Question(BaseModel):
	model_config = ConfigDict(frozen=True, extra="ignore")

	id: int
	order_number: int
	question_text: str
	# label -> option text; insertion order is the render order
	options: Dict[str, str]

	@field_validator("options")
	@classmethod
	def _labels_not_blank(cls, value: Dict[str, str]) -> Dict[str, str]:
		if not value:
			raise ValueError("question has no options")
		for label in value:
			if not label.strip():
				raise ValueError("option labels must not be blank")
		return value

	def option_text(self, label: Optional[str]) -> Optional[str]:
		if label is None:
			return None
		return self.options.get(label)


class CreatedTest(BaseModel):
	model_config = ConfigDict(extra="ignore")

	test_id: int
	questions: List[Question] = Field(default_factory=list)


class ResultSummary(BaseModel):
	model_config = ConfigDict(frozen=True, extra="ignore")

	id: int
	score_percentage: float
	total_questions: int
	correct_answers: int
	rank: Optional[int] = None


class ResultQuestion(Question):
	user_answer: Optional[str] = None
	correct_answer: str

	@property
	def is_correct(self) -> bool:
		return self.user_answer == self.correct_answer

	@property
	def user_answer_text(self) -> Optional[str]:
		return self.option_text(self.user_answer)

	@property
	def correct_answer_text(self) -> Optional[str]:
		return self.option_text(self.correct_answer)


class SubjectDetail(BaseModel):
	model_config = ConfigDict(frozen=True, extra="ignore")

	id: int
	name: str
	grade: int
	topics: Optional[str] = None


class SubmissionResult(BaseModel):
	model_config = ConfigDict(frozen=True, extra="ignore")

	result: ResultSummary
	questions: List[ResultQuestion]
	subject_detail: SubjectDetail

	@property
	def incorrect_questions(self) -> List[ResultQuestion]:
		return [q for q in self.questions if not q.is_correct]


class Topic(BaseModel):
	model_config = ConfigDict(frozen=True, populate_by_name=True)

	name: str
	description: str = Field(alias="desc")


class StudyPlan(BaseModel):
	model_config = ConfigDict(frozen=True)

	topics: List[Topic] = Field(default_factory=list)
	# False when the result had no incorrect answers and the model was never asked
	needed: bool = True

	@property
	def is_empty(self) -> bool:
		return not self.topics


class ResultListItem(BaseModel):
	model_config = ConfigDict(extra="allow")

	id: int
	student_name: Optional[str] = None
	subject_name: Optional[str] = None
	grade: Optional[int] = None
	score_percentage: Optional[float] = None
	correct_answers: Optional[int] = None
	total_questions: Optional[int] = None
	created_at: Optional[str] = None


class Pagination(BaseModel):
	model_config = ConfigDict(extra="ignore")

	current_page: int = 1
	total_pages: int = 1
	total_count: int = 0
	has_next: bool = False
	has_previous: bool = False


class ResultsPage(BaseModel):
	model_config = ConfigDict(extra="ignore")

	results: List[ResultListItem] = Field(default_factory=list)
	pagination: Pagination = Field(default_factory=Pagination)


def plan_schema() -> Dict[str, Any]:
	"""Gemini responseSchema for a study plan."""
	return {
		"type": "OBJECT",
		"properties": {
			"topics": {
				"type": "ARRAY",
				"description": "A list of key topics the student needs to study.",
				"items": {
					"type": "OBJECT",
					"properties": {
						"name": {"type": "STRING", "description": "The name of the topic to study."},
						"desc": {"type": "STRING", "description": "Explanation of the core concept of the topic."},
					},
					"required": ["name", "desc"],
				},
			}
		},
		"required": ["topics"],
	}
