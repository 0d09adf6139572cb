from __future__ import annotations
import logging
from typing import Dict, Iterable, List, Optional

from pydantic import ValidationError

from .backend_client import BackendClient
from .errors import FetchError
from .schemas import CreatedTest, GradeOption, Subject, SubjectGroup
from .settings import settings

logger = logging.getLogger(__name__)

SUBJECTS_PATH = "/api/site/subjects/"
CREATE_TEST_PATH = "/api/site/create-test/"


def group_subjects(subjects: Iterable[Subject]) -> List[SubjectGroup]:
	"""Group subjects by name, keeping first-seen order of names and backend order of grades."""
	grades_by_name: Dict[str, List[GradeOption]] = {}
	for subject in subjects:
		grades_by_name.setdefault(subject.name, []).append(
			GradeOption(grade=subject.grade, id=subject.id, has_enough_questions=subject.has_enough_questions)
		)
	return [SubjectGroup(name=name, grades=grades) for name, grades in grades_by_name.items()]


class CatalogClient:
	def __init__(self, backend: BackendClient, *, questions_count: Optional[int] = None) -> None:
		self.backend = backend
		self.questions_count = questions_count or settings.questions_count
		self._subjects: Optional[List[Subject]] = None

	@property
	def subjects(self) -> List[Subject]:
		return list(self._subjects or [])

	async def fetch_subjects(self) -> List[Subject]:
		data = await self.backend.get_json(SUBJECTS_PATH, error_cls=FetchError)
		try:
			subjects = [Subject.model_validate(item) for item in data.get("subjects") or []]
		except ValidationError as err:
			raise FetchError(f"Malformed subject list: {err}") from err
		self._subjects = subjects
		logger.info("Loaded %d subjects", len(subjects))
		return subjects

	async def fetch_groups(self) -> List[SubjectGroup]:
		return group_subjects(await self.fetch_subjects())

	def find_subject(self, subject_id: int) -> Optional[Subject]:
		for subject in self._subjects or []:
			if subject.id == subject_id:
				return subject
		return None

	async def create_test(self, subject_id: int) -> CreatedTest:
		payload = {"subject_id": subject_id, "questions_count": self.questions_count}
		data = await self.backend.post_json(CREATE_TEST_PATH, payload, error_cls=FetchError)
		try:
			created = CreatedTest.model_validate(data)
		except ValidationError as err:
			raise FetchError(f"Malformed test payload: {err}") from err
		logger.info("Created test %s with %d questions", created.test_id, len(created.questions))
		return created
