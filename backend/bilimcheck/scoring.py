from __future__ import annotations
import logging
from typing import Dict, Mapping

from pydantic import ValidationError

from .backend_client import BackendClient
from .errors import FetchError, SubmitError
from .schemas import ResultsPage, SubmissionResult

logger = logging.getLogger(__name__)

SUBMIT_PATH = "/api/site/submit-test/"
RESULTS_PATH = "/api/site/test-results/"


class ScoringClient:
	def __init__(self, backend: BackendClient) -> None:
		self.backend = backend

	async def submit(
		self,
		test_id: int,
		student_id: str,
		student_name: str,
		answers: Mapping[int, str],
	) -> SubmissionResult:
		# JSON object keys are strings; the backend keys answers by question id
		body_answers: Dict[str, str] = {str(qid): label for qid, label in answers.items()}
		payload = {
			"test_id": test_id,
			"student_id": student_id,
			"student_name": student_name,
			"answers": body_answers,
		}
		data = await self.backend.post_json(SUBMIT_PATH, payload, error_cls=SubmitError)
		try:
			result = SubmissionResult.model_validate(data)
		except ValidationError as err:
			raise SubmitError(f"Malformed submission result: {err}") from err
		logger.info(
			"Test %s scored %.1f%% (%d/%d)",
			test_id,
			result.result.score_percentage,
			result.result.correct_answers,
			result.result.total_questions,
		)
		return result

	async def list_results(
		self,
		*,
		page: int,
		page_size: int,
		subject_id: str = "",
		search: str = "",
	) -> ResultsPage:
		params = {
			"page": page,
			"page_size": page_size,
			"subject_id": subject_id,
			"search": search,
		}
		data = await self.backend.get_json(RESULTS_PATH, params=params, error_cls=FetchError)
		try:
			return ResultsPage.model_validate(data)
		except ValidationError as err:
			raise FetchError(f"Malformed results page: {err}") from err
