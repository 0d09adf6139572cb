"""Client-side test session: answer collection, navigation and submission gating.

Each transition swaps ``TestSession.state`` for a new frozen ``SessionState``;
callers render from the snapshot and never mutate it.
"""
from __future__ import annotations
import asyncio
import logging
from enum import Enum
from typing import Dict, Iterable, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field

from .errors import (
	IncompleteAnswers,
	InvalidAnswer,
	InvalidSession,
	MissingName,
	SubmissionInFlight,
	TransportError,
)
from .identity import IdentityStore
from .schemas import Question, SubmissionResult
from .scoring import ScoringClient
from .settings import settings

logger = logging.getLogger(__name__)


class SessionStatus(str, Enum):
	LOADING = "loading"
	READY = "ready"
	ANSWERING = "answering"
	READY_TO_SUBMIT = "ready_to_submit"
	SUBMITTING = "submitting"
	SUBMITTED = "submitted"
	SUBMIT_FAILED = "submit_failed"


class SessionState(BaseModel):
	model_config = ConfigDict(frozen=True)

	test_id: Optional[int] = None
	questions: Tuple[Question, ...] = ()
	answers: Dict[int, str] = Field(default_factory=dict)
	cursor: int = 0
	status: SessionStatus = SessionStatus.LOADING
	result: Optional[SubmissionResult] = None
	error: Optional[str] = None

	@property
	def total(self) -> int:
		return len(self.questions)

	@property
	def answered_count(self) -> int:
		return len(self.answers)

	@property
	def can_submit(self) -> bool:
		return self.total > 0 and self.answered_count == self.total

	@property
	def in_flight(self) -> bool:
		return self.status == SessionStatus.SUBMITTING

	@property
	def current_question(self) -> Optional[Question]:
		if not self.questions:
			return None
		return self.questions[self.cursor]

	@property
	def is_last(self) -> bool:
		return self.cursor == self.total - 1

	def index_of(self, question_id: int) -> Optional[int]:
		for index, question in enumerate(self.questions):
			if question.id == question_id:
				return index
		return None


def _answering_status(answered: int, total: int) -> SessionStatus:
	if answered == 0:
		return SessionStatus.READY
	if answered < total:
		return SessionStatus.ANSWERING
	return SessionStatus.READY_TO_SUBMIT


class TestSession:
	"""One test attempt, from the loaded question list to a scored result."""

	__test__ = False  # not a pytest class

	def __init__(
		self,
		scoring: ScoringClient,
		identity_store: IdentityStore,
		*,
		auto_advance_delay: Optional[float] = None,
	) -> None:
		self.scoring = scoring
		self.identity_store = identity_store
		self.auto_advance_delay = settings.auto_advance_delay if auto_advance_delay is None else auto_advance_delay
		self.state = SessionState()
		self.closed = False
		self._pending_advance: Optional[asyncio.TimerHandle] = None

	def initialize(self, test_id: int, questions: Optional[Iterable[Question]]) -> SessionState:
		ordered = tuple(sorted(questions or (), key=lambda q: q.order_number))
		if not ordered:
			raise InvalidSession(f"Test {test_id} has no questions")
		ids = [q.id for q in ordered]
		if len(set(ids)) != len(ids):
			raise InvalidSession(f"Test {test_id} repeats a question id")
		self.state = SessionState(test_id=test_id, questions=ordered, status=SessionStatus.READY)
		logger.info("Session for test %s ready with %d questions", test_id, len(ordered))
		return self.state

	def select_answer(self, question_id: int, label: str) -> SessionState:
		"""Record ``label`` for ``question_id``, overwriting an earlier choice.

		When the question is not the last one the cursor moves to the next
		question, immediately or after ``auto_advance_delay`` seconds. A
		positive delay needs a running event loop.
		"""
		state = self._require_open_answers()
		index = state.index_of(question_id)
		if index is None:
			raise InvalidAnswer(f"Question {question_id} is not part of test {state.test_id}")
		if label not in state.questions[index].options:
			raise InvalidAnswer(f"Option {label!r} does not exist for question {question_id}")

		answers = {**state.answers, question_id: label}
		self.state = state.model_copy(
			update={
				"answers": answers,
				"status": _answering_status(len(answers), state.total),
				"error": None,
			}
		)
		if index < state.total - 1:
			self._schedule_advance(index)
		else:
			self._cancel_pending_advance()
		return self.state

	def navigate(self, target: Union[str, int]) -> SessionState:
		"""Move the cursor to ``"next"``, ``"previous"`` or an index, clamped to the test."""
		state = self.state
		if not state.questions:
			return state
		if isinstance(target, str):
			step = {"next": 1, "previous": -1, "prev": -1}.get(target.lower(), 0)
			wanted = state.cursor + step
		else:
			wanted = int(target)
		cursor = max(0, min(wanted, state.total - 1))
		self._cancel_pending_advance()
		if cursor != state.cursor:
			self.state = state.model_copy(update={"cursor": cursor})
		return self.state

	def can_submit(self) -> bool:
		return self.state.can_submit

	async def submit(self, student_name: str) -> Optional[SubmissionResult]:
		"""Score the test. Returns None when the session was closed before the reply arrived."""
		state = self._require_initialized()
		if state.status == SessionStatus.SUBMITTING:
			raise SubmissionInFlight()
		if state.status == SessionStatus.SUBMITTED:
			raise InvalidSession(f"Test {state.test_id} was already submitted")
		if not state.can_submit:
			raise IncompleteAnswers(state.answered_count, state.total)
		name = (student_name or "").strip()
		if not name:
			raise MissingName()

		# persisted before the call so a retry keeps the chosen name
		self.identity_store.remember_name(name)
		participant_id = self.identity_store.identity.participant_id
		self.state = state.model_copy(update={"status": SessionStatus.SUBMITTING, "error": None})

		try:
			result = await self.scoring.submit(state.test_id, participant_id, name, dict(state.answers))
		except TransportError as err:
			if self.closed:
				logger.info("Dropping submit failure for closed test %s", state.test_id)
				raise
			self.state = self.state.model_copy(update={"status": SessionStatus.SUBMIT_FAILED, "error": str(err)})
			raise

		if self.closed:
			logger.info("Dropping late submission result for closed test %s", state.test_id)
			return None
		self.state = self.state.model_copy(update={"status": SessionStatus.SUBMITTED, "result": result})
		return result

	def close(self) -> None:
		self.closed = True
		self._cancel_pending_advance()

	def _require_initialized(self) -> SessionState:
		if self.state.status == SessionStatus.LOADING:
			raise InvalidSession("Session has not been initialized")
		return self.state

	def _require_open_answers(self) -> SessionState:
		state = self._require_initialized()
		if state.status == SessionStatus.SUBMITTING:
			raise InvalidSession("Answers are locked while the test is being submitted")
		if state.status == SessionStatus.SUBMITTED:
			raise InvalidSession(f"Test {state.test_id} was already submitted")
		return state

	def _schedule_advance(self, index: int) -> None:
		self._cancel_pending_advance()
		if self.auto_advance_delay <= 0:
			self._advance_from(index)
			return
		loop = asyncio.get_running_loop()
		self._pending_advance = loop.call_later(self.auto_advance_delay, self._advance_from, index)

	def _advance_from(self, index: int) -> None:
		self._pending_advance = None
		if self.closed:
			return
		state = self.state
		# the user navigated away in the meantime
		if state.cursor != index:
			return
		self.state = state.model_copy(update={"cursor": min(index + 1, state.total - 1)})

	def _cancel_pending_advance(self) -> None:
		if self._pending_advance is not None:
			self._pending_advance.cancel()
			self._pending_advance = None
