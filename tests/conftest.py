import json
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

import httpx
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from bilimcheck import models  # noqa: F401  (registers tables)
from bilimcheck.backend_client import BackendClient
from bilimcheck.catalog import CatalogClient
from bilimcheck.db import Base
from bilimcheck.deps import Services
from bilimcheck.exporter import PlanExporter
from bilimcheck.gemini_client import GeminiClient
from bilimcheck.identity import IdentityStore
from bilimcheck.results import ResultsBrowser
from bilimcheck.scoring import ScoringClient
from bilimcheck.study_plan import StudyPlanGenerator

Handler = Callable[[httpx.Request], Any]


class FakeServer:
	"""Routes (method, path) to canned JSON or callables and records every request."""

	def __init__(self, routes: Optional[Dict[Tuple[str, str], Any]] = None) -> None:
		self.routes: Dict[Tuple[str, str], Any] = dict(routes or {})
		self.requests: List[httpx.Request] = []

	async def __call__(self, request: httpx.Request) -> httpx.Response:
		self.requests.append(request)
		handler = self.routes.get((request.method, request.url.path))
		if handler is None:
			return httpx.Response(404, json={"detail": "not found"})
		result = handler(request) if callable(handler) else handler
		if hasattr(result, "__await__"):
			result = await result
		if isinstance(result, httpx.Response):
			return result
		return httpx.Response(200, json=result)

	def calls(self, method: str, path: str) -> List[httpx.Request]:
		return [r for r in self.requests if r.method == method and r.url.path == path]

	def json_bodies(self, method: str, path: str) -> List[Dict[str, Any]]:
		return [json.loads(r.content) for r in self.calls(method, path)]


@pytest.fixture
def session_factory():
	engine = create_engine(
		"sqlite://",
		connect_args={"check_same_thread": False},
		poolclass=StaticPool,
	)
	Base.metadata.create_all(bind=engine)
	factory = sessionmaker(bind=engine, autocommit=False, autoflush=False)
	yield factory
	engine.dispose()


@pytest.fixture
def identity_store(session_factory):
	store = IdentityStore(session_factory)
	store.load()
	return store


@pytest.fixture
def server():
	return FakeServer()


@pytest.fixture
def backend(server):
	return BackendClient("http://backend.test", transport=httpx.MockTransport(server))


@pytest.fixture
def scoring(backend):
	return ScoringClient(backend)


def gemini_reply(text: str) -> Dict[str, Any]:
	return {"candidates": [{"content": {"parts": [{"text": text}], "role": "model"}}]}


@pytest.fixture
def gemini_server():
	return FakeServer()


@pytest.fixture
def gemini(gemini_server):
	return GeminiClient(
		"test-key",
		base_url="http://gemini.test/v1beta/models/gemini-2.5-flash:generateContent",
		transport=httpx.MockTransport(gemini_server),
	)


def vera_font() -> Path:
	import reportlab

	return Path(reportlab.__file__).parent / "fonts" / "Vera.ttf"


@pytest.fixture
def font_path():
	path = vera_font()
	if not path.is_file():
		pytest.skip("reportlab bundled Vera.ttf not available")
	return path


@pytest.fixture
def services(backend, scoring, identity_store, gemini, font_path):
	return Services(
		backend=backend,
		catalog=CatalogClient(backend),
		scoring=scoring,
		identity_store=identity_store,
		results_browser=ResultsBrowser(scoring),
		exporter=PlanExporter(font_path),
		gemini=gemini,
		plan_generator=StudyPlanGenerator(gemini, language="Karakalpak"),
		auto_advance_delay=0.0,
	)


def question(qid: int, order: int, text: str, options: Dict[str, str]) -> Dict[str, Any]:
	return {"id": qid, "order_number": order, "question_text": text, "options": options}


def result_question(q: Dict[str, Any], user_answer: Optional[str], correct_answer: str) -> Dict[str, Any]:
	return {**q, "user_answer": user_answer, "correct_answer": correct_answer}


def submission_payload(
	questions: List[Dict[str, Any]],
	answers: Dict[int, str],
	correct: Dict[int, str],
	*,
	topics: str = "Fractions, equations",
) -> Dict[str, Any]:
	result_questions = [result_question(q, answers.get(q["id"]), correct[q["id"]]) for q in questions]
	correct_count = sum(1 for rq in result_questions if rq["user_answer"] == rq["correct_answer"])
	total = len(result_questions)
	return {
		"result": {
			"id": 501,
			"score_percentage": round(correct_count / total * 100, 2),
			"total_questions": total,
			"correct_answers": correct_count,
			"rank": 3,
		},
		"questions": result_questions,
		"subject_detail": {"id": 1, "name": "Math", "grade": 5, "topics": topics},
	}
