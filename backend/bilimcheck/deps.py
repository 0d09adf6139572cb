from __future__ import annotations
import logging
from dataclasses import dataclass, field
from typing import Dict, Optional, Set

from fastapi import HTTPException, Request

from .backend_client import BackendClient
from .catalog import CatalogClient
from .db import SessionLocal
from .errors import (
	BilimCheckError,
	ExportUnavailable,
	IntegrationError,
	PlanValidationError,
	SubmissionInFlight,
	TransportError,
	UserInputError,
)
from .exporter import PlanExporter
from .gemini_client import GeminiClient
from .identity import IdentityStore
from .results import ResultsBrowser
from .schemas import StudyPlan
from .scoring import ScoringClient
from .session import TestSession
from .settings import settings
from .study_plan import StudyPlanGenerator

logger = logging.getLogger(__name__)


@dataclass
class Services:
	backend: BackendClient
	catalog: CatalogClient
	scoring: ScoringClient
	identity_store: IdentityStore
	results_browser: ResultsBrowser
	exporter: PlanExporter
	gemini: Optional[GeminiClient] = None
	plan_generator: Optional[StudyPlanGenerator] = None
	auto_advance_delay: float = 0.0
	sessions: Dict[int, TestSession] = field(default_factory=dict)
	plans: Dict[int, StudyPlan] = field(default_factory=dict)
	plans_in_flight: Set[int] = field(default_factory=set)

	async def aclose(self) -> None:
		for session in self.sessions.values():
			session.close()
		await self.backend.aclose()
		if self.gemini is not None:
			await self.gemini.aclose()


def build_services() -> Services:
	backend = BackendClient()
	scoring = ScoringClient(backend)
	gemini: Optional[GeminiClient] = None
	if settings.gemini_api_key:
		gemini = GeminiClient()
	else:
		logger.warning("GEMINI_API_KEY is not set; study plans are disabled")
	return Services(
		backend=backend,
		catalog=CatalogClient(backend),
		scoring=scoring,
		identity_store=IdentityStore(SessionLocal),
		results_browser=ResultsBrowser(scoring),
		exporter=PlanExporter(),
		gemini=gemini,
		plan_generator=StudyPlanGenerator(gemini) if gemini is not None else None,
		auto_advance_delay=settings.auto_advance_delay,
	)


def get_services(request: Request) -> Services:
	return request.app.state.services


def get_session(test_id: int, request: Request) -> TestSession:
	session = get_services(request).sessions.get(test_id)
	if session is None:
		raise HTTPException(status_code=404, detail=f"No open session for test {test_id}")
	return session


def http_error(err: BilimCheckError) -> HTTPException:
	"""Translate a domain error into the response the browser shows."""
	detail = {"message": str(err), "error": type(err).__name__, "retryable": err.retryable}
	if isinstance(err, UserInputError):
		return HTTPException(status_code=422, detail=detail)
	if isinstance(err, SubmissionInFlight):
		return HTTPException(status_code=409, detail=detail)
	if isinstance(err, IntegrationError):
		return HTTPException(status_code=400, detail=detail)
	if isinstance(err, PlanValidationError):
		return HTTPException(status_code=502, detail=detail)
	if isinstance(err, TransportError):
		return HTTPException(status_code=502, detail=detail)
	if isinstance(err, ExportUnavailable):
		return HTTPException(status_code=503, detail=detail)
	return HTTPException(status_code=500, detail=detail)
