from __future__ import annotations
import logging

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from ..deps import Services, get_services, http_error
from ..errors import BilimCheckError, InvalidSession
from ..session import TestSession
from .tests import session_view

router = APIRouter(prefix="/catalog", tags=["catalog"])

logger = logging.getLogger(__name__)


class CreateTestRequest(BaseModel):
	subject_id: int


@router.get("/subjects")
async def list_subjects(services: Services = Depends(get_services)):
	try:
		groups = await services.catalog.fetch_groups()
	except BilimCheckError as err:
		raise http_error(err)
	return {
		"subjects": [
			{**group.model_dump(), "is_available": group.is_available}
			for group in groups
		]
	}


@router.post("/tests")
async def create_test(req: CreateTestRequest, services: Services = Depends(get_services)):
	try:
		if not services.catalog.subjects:
			await services.catalog.fetch_subjects()
		subject = services.catalog.find_subject(req.subject_id)
		if subject is None:
			raise HTTPException(status_code=404, detail=f"Unknown subject {req.subject_id}")
		if not subject.has_enough_questions:
			raise HTTPException(status_code=409, detail=f"{subject.name} {subject.grade} does not have enough questions yet")
		created = await services.catalog.create_test(subject.id)
	except BilimCheckError as err:
		raise http_error(err)

	session = TestSession(services.scoring, services.identity_store, auto_advance_delay=services.auto_advance_delay)
	try:
		session.initialize(created.test_id, created.questions)
	except InvalidSession as err:
		logger.warning("Backend returned an unusable test: %s", err)
		raise HTTPException(status_code=409, detail="The test could not be created. Please pick another subject.")
	previous = services.sessions.pop(created.test_id, None)
	if previous is not None:
		previous.close()
	services.sessions[created.test_id] = session
	services.plans.pop(created.test_id, None)
	return session_view(session)
