from __future__ import annotations
import logging
from typing import Any, Dict, Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, HTTPException, Response
from pydantic import BaseModel

from ..deps import Services, get_services, get_session, http_error
from ..errors import BilimCheckError
from ..exporter import filename_for
from ..schemas import StudyPlan, SubmissionResult
from ..session import SessionStatus, TestSession

router = APIRouter(prefix="/tests", tags=["tests"])

logger = logging.getLogger(__name__)


class AnswerRequest(BaseModel):
	question_id: int
	label: str


class NavigateRequest(BaseModel):
	direction: Optional[str] = None
	index: Optional[int] = None


class SubmitRequest(BaseModel):
	student_name: str = ""


def session_view(session: TestSession) -> Dict[str, Any]:
	state = session.state
	current = state.current_question
	question: Optional[Dict[str, Any]] = None
	if current is not None:
		question = {
			"id": current.id,
			"order_number": current.order_number,
			"question_text": current.question_text,
			"options": [{"label": label, "text": text} for label, text in current.options.items()],
			"selected": state.answers.get(current.id),
		}
	return {
		"test_id": state.test_id,
		"status": state.status.value,
		"cursor": state.cursor,
		"total": state.total,
		"answered": state.answered_count,
		"progress": round((state.cursor + 1) / state.total * 100, 1) if state.total else 0.0,
		"is_last": state.is_last,
		"can_submit": state.can_submit,
		"in_flight": state.in_flight,
		"question": question,
		"error": state.error,
	}


def plan_view(plan: StudyPlan) -> Dict[str, Any]:
	return {
		"needed": plan.needed,
		"topics": [topic.model_dump(by_alias=True) for topic in plan.topics],
	}


def result_view(result: SubmissionResult, plan: Optional[StudyPlan]) -> Dict[str, Any]:
	incorrect = result.incorrect_questions
	return {
		"result": result.result.model_dump(),
		"subject_detail": result.subject_detail.model_dump(),
		"incorrect_count": len(incorrect),
		"plan_needed": bool(incorrect),
		"plan": plan_view(plan) if plan is not None else None,
		"questions": [
			{
				"id": q.id,
				"question_text": q.question_text,
				"is_correct": q.is_correct,
				"user_answer": q.user_answer,
				"user_answer_text": q.user_answer_text or "Not answered",
				"correct_answer": q.correct_answer,
				"correct_answer_text": q.correct_answer_text,
			}
			for q in result.questions
		],
	}


def _require_result(session: TestSession) -> SubmissionResult:
	result = session.state.result
	if session.state.status != SessionStatus.SUBMITTED or result is None:
		raise HTTPException(status_code=409, detail="The test has not been scored yet")
	return result


@router.get("/{test_id}")
def get_test(session: TestSession = Depends(get_session)):
	return session_view(session)


@router.post("/{test_id}/answers")
async def select_answer(req: AnswerRequest, session: TestSession = Depends(get_session)):
	try:
		session.select_answer(req.question_id, req.label)
	except BilimCheckError as err:
		raise http_error(err)
	return session_view(session)


@router.post("/{test_id}/navigate")
def navigate(req: NavigateRequest, session: TestSession = Depends(get_session)):
	if req.index is not None:
		session.navigate(req.index)
	elif req.direction:
		session.navigate(req.direction)
	return session_view(session)


@router.post("/{test_id}/submit")
async def submit(req: SubmitRequest, session: TestSession = Depends(get_session)):
	try:
		result = await session.submit(req.student_name)
	except BilimCheckError as err:
		raise http_error(err)
	if result is None:
		raise HTTPException(status_code=410, detail="The test session was closed")
	return {"session": session_view(session), "result": result_view(result, None)}


@router.delete("/{test_id}")
def discard(test_id: int, services: Services = Depends(get_services)):
	session = services.sessions.pop(test_id, None)
	if session is None:
		raise HTTPException(status_code=404, detail=f"No open session for test {test_id}")
	session.close()
	services.plans.pop(test_id, None)
	return {"status": "discarded", "test_id": test_id}


@router.get("/{test_id}/result")
def get_result(test_id: int, session: TestSession = Depends(get_session), services: Services = Depends(get_services)):
	return result_view(_require_result(session), services.plans.get(test_id))


@router.post("/{test_id}/plan")
async def generate_plan(test_id: int, session: TestSession = Depends(get_session), services: Services = Depends(get_services)):
	result = _require_result(session)
	if services.plan_generator is None:
		raise HTTPException(status_code=503, detail="Study plans are not available: Gemini is not configured")
	if test_id in services.plans:
		raise HTTPException(status_code=409, detail="A study plan already exists; discard it to generate a new one")
	if test_id in services.plans_in_flight:
		raise HTTPException(status_code=409, detail="A study plan is already being generated")

	services.plans_in_flight.add(test_id)
	try:
		plan = await services.plan_generator.generate(result.subject_detail, result)
	except BilimCheckError as err:
		raise http_error(err)
	finally:
		services.plans_in_flight.discard(test_id)

	if services.sessions.get(test_id) is not session:
		logger.info("Dropping study plan for discarded test %s", test_id)
		raise HTTPException(status_code=410, detail="The test session was closed")
	if plan.needed:
		services.plans[test_id] = plan
	return plan_view(plan)


@router.delete("/{test_id}/plan")
def discard_plan(test_id: int, session: TestSession = Depends(get_session), services: Services = Depends(get_services)):
	if services.plans.pop(test_id, None) is None:
		raise HTTPException(status_code=404, detail="No study plan to discard")
	return {"status": "discarded", "test_id": test_id}


@router.get("/{test_id}/plan/pdf")
def export_plan(test_id: int, session: TestSession = Depends(get_session), services: Services = Depends(get_services)):
	result = _require_result(session)
	plan = services.plans.get(test_id)
	if plan is None:
		raise HTTPException(status_code=404, detail="Generate a study plan first")
	try:
		data = services.exporter.export(result.subject_detail, plan)
	except BilimCheckError as err:
		logger.warning("Export failed for test %s: %s", test_id, err)
		raise http_error(err)
	filename = filename_for(result.subject_detail)
	return Response(
		content=data,
		media_type="application/pdf",
		headers={"Content-Disposition": f"attachment; filename*=UTF-8''{quote(filename)}"},
	)
