from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query

from ..deps import Services, get_services, http_error
from ..errors import BilimCheckError
from ..results import subject_choices

router = APIRouter(prefix="/results", tags=["results"])


@router.get("")
async def list_results(
	page: int = Query(default=1),
	subject_id: str = Query(default=""),
	search: str = Query(default=""),
	services: Services = Depends(get_services),
):
	if page < 1:
		raise HTTPException(status_code=400, detail="page must be >= 1")
	browser = services.results_browser
	try:
		data = await browser.apply(page, subject_id, search)
	except BilimCheckError as err:
		raise http_error(err)
	return {
		"query": {"page": browser.query.page, "subject_id": browser.query.subject_id, "search": browser.query.search},
		"results": [item.model_dump() for item in data.results],
		"pagination": data.pagination.model_dump(),
	}


@router.get("/subjects")
async def list_subject_filters(services: Services = Depends(get_services)):
	try:
		subjects = services.catalog.subjects or await services.catalog.fetch_subjects()
	except BilimCheckError as err:
		raise http_error(err)
	return {"subjects": [{"id": value, "label": label} for value, label in subject_choices(subjects)]}
