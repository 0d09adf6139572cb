from __future__ import annotations
import logging
from dataclasses import dataclass, replace
from typing import Iterable, List, Optional, Tuple

from .errors import FetchError
from .schemas import ResultsPage, Subject
from .scoring import ScoringClient
from .settings import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResultsQuery:
	page: int = 1
	# "" matches every subject / every name
	subject_id: str = ""
	search: str = ""


def subject_choices(subjects: Iterable[Subject]) -> List[Tuple[str, str]]:
	"""Options for the subject filter: (subject id, "Name N-klass")."""
	return [(str(s.id), f"{s.name} {s.grade}-klass") for s in subjects]


class ResultsBrowser:
	"""Paginated history listing; filters and page number move together.

	Any filter change sends the browser back to page 1. A failed fetch keeps
	the last good page, and a reply to a superseded request is ignored.
	"""

	def __init__(self, scoring: ScoringClient, *, page_size: Optional[int] = None) -> None:
		self.scoring = scoring
		self.page_size = page_size or settings.results_page_size
		self.query = ResultsQuery()
		self.page: Optional[ResultsPage] = None
		self.loading = False
		self.error: Optional[str] = None
		self._generation = 0

	async def list(self, page: int = 1, subject_filter: str = "", name_filter: str = "") -> ResultsPage:
		_check_page(page)
		return await self._load(ResultsQuery(page=page, subject_id=subject_filter or "", search=name_filter or ""))

	async def set_subject_filter(self, subject_id: str) -> ResultsPage:
		return await self._load(replace(self.query, subject_id=subject_id or "", page=1))

	async def set_name_filter(self, search: str) -> ResultsPage:
		return await self._load(replace(self.query, search=search or "", page=1))

	async def go_to_page(self, page: int) -> ResultsPage:
		_check_page(page)
		return await self._load(replace(self.query, page=page))

	async def apply(self, page: int, subject_id: str = "", search: str = "") -> ResultsPage:
		"""Apply a full query from the UI.

		The page resets to 1 only when a filter differs from the page already
		shown; a first request (or a direct link) keeps the page it asked for.
		"""
		subject_id = subject_id or ""
		search = search or ""
		filter_changed = subject_id != self.query.subject_id or search != self.query.search
		if self.page is not None and filter_changed:
			return await self._load(ResultsQuery(page=1, subject_id=subject_id, search=search))
		_check_page(page)
		return await self._load(ResultsQuery(page=page, subject_id=subject_id, search=search))

	async def _load(self, query: ResultsQuery) -> ResultsPage:
		self._generation += 1
		generation = self._generation
		self.query = query
		self.loading = True
		self.error = None
		try:
			page = await self.scoring.list_results(
				page=query.page,
				page_size=self.page_size,
				subject_id=query.subject_id,
				search=query.search,
			)
		except FetchError as err:
			if generation == self._generation:
				self.loading = False
				self.error = str(err)
			raise
		if generation != self._generation:
			logger.debug("Ignoring results for superseded query %s", query)
			return page
		self.loading = False
		self.page = page
		return page


def _check_page(page: int) -> None:
	if page < 1:
		raise ValueError(f"page must be >= 1, got {page}")
