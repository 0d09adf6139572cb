from __future__ import annotations
import logging
import os
import tempfile
from io import BytesIO
from pathlib import Path
from typing import Optional, Union

from .errors import EmptyPlan, ExportUnavailable
from .schemas import StudyPlan, SubjectDetail
from .settings import settings

logger = logging.getLogger(__name__)

# Layout, in millimetres / points
MARGIN_MM = 15
BOTTOM_RESERVE_MM = 30
TITLE_SIZE = 18
TITLE_GAP_MM = 10
TOPIC_SIZE = 14
TOPIC_GAP_MM = 8
DESC_SIZE = 11
DESC_LINE_MM = 6
SECTION_GAP_MM = 10


def filename_for(subject_detail: SubjectDetail) -> str:
	name = subject_detail.name.lower().replace("/", "-").replace("\\", "-")
	return f"study-plan-{name}-g{subject_detail.grade}.pdf"


def title_for(subject_detail: SubjectDetail) -> str:
	return f"Oqıw rejesi: {subject_detail.name} {subject_detail.grade}-klass"


class PlanExporter:
	def __init__(self, font_path: Optional[Union[str, Path]] = None) -> None:
		self.font_path = Path(font_path or settings.export_font_path)

	def _register_font(self) -> str:
		try:
			from reportlab.pdfbase import pdfmetrics
			from reportlab.pdfbase.ttfonts import TTFError, TTFont
		except ImportError as err:
			raise ExportUnavailable("PDF rendering backend (reportlab) is not installed") from err

		if not self.font_path.is_file():
			raise ExportUnavailable(f"Export font not found: {self.font_path}")
		font_name = self.font_path.stem
		if font_name in pdfmetrics.getRegisteredFontNames():
			return font_name
		try:
			pdfmetrics.registerFont(TTFont(font_name, str(self.font_path)))
		except (TTFError, OSError) as err:
			raise ExportUnavailable(f"Export font could not be loaded: {err}") from err
		return font_name

	def export(self, subject_detail: SubjectDetail, plan: StudyPlan) -> bytes:
		if plan.is_empty:
			raise EmptyPlan()
		font = self._register_font()

		from reportlab.lib.pagesizes import A4
		from reportlab.lib.units import mm
		from reportlab.lib.utils import simpleSplit
		from reportlab.pdfgen import canvas

		buffer = BytesIO()
		c = canvas.Canvas(buffer, pagesize=A4)
		title = title_for(subject_detail)
		c.setTitle(title)
		width, height = A4
		margin = MARGIN_MM * mm
		usable_width = width - 2 * margin
		page_limit = height - BOTTOM_RESERVE_MM * mm
		# distance of the baseline from the top edge
		y = margin

		def new_page() -> float:
			c.showPage()
			return margin

		c.setFont(font, TITLE_SIZE)
		for line in simpleSplit(title, font, TITLE_SIZE, usable_width):
			c.drawString(margin, height - y, line)
			y += TITLE_GAP_MM * mm

		for index, topic in enumerate(plan.topics, start=1):
			if y > page_limit:
				y = new_page()
			c.setFont(font, TOPIC_SIZE)
			for line in simpleSplit(f"{index}. {topic.name}", font, TOPIC_SIZE, usable_width):
				c.drawString(margin, height - y, line)
				y += TOPIC_GAP_MM * mm

			c.setFont(font, DESC_SIZE)
			for line in simpleSplit(topic.description, font, DESC_SIZE, usable_width):
				if y > height - margin:
					y = new_page()
					c.setFont(font, DESC_SIZE)
				c.drawString(margin, height - y, line)
				y += DESC_LINE_MM * mm
			y += SECTION_GAP_MM * mm

		c.save()
		logger.info("Exported %d topics for %s %s", len(plan.topics), subject_detail.name, subject_detail.grade)
		return buffer.getvalue()

	def export_to_file(self, directory: Union[str, Path], subject_detail: SubjectDetail, plan: StudyPlan) -> Path:
		"""Write the PDF into ``directory``; a failed write leaves no file behind."""
		data = self.export(subject_detail, plan)
		directory = Path(directory)
		target = directory / filename_for(subject_detail)
		fd, tmp_name = tempfile.mkstemp(dir=directory, suffix=".part")
		try:
			with os.fdopen(fd, "wb") as f:
				f.write(data)
			os.replace(tmp_name, target)
		except OSError:
			Path(tmp_name).unlink(missing_ok=True)
			raise
		return target
