from __future__ import annotations
import logging
import uuid
from dataclasses import dataclass
from typing import Callable, Optional

from sqlalchemy.orm import Session

from .models import ClientState

logger = logging.getLogger(__name__)

PARTICIPANT_ID_KEY = "student_id"
DISPLAY_NAME_KEY = "student_name"


@dataclass
class Identity:
	participant_id: str
	display_name: Optional[str] = None


class IdentityStore:
	"""Anonymous participant id and last-used display name, kept across runs.

	Load it once at startup and hand the resulting ``Identity`` to whoever
	needs it; the store is the only place that reads or writes the table.
	"""

	def __init__(self, session_factory: Callable[[], Session]) -> None:
		self._session_factory = session_factory
		self._identity: Optional[Identity] = None

	@property
	def identity(self) -> Identity:
		if self._identity is None:
			return self.load()
		return self._identity

	def load(self) -> Identity:
		with self._session_factory() as db:
			participant_id = _read(db, PARTICIPANT_ID_KEY)
			if not participant_id:
				participant_id = f"user_{uuid.uuid4()}"
				_write(db, PARTICIPANT_ID_KEY, participant_id)
				db.commit()
				logger.info("Created participant id %s", participant_id)
			display_name = _read(db, DISPLAY_NAME_KEY)
		self._identity = Identity(participant_id=participant_id, display_name=display_name)
		return self._identity

	def remember_name(self, name: str) -> None:
		name = name.strip()
		if not name:
			return
		with self._session_factory() as db:
			_write(db, DISPLAY_NAME_KEY, name)
			db.commit()
		self.identity.display_name = name


def _read(db: Session, key: str) -> Optional[str]:
	row = db.get(ClientState, key)
	return row.value if row is not None else None


def _write(db: Session, key: str, value: str) -> None:
	row = db.get(ClientState, key)
	if row is None:
		db.add(ClientState(key=key, value=value))
	else:
		row.value = value
