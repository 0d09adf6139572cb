from __future__ import annotations
from datetime import datetime
from sqlalchemy import Column, String, DateTime, Text
from .db import Base


class ClientState(Base):
	__tablename__ = "client_state"
	# Durable key/value pairs for this client install; nothing expires
	key = Column(String(64), primary_key=True)
	value = Column(Text, nullable=False)
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
	updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
