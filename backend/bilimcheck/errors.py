"""Error taxonomy shared by the client-side state machine.

Every error is local to the action that raised it. ``retryable`` tells the
caller whether re-issuing the same action can succeed without user changes.
"""
from __future__ import annotations


class BilimCheckError(Exception):
	retryable: bool = False


class UserInputError(BilimCheckError):
	"""Blocks the action locally; never reaches the network."""


class IncompleteAnswers(UserInputError):
	def __init__(self, answered: int, total: int) -> None:
		super().__init__(f"Answer all questions before submitting ({answered}/{total} answered)")
		self.answered = answered
		self.total = total


class MissingName(UserInputError):
	def __init__(self) -> None:
		super().__init__("Student name is required")


class EmptyPlan(UserInputError):
	def __init__(self) -> None:
		super().__init__("Study plan has no topics to export")


class IntegrationError(BilimCheckError):
	"""Misuse of the state machine by the UI layer."""


class InvalidSession(IntegrationError):
	pass


class InvalidAnswer(IntegrationError):
	pass


class SubmissionInFlight(IntegrationError):
	def __init__(self) -> None:
		super().__init__("A submission is already in progress")


class TransportError(BilimCheckError):
	retryable = True

	def __init__(self, message: str, *, status_code: int | None = None) -> None:
		super().__init__(message)
		self.status_code = status_code


class FetchError(TransportError):
	pass


class SubmitError(TransportError):
	pass


class PlanGenerationError(BilimCheckError):
	retryable = True


class PlanTransportError(PlanGenerationError, TransportError):
	pass


class PlanValidationError(PlanGenerationError):
	def __init__(self, message: str, *, raw: str = "") -> None:
		super().__init__(message)
		self.raw = raw


class ResourceError(BilimCheckError):
	pass


class ExportUnavailable(ResourceError):
	pass
