from __future__ import annotations
import json
import logging
from typing import Any, Dict, List, Optional, Tuple, Type

import httpx

from .errors import TransportError
from .settings import settings

logger = logging.getLogger(__name__)


class DuplicateKeyError(ValueError):
	pass


def _reject_duplicate_keys(pairs: List[Tuple[str, Any]]) -> Dict[str, Any]:
	# Option labels arrive as object keys; json.loads would silently keep the last one
	out: Dict[str, Any] = {}
	for key, value in pairs:
		if key in out:
			raise DuplicateKeyError(f"duplicate key {key!r} in response object")
		out[key] = value
	return out


class BackendClient:
	"""Thin async JSON client for the assessment backend (``/api/site/...``)."""

	def __init__(
		self,
		base_url: Optional[str] = None,
		*,
		timeout: Optional[float] = None,
		transport: Optional[httpx.AsyncBaseTransport] = None,
	) -> None:
		self.base_url = (base_url or settings.api_base_url).rstrip("/")
		self._client = httpx.AsyncClient(
			base_url=self.base_url,
			timeout=timeout if timeout is not None else settings.http_timeout,
			headers={"Content-Type": "application/json"},
			transport=transport,
		)

	async def get_json(
		self,
		path: str,
		*,
		params: Optional[Dict[str, Any]] = None,
		error_cls: Type[TransportError] = TransportError,
	) -> Dict[str, Any]:
		return await self._request("GET", path, params=params, error_cls=error_cls)

	async def post_json(
		self,
		path: str,
		payload: Dict[str, Any],
		*,
		error_cls: Type[TransportError] = TransportError,
	) -> Dict[str, Any]:
		return await self._request("POST", path, json_body=payload, error_cls=error_cls)

	async def _request(
		self,
		method: str,
		path: str,
		*,
		params: Optional[Dict[str, Any]] = None,
		json_body: Optional[Dict[str, Any]] = None,
		error_cls: Type[TransportError] = TransportError,
	) -> Dict[str, Any]:
		try:
			r = await self._client.request(method, path, params=params, json=json_body)
			r.raise_for_status()
		except httpx.HTTPStatusError as http_err:
			status = http_err.response.status_code
			logger.warning("%s %s failed with HTTP %s", method, path, status)
			raise error_cls(f"{method} {path} returned HTTP {status}", status_code=status) from http_err
		except httpx.RequestError as net_err:
			logger.warning("%s %s failed: %s", method, path, net_err)
			raise error_cls(f"{method} {path} failed: {net_err}") from net_err
		try:
			data = json.loads(r.text, object_pairs_hook=_reject_duplicate_keys)
		except ValueError as parse_err:
			logger.warning("%s %s returned malformed JSON: %s", method, path, parse_err)
			raise error_cls(f"{method} {path} returned malformed JSON: {parse_err}") from parse_err
		if not isinstance(data, dict):
			raise error_cls(f"{method} {path} returned {type(data).__name__}, expected an object")
		return data

	async def aclose(self) -> None:
		await self._client.aclose()
