from __future__ import annotations
import logging


def setup_console_logging(level: int | str = logging.INFO) -> None:
	"""
	Call once at app start. Prints logs to console.
	"""
	if isinstance(level, str):
		level = logging.getLevelName(level.upper())
		if not isinstance(level, int):
			level = logging.INFO
	root = logging.getLogger()
	if root.handlers:
		# already configured (uvicorn, pytest): avoid duplicate handlers
		root.setLevel(level)
		return

	root.setLevel(level)
	h = logging.StreamHandler()
	fmt = logging.Formatter(
		"[%(asctime)s] %(levelname)s %(name)s: %(message)s",
		datefmt="%H:%M:%S",
	)
	h.setFormatter(fmt)
	root.addHandler(h)
	# request lines from httpx are noise at INFO
	logging.getLogger("httpx").setLevel(logging.WARNING)
