from __future__ import annotations
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .db import init_db
from .deps import Services, build_services, get_services
from .logging_setup import setup_console_logging
from .routers import catalog, results, tests
from .settings import settings


def create_app(services: Optional[Services] = None) -> FastAPI:
	@asynccontextmanager
	async def lifespan(app: FastAPI):
		setup_console_logging(settings.log_level)
		owned = services is None
		svc = services or build_services()
		if owned:
			init_db()
		# read once; everything downstream gets it from the store
		svc.identity_store.load()
		app.state.services = svc
		try:
			yield
		finally:
			if owned:
				await svc.aclose()

	app = FastAPI(title="BilimCheck API", lifespan=lifespan)
	app.add_middleware(
		CORSMiddleware,
		allow_origins=["*"],
		allow_methods=["*"],
		allow_headers=["*"],
	)
	app.include_router(catalog.router)
	app.include_router(tests.router)
	app.include_router(results.router)

	@app.get("/info")
	def info(svc: Services = Depends(get_services)):
		return {"status": "ok", "gemini_configured": svc.plan_generator is not None}

	@app.get("/identity")
	def identity(svc: Services = Depends(get_services)):
		ident = svc.identity_store.identity
		return {"participant_id": ident.participant_id, "display_name": ident.display_name}

	return app


app = create_app()
