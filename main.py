from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from sqlalchemy.exc import SQLAlchemyError
from opsdesk.core.config import CORS_ORIGINS
from opsdesk.core.errors import OpsdeskError
from opsdesk.core.logging import configure_logging, get_logger
from opsdesk.db.session import engine
from opsdesk.models.base import Base
from opsdesk.api import (
    auth, orgs, workers, projects, tasks, clients, catalog, orders, inventory, reports, dashboard
)

logger = get_logger(__name__)

app = FastAPI(title="Opsdesk", version="0.1.0")


class NoCacheMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        if request.url.path.startswith("/api"):
            response.headers["Cache-Control"] = "no-cache, no-store, must-revalidate"
        return response


app.add_middleware(NoCacheMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(OpsdeskError)
async def opsdesk_error_handler(request: Request, exc: OpsdeskError):
    logger.info("request_rejected", path=request.url.path, status_code=exc.status_code,
                error=type(exc).__name__, detail=exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


@app.exception_handler(SQLAlchemyError)
async def store_error_handler(request: Request, exc: SQLAlchemyError):
    # already rolled back and logged with its traceback at the commit site
    return JSONResponse(status_code=500, content={"detail": "The operation could not be saved"})


app.include_router(auth.router)
app.include_router(orgs.router)
app.include_router(workers.router)
app.include_router(projects.router)
app.include_router(tasks.router)
app.include_router(clients.router)
app.include_router(catalog.router)
app.include_router(orders.router)
app.include_router(inventory.router)
app.include_router(reports.router)
app.include_router(dashboard.router)


@app.on_event("startup")
def startup():
    configure_logging()
    Base.metadata.create_all(bind=engine)
    logger.info("startup_complete", routes=len(app.routes))


@app.get("/health")
def health():
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=5000)
