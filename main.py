import os
import logging
import uvicorn
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

from errors import LedgerError
from migrations import run_migrations

# --- IMPORT ROUTERS (APIs) ---
from routers import students, payments, masters, bulk_import, export, health

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # --- CREATE DATABASE TABLES + LEGACY RENEWAL MIGRATION ---
    run_migrations()
    yield


app = FastAPI(title="Student Payment Ledger", lifespan=lifespan)

# ==========================================
# ERROR HANDLERS
# ==========================================
@app.exception_handler(LedgerError)
async def ledger_error_handler(request: Request, exc: LedgerError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


@app.exception_handler(SQLAlchemyError)
async def store_error_handler(request: Request, exc: SQLAlchemyError):
    # Driver detail stays in the log, never in the response
    logger.exception("Store failure on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


# ==========================================
# CORS MIDDLEWARE
# ==========================================
origins = [o.strip() for o in os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",") if o.strip()]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# --- REGISTER ROUTERS ---
app.include_router(students.router)
app.include_router(payments.router)
app.include_router(masters.router)
app.include_router(bulk_import.router)
app.include_router(export.router)
app.include_router(health.router)


def run():
    """Serve the API with uvicorn; HOST / PORT come from the environment"""
    uvicorn.run("main:app", host=os.getenv("HOST", "127.0.0.1"), port=int(os.getenv("PORT", "8000")))


if __name__ == "__main__":
    run()
