from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from roofdesk.config import get_settings
from roofdesk.errors import setup_exception_handlers
from roofdesk.logging_config import get_logger, setup_logging
from roofdesk.models.base import init_db
from roofdesk.api import (
    claims,
    contacts,
    functions,
    jobs,
    leads,
    orders,
    packets,
    portal,
    templates,
    trades,
    vendors,
)

logger = get_logger(__name__)
settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    # Startup: initialize database tables
    await init_db()
    logger.info("roofdesk API started")
    yield


app = FastAPI(
    title="Roofdesk API",
    description="Multi-tenant roofing CRM: leads, claims, packets, vendor catalogs",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

setup_exception_handlers(app)

# Tenant routes (X-Org-Id / X-User-Id)
app.include_router(contacts.router, prefix="/contacts", tags=["contacts"])
app.include_router(contacts.property_router, prefix="/properties", tags=["properties"])
app.include_router(leads.router, prefix="/leads", tags=["leads"])
app.include_router(claims.router, prefix="/claims", tags=["claims"])
app.include_router(templates.router, prefix="/templates", tags=["templates"])
app.include_router(templates.org_router, prefix="/org-templates", tags=["templates"])
app.include_router(trades.router, prefix="/trades", tags=["trades"])
app.include_router(vendors.router, prefix="/vendors", tags=["vendors"])
app.include_router(orders.router, prefix="/orders", tags=["orders"])
app.include_router(orders.board_router, prefix="/design-board", tags=["orders"])
app.include_router(packets.router, prefix="/packets", tags=["packets"])
app.include_router(jobs.router, prefix="/jobs", tags=["jobs"])
app.include_router(functions.router, prefix="/functions", tags=["functions"])

# Public
app.include_router(portal.router, prefix="/portal", tags=["portal"])


@app.get("/health")
async def health_check():
    return {"status": "healthy"}


@app.get("/")
async def root():
    return {"message": "Roofdesk API", "docs": "/docs"}
