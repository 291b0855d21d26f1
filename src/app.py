"""Print-shop dispatch FastAPI application.

Web server that processes dispatch commands synchronously via HTTP. Every
request runs inside the dispatch domain context.

Usage:
    uvicorn src.app:app --host 0.0.0.0 --port 8000 --reload
"""

# ---------------------------------------------------------------------------
# Domain initialization
# ---------------------------------------------------------------------------
# The domain is initialized at module level so uvicorn workers share it.
# PROTEAN_ENV selects the config overlay; event handlers and projectors run
# in the Engine (src/server.py).
from dispatch.domain import dispatch  # noqa: E402
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from protean.integrations.fastapi import register_exception_handlers

from dispatch.utils.logging import add_context, clear_context

dispatch.init()

# ---------------------------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------------------------
app = FastAPI(
    title="Print-shop Dispatch API",
    description="Order fulfilment state machine, agent assignment and courier integration",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)


@app.middleware("http")
async def domain_context_middleware(request: Request, call_next):
    """Push the dispatch domain context and bind request context for logs."""
    clear_context()
    add_context(method=request.method, path=request.url.path)
    with dispatch.domain_context():
        response = await call_next(request)
    return response


# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------
from dispatch.api import agent_router, assignment_router, courier_router, order_router  # noqa: E402
from dispatch.courier import get_courier  # noqa: E402

app.include_router(order_router)
app.include_router(agent_router)
app.include_router(assignment_router)
app.include_router(courier_router)


# ---------------------------------------------------------------------------
# Health / root
# ---------------------------------------------------------------------------
@app.get("/health")
async def health():
    return JSONResponse(
        content={
            "status": "ok",
            "domain": dispatch.name,
            "courier": get_courier().name,
        }
    )
