from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from datetime import datetime, timezone
from dotenv import load_dotenv
import logging
import os

import funifier_client
from errors import ApiError
from routers import admin as admin_router
from routers import auth as auth_router
from routers import dashboard as dashboard_router
from routers import reports as reports_router

load_dotenv()

LOG_FORMAT = "%(asctime)s - %(levelname)s - [%(name)s] %(message)s"
logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO").upper(), format=LOG_FORMAT)
for noisy_logger in ("httpx", "httpcore", "urllib3"):
    logging.getLogger(noisy_logger).setLevel(logging.WARNING)

logger = logging.getLogger("essencia_dashboard")

app = FastAPI(title="Essencia Dashboard")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.include_router(auth_router.router, prefix="/api")
app.include_router(dashboard_router.router, prefix="/api")
app.include_router(reports_router.router, prefix="/api")
app.include_router(admin_router.router, prefix="/api")


# --- Error Handling ---
@app.exception_handler(ApiError)
async def api_error_handler(request: Request, exc: ApiError):
    if exc.http_status >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    else:
        logger.info("%s %s rejected: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.http_status, content=exc.to_dict())


# --- API Endpoints ---
@app.get("/")
def read_root():
    return {"status": "Essencia Dashboard is running!"}

@app.get("/api/health", tags=["Health"])
def health():
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "provider": funifier_client.BASE_URL,
        "provider_configured": bool(funifier_client.API_KEY),
    }
