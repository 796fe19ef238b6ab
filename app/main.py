import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware

from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from commons import limiter
from configs.config import get_config
from logging_config import setup_logging
from security import RequestIdMiddleware, SecurityHeadersMiddleware
from src.database.connection import DatabaseManager
from src.routes import ai_routes, podcast_routes, transcription_routes

# ── Logging ──────────────────────────────────────────────────────────────────
setup_logging()
logger = logging.getLogger(__name__)

cfg = get_config()

# ── App Factory ──────────────────────────────────────────────────────────────
app = FastAPI(
    title="Podcast Transcriber API",
    docs_url="/docs" if cfg.DOCS_ENABLED else None,
    redoc_url="/redoc" if cfg.DOCS_ENABLED else None,
    openapi_url="/openapi.json" if cfg.DOCS_ENABLED else None,
)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# ── Middleware Stack (order matters – outermost first) ───────────────────────

# 1. Request-ID tracking
app.add_middleware(RequestIdMiddleware)

# 2. Security response headers
app.add_middleware(SecurityHeadersMiddleware)

# 3. Trusted hosts
app.add_middleware(TrustedHostMiddleware, allowed_hosts=cfg.ALLOWED_HOSTS)

# 4. CORS – explicit methods & headers instead of wildcards
app.add_middleware(
    CORSMiddleware,
    allow_origins=cfg.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=cfg.CORS_METHODS,
    allow_headers=cfg.CORS_HEADERS,
)

# ── Routers ──────────────────────────────────────────────────────────────────
app.include_router(transcription_routes.router)
app.include_router(ai_routes.router)
app.include_router(podcast_routes.router)


@app.get("/health")
def health() -> dict:
    return {"status": "ok"}


@app.on_event("shutdown")
def close_database() -> None:
    DatabaseManager().close()


# ═══════════════════════════════════════════════════════════════════════════
#  ENTRY POINT
# ═══════════════════════════════════════════════════════════════════════════

if __name__ == "__main__":
    import argparse
    import sys

    import uvicorn

    parser = argparse.ArgumentParser(description="Run Podcast Transcriber API")
    parser.add_argument("--host", default="0.0.0.0", help="Host to bind to (default: 0.0.0.0)")
    parser.add_argument("--port", type=int, default=8000, help="Port to bind to (default: 8000)")
    parser.add_argument("--reload", action="store_true", help="Enable auto-reload on code changes")
    parser.add_argument("--cert-file", default=None, help="Path to SSL certificate file (enables HTTPS)")
    parser.add_argument("--key-file", default=None, help="Path to SSL private key file (required with --cert-file)")

    args = parser.parse_args()

    # Validate SSL configuration
    if (args.cert_file and not args.key_file) or (args.key_file and not args.cert_file):
        logger.error("Both --cert-file and --key-file must be provided together")
        sys.exit(1)

    protocol = "HTTPS" if args.cert_file else "HTTP"
    logger.info("Starting %s server on %s:%d", protocol, args.host, args.port)

    uvicorn.run(
        "main:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level="info",
        ssl_certfile=args.cert_file,
        ssl_keyfile=args.key_file,
        timeout_keep_alive=30,
        limit_concurrency=1000,
    )
