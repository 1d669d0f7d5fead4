from __future__ import annotations
from dotenv import load_dotenv
load_dotenv()  # Load .env file before importing sensorlog modules

import time
import logging
import threading
from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable
import uvicorn
from fastapi import FastAPI, Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from sensorlog.config import AUTO_CONNECT, LOG_LEVEL
from sensorlog.routes import router, get_supervisor

# Configure logging to show all logs from our modules at the configured level
logging.basicConfig(
    level=LOG_LEVEL,
    format='%(levelname)s: %(name)s: %(message)s'
)
logging.getLogger("sensorlog").setLevel(LOG_LEVEL)

logger = logging.getLogger(__name__)


class LoggingMiddleware(BaseHTTPMiddleware):
    """Middleware to log request and response information."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.time()
        client_ip = request.client.host if request.client else "unknown"

        logger.info(f"Request: {request.method} {request.url.path} | IP: {client_ip}")
        response = await call_next(request)

        process_time = time.time() - start_time
        logger.info(
            f"Response: {request.method} {request.url.path} | "
            f"Status: {response.status_code} | "
            f"Time: {process_time:.3f}s"
        )
        return response


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    sup = get_supervisor()
    if AUTO_CONNECT:
        # Discovery blocks for several seconds per port; keep startup responsive
        threading.Thread(target=sup.connect, name="auto-connect", daemon=True).start()
    yield
    sup.disconnect()


def create_app() -> FastAPI:
    app = FastAPI(title="ESP32 Sensor Logger", version="0.1.0", lifespan=lifespan)
    app.add_middleware(LoggingMiddleware)
    app.include_router(router)
    return app


app = create_app()

if __name__ == "__main__":
    uvicorn.run("main:app", host="127.0.0.1", port=8000)
