import logging
from typing import Any, Optional

from fastapi import FastAPI, HTTPException, Request
import uvicorn
from starlette.concurrency import run_in_threadpool

from src.infrastructure.observability.structured_runtime_logger import StructuredRuntimeLogger
from src.messaging.domain.exceptions import DecodeError

logger = logging.getLogger(__name__)


def build_webhook_app(
        adapter: Any,
        path: str = "/",
        runtime_logger: Optional[StructuredRuntimeLogger] = None,
) -> FastAPI:
    """
    FastAPI app feeding POST bodies on `path` into adapter.digest.
    Slash commands, interactive callbacks, Events API and outgoing webhooks
    all arrive here as JSON or form-encoded bodies.
    """
    app = FastAPI()
    runtime_logger = runtime_logger or StructuredRuntimeLogger()

    async def slack_webhook(request: Request):
        raw_body = await request.body()

        try:
            await run_in_threadpool(adapter.digest, raw_body)
        except DecodeError as e:
            runtime_logger.emit(
                event_type="WEBHOOK_REJECTED",
                level=logging.WARNING,
                status="undecodable",
                path=path,
                error=str(e),
            )
            raise HTTPException(status_code=400, detail="Undecodable body")

        runtime_logger.emit(event_type="WEBHOOK_OK", status="ok", path=path, size=len(raw_body))
        return {"status": "ok"}

    app.add_api_route(path, slack_webhook, methods=["POST"])
    return app


def run_webhook_server(adapter: Any, port: int = 3000, path: str = "/", host: str = "localhost") -> None:
    app = build_webhook_app(adapter, path, runtime_logger=getattr(adapter, "runtime_logger", None))
    logger.info(f"listening for events on http://{host}:{port}{path}")
    uvicorn.run(app, host=host, port=port)
