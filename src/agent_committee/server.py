import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from . import config
from .committee import Committee
from .credentials import get_credentials
from .errors import CommitteeError
from .formatting import result_as_dict
from .presets import get_catalog
from .validation import validate_committee_args

logger = logging.getLogger("agent_committee.server")


class CommitteeBody(BaseModel):
    request: str
    context: Optional[str] = None
    preset: Optional[str] = None
    provider: Optional[str] = None
    model: Optional[str] = None
    aggregator_provider: Optional[str] = None
    aggregator_model: Optional[str] = None
    timeout_ms: Optional[int] = None


_committee: Optional[Committee] = None


def get_committee() -> Committee:
    global _committee
    if _committee is None:
        _committee = Committee()
    return _committee


def set_committee(committee: Optional[Committee]) -> None:
    global _committee
    _committee = committee


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    if _committee is not None:
        await _committee.aclose()


app = FastAPI(title="Agent Committee", lifespan=lifespan)


@app.exception_handler(CommitteeError)
async def committee_error_handler(request: Request, exc: CommitteeError) -> JSONResponse:
    logger.warning("request failed code=%s message=%s", exc.code, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"error": exc.to_dict()})


@app.get("/health")
def health() -> Dict[str, Any]:
    credentials = get_credentials()
    return {
        "status": "ok",
        "providers": credentials.available_providers(),
        "default_provider": credentials.default_provider(),
        "fallback_mode": credentials.is_fallback_mode(),
    }


@app.get("/v1/presets")
def list_presets() -> Dict[str, List[Dict[str, Any]]]:
    catalog = get_catalog()
    return {"presets": [catalog.preset_info(key) for key in catalog.available_presets()]}


@app.post("/v1/committee")
async def run_committee(body: CommitteeBody) -> Dict[str, Any]:
    committee = get_committee()
    args = body.model_dump(exclude_none=True)
    req = validate_committee_args(args, presets=committee.catalog.available_presets())
    result = await committee.run(req)
    return result_as_dict(result)


def main() -> None:
    logging.basicConfig(level=config.LOG_LEVEL, format=config.LOG_FORMAT)
    uvicorn.run(app, host=config.SERVER_HOST, port=config.SERVER_PORT)


if __name__ == "__main__":
    main()
