# -*- coding: utf-8 -*-
"""
FastAPI service around the process-wide ``ChineseMoodDetector``.

Every detector call runs under ``DETECTOR_LOCK``: the learning store does a
read-modify-write of its documents on each detection, so the service is the
single writer.
"""

from __future__ import annotations

import datetime
import logging
import threading
from typing import Any, Dict, List, Optional

import uvicorn
from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from .. import config
from ..detector import ChineseMoodDetector, get_detector

logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())

DETECTOR_LOCK = threading.Lock()


# ---------------------------------------------------------------------------
# FastAPI setup
# ---------------------------------------------------------------------------
app = FastAPI(
    title="zhmood",
    description="Lexicon-based mood detection for Chinese text",
    version="1.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(GZipMiddleware, minimum_size=1000)


@app.on_event("startup")
async def startup_event():
    config.setup_logging()
    logger.info("[App] Startup completed. Ready to serve.")


@app.exception_handler(Exception)
async def unhandled_exception(request: Request, exc: Exception):
    logger.error("[API] %s %s failed: %s", request.method, request.url.path, exc, exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"success": False, "error": f"分析失败: {exc}", "error_type": type(exc).__name__},
    )


# ---------------------------------------------------------------------------
# Data models
# ---------------------------------------------------------------------------
class TextInput(BaseModel):
    text: str = Field(..., max_length=config.MAX_TEXT_LENGTH)


class BatchInput(BaseModel):
    texts: List[str] = Field(..., max_length=config.MAX_BATCH_SIZE)


def provide_detector() -> ChineseMoodDetector:
    return get_detector()


def _now() -> str:
    return datetime.datetime.now().isoformat()


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------
@app.post("/api/detect")
def detect(input_data: TextInput, detector: ChineseMoodDetector = Depends(provide_detector)) -> Dict[str, Any]:
    with DETECTOR_LOCK:
        result = detector.detect(input_data.text)
    return {"success": True, "timestamp": _now(), "result": result.to_dict()}


@app.post("/api/batch_detect")
def batch_detect(input_data: BatchInput, detector: ChineseMoodDetector = Depends(provide_detector)) -> Dict[str, Any]:
    with DETECTOR_LOCK:
        results = detector.batch_detect(input_data.texts)
    return {
        "success": True,
        "timestamp": _now(),
        "count": len(results),
        "results": [r.to_dict() for r in results],
    }


@app.get("/api/categories")
def categories(detector: ChineseMoodDetector = Depends(provide_detector)) -> Dict[str, Any]:
    return {"success": True, "categories": [c.value for c in detector.list_categories()]}


@app.get("/api/categories/{name}")
def category_info(name: str, detector: ChineseMoodDetector = Depends(provide_detector)):
    info = detector.get_category_info(name)
    if info is None:
        return JSONResponse(status_code=404, content={"success": False, "error": f"未知情绪: {name}"})
    return {"success": True, "category": name, "info": info}


@app.get("/api/groups")
def groups(detector: ChineseMoodDetector = Depends(provide_detector)) -> Dict[str, Any]:
    return {"success": True, "groups": detector.list_groups()}


@app.get("/api/groups/{group_id}")
def group_info(group_id: str, detector: ChineseMoodDetector = Depends(provide_detector)):
    group = detector.get_group(group_id)
    if group is None:
        return JSONResponse(status_code=404, content={"success": False, "error": f"未知分组: {group_id}"})
    return {"success": True, "group": group}


@app.get("/api/insights")
def insights(detector: ChineseMoodDetector = Depends(provide_detector)) -> Dict[str, Any]:
    with DETECTOR_LOCK:
        data = detector.get_personal_insights()
    return {"success": True, "insights": data}


@app.get("/api/status")
def status(detector: ChineseMoodDetector = Depends(provide_detector)) -> Dict[str, Any]:
    return {"success": True, "timestamp": _now(), "status": detector.status()}


def run_server(host: Optional[str] = None, port: Optional[int] = None) -> None:
    uvicorn.run(
        app,
        host=host or config.SERVER_HOST,
        port=int(port or config.SERVER_PORT),
        log_level=config.LOGGING_CONFIG["level"].lower(),
    )


if __name__ == "__main__":
    run_server()
