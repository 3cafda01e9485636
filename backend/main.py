import os
import sys
import logging
from dotenv import load_dotenv

load_dotenv() # Load environment variables from .env file

from typing import Any, Dict, List, Optional
from pathlib import Path

# Add current directory to path
sys.path.append(str(Path(__file__).parent))

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import StreamingResponse

# Core
try:
    from forensic_core.engine import GradingEngine, GradingCancelled, DEFAULT_MAX_WORKERS
    from forensic_core.keywords import FORENSIC_KEYWORDS, KEYWORD_LIST_VERSION
    from forensic_core.models import CamelModel, ClassStatistics, ReportRow, ScoreResult
    from forensic_core.reports import build_report_rows, class_statistics, report_to_csv
except ImportError:
    from .forensic_core.engine import GradingEngine, GradingCancelled, DEFAULT_MAX_WORKERS
    from .forensic_core.keywords import FORENSIC_KEYWORDS, KEYWORD_LIST_VERSION
    from .forensic_core.models import CamelModel, ClassStatistics, ReportRow, ScoreResult
    from .forensic_core.reports import build_report_rows, class_statistics, report_to_csv

logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO").upper())
logger = logging.getLogger("uvicorn.error")

# Status for a client that went away before the batch finished
CLIENT_CLOSED_REQUEST = 499

app = FastAPI(title="Forensic Specimen Grader")

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in os.getenv("GRADER_CORS_ORIGINS", "*").split(",")],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.on_event("startup")
async def startup_event():
    logger.info("----------- REGISTERED ROUTES -----------")
    for route in app.routes:
        logger.info(f"PATH: {route.path} | NAME: {route.name}")
    logger.info("-----------------------------------------")

engine = GradingEngine(max_workers=int(os.getenv("GRADER_MAX_WORKERS", DEFAULT_MAX_WORKERS)))

# ================= MODELS =================
class GradeRequest(CamelModel):
    answer_key: Any = None
    answer: Any = None

class BatchGradeRequest(CamelModel):
    answer_key: Any = None
    answers: Dict[str, Any]
    names: Dict[str, str] = {}
    sort_by: Optional[str] = None

class BatchGradeResponse(CamelModel):
    results: Dict[str, ScoreResult]
    rows: List[ReportRow]
    statistics: ClassStatistics

# ================= ROUTES =================

@app.get("/api/health")
def health():
    return {"status": "ok", "maxWorkers": engine.max_workers}

@app.get("/api/keywords")
def get_keywords():
    return {"version": KEYWORD_LIST_VERSION, "keywords": list(FORENSIC_KEYWORDS)}

@app.post("/api/grade", response_model=ScoreResult)
def grade_answer(req: GradeRequest):
    try:
        return engine.grade(req.answer_key, req.answer)
    except Exception as e:
        logger.error(f"Grading failed: {e}")
        raise HTTPException(status_code=500, detail=str(e))

async def _grade_class(req: BatchGradeRequest, request: Request):
    try:
        results = await engine.grade_batch_async(
            req.answer_key,
            req.answers,
            is_cancelled=request.is_disconnected,
            status_callback=lambda message, pct: logger.debug(f"[{pct}%] {message}"),
        )
    except GradingCancelled as e:
        logger.warning(f"Batch grading aborted by client: {e}")
        raise HTTPException(status_code=CLIENT_CLOSED_REQUEST, detail=str(e))
    except Exception as e:
        logger.error(f"Batch grading failed: {e}")
        raise HTTPException(status_code=500, detail=str(e))

    try:
        rows = build_report_rows(results, names=req.names, sort_by=req.sort_by)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return results, rows

@app.post("/api/grade/batch", response_model=BatchGradeResponse)
async def grade_batch(req: BatchGradeRequest, request: Request):
    logger.info(f"Batch grade request for {len(req.answers)} submissions")
    results, rows = await _grade_class(req, request)
    return BatchGradeResponse(results=results, rows=rows, statistics=class_statistics(results))

@app.post("/api/grade/batch/csv")
async def grade_batch_csv(req: BatchGradeRequest, request: Request):
    _, rows = await _grade_class(req, request)
    return StreamingResponse(
        iter([report_to_csv(rows)]),
        media_type="text/csv",
        headers={"Content-Disposition": "attachment; filename=exam_results.csv"},
    )
