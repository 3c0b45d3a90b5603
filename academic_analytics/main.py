"""FastAPI main application for Academic Analytics."""

import logging
import os
import traceback
from typing import Any, Dict, Optional

from dotenv import load_dotenv
from fastapi import FastAPI, File, HTTPException, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic.alias_generators import to_camel
from starlette.exceptions import HTTPException as StarletteHTTPException

from academic_analytics.attendance import attendance_by_subject, classes_needed, summarize_attendance
from academic_analytics.config import AnalyticsConfig, InvalidConfigurationError, build_config, load_config
from academic_analytics.engine import compute_cohort_report, compute_student_report
from academic_analytics.marks import score_entry, summarize_marks
from academic_analytics.models import (
    AttendanceRequest,
    AttendanceResponse,
    CohortReport,
    CohortRequest,
    MarkEntry,
    MarkResult,
    MarksRequest,
    MarkSubmission,
    MarksSummary,
    RiskAssessment,
    SettingsResponse,
    StudentReport,
    StudentRequest,
)
from academic_analytics.parsers import frames_to_students, load_workbook_frames
from academic_analytics.trend import analyze_trend

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)


def setup_logging() -> None:
    logging.basicConfig(
        level=os.getenv('LOG_LEVEL', 'INFO').upper(),
        format="%(asctime)s [%(levelname)s] %(message)s",
    )


setup_logging()

app = FastAPI(title="Academic Analytics", version="1.0.0")

# CORS configuration
allow_origins = os.getenv('ALLOW_ORIGINS', '*').split(',')
app.add_middleware(
    CORSMiddleware,
    allow_origins=allow_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler_json(request: Request, exc: StarletteHTTPException):
    """Handle HTTP exceptions and return JSON."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail}
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler_json(request: Request, exc: RequestValidationError):
    """Handle validation errors and return JSON."""
    return JSONResponse(
        status_code=422,
        content={"detail": jsonable_errors(exc.errors())}
    )


@app.exception_handler(InvalidConfigurationError)
async def configuration_exception_handler_json(request: Request, exc: InvalidConfigurationError):
    """Reject analytics settings that would corrupt every score."""
    logger.warning("Rejected analytics configuration: %s", exc)
    return JSONResponse(
        status_code=422,
        content={"detail": str(exc), "type": "InvalidConfiguration"}
    )


# Only catches exceptions not handled by the specific handlers above
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle all unhandled exceptions and return JSON."""
    logger.exception("Unhandled error on %s", request.url.path)
    error_detail = str(exc)
    if os.getenv('DEBUG', 'False').lower() == 'true':
        error_detail = f"{str(exc)}\n\n{traceback.format_exc()}"

    return JSONResponse(
        status_code=500,
        content={
            "detail": f"Internal server error: {error_detail}",
            "type": type(exc).__name__
        }
    )


def jsonable_errors(errors):
    """Drop non-serializable exception objects from pydantic error contexts."""
    cleaned = []
    for err in errors:
        err = dict(err)
        if 'ctx' in err:
            err['ctx'] = {k: str(v) for k, v in err['ctx'].items()}
        cleaned.append(err)
    return cleaned


# Configuration
SERVICE_CONFIG = load_config()

MAX_UPLOAD_SIZE_MB = int(os.getenv('MAX_UPLOAD_SIZE_MB', '10'))
MAX_UPLOAD_SIZE = MAX_UPLOAD_SIZE_MB * 1024 * 1024


def resolve_config(override: Optional[Dict[str, Any]] = None) -> AnalyticsConfig:
    """Service configuration with a per-request override applied on top."""
    if not override:
        return SERVICE_CONFIG
    merged = SERVICE_CONFIG.model_dump(by_alias=True)
    merged.update({to_camel(key): value for key, value in override.items()})
    return build_config(merged)


@app.get("/health")
async def health_check():
    """Health check endpoint to test server connectivity."""
    return JSONResponse(content={"status": "ok", "message": "Server is running"})


@app.get("/settings", response_model=AnalyticsConfig)
async def get_settings():
    """Effective analytics configuration."""
    return SERVICE_CONFIG


@app.post("/settings/validate", response_model=SettingsResponse)
async def validate_settings(settings: Dict[str, Any]):
    """Validate proposed settings before they are saved."""
    return SettingsResponse(valid=True, config=resolve_config(settings))


@app.post("/marks/validate", response_model=MarkResult)
async def validate_marks(submission: MarkSubmission):
    """Strictly validate one marks submission and return its weighted total."""
    over = submission.components_over(SERVICE_CONFIG.max_marks)
    if over:
        raise HTTPException(status_code=422, detail=over)

    entry = MarkEntry(
        subject_id=submission.subject_id,
        test1=submission.test1,
        test2=submission.test2,
        assignment=submission.assignment,
    )
    return score_entry(entry, SERVICE_CONFIG)


@app.post("/analytics/attendance", response_model=AttendanceResponse)
async def attendance_analytics(request: AttendanceRequest):
    """Attendance percentage, classes needed and trend for one student."""
    config = resolve_config(request.config)
    summary = summarize_attendance(request.records)
    return AttendanceResponse(
        summary=summary,
        classes_needed=classes_needed(summary.attended, summary.total, config.attendance_threshold),
        subjects=attendance_by_subject(request.records),
        trend=analyze_trend(request.records),
    )


@app.post("/analytics/marks", response_model=MarksSummary)
async def marks_analytics(request: MarksRequest):
    """Weighted totals, pass/fail and focus subjects."""
    return summarize_marks(request.entries, resolve_config(request.config))


@app.post("/analytics/risk", response_model=RiskAssessment)
async def risk_analytics(request: StudentRequest):
    """Risk tier, probability and reasons for one student."""
    config = resolve_config(request.config)
    report = compute_student_report(request.attendance, request.marks, config,
                                    student_id=request.student_id, name=request.name)
    return report.risk


@app.post("/analytics/student", response_model=StudentReport)
async def student_analytics(request: StudentRequest):
    """Every derived view for one student."""
    config = resolve_config(request.config)
    report = compute_student_report(request.attendance, request.marks, config,
                                    student_id=request.student_id, name=request.name)
    logger.info("Student %s: %s risk", request.student_id or "-", report.risk.risk_level)
    return report


@app.post("/analytics/cohort", response_model=CohortReport)
async def cohort_analytics(request: CohortRequest):
    """Class report with ranking, forecast and subject health."""
    return compute_cohort_report(request.students, resolve_config(request.config))


@app.post("/upload", response_model=CohortReport)
async def upload_file(file: UploadFile = File(...)):
    """Upload an attendance/marks workbook and analyse the whole cohort."""
    file_bytes = await file.read()
    if len(file_bytes) > MAX_UPLOAD_SIZE:
        raise HTTPException(
            status_code=413,
            detail=f"File too large. Maximum size: {MAX_UPLOAD_SIZE_MB}MB"
        )

    if not (file.filename or "").lower().endswith((".xlsx", ".xls")):
        raise HTTPException(
            status_code=400,
            detail="Invalid file type. Please upload an Excel file (.xlsx or .xls)"
        )

    try:
        attendance_df, marks_df = load_workbook_frames(file_bytes)
        students = frames_to_students(attendance_df, marks_df)
    except ValueError as e:
        logger.error("Error loading workbook %s: %s", file.filename, e)
        raise HTTPException(status_code=400, detail=f"Error loading Excel file: {str(e)}")

    if not students:
        raise HTTPException(status_code=400, detail="No student records found in the uploaded file.")

    report = compute_cohort_report(students, SERVICE_CONFIG)
    logger.info(
        "Results: %s students (%s at risk, current pass rate %.1f%%)",
        len(report.students), report.forecast.at_risk_count, report.forecast.current_pass_rate
    )
    return report


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
