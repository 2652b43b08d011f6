"""FastAPI application entrypoint and HTTP controllers.

This module defines the HTTP endpoints of the dormitory administration
backend. Controllers are intentionally thin: they accept requests,
delegate to services, and return JSON responses. Failures are raised as
`DormitoryError` subclasses and turned into `{"error": ...}` bodies by
the exception handlers registered below.

Endpoints implemented:
- GET/POST /api/students, DELETE /api/students/{id}
- GET /api/rooms, GET /api/rooms/available
- GET/POST /api/settlements, DELETE /api/settlements/student/{id}
- GET/POST /api/payments, GET /api/payments/student/{id}
- GET /api/statistics
- GET /, GET /health
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI, Depends, Request, Path as PathParam
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, HTMLResponse, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session
import json
import logging
import time
import uuid
from pathlib import Path
from .database import engine, init_database, check_connection, get_session
from . import services, repositories
from .exceptions import DormitoryError
from .schemas import StudentIn, SettlementIn, PaymentIn, MAX_ID
from .config import settings

logger = logging.getLogger("dormitory.api")
if not logger.handlers:
    logging.basicConfig(level=settings.LOG_LEVEL)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # StartupError propagates and stops the server before it accepts requests
    init_database(engine)
    yield
    logger.info("closing database connections")
    engine.dispose()


app = FastAPI(title="Dormitory Administration API", lifespan=lifespan)

if settings.ALLOW_DEV_CORS:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

# Serve the admin frontend if it is checked out next to the backend
static_dir = Path(__file__).resolve().parent.parent / "static"
if static_dir.exists():
    app.mount("/static", StaticFiles(directory=static_dir), name="static")


@app.middleware("http")
async def request_context_middleware(request: Request, call_next):
    req_id = request.headers.get("X-Request-ID", uuid.uuid4().hex)
    request.state.request_id = req_id
    started = time.perf_counter()
    response: Response
    try:
        response = await call_next(request)
    except Exception:
        elapsed_ms = round((time.perf_counter() - started) * 1000.0, 2)
        logger.exception(
            "request_failed %s",
            json.dumps(
                {
                    "request_id": req_id,
                    "path": request.url.path,
                    "method": request.method,
                    "duration_ms": elapsed_ms,
                    "client": request.client.host if request.client else "unknown",
                },
                ensure_ascii=True,
            ),
        )
        raise
    response.headers["X-Request-ID"] = req_id
    elapsed_ms = round((time.perf_counter() - started) * 1000.0, 2)
    if request.url.path.startswith("/api"):
        logger.info(
            "request_done %s",
            json.dumps(
                {
                    "request_id": req_id,
                    "path": request.url.path,
                    "method": request.method,
                    "status_code": response.status_code,
                    "duration_ms": elapsed_ms,
                    "client": request.client.host if request.client else "unknown",
                },
                ensure_ascii=True,
            ),
        )
    return response


@app.exception_handler(DormitoryError)
async def dormitory_error_handler(request: Request, exc: DormitoryError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc, exc_info=exc.__cause__)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    logger.error("%s %s database error", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content={'error': 'Internal server error'})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    if errors:
        first = errors[0]
        field = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
        message = f"{field}: {first.get('msg')}" if field else str(first.get("msg"))
    else:
        message = "invalid request"
    return JSONResponse(status_code=400, content={'error': message})


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.error("%s %s unexpected error", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content={'error': 'Internal server error'})


@app.get('/api/students')
def list_students(db: Session = Depends(get_session)):
    """List all students ordered by `student_id`."""
    return services.StudentService(db).list_students()


@app.post('/api/students')
def add_student(payload: StudentIn, db: Session = Depends(get_session)):
    """Add a student and return the generated `studentId`."""
    student = services.StudentService(db).add(
        full_name=payload.name,
        birth_date=payload.birth_date,
        gender=payload.gender,
        phone=payload.phone,
        university_group=payload.group,
        passport_number=payload.passport,
    )
    return {'success': True, 'message': 'Student added successfully', 'studentId': student.student_id}


@app.delete('/api/students/{student_id}')
def delete_student(student_id: int = PathParam(le=MAX_ID), db: Session = Depends(get_session)):
    """Delete a student together with their settlement and payments."""
    if not services.SettlementService(db).delete_student_cascade(student_id):
        return JSONResponse(status_code=404, content={'error': 'Student not found'})
    return {'success': True, 'message': 'Student deleted successfully'}


@app.get('/api/rooms')
def list_rooms(db: Session = Depends(get_session)):
    """List all rooms ordered by `room_id`."""
    return repositories.RoomRepository(db).list_all()


@app.get('/api/rooms/available')
def list_available_rooms(db: Session = Depends(get_session)):
    """List rooms with at least one free place, ordered by `room_number`.

    Each room carries `occupied_count` and `available_spots`.
    """
    return repositories.RoomRepository(db).list_available()


@app.post('/api/settlements')
def settle_student(payload: SettlementIn, db: Session = Depends(get_session)):
    """Settle a student into a room identified by its room number.

    Fails with 400 when the student or room does not exist, the student
    is already settled, or the room is full.
    """
    services.SettlementService(db).assign(payload.student_id, payload.room_number, payload.settle_date)
    return {'success': True, 'message': 'Student settled successfully'}


@app.get('/api/settlements')
def list_settlements(db: Session = Depends(get_session)):
    """List settlements with student name and room number, newest first."""
    return repositories.SettlementRepository(db).list_detailed()


@app.delete('/api/settlements/student/{student_id}')
def evict_student(student_id: int = PathParam(le=MAX_ID), db: Session = Depends(get_session)):
    """Evict a student from their room without deleting the student."""
    if not services.SettlementService(db).evict(student_id):
        return JSONResponse(status_code=404, content={'error': 'Settlement not found'})
    return {'success': True, 'message': 'Student evicted successfully'}


@app.get('/api/payments')
def list_payments(db: Session = Depends(get_session)):
    """List all payments, most recent first."""
    return services.PaymentService(db).list_payments()


@app.get('/api/payments/student/{student_id}')
def list_student_payments(student_id: int = PathParam(le=MAX_ID), db: Session = Depends(get_session)):
    """List one student's payments in date order."""
    return services.PaymentService(db).list_for_student(student_id)


@app.post('/api/payments')
def add_payment(payload: PaymentIn, db: Session = Depends(get_session)):
    """Record a payment for a student."""
    services.PaymentService(db).add(
        student_id=payload.student_id,
        payment_date=payload.payment_date,
        amount=payload.amount,
        payment_method=payload.payment_method,
    )
    return {'success': True, 'message': 'Payment added successfully'}


@app.get('/api/statistics')
def statistics(db: Session = Depends(get_session)):
    """Return total students, settlements and payments."""
    return services.StatisticsService(db).get_statistics()


@app.get("/", response_class=HTMLResponse)
def home():
    """Landing page; serves the admin frontend when it is present."""
    index = static_dir / "index.html"
    if index.exists():
        return HTMLResponse(index.read_text(encoding="utf-8"))
    return """
    <!DOCTYPE html>
    <html>
    <head>
      <meta charset="UTF-8" />
      <title>Dormitory Administration</title>
      <style>
        body { font-family: Arial, sans-serif; margin: 32px; }
        a { color: #0a6; }
        .card { max-width: 640px; padding: 16px; border: 1px solid #ddd; border-radius: 8px; }
      </style>
    </head>
    <body>
      <div class="card">
        <h1>Dormitory Administration API</h1>
        <p>Quick links for local testing:</p>
        <ul>
          <li><a href="/docs">Swagger UI</a></li>
          <li><a href="/api/students">Students</a></li>
          <li><a href="/api/rooms/available">Available rooms</a></li>
          <li><a href="/api/statistics">Statistics</a></li>
        </ul>
      </div>
    </body>
    </html>
    """


@app.get("/health")
def health(db: Session = Depends(get_session)):
    """Health check that also verifies the database answers."""
    try:
        check_connection(db.get_bind())
    except SQLAlchemyError:
        logger.exception("health check failed")
        return JSONResponse(status_code=503, content={'error': 'database unreachable'})
    return {"status": "ok"}
