import os

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from travel_app.api.routes import (
    auth,
    bookings,
    dashboard,
    destinations,
    flights,
    hotels,
    payments,
    reports,
    rooms,
    tour_items,
    tours,
    users,
)
from travel_app.core.errors import AppError, InternalError
from travel_app.core.logging_config import get_logger

load_dotenv()

logger = get_logger()

app = FastAPI(
    title="Travel Booking API",
    version="1.0.0",
    description="API for destinations, hotels, rooms, flights, tours, bookings, payments & reports",
)


# ⭐ Request Logging Middleware
@app.middleware("http")
async def log_requests(request: Request, call_next):
    logger.info(f"REQUEST: {request.method} {request.url}")

    try:
        response = await call_next(request)
        logger.info(f"RESPONSE: {response.status_code} {request.url}")
        return response

    except Exception as e:
        logger.error(f"ERROR: {request.url} -> {str(e)}")
        raise e


# ⭐ CORS
cors_origins = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# -------- ERROR HANDLERS --------
@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error(f"{type(exc).__name__}: {request.method} {request.url} -> {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = {}
    for error in exc.errors():
        # ("body", "starRating") / ("query", "limit") -> "starRating" / "limit"
        loc = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path", "form")]
        field = ".".join(loc) or "request"
        errors.setdefault(field, error.get("msg", "Invalid value"))
    return JSONResponse(status_code=422, content={"message": "Validation failed", "errors": errors})


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.opt(exception=exc).error(f"Unhandled error: {request.method} {request.url}")
    error = InternalError()
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


# -------- ROUTERS REGISTER ORDER MATTERS --------
app.include_router(auth.router)
app.include_router(users.router)
app.include_router(destinations.router)
app.include_router(hotels.router)
app.include_router(rooms.router)
app.include_router(flights.router)
app.include_router(tours.router)
app.include_router(tour_items.router)
app.include_router(bookings.router)
app.include_router(payments.router)
app.include_router(reports.router)
app.include_router(dashboard.router)


@app.get("/", tags=["Root"])
def root():
    return {"message": "Backend running successfully"}
