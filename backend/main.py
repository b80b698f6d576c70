from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from dotenv import load_dotenv

load_dotenv()
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from sqlalchemy.exc import IntegrityError
from database import Base, engine
from datetime import datetime
from exceptions import InventoryError
import models  # noqa: F401  registers every table on Base.metadata
import auth
import routers.catalog as catalog
import routers.parts as parts
import routers.stock as stock
import routers.orders as orders
import routers.equipment as equipment
import routers.equipment_templates as equipment_templates
import routers.users as users
import os
import traceback
import logging
from fastapi.openapi.utils import get_openapi


LOG_DIR = os.getenv("LOG_DIR", "logs")
LOG_LEVEL = getattr(logging, os.getenv("LOG_LEVEL", "INFO").upper(), logging.INFO)
os.makedirs(LOG_DIR, exist_ok=True) # Create the log directory if it doesn't exist

# Create a unique log file name based on current date/time
current_time_str = datetime.now().strftime("%Y-%m-%d_%H-%M-%S")
LOG_FILE = os.path.join(LOG_DIR, f"app_{current_time_str}.log")

# Configure the root logger
logging.basicConfig(
    level=LOG_LEVEL,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    filename=LOG_FILE, # Log to a file
    filemode='a' # Append to the file if it exists
)

# Also output logs to the console
console_handler = logging.StreamHandler()
console_handler.setLevel(LOG_LEVEL)
console_handler.setFormatter(logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s'))
logging.getLogger().addHandler(console_handler) # Add to the root logger

logger = logging.getLogger(__name__)
logger.info("Application starting up...")
# --- End Logging Configuration ---

ENVIRONMENT = os.getenv("ENVIRONMENT", "production")

# Create database tables
Base.metadata.create_all(bind=engine)


app = FastAPI()


allowed_origins_str = os.getenv(
    "CORS_ALLOWED_ORIGINS",
    "http://localhost:5173,http://127.0.0.1:5173"
)

# Split the string into a list, stripping any whitespace
allowed_origins = [origin.strip() for origin in allowed_origins_str.split(',')]

# Enable CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# --- Error envelope ---

@app.exception_handler(InventoryError)
async def inventory_error_handler(request: Request, exc: InventoryError):
    logger.warning(f"{exc.category} on {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = f"{location}: {first.get('msg')}" if location else first.get("msg", "Invalid request")
    return JSONResponse(
        status_code=400,
        content={
            "success": False,
            "error": message,
            "category": "ValidationError",
            "details": {"errors": jsonable_errors(errors)},
        },
    )


def jsonable_errors(errors):
    # ctx may carry exception instances that JSON cannot encode
    return [{key: value for key, value in error.items() if key in ("loc", "msg", "type")} for error in errors]


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": str(exc.detail), "category": "HTTPError"},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(IntegrityError)
async def integrity_error_handler(request: Request, exc: IntegrityError):
    logger.warning(f"Integrity error on {request.method} {request.url.path}: {exc.orig}")
    return JSONResponse(
        status_code=409,
        content={"success": False, "error": "Duplicate or conflicting record", "category": "Conflict"},
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    content = {"success": False, "error": "Internal server error", "category": "InternalError"}
    if ENVIRONMENT == "development":
        content["error"] = str(exc)
        content["details"] = {"stack": traceback.format_exception(type(exc), exc, exc.__traceback__)}
    return JSONResponse(status_code=500, content=content)


def custom_openapi():
    if app.openapi_schema:
        return app.openapi_schema
    openapi_schema = get_openapi(
        title="Equipment Parts API",
        version="1.0.0",
        description="Inventory, purchase order and equipment assembly API",
        routes=app.routes,
    )
    openapi_schema["components"]["securitySchemes"] = {
        "BearerAuth": {
            "type": "http",
            "scheme": "bearer",
            "bearerFormat": "JWT",
        }
    }
    # Apply security globally to all endpoints
    openapi_schema["security"] = [{"BearerAuth": []}]
    app.openapi_schema = openapi_schema
    return app.openapi_schema

app.openapi = custom_openapi


app.include_router(auth.router)
app.include_router(users.router)
app.include_router(catalog.brands_router)
app.include_router(catalog.colors_router)
app.include_router(catalog.categories_router)
app.include_router(parts.router)
app.include_router(stock.router)
app.include_router(orders.router)
app.include_router(equipment.router)
app.include_router(equipment_templates.router)


@app.get("/")
async def test_route():
    return {"message": "Welcome to the Equipment Parts API!"}


@app.get("/health")
async def health():
    return {"success": True, "status": "ok", "environment": ENVIRONMENT}
