import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from config import settings
from db.database import engine, Base
from db.seed import ensure_system_defaults
from api.errors import register_exception_handlers
from auth.routes import router as auth_router
from api.users import router as users_router
from api.symptoms import router as symptoms_router
from api.habits import router as habits_router
from api.medications import router as medications_router
from api.symptom_logs import router as symptom_logs_router
from api.mood_logs import router as mood_logs_router
from api.medication_logs import router as medication_logs_router
from api.habit_logs import router as habit_logs_router
from api.stats import router as stats_router

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

settings.validate_security_configuration()

# Create all tables
Base.metadata.create_all(bind=engine)
if settings.SEED_DEFAULTS_ON_STARTUP:
    ensure_system_defaults()

app = FastAPI(title=settings.APP_NAME, version="1.0.0")

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def security_headers_middleware(request: Request, call_next):
    response = await call_next(request)
    if not settings.SECURITY_HEADERS_ENABLED:
        return response
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
    response.headers["Content-Security-Policy"] = settings.SECURITY_CSP
    return response


register_exception_handlers(app)

# Routers
app.include_router(auth_router, prefix="/api")
app.include_router(users_router, prefix="/api")
app.include_router(symptoms_router, prefix="/api")
app.include_router(habits_router, prefix="/api")
app.include_router(medications_router, prefix="/api")
app.include_router(symptom_logs_router, prefix="/api")
app.include_router(mood_logs_router, prefix="/api")
app.include_router(medication_logs_router, prefix="/api")
app.include_router(habit_logs_router, prefix="/api")
app.include_router(stats_router, prefix="/api")


@app.get("/api/health")
def health_check():
    return {"status": "ok", "app": settings.APP_NAME}
