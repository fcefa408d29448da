import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from app.admin.router import router as admin_router
from app.auth.router import router as auth_router
from app.chat.router import router as chat_router
from app.config import CORS_ORIGINS, LOG_LEVEL, PORT, UPLOAD_DIR
from app.courses.course_router import router as course_router
from app.courses.enrollment_router import router as enrollment_router
from app.database import close_db, create_indexes, get_db_instance
from app.errors import register_error_handlers
from app.forum.router import router as forum_router
from app.uploads.storage import ensure_upload_dir
from app.users.router import router as users_router

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Interactive Learning Platform API")


@app.on_event("startup")
async def startup_event():
    try:
        await create_indexes(get_db_instance())
    except Exception:
        logger.exception("Index creation failed")


@app.on_event("shutdown")
async def shutdown_event():
    close_db()


app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Correlation-ID"]
)
register_error_handlers(app)

ensure_upload_dir()
app.mount("/uploads", StaticFiles(directory=UPLOAD_DIR), name="uploads")


# ==================== ROUTER REGISTRATION ====================
app.include_router(auth_router, prefix="/api/auth")
app.include_router(users_router, prefix="/api/users")
app.include_router(course_router, prefix="/api/courses")
app.include_router(enrollment_router, prefix="/api/courses")
app.include_router(forum_router, prefix="/api/forum")
app.include_router(admin_router, prefix="/api/admin")
app.include_router(chat_router)


@app.get("/")
def root():
    return {"message": "Interactive Learning Platform API"}


@app.get("/health")
def health():
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("app.main:app", host="0.0.0.0", port=PORT)
