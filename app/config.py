"""
Platform Configuration
Environment driven settings for database, tokens, uploads and CORS
"""

import os
from dotenv import load_dotenv

load_dotenv()


def _split_csv(value: str) -> list:
    return [item.strip() for item in value.split(",") if item.strip()]


# MongoDB
MONGO_URI = os.getenv("MONGO_URI", "mongodb://localhost:27017")
MONGO_DB_NAME = os.getenv("MONGO_DB_NAME", "learning_platform")

# Tokens
DEFAULT_JWT_SECRET = "secretkey"
JWT_SECRET = os.getenv("JWT_SECRET", DEFAULT_JWT_SECRET)
JWT_ALGORITHM = "HS256"
JWT_EXPIRE_HOURS = int(os.getenv("JWT_EXPIRE_HOURS", "24"))

# Admin registration codes
ADMIN_CODES = _split_csv(os.getenv("ADMIN_CODES", "admin123,secureCode456"))

# Server
PORT = int(os.getenv("PORT", "5000"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
CORS_ORIGINS = _split_csv(
    os.getenv(
        "CORS_ORIGINS",
        "http://localhost:3000,http://localhost:3001,http://localhost:3002",
    )
)

# Uploaded media
UPLOAD_DIR = os.getenv("UPLOAD_DIR", "uploads")
MAX_UPLOAD_MB = int(os.getenv("MAX_UPLOAD_MB", "20"))
IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png", ".gif", ".webp"}
VIDEO_EXTENSIONS = {".mp4", ".mov", ".avi", ".wmv", ".flv", ".mkv"}

DEFAULT_COURSE_IMAGE = os.getenv(
    "DEFAULT_COURSE_IMAGE", "https://example.com/default-course-image.jpg"
)

# Push channel
SUBSCRIBER_QUEUE_SIZE = 100
