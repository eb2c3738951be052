import os

DATABASE_URL = os.environ.get("DATABASE_URL", "mongodb://localhost:27017")
DATABASE_NAME = os.environ.get("DATABASE_NAME", "quiz_app")

SECRET_KEY = os.environ.get("SECRET_KEY", "supersecretkey")  # in real deployment, use env
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.environ.get("ACCESS_TOKEN_EXPIRE_MINUTES", str(60 * 8)))

PUBLIC_BASE_URL = os.environ.get("PUBLIC_BASE_URL", "http://localhost:3000").rstrip("/")
CORS_ORIGINS = [o.strip() for o in os.environ.get("CORS_ORIGINS", "*").split(",") if o.strip()]

ADMIN_USER = os.environ.get("ADMIN_USER", "admin")
ADMIN_PASSWORD = os.environ.get("ADMIN_PASSWORD", "AaBbCc123")

# "lenient": out-of-range selections are recorded and scored as wrong.
# "strict": they are rejected with OutOfRange.
SELECTION_POLICY = os.environ.get("SELECTION_POLICY", "lenient").strip().lower()
if SELECTION_POLICY not in ("lenient", "strict"):
    raise ValueError(f"SELECTION_POLICY must be 'lenient' or 'strict', got {SELECTION_POLICY!r}")
ATTEMPT_RETENTION_SECONDS = int(os.environ.get("ATTEMPT_RETENTION_SECONDS", str(60 * 60 * 6)))

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
