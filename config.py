import os
from datetime import timedelta
from dotenv import load_dotenv

load_dotenv()


def env_bool(name, default=False):
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


BASE_DIR = os.path.abspath(os.path.dirname(__file__))


class Config:
    APP_ENV = os.getenv("APP_ENV", os.getenv("NODE_ENV", "development"))

    SECRET_KEY = os.getenv("SESSION_SECRET", "ganti-secret-ini")
    PERMANENT_SESSION_LIFETIME = timedelta(hours=24)
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = "Lax"
    SESSION_COOKIE_SECURE = APP_ENV == "production"

    PORT = int(os.getenv("PORT", "3000"))
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    # Pesan error database hanya dikirim ke client di luar production
    EXPOSE_ERRORS = APP_ENV != "production"

    # Konfigurasi database MySQL
    DB_HOST = os.getenv("DB_HOST", "localhost")
    DB_PORT = int(os.getenv("DB_PORT", "3306"))
    DB_USER = os.getenv("DB_USER", "root")
    DB_PASSWORD = os.getenv("DB_PASSWORD", "")
    DB_NAME = os.getenv("DB_NAME", "db_emas")
    DB_POOL_SIZE = int(os.getenv("DB_POOL_SIZE", "10"))
    # detik menunggu koneksi bebas saat pool penuh
    DB_POOL_TIMEOUT = float(os.getenv("DB_POOL_TIMEOUT", "15"))

    BCRYPT_ROUNDS = 10

    # Upload
    UPLOAD_ROOT = os.getenv("UPLOAD_ROOT", os.path.join(BASE_DIR, "public", "uploads"))
    MAX_CONTENT_LENGTH = 6 * 1024 * 1024
    FLYER_MAX_SIZE = 2 * 1024 * 1024
    LPJ_MAX_SIZE = 5 * 1024 * 1024

    # Harga emas (metals.dev, limit 100 request/bulan)
    ENABLE_GOLD_SCHEDULER = env_bool("ENABLE_GOLD_SCHEDULER")
    METALS_API_KEY = os.getenv("METALS_API_KEY", "")
    METALS_API_BASE = "https://api.metals.dev"
    METALS_API_TIMEOUT = float(os.getenv("METALS_API_TIMEOUT", "10"))
    SCHEDULE_HOURS = (6, 14, 22)
    MANUAL_REFRESH_LIMIT = int(os.getenv("MANUAL_REFRESH_LIMIT", "10"))
    API_MONTHLY_LIMIT = 100
