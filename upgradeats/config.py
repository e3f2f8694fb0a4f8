import os

from dotenv import load_dotenv


def load_config(instance_path: str) -> dict:
    """Settings from the environment, after loading a ``.env`` file if present."""
    load_dotenv()
    return {
        "SECRET_KEY": os.environ.get("SECRET_KEY", "change-this-secret-key"),
        "SESSION_COOKIE_HTTPONLY": True,
        "SESSION_COOKIE_SAMESITE": "Lax",
        "SESSION_COOKIE_SECURE": os.environ.get("FLASK_SECURE_COOKIES", "0") == "1",
        "SUPABASE_URL": os.environ.get("SUPABASE_URL", ""),
        "SUPABASE_ANON_KEY": os.environ.get("SUPABASE_ANON_KEY", ""),
        "DB_PATH": os.environ.get("UPGRADEATS_DB_PATH", os.path.join(instance_path, "upgradeats.db")),
        "ADMIN_EMAIL": os.environ.get("ADMIN_EMAIL", "admin@upgradeats.id"),
        "ADMIN_PASSWORD": os.environ.get("ADMIN_PASSWORD", "admin123"),
        "WHATSAPP_NUMBER": os.environ.get("WHATSAPP_NUMBER", "6285832841485"),
        "GATEWAY_TIMEOUT": float(os.environ.get("GATEWAY_TIMEOUT", "10")),
        "DASHBOARD_MAX_MOUNTS": int(os.environ.get("DASHBOARD_MAX_MOUNTS", "32")),
        "DASHBOARD_IDLE_SECONDS": float(os.environ.get("DASHBOARD_IDLE_SECONDS", "3600")),
        "LOG_LEVEL": os.environ.get("LOG_LEVEL", "INFO").upper(),
    }
