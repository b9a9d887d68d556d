import os

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "yes")


DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./courtside.db")
SQL_ECHO = _env_bool("SQL_ECHO")

# Background dispatch loop (off unless explicitly enabled for this process)
RUN_DISPATCHER = _env_bool("RUN_DISPATCHER")
DISPATCH_INTERVAL_SECONDS = float(os.getenv("DISPATCH_INTERVAL_SECONDS", "5"))

# Fallback match length when a category has no recorded history
DEFAULT_MATCH_MINUTES = float(os.getenv("DEFAULT_MATCH_MINUTES", "15"))
BOOST_TTL_MINUTES = int(os.getenv("BOOST_TTL_MINUTES", "30"))

CORS_ORIGINS = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]
_extra = os.getenv("CORS_ORIGINS", "")
if _extra:
    CORS_ORIGINS.extend(o.strip() for o in _extra.split(",") if o.strip())
