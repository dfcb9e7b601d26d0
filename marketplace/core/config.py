import os
from typing import List

from dotenv import load_dotenv

load_dotenv()


def env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.lower() in ["true", "1", "yes"]


def env_none_or_str(name: str, default=None):
    value = os.getenv(name)
    if value is None or value.lower() == "none":
        return default
    return value


def env_list(name: str, default: str = "") -> List[str]:
    raw = os.getenv(name, default)
    return [item.strip() for item in raw.split(",") if item.strip()]


MONGODB_URL = os.getenv("MONGODB_URL", "mongodb://localhost:27017")
MONGODB_DB = os.getenv("MONGODB_DB", "marketplace")
# live queries also follow change streams, so writes made outside this service are seen (replica sets only)
MONGODB_CHANGE_STREAMS = env_bool("MONGODB_CHANGE_STREAMS")

# realtime bus falls back to the in-process implementation when unset
REDIS_URL = env_none_or_str("REDIS_URL")

JWT_SECRET = os.getenv("JWT_SECRET", "change-me")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")

FCM_SERVICE_ACCOUNT_FILE = env_none_or_str("FCM_SERVICE_ACCOUNT_FILE")
FCM_PROJECT_ID = env_none_or_str("FCM_PROJECT_ID")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_JSON = env_bool("LOG_JSON")
# chatty third-party loggers held at WARNING
LOG_QUIET = env_list("LOG_QUIET", "pymongo,uvicorn.access,pyfcm")

CORS_ORIGINS = env_list("CORS_ORIGINS", "http://localhost:3000")
