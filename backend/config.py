import os
import logging
from pathlib import Path
from typing import List
from dotenv import load_dotenv

# Load environment variables - explicitly look in backend directory
backend_dir = Path(__file__).parent
env_path = backend_dir / '.env'
load_dotenv(dotenv_path=env_path)

logger = logging.getLogger(__name__)

# Check if running in serverless environment (Vercel)
IS_SERVERLESS = os.getenv("VERCEL") == "1" or os.getenv("AWS_LAMBDA_FUNCTION_NAME") is not None

# Store endpoint
POSTGRES_URL = os.getenv("POSTGRES_URL")  # Vercel Postgres connection string
DATABASE_URL = os.getenv("DATABASE_URL")  # Generic database URL (can be Postgres or SQLite)

# Token signing
SECRET_KEY = os.getenv("SECRET_KEY")
ALGORITHM = os.getenv("ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "60"))

CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*")

# Local development only; check_required() refuses it for deployed stores
DEV_SECRET_KEY = "change_this_secret"


def signing_key() -> str:
    return SECRET_KEY or DEV_SECRET_KEY


def cors_origins() -> List[str]:
    return [origin.strip() for origin in CORS_ORIGINS.split(",") if origin.strip()]


class ConfigurationError(RuntimeError):
    pass


def is_deployed() -> bool:
    return IS_SERVERLESS or bool(POSTGRES_URL) or bool(DATABASE_URL and DATABASE_URL.startswith("postgres"))


def check_required() -> List[str]:
    """
    Log a startup warning for each missing connection parameter.

    A deployed instance (serverless or Postgres-backed) without SECRET_KEY
    raises ConfigurationError instead of signing tokens with the development key.
    """
    missing = []
    if not (POSTGRES_URL or DATABASE_URL):
        missing.append("DATABASE_URL")
    if not SECRET_KEY:
        missing.append("SECRET_KEY")

    for name in missing:
        logger.warning(f"{name} not found in environment variables!")
    if missing:
        logger.warning(f"Looking for .env file at: {env_path}")
    if not SECRET_KEY and is_deployed():
        raise ConfigurationError("SECRET_KEY must be set when running against a deployed store")
    return missing
