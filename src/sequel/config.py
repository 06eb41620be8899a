import os
from dataclasses import dataclass

from dotenv import load_dotenv

# Load the appropriate .env file on module import
env = os.environ.get("SEQUEL_ENV", "development").lower()
env_file = f".env.{env}"
if os.path.exists(env_file):
    load_dotenv(env_file)
else:
    # Fall back to the default .env file
    load_dotenv()

_TRUTHY = {"1", "true", "yes", "on"}


@dataclass
class Config:
    environment: str
    database_url: str | None
    driver_name: str
    max_open_connections: int
    rebind_model: bool
    timeout: float
    connect_timeout: float

    @classmethod
    def from_env(cls) -> "Config":
        return cls(
            environment=env,
            database_url=os.environ.get("DATABASE_URL"),
            driver_name=os.environ.get("SEQUEL_DRIVER", "psycopg"),
            max_open_connections=int(os.environ.get("SEQUEL_MAX_OPEN_CONNECTIONS", "100")),
            rebind_model=os.environ.get("SEQUEL_REBIND_MODEL", "false").lower() in _TRUTHY,
            timeout=float(os.environ.get("SEQUEL_TIMEOUT", "15")),
            connect_timeout=float(os.environ.get("SEQUEL_CONNECT_TIMEOUT", "10")),
        )


config = Config.from_env()
