"""Environment configuration.

Values come from the process environment, with a `.env` file at the repo
root loaded first. Missing required variables abort startup with a single
ConfigError naming all of them.
"""

import os
from pathlib import Path
from urllib.parse import quote

from dotenv import load_dotenv
from pydantic import BaseModel

ROOT = Path(__file__).parent.parent

REQUIRED = ("COGNITO_REGION", "COGNITO_USER_POOL", "S3_BUCKET_NAME", "DB_PASSWORD")


class ConfigError(RuntimeError):
    """Raised when a required environment variable is missing."""


class Settings(BaseModel):
    cognito_region: str
    cognito_user_pool: str
    cognito_client_id: str = ""

    s3_bucket: str
    s3_region: str = "eu-central-1"
    s3_endpoint_url: str | None = None

    db_host: str = "localhost"
    db_port: int = 5432
    db_name: str = "game"
    db_user: str = "postgres"
    db_password: str

    openai_api_key: str = ""
    openai_url: str = "https://api.openai.com/v1/responses"

    tool_dir: Path = ROOT / "tool"

    @property
    def dsn(self) -> str:
        return (
            f"postgresql://{quote(self.db_user)}:{quote(self.db_password, safe='')}"
            f"@{self.db_host}:{self.db_port}/{self.db_name}"
        )

    @property
    def issuer(self) -> str:
        return f"https://cognito-idp.{self.cognito_region}.amazonaws.com/{self.cognito_user_pool}"

    @property
    def jwks_url(self) -> str:
        return f"{self.issuer}/.well-known/jwks.json"


def load_settings(env_file: Path | None = None) -> Settings:
    """Build Settings from the environment (after loading .env)."""
    load_dotenv(env_file or ROOT / ".env")

    missing = [name for name in REQUIRED if not os.getenv(name)]
    if missing:
        raise ConfigError(f"Missing required environment variables: {', '.join(missing)}")

    return Settings(
        cognito_region=os.environ["COGNITO_REGION"],
        cognito_user_pool=os.environ["COGNITO_USER_POOL"],
        cognito_client_id=os.getenv("COGNITO_CLIENT_ID", ""),
        s3_bucket=os.environ["S3_BUCKET_NAME"],
        s3_region=os.getenv("S3_REGION", "eu-central-1"),
        s3_endpoint_url=os.getenv("S3_ENDPOINT_URL") or None,
        db_host=os.getenv("DB_HOST", "localhost"),
        db_port=int(os.getenv("DB_PORT", "5432")),
        db_name=os.getenv("DB_NAME", "game"),
        db_user=os.getenv("DB_USER", "postgres"),
        db_password=os.environ["DB_PASSWORD"],
        openai_api_key=os.getenv("OPENAI_API_KEY", ""),
        openai_url=os.getenv("OPENAI_URL", "https://api.openai.com/v1/responses"),
        tool_dir=Path(os.getenv("TOOL_DIR", str(ROOT / "tool"))),
    )
