import os
from pathlib import Path
from dotenv import load_dotenv

load_dotenv(Path.cwd() / ".env")

class Settings:
    APP_ENV: str = os.getenv("APP_ENV", "development")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "WARNING")
    LOG_FILE: str = os.getenv("LOG_FILE", "")
    FIXDIR: Path = Path(os.getenv("FIXDIR", "."))
    CONFIG_FILE_NAME: str = "fixconf.yaml"
    PLAN_NAME: str = os.getenv("PLAN_NAME", "generated_plan")
    DEFAULT_NODE: str = os.getenv("DEFAULT_NODE", "example.com")
    FIX_SERVICE_URL: str = os.getenv("FIX_SERVICE_URL", "")
    FIX_SERVICE_TOKEN: str = os.getenv("FIX_SERVICE_TOKEN", "")
    FIX_SERVICE_TIMEOUT: float = float(os.getenv("FIX_SERVICE_TIMEOUT", "30"))
    VERSION: str = "0.1.0"
    APP_NAME: str = "Fix Planner"

    @classmethod
    def validate(cls) -> list:
        warnings = []
        if not (cls.FIXDIR / cls.CONFIG_FILE_NAME).is_file():
            warnings.append(f"No {cls.CONFIG_FILE_NAME} in {cls.FIXDIR} — no benchmarks are known.")
        if cls.FIX_SERVICE_URL and not cls.FIX_SERVICE_TOKEN:
            warnings.append("FIX_SERVICE_TOKEN not set — fix service requests are unauthenticated.")
        return warnings

    @classmethod
    def is_fix_service_configured(cls) -> bool:
        return bool(cls.FIX_SERVICE_URL)

settings = Settings()
