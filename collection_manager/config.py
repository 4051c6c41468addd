"""Application configuration loaded from environment variables."""

import json
import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import ValidationError

from .errors import ConfigMissing
from .models.booking import OriginAddress
from .models.session import PortalCredentials

load_dotenv()

# Paths
DATA_DIR = Path(os.getenv("DATA_DIR", Path(__file__).parent.parent / "data"))
DB_PATH = DATA_DIR / "collections.db"
LOG_DIR = DATA_DIR / "logs"
SCREENSHOT_DIR = Path(os.getenv("SCREENSHOT_DIR", DATA_DIR / "screenshots"))
CREDENTIALS_PATH = Path(os.getenv("CREDENTIALS_PATH", Path(__file__).parent.parent / "config.json"))

# Session descriptor and browser profile live in /tmp so a reconnecting
# process finds them regardless of its working directory.
SESSION_PATH = Path(os.getenv("SESSION_PATH", "/tmp/ups-session.json"))
BROWSER_PROFILE_DIR = Path(os.getenv("BROWSER_PROFILE_DIR", "/tmp/ups-browser-profile"))

# Booking service
SERVICE_HOST = os.getenv("SERVICE_HOST", "127.0.0.1")
SERVICE_PORT = int(os.getenv("SERVICE_PORT", "8025"))
SERVICE_URL = f"http://{SERVICE_HOST}:{SERVICE_PORT}"

# Browser
BROWSER_HEADLESS = os.getenv("BROWSER_HEADLESS", "false").lower() == "true"
BROWSER_TIMEOUT = int(os.getenv("BROWSER_TIMEOUT", "30000"))
CDP_PORT = int(os.getenv("CDP_PORT", "9333"))
CDP_STARTUP_TIMEOUT = 20  # seconds

# Scheduling
COLLECTION_TIMEZONE = os.getenv("COLLECTION_TIMEZONE", "Europe/London")

# Origin address: the collection point is fixed per deployment, never caller input
ORIGIN_COMPANY = os.getenv("ORIGIN_COMPANY", "YOUR_COMPANY")
ORIGIN_ADDRESS = os.getenv(
    "ORIGIN_ADDRESS", "YOUR_WAREHOUSE_ADDRESS_LINE_1, YOUR_WAREHOUSE_ADDRESS_LINE_2"
)
ORIGIN_CITY = os.getenv("ORIGIN_CITY", "YOUR_CITY")
ORIGIN_POSTAL_CODE = os.getenv("ORIGIN_POSTAL_CODE", "YOUR_POSTCODE")
ORIGIN_TELEPHONE = os.getenv("ORIGIN_TELEPHONE", "YOUR_PHONE_NUMBER")
NOTIFICATION_EMAIL = os.getenv("NOTIFICATION_EMAIL", "YOUR_LOGISTICS_EMAIL")
COLLECT_FROM = os.getenv("COLLECT_FROM", "Front Door")


def origin_address() -> OriginAddress:
    """Build the configured collection origin."""
    return OriginAddress(
        company=ORIGIN_COMPANY,
        address=ORIGIN_ADDRESS,
        city=ORIGIN_CITY,
        postal_code=ORIGIN_POSTAL_CODE,
        telephone=ORIGIN_TELEPHONE,
        email=NOTIFICATION_EMAIL,
        collect_from=COLLECT_FROM,
    )


def load_credentials(path: Path = CREDENTIALS_PATH) -> PortalCredentials:
    """Read portal credentials from the JSON config file.

    Expected shape: {"ups": {"username": "...", "password": "..."}}

    Raises:
        ConfigMissing: the file is absent, unreadable or incomplete.
    """
    if not path.exists():
        raise ConfigMissing(f"Config file not found at {path}")
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
        return PortalCredentials(**raw["ups"])
    except (json.JSONDecodeError, KeyError, TypeError, ValidationError) as e:
        raise ConfigMissing(f"Config file at {path} is missing portal credentials: {e}")


def ensure_dirs():
    """Create required data directories if they don't exist."""
    DATA_DIR.mkdir(parents=True, exist_ok=True)
    LOG_DIR.mkdir(parents=True, exist_ok=True)
    SCREENSHOT_DIR.mkdir(parents=True, exist_ok=True)
    BROWSER_PROFILE_DIR.mkdir(parents=True, exist_ok=True)
