from dataclasses import dataclass
from pathlib import Path
import os
from dotenv import load_dotenv
import logging
import sys
from typing import Optional
import structlog

from beta_analyzer.exceptions import ConfigurationError

# Load environment variables early
load_dotenv()

# Step 1: Configure stdlib logging to use stderr
logging.basicConfig(
    format='%(asctime)s [%(levelname)-8s] %(message)s',
    stream=sys.stderr,
    level=logging.INFO,
    force=True
)

# Step 2: Configure structlog
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.KeyValueRenderer(key_order=['timestamp', 'level', 'event']),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = logging.getLogger(__name__)

# Normalization converts USD amounts into INR only
SUPPORTED_BASE_CURRENCY = "INR"


def _get_env_var(var: str, required: bool = True, default: Optional[str] = None) -> str:
    """Get environment variable with validation."""
    value = os.environ.get(var, default)
    if required and not value:
        logger.error(f"Missing required environment variable: {var}")
        return ""
    return value or ""


def validate_environment_variables() -> None:
    """Warn about optional inputs that degrade the analysis when missing."""
    directory_path = _get_env_var("INDUSTRY_DIRECTORY_PATH", required=False)
    if not directory_path:
        logger.warning("INDUSTRY_DIRECTORY_PATH missing - peer discovery will use recommendations only.")
    elif not Path(directory_path).exists():
        logger.warning(f"Industry directory not found at {directory_path} - peer discovery will use recommendations only.")

    logger.info("Environment variables validated")


@dataclass
class Config:
    """Configuration class for the beta and peer analyzer."""

    industry_directory_path: Path = Path(
        os.environ.get("INDUSTRY_DIRECTORY_PATH", "./attached_assets/industry_directory.xlsx")
    )
    history_db_path: str = os.environ.get("HISTORY_DB_PATH", "./data/search_history.db")

    base_currency: str = os.environ.get("BASE_CURRENCY", "INR")
    # Used when the USDINR=X quote cannot be fetched
    fallback_usd_inr_rate: float = float(os.environ.get("FALLBACK_USD_INR_RATE", "83.0"))
    fx_cache_ttl_seconds: int = int(os.environ.get("FX_CACHE_TTL_SECONDS", "3600"))

    max_peers: int = int(os.environ.get("MAX_PEERS", "10"))
    max_peer_candidates: int = int(os.environ.get("MAX_PEER_CANDIDATES", "20"))
    max_concurrent_requests: int = int(os.environ.get("MAX_CONCURRENT_REQUESTS", "5"))
    fetch_timeout: int = int(os.environ.get("FETCH_TIMEOUT", "15"))

    trading_days_per_year: int = int(os.environ.get("TRADING_DAYS_PER_YEAR", "252"))
    default_period: str = os.environ.get("DEFAULT_PERIOD", "5Y")

    log_level: str = os.environ.get("LOG_LEVEL", "INFO")

    def __post_init__(self):
        self.base_currency = self.base_currency.strip().upper()
        self._validate()

        if self.history_db_path != ":memory:":
            Path(self.history_db_path).parent.mkdir(parents=True, exist_ok=True)

        # Set logging level
        log_level = getattr(logging, self.log_level.upper(), logging.INFO)
        logging.getLogger().setLevel(log_level)
        for name in logging.root.manager.loggerDict:
            logging.getLogger(name).setLevel(log_level)

    def _validate(self) -> None:
        if self.base_currency != SUPPORTED_BASE_CURRENCY:
            raise ConfigurationError(
                f"Unsupported BASE_CURRENCY: {self.base_currency}",
                config_key="BASE_CURRENCY",
                expected=SUPPORTED_BASE_CURRENCY,
            )

        positive = {
            "FALLBACK_USD_INR_RATE": self.fallback_usd_inr_rate,
            "MAX_PEERS": self.max_peers,
            "MAX_PEER_CANDIDATES": self.max_peer_candidates,
            "MAX_CONCURRENT_REQUESTS": self.max_concurrent_requests,
            "FETCH_TIMEOUT": self.fetch_timeout,
            "TRADING_DAYS_PER_YEAR": self.trading_days_per_year,
        }
        for key, value in positive.items():
            if value <= 0:
                raise ConfigurationError(
                    f"{key} must be positive (got {value})",
                    config_key=key,
                    expected="> 0",
                )


config = Config()
