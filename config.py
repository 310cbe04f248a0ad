"""
Configuration Module
====================
Centralized environment variable loading, validation, and access.
Validates all required configuration at startup to fail fast.

NO BUSINESS LOGIC - Pure configuration management only.
"""

import os
import logging
from typing import Optional, Dict, Any, List, FrozenSet
from pathlib import Path
from dotenv import load_dotenv


# ============================================================================
# LOGGING
# ============================================================================

logger = logging.getLogger(__name__)


# ============================================================================
# ENVIRONMENT LOADING
# ============================================================================

def load_environment():
    """
    Load environment variables from .env file if present.
    Safe to call multiple times.
    """
    env_path = Path(".env")
    if env_path.exists():
        load_dotenv(env_path)
        logger.info("Loaded environment from .env file")
    else:
        logger.info("No .env file found, using system environment variables")


# Load on module import
load_environment()


# ============================================================================
# CONFIGURATION EXCEPTION
# ============================================================================

class ConfigurationError(Exception):
    """Raised when configuration is invalid or missing."""
    pass


# ============================================================================
# VALIDATION HELPERS
# ============================================================================

def _get_required_env(key: str, description: str = None) -> str:
    """
    Get required environment variable.

    Args:
        key: Environment variable name
        description: Optional description for error message

    Returns:
        Environment variable value

    Raises:
        ConfigurationError: If variable is missing or empty
    """
    value = os.getenv(key)

    if not value or value.strip() == "":
        desc = f" ({description})" if description else ""
        raise ConfigurationError(
            f"Missing required environment variable: {key}{desc}"
        )

    return value.strip()


def _get_optional_env(key: str, default: str = None) -> Optional[str]:
    """Get optional environment variable, or default if unset."""
    value = os.getenv(key, default)
    return value.strip() if value else default


def _get_bool_env(key: str, default: bool = False) -> bool:
    """Get boolean environment variable."""
    value = os.getenv(key, str(default)).lower()
    return value in ("true", "1", "yes", "on", "enabled")


def _get_int_env(key: str, default: int = None) -> Optional[int]:
    """
    Get integer environment variable.

    Raises:
        ConfigurationError: If value is not a valid integer
    """
    value = os.getenv(key)

    if not value:
        return default

    try:
        return int(value)
    except ValueError:
        raise ConfigurationError(
            f"Invalid integer value for {key}: {value}"
        )


def parse_table_numbers(raw: str, max_table: int) -> FrozenSet[int]:
    """
    Parse a floor table list such as "1-20,25,30-32".

    Raises:
        ConfigurationError: On malformed entries or numbers outside 1..max_table
    """
    tables = set()

    for part in raw.split(","):
        part = part.strip()
        if not part:
            continue

        try:
            if "-" in part:
                low, high = (int(p) for p in part.split("-", 1))
            else:
                low = high = int(part)
        except ValueError:
            raise ConfigurationError(f"Invalid FLOOR_TABLES entry: {part!r}")

        if low < 1 or high > max_table or low > high:
            raise ConfigurationError(
                f"FLOOR_TABLES entry out of range 1-{max_table}: {part!r}"
            )

        tables.update(range(low, high + 1))

    return frozenset(tables)


# ============================================================================
# ADMIN CONFIGURATION
# ============================================================================

class AdminConfig:
    """Admin override configuration."""

    def __init__(self):
        self.admin_code = _get_required_env(
            "ADMIN_CODE",
            "code staff enter to authorize overrides"
        )

        self.token_ttl_seconds = _get_int_env("ADMIN_TOKEN_TTL_SECONDS", 300)

        if self.token_ttl_seconds <= 0:
            raise ConfigurationError(
                f"ADMIN_TOKEN_TTL_SECONDS must be positive: {self.token_ttl_seconds}"
            )


# ============================================================================
# FLOOR CONFIGURATION
# ============================================================================

class FloorConfig:
    """Dine-in table configuration."""

    def __init__(self):
        self.max_table_number = _get_int_env("MAX_TABLE_NUMBER", 999)

        if not 1 <= self.max_table_number <= 999:
            raise ConfigurationError(
                f"MAX_TABLE_NUMBER must be between 1 and 999: {self.max_table_number}"
            )

        # Empty means every table in 1..max_table_number
        raw_tables = _get_optional_env("FLOOR_TABLES", "")
        self.tables = parse_table_numbers(raw_tables, self.max_table_number)


# ============================================================================
# ORDER CONFIGURATION
# ============================================================================

class OrderConfig:
    """Order limits and takeout numbering."""

    def __init__(self):
        self.takeout_start = _get_int_env("TAKEOUT_START", 1000)

        if self.takeout_start < 1000:
            raise ConfigurationError(
                f"TAKEOUT_START must be at least 1000: {self.takeout_start}"
            )

        self.max_quantity_per_item = _get_int_env("MAX_QUANTITY_PER_ITEM", 99)
        self.max_items_per_order = _get_int_env("MAX_ITEMS_PER_ORDER", 100)

        if self.max_quantity_per_item < 1 or self.max_items_per_order < 1:
            raise ConfigurationError(
                "MAX_QUANTITY_PER_ITEM and MAX_ITEMS_PER_ORDER must be positive"
            )

        self.menu_file = _get_optional_env("MENU_FILE")

        if self.menu_file and not Path(self.menu_file).exists():
            raise ConfigurationError(f"Menu file not found: {self.menu_file}")


# ============================================================================
# PRINTER CONFIGURATION
# ============================================================================

class PrinterConfig:
    """Receipt and ticket printer switches."""

    def __init__(self):
        self.thermal_enabled = _get_bool_env("THERMAL_PRINTER_ENABLED", False)
        self.fiscal_enabled = _get_bool_env("FISCAL_PRINTER_ENABLED", False)
        self.thermal_name = _get_optional_env("THERMAL_PRINTER_NAME", "Epson TM-T20II")
        self.fiscal_port = _get_optional_env("FISCAL_PRINTER_PORT", "COM1")


# ============================================================================
# SERVER CONFIGURATION
# ============================================================================

class ServerConfig:
    """Web server configuration."""

    def __init__(self):
        self.host = _get_optional_env("HOST", "0.0.0.0")
        self.port = _get_int_env("PORT", 8000)

        # CORS settings
        self.cors_origins = _get_optional_env("CORS_ORIGINS", "*").split(",")

        # Logging
        self.log_level = _get_optional_env("LOG_LEVEL", "INFO").upper()

        if self.log_level not in ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]:
            raise ConfigurationError(
                f"Invalid LOG_LEVEL: {self.log_level}"
            )


# ============================================================================
# MAIN CONFIGURATION CLASS
# ============================================================================

class Config:
    """
    Main configuration container.
    Loads and validates all configuration on initialization.
    """

    def __init__(self):
        """
        Initialize and validate all configuration.

        Raises:
            ConfigurationError: If any required configuration is missing or invalid
        """
        try:
            self.admin = AdminConfig()
            self.floor = FloorConfig()
            self.orders = OrderConfig()
            self.printers = PrinterConfig()
            self.server = ServerConfig()

            logger.info("Configuration loaded and validated successfully")

        except ConfigurationError as e:
            logger.error(f"Configuration error: {str(e)}")
            raise
        except Exception as e:
            logger.error(f"Unexpected error loading configuration: {str(e)}")
            raise ConfigurationError(f"Configuration initialization failed: {str(e)}")

    def get_safe_summary(self) -> Dict[str, Any]:
        """
        Get safe configuration summary (no secrets).

        Returns:
            Dictionary with non-sensitive configuration
        """
        return {
            "admin_token_ttl_seconds": self.admin.token_ttl_seconds,
            "max_table_number": self.floor.max_table_number,
            "floor_tables": len(self.floor.tables) or self.floor.max_table_number,
            "takeout_start": self.orders.takeout_start,
            "max_quantity_per_item": self.orders.max_quantity_per_item,
            "menu_file": self.orders.menu_file,
            "printers": {
                "thermal": self.printers.thermal_enabled,
                "fiscal": self.printers.fiscal_enabled,
            },
            "server": {
                "host": self.server.host,
                "port": self.server.port,
                "log_level": self.server.log_level,
            },
        }

    def validate_runtime_dependencies(self) -> List[str]:
        """
        Validate that runtime dependencies are accessible.

        Returns:
            List of warnings (empty if all OK)
        """
        warnings = []

        if not self.printers.thermal_enabled:
            warnings.append("Thermal printer disabled, tickets will be simulated")

        if not self.printers.fiscal_enabled:
            warnings.append("Fiscal printer disabled, fiscal receipts will be simulated")

        if not self.orders.menu_file:
            warnings.append("MENU_FILE not set, starting with an empty menu")

        return warnings


# ============================================================================
# SINGLETON INSTANCE
# ============================================================================

# Global configuration instance
_config: Optional[Config] = None


def get_config() -> Config:
    """
    Get global configuration instance.
    Initializes on first call.

    Raises:
        ConfigurationError: If configuration is invalid
    """
    global _config

    if _config is None:
        _config = Config()

    return _config


def reload_config():
    """
    Reload configuration from environment.
    Useful for testing or dynamic reconfiguration.
    """
    global _config
    load_environment()
    _config = Config()
    logger.info("Configuration reloaded")
    return _config


# ============================================================================
# VALIDATION FUNCTION
# ============================================================================

def validate_configuration():
    """
    Validate configuration and log summary.
    Useful for startup checks.

    Raises:
        ConfigurationError: If configuration is invalid
    """
    config = get_config()

    summary = config.get_safe_summary()

    logger.info("Configuration Summary:")
    logger.info(f"  Tables: {summary['floor_tables']} (max {summary['max_table_number']})")
    logger.info(f"  Takeout numbering starts at: {summary['takeout_start']}")
    logger.info(f"  Server: {summary['server']['host']}:{summary['server']['port']}")
    logger.info(f"  Log Level: {summary['server']['log_level']}")

    for printer, enabled in summary['printers'].items():
        status = "enabled" if enabled else "disabled"
        logger.info(f"  {printer} printer: {status}")

    warnings = config.validate_runtime_dependencies()
    if warnings:
        logger.warning("Configuration warnings:")
        for warning in warnings:
            logger.warning(f"  - {warning}")

    logger.info("Configuration validation complete")
