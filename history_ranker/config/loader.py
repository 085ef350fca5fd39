"""Ranking configuration loader with validation."""

import hashlib
import time
from pathlib import Path

import structlog
import yaml
from pydantic import ValidationError

from history_ranker.config.schemas import RankingConfig


logger = structlog.get_logger()


class ConfigValidationError(Exception):
    """Raised when a ranking configuration file cannot be loaded or validated."""

    def __init__(self, errors: list[dict[str, str]], file_path: str) -> None:
        """Initialize the error.

        Args:
            errors: List of validation error details.
            file_path: Path to the file that failed validation.
        """
        self.errors = errors
        self.file_path = file_path
        super().__init__(f"Validation failed for {file_path}: {len(errors)} errors")


def _format_validation_errors(error: ValidationError) -> list[dict[str, str]]:
    return [
        {
            "loc": ".".join(str(loc) for loc in err["loc"]),
            "msg": err["msg"],
            "type": err["type"],
        }
        for err in error.errors()
    ]


def load_ranking_config(path: Path | str | None) -> RankingConfig:
    """Load and validate a YAML ranking configuration.

    A missing path yields the default configuration.

    Args:
        path: Path to the YAML file, or None for defaults.

    Returns:
        Validated RankingConfig.

    Raises:
        ConfigValidationError: If the file is missing, unparsable or invalid.
    """
    if path is None:
        return RankingConfig()

    file_path = Path(path)
    log = logger.bind(component="config", file_path=str(file_path))
    start = time.perf_counter()

    try:
        content = file_path.read_bytes()
    except FileNotFoundError as e:
        errors = [{"loc": "file", "msg": "File not found", "type": "file_not_found"}]
        log.error("config_file_not_found")
        raise ConfigValidationError(errors, str(file_path)) from e

    checksum = hashlib.sha256(content).hexdigest()

    try:
        data = yaml.safe_load(content.decode("utf-8")) or {}
    except yaml.YAMLError as e:
        errors = [{"loc": "file", "msg": str(e), "type": "yaml_error"}]
        log.error("config_yaml_invalid", error=str(e))
        raise ConfigValidationError(errors, str(file_path)) from e

    if not isinstance(data, dict):
        errors = [{"loc": "root", "msg": "Expected a mapping", "type": "type_error"}]
        log.error("config_root_not_mapping")
        raise ConfigValidationError(errors, str(file_path))

    try:
        config = RankingConfig.model_validate(data)
    except ValidationError as e:
        errors = _format_validation_errors(e)
        log.error(
            "config_validation_failed",
            validation_error_count=len(errors),
            errors=errors,
        )
        raise ConfigValidationError(errors, str(file_path)) from e

    log.info(
        "config_loaded",
        file_sha256=checksum,
        config_validation_duration_ms=round((time.perf_counter() - start) * 1000, 2),
    )
    return config
