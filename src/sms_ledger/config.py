"""Configuration loading and validation for the SMS ledger."""

from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path
from typing import Optional

import yaml

from sms_ledger.models.mapping import MappingRule
from sms_ledger.parsers.locator import DEFAULT_FILE_PATTERN
from sms_ledger.parsers.xml_backup import DEFAULT_MAX_FILE_SIZE
from sms_ledger.processing.mapper import DEFAULT_MANUAL_ID_PREFIX
from sms_ledger.processing.rules import DEFAULT_RULES, ClassifierRules
from sms_ledger.utils.logging_config import DEFAULT_LOG_FILE, get_logger

logger = get_logger(__name__)

DEFAULT_CONFIG_DIR = Path("config")


class ConfigError(Exception):
    """Exception raised for configuration errors."""

    pass


@dataclass
class MergeConfig:
    """Configuration for duplicate merging.

    Attributes:
        window_minutes: Maximum arrival gap between duplicate notifications.
    """

    window_minutes: int = 10

    @property
    def window(self) -> timedelta:
        """Merge window as a timedelta."""
        return timedelta(minutes=self.window_minutes)

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> "MergeConfig":
        """Create from dictionary."""
        window = int(data.get("window_minutes", 10))  # type: ignore[arg-type]
        if window < 0:
            raise ValueError(f"merge.window_minutes must not be negative, got {window}")
        return cls(window_minutes=window)


@dataclass
class RemapConfig:
    """Configuration for remapping stored transactions.

    Attributes:
        manual_id_prefix: smsId prefix of hand-entered transactions.
    """

    manual_id_prefix: str = DEFAULT_MANUAL_ID_PREFIX

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> "RemapConfig":
        """Create from dictionary."""
        return cls(manual_id_prefix=str(data.get("manual_id_prefix") or DEFAULT_MANUAL_ID_PREFIX))


@dataclass
class BackupConfig:
    """Configuration for backup discovery.

    Attributes:
        file_pattern: Glob pattern of backup file names.
        max_file_mb: Largest accepted backup, in megabytes.
    """

    file_pattern: str = DEFAULT_FILE_PATTERN
    max_file_mb: int = DEFAULT_MAX_FILE_SIZE // (1024 * 1024)

    @property
    def max_file_size(self) -> int:
        """Largest accepted backup, in bytes."""
        return self.max_file_mb * 1024 * 1024

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> "BackupConfig":
        """Create from dictionary."""
        max_mb = int(data.get("max_file_mb", DEFAULT_MAX_FILE_SIZE // (1024 * 1024)))  # type: ignore[arg-type]
        if max_mb <= 0:
            raise ValueError(f"backup.max_file_mb must be positive, got {max_mb}")
        return cls(
            file_pattern=str(data.get("file_pattern") or DEFAULT_FILE_PATTERN),
            max_file_mb=max_mb,
        )


@dataclass
class LoggingConfig:
    """Configuration for logging.

    Attributes:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        file: Path to log file; empty disables file logging.
    """

    level: str = "INFO"
    file: str = DEFAULT_LOG_FILE

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> "LoggingConfig":
        """Create from dictionary."""
        log_file = data.get("file", DEFAULT_LOG_FILE)
        return cls(
            level=str(data.get("level", "INFO")).upper(),
            file="" if log_file is None else str(log_file),
        )


@dataclass
class Config:
    """Main configuration container.

    Attributes:
        classifier: Compiled classifier tables.
        merge: Merge configuration.
        remap: Remap configuration.
        backup: Backup discovery configuration.
        logging: Logging configuration.
        mappings: User mapping rules, in priority order.
    """

    classifier: ClassifierRules = DEFAULT_RULES
    merge: MergeConfig = field(default_factory=MergeConfig)
    remap: RemapConfig = field(default_factory=RemapConfig)
    backup: BackupConfig = field(default_factory=BackupConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    mappings: list[MappingRule] = field(default_factory=list)

    def get_mapping(self, name: str) -> Optional[MappingRule]:
        """Find a mapping rule by name (case-insensitive).

        Args:
            name: Mapping name to look up.

        Returns:
            MappingRule if found, None otherwise.
        """
        wanted = name.strip().lower()
        for rule in self.mappings:
            if rule.mapping_name.lower() == wanted:
                return rule
        return None


def load_yaml_file(path: Path) -> dict[str, object]:
    """Load a YAML file.

    Args:
        path: Path to the YAML file.

    Returns:
        Parsed YAML content.

    Raises:
        FileNotFoundError: If file doesn't exist.
        ConfigError: If file is invalid YAML or not a mapping.
    """
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    try:
        with open(path, encoding="utf-8") as f:
            content = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if not content:
        return {}
    if not isinstance(content, dict):
        raise ConfigError(f"{path} must contain a mapping, got {type(content).__name__}")
    return content


def _section(data: dict[str, object], key: str) -> dict[str, object]:
    value = data.get(key)
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigError(f"'{key}' must be a mapping, got {type(value).__name__}")
    return value


def load_settings(path: Path) -> Config:
    """Load settings from settings.yaml.

    Args:
        path: Path to settings.yaml.

    Returns:
        Config with every settings section filled in (no mappings).

    Raises:
        ConfigError: If a section is invalid.
    """
    data = load_yaml_file(path)

    try:
        config = Config(
            merge=MergeConfig.from_dict(_section(data, "merge")),
            remap=RemapConfig.from_dict(_section(data, "remap")),
            backup=BackupConfig.from_dict(_section(data, "backup")),
            logging=LoggingConfig.from_dict(_section(data, "logging")),
        )
        if "classifier" in data:
            config.classifier = ClassifierRules.from_dict(_section(data, "classifier"))
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid settings in {path}: {e}") from e

    return config


def load_mappings(path: Path) -> list[MappingRule]:
    """Load mapping rules from mappings.yaml.

    Args:
        path: Path to mappings.yaml.

    Returns:
        Mapping rules in file order (first match wins).

    Raises:
        ConfigError: If the file or a rule is invalid.
    """
    if not path.exists():
        return []

    data = load_yaml_file(path)

    rules: list[MappingRule] = []
    if "mappings" in data and data["mappings"] is not None:
        rule_list = data["mappings"]
        if not isinstance(rule_list, list):
            raise ConfigError(f"'mappings' must be a list, got {type(rule_list).__name__}")
        for index, rule_data in enumerate(rule_list):
            if not isinstance(rule_data, dict):
                raise ConfigError(f"Mapping {index} in {path} must be a mapping")
            try:
                rules.append(MappingRule.from_dict(rule_data))
            except ValueError as e:
                raise ConfigError(f"Invalid mapping {index} in {path}: {e}") from e

    names = [rule.mapping_name.lower() for rule in rules]
    duplicates = sorted({name for name in names if names.count(name) > 1})
    if duplicates:
        logger.warning(f"Duplicate mapping names in {path}: {', '.join(duplicates)}")

    return rules


def load_config(
    settings_path: Optional[Path] = None,
    mappings_path: Optional[Path] = None,
    config_dir: Optional[Path] = None,
) -> Config:
    """Load complete configuration from all config files.

    Args:
        settings_path: Path to settings.yaml (or None to use default).
        mappings_path: Path to mappings.yaml (or None to use default).
        config_dir: Base config directory (default: ./config).

    Returns:
        Complete Config object.

    Raises:
        ConfigError: If a config file is invalid.
    """
    if config_dir is None:
        config_dir = DEFAULT_CONFIG_DIR

    # Set default paths
    if settings_path is None:
        settings_path = config_dir / "settings.yaml"
    if mappings_path is None:
        mappings_path = config_dir / "mappings.yaml"

    # Load settings (optional - use defaults if missing)
    if settings_path.exists():
        config = load_settings(settings_path)
        logger.info(f"Loaded settings from {settings_path}")
    else:
        config = Config()
        logger.warning(f"Settings file not found: {settings_path}, using defaults")

    # Load mappings (optional - none defined yet on first run)
    config.mappings = load_mappings(mappings_path)
    if config.mappings:
        logger.info(f"Loaded {len(config.mappings)} mapping rules from {mappings_path}")
    else:
        logger.info(f"No mapping rules in {mappings_path}")

    return config


def save_mappings(path: Path, rules: list[MappingRule]) -> None:
    """Save mapping rules to mappings.yaml, preserving their order.

    Args:
        path: Path to save mappings.yaml.
        rules: Mapping rules in priority order.
    """
    data: dict[str, object] = {"mappings": [rule.to_dict() for rule in rules]}

    # Ensure parent directory exists
    path.parent.mkdir(parents=True, exist_ok=True)

    with open(path, "w", encoding="utf-8") as f:
        yaml.dump(data, f, default_flow_style=False, sort_keys=False, allow_unicode=True)

    logger.info(f"Saved {len(rules)} mapping rules to {path}")
