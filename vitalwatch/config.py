"""
Configuration Management for the VitalWatch Alert Engine

Provides layered configuration (defaults, then a JSON or YAML file, then
environment variables) with validation and change notification for all
alerting thresholds and suppression settings.
"""

import os
import json
import logging
from dataclasses import dataclass, asdict, field, fields
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import yaml
from prometheus_client import CollectorRegistry, Counter

from .models.alerts import ConfigurationError


class ConfigSource(Enum):
    """Configuration sources in order of precedence."""
    ENVIRONMENT = "environment"
    FILE = "file"
    DEFAULT = "default"


class ConfigFormat(Enum):
    """Supported configuration file formats."""
    JSON = "json"
    YAML = "yaml"


class DedupKeyMode(Enum):
    """How the suppression key of an alert is built."""
    CONDITION = "condition"  # (patient_id, condition text)
    RULE = "rule"            # (patient_id, rule_id)


@dataclass
class ConfigValue:
    """Configuration value with metadata."""
    key: str
    value: Any
    source: ConfigSource
    last_updated: datetime
    description: Optional[str] = None


@dataclass
class AlertEngineConfig:
    """Complete alert engine configuration."""

    # Suppression
    suppression_window_ms: int = 5 * 60 * 1000
    dedup_key: str = DedupKeyMode.CONDITION.value

    # Blood pressure
    trend_delta: float = 10.0
    trend_window: int = 3
    bp_systolic_high: float = 180.0
    bp_systolic_low: float = 90.0
    bp_diastolic_high: float = 120.0
    bp_diastolic_low: float = 60.0

    # Oxygen saturation
    spo2_low: float = 92.0
    spo2_very_low: float = 88.0
    spo2_drop_threshold: float = 5.0
    spo2_drop_window_ms: int = 10 * 60 * 1000

    # ECG
    ecg_window: int = 10
    ecg_sigma: float = 3.0
    ecg_min_stddev: float = 0.05
    ecg_upper_bound: float = 2.0
    ecg_lower_bound: float = -1.0

    # Hypotensive hypoxemia
    hypoxemia_systolic: float = 90.0
    hypoxemia_spo2: float = 92.0
    hypoxemia_pairing_ms: int = 60 * 1000

    # Escalation
    escalation_keywords: List[str] = field(default_factory=lambda: ["critical", "urgent"])

    # Metrics
    metrics_enabled: bool = True

    @property
    def dedup_key_mode(self) -> DedupKeyMode:
        return DedupKeyMode(self.dedup_key)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'AlertEngineConfig':
        """Create from dictionary, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        return cls(**{key: value for key, value in data.items() if key in known})


class ConfigValidator:
    """Configuration validation with type checking and clinical consistency rules."""

    def __init__(self):
        self.logger = logging.getLogger(__name__)

        self.validation_rules = {
            'suppression_window_ms': {
                'type': int,
                'min': 0,
                'max': 24 * 60 * 60 * 1000,
                'description': 'Window during which a repeated alert is dropped'
            },
            'dedup_key': {
                'type': str,
                'allowed_values': [mode.value for mode in DedupKeyMode],
                'description': 'Suppression key structure'
            },
            'trend_delta': {
                'type': (int, float),
                'min': 0,
                'description': 'Minimum step between consecutive readings of a trend'
            },
            'trend_window': {
                'type': int,
                'min': 2,
                'max': 100,
                'description': 'Number of readings forming a trend'
            },
            'bp_systolic_high': {
                'type': (int, float),
                'description': 'Systolic pressure above which blood pressure is critical'
            },
            'bp_systolic_low': {
                'type': (int, float),
                'description': 'Systolic pressure below which blood pressure is critical'
            },
            'bp_diastolic_high': {
                'type': (int, float),
                'description': 'Diastolic pressure above which blood pressure is critical'
            },
            'bp_diastolic_low': {
                'type': (int, float),
                'description': 'Diastolic pressure below which blood pressure is critical'
            },
            'spo2_low': {
                'type': (int, float),
                'min': 0,
                'max': 100,
                'description': 'Saturation below which SpO2 is low'
            },
            'spo2_very_low': {
                'type': (int, float),
                'min': 0,
                'max': 100,
                'description': 'Saturation below which a low SpO2 alert is High priority'
            },
            'spo2_drop_window_ms': {
                'type': int,
                'min': 1,
                'description': 'Look-back window for rapid SpO2 drops'
            },
            'spo2_drop_threshold': {
                'type': (int, float),
                'min': 0,
                'description': 'Percentage points of SpO2 drop that trigger an alert'
            },
            'ecg_window': {
                'type': int,
                'min': 2,
                'max': 10000,
                'description': 'Number of ECG readings in the statistics window'
            },
            'ecg_sigma': {
                'type': (int, float),
                'min': 0,
                'description': 'Standard deviations from the mean for a relative peak'
            },
            'ecg_min_stddev': {
                'type': (int, float),
                'min': 0,
                'description': 'Standard deviation floor for the relative peak rule'
            },
            'ecg_upper_bound': {
                'type': (int, float),
                'description': 'ECG value above which a reading is abnormal'
            },
            'ecg_lower_bound': {
                'type': (int, float),
                'description': 'ECG value below which a reading is abnormal'
            },
            'hypoxemia_systolic': {
                'type': (int, float),
                'description': 'Systolic pressure below which hypotension is assumed'
            },
            'hypoxemia_spo2': {
                'type': (int, float),
                'min': 0,
                'max': 100,
                'description': 'Saturation below which hypoxemia is assumed'
            },
            'hypoxemia_pairing_ms': {
                'type': int,
                'min': 0,
                'description': 'Maximum gap between paired systolic and saturation readings'
            },
            'escalation_keywords': {
                'type': list,
                'description': 'Condition keywords that escalate an alert to Urgent'
            },
            'metrics_enabled': {
                'type': bool,
                'description': 'Export Prometheus metrics'
            }
        }

    def validate_config(self, config: AlertEngineConfig) -> List[str]:
        """
        Validate configuration against rules.

        Args:
            config: Configuration to validate

        Returns:
            List of validation errors (empty if valid)
        """
        errors = []
        config_dict = config.to_dict()

        for key, value in config_dict.items():
            if key in self.validation_rules:
                errors.extend(self._validate_field(key, value, self.validation_rules[key]))

        # threshold comparisons need well-typed fields
        if not errors:
            errors.extend(self._validate_business_rules(config))

        return errors

    def _validate_field(self, field_name: str, value: Any, rules: Dict[str, Any]) -> List[str]:
        """Validate individual field against rules."""
        errors = []

        expected_type = rules.get('type')
        # bool is an int subclass; only accept it where bool is expected
        if expected_type and (
            not isinstance(value, expected_type)
            or (isinstance(value, bool) and expected_type is not bool)
        ):
            type_name = getattr(expected_type, '__name__', None) or "/".join(t.__name__ for t in expected_type)
            errors.append(f"{field_name}: Expected {type_name}, got {type(value).__name__}")
            return errors

        if isinstance(value, (int, float)) and not isinstance(value, bool):
            min_val = rules.get('min')
            max_val = rules.get('max')

            if min_val is not None and value < min_val:
                errors.append(f"{field_name}: Value {value} below minimum {min_val}")

            if max_val is not None and value > max_val:
                errors.append(f"{field_name}: Value {value} above maximum {max_val}")

        allowed_values = rules.get('allowed_values')
        if allowed_values and value not in allowed_values:
            errors.append(f"{field_name}: Value '{value}' not in allowed values: {allowed_values}")

        return errors

    def _validate_business_rules(self, config: AlertEngineConfig) -> List[str]:
        """Validate threshold consistency."""
        errors = []

        if config.bp_systolic_low >= config.bp_systolic_high:
            errors.append("Systolic low threshold must be below systolic high threshold")

        if config.bp_diastolic_low >= config.bp_diastolic_high:
            errors.append("Diastolic low threshold must be below diastolic high threshold")

        if config.spo2_very_low > config.spo2_low:
            errors.append("Very low SpO2 threshold must not exceed low SpO2 threshold")

        if config.ecg_lower_bound >= config.ecg_upper_bound:
            errors.append("ECG lower bound must be below ECG upper bound")

        if not all(isinstance(keyword, str) and keyword for keyword in config.escalation_keywords):
            errors.append("Escalation keywords must be non-empty strings")

        return errors


class ConfigManager:
    """
    Configuration manager for the alert engine.

    Merges configuration sources with precedence ordering and notifies
    registered watchers when a reload changes the effective configuration.
    """

    def __init__(self, config_file_path: Optional[str] = None, env_prefix: str = "VITALWATCH_",
                 registry: Optional[CollectorRegistry] = None):
        self.logger = logging.getLogger(__name__)
        self.validator = ConfigValidator()

        self.config_values: Dict[str, ConfigValue] = {}
        self.current_config: Optional[AlertEngineConfig] = None
        self.config_file_path = config_file_path
        self.env_prefix = env_prefix
        self.config_watchers: List[Callable[[Optional[AlertEngineConfig], AlertEngineConfig], None]] = []

        self.registry = registry or CollectorRegistry()
        self.config_loads = Counter(
            'vitalwatch_config_loads_total',
            'Configuration loads',
            ['source', 'result'],
            registry=self.registry
        )
        self.config_errors = Counter(
            'vitalwatch_config_errors_total',
            'Configuration errors',
            ['error_type'],
            registry=self.registry
        )

        self.load()

    def load(self) -> AlertEngineConfig:
        """Load configuration from all sources."""
        try:
            self._load_default_config()

            if self.config_file_path:
                self._load_file_config(self.config_file_path)

            self._load_environment_config()

            config = self._build_current_config()
            self.logger.info("Configuration initialized successfully")
            return config

        except ConfigurationError:
            self.config_errors.labels(error_type='initialization').inc()
            raise

    def reload(self) -> AlertEngineConfig:
        """Re-read every source and notify watchers if the result changed."""
        return self.load()

    def add_watcher(self, watcher: Callable[[Optional[AlertEngineConfig], AlertEngineConfig], None]):
        self.config_watchers.append(watcher)

    def get_value_source(self, key: str) -> Optional[ConfigSource]:
        config_value = self.config_values.get(key)
        return config_value.source if config_value else None

    def _load_default_config(self):
        """Load default configuration values."""
        self.config_values = {}
        for key, value in AlertEngineConfig().to_dict().items():
            self.config_values[key] = ConfigValue(
                key=key,
                value=value,
                source=ConfigSource.DEFAULT,
                last_updated=datetime.now(timezone.utc),
                description=f"Default value for {key}"
            )

        self.config_loads.labels(source='default', result='success').inc()
        self.logger.debug("Default configuration loaded")

    def _load_file_config(self, file_path: str):
        """Load configuration from a JSON or YAML file."""
        path = Path(file_path)
        if not path.exists():
            self.config_loads.labels(source='file', result='missing').inc()
            self.logger.warning(f"Configuration file {file_path} does not exist")
            return

        if path.suffix.lower() == '.json':
            format_type = ConfigFormat.JSON
        elif path.suffix.lower() in ['.yml', '.yaml']:
            format_type = ConfigFormat.YAML
        else:
            self.config_loads.labels(source='file', result='error').inc()
            raise ConfigurationError(f"Unsupported configuration file format: {path.suffix}")

        try:
            with open(path, 'r') as f:
                if format_type == ConfigFormat.JSON:
                    file_config = json.load(f)
                else:
                    file_config = yaml.safe_load(f)
        except (OSError, ValueError, yaml.YAMLError) as e:
            self.config_loads.labels(source='file', result='error').inc()
            self.logger.error(f"Failed to load configuration from file {file_path}: {str(e)}")
            raise ConfigurationError(f"Cannot read configuration file {file_path}: {str(e)}") from e

        if file_config is None:
            file_config = {}
        if not isinstance(file_config, dict):
            self.config_loads.labels(source='file', result='error').inc()
            raise ConfigurationError(f"Configuration file {file_path} must contain a mapping")

        for key, value in file_config.items():
            if key not in self.config_values:
                self.logger.warning(f"Ignoring unknown configuration key '{key}' in {file_path}")
                continue
            self.config_values[key] = ConfigValue(
                key=key,
                value=value,
                source=ConfigSource.FILE,
                last_updated=datetime.now(timezone.utc),
                description=f"Value from file {file_path}"
            )

        self.config_loads.labels(source='file', result='success').inc()
        self.logger.info(f"Configuration loaded from file: {file_path}")

    def _load_environment_config(self):
        """Load configuration from environment variables."""
        defaults = AlertEngineConfig().to_dict()
        for key in self.config_values:
            env_var = f"{self.env_prefix}{key.upper()}"
            env_value = os.getenv(env_var)

            if env_value is not None:
                try:
                    parsed_value = self._parse_env_value(env_value, type(defaults[key]))
                except ValueError as e:
                    self.config_loads.labels(source='environment', result='error').inc()
                    raise ConfigurationError(f"Invalid value for {env_var}: {env_value!r}") from e

                self.config_values[key] = ConfigValue(
                    key=key,
                    value=parsed_value,
                    source=ConfigSource.ENVIRONMENT,
                    last_updated=datetime.now(timezone.utc),
                    description=f"Value from environment variable {env_var}"
                )

        self.config_loads.labels(source='environment', result='success').inc()
        self.logger.debug("Environment configuration loaded")

    def _parse_env_value(self, env_value: str, target_type: type) -> Any:
        """Parse environment variable value to target type."""
        if target_type == bool:
            return env_value.lower() in ('true', '1', 'yes', 'on')
        elif target_type == int:
            return int(env_value)
        elif target_type == float:
            return float(env_value)
        elif target_type == list:
            return [item.strip() for item in env_value.split(',') if item.strip()]
        else:
            return env_value

    def _build_current_config(self) -> AlertEngineConfig:
        """Build and validate the effective configuration."""
        config_dict = {key: config_value.value for key, config_value in self.config_values.items()}
        new_config = AlertEngineConfig.from_dict(config_dict)

        validation_errors = self.validator.validate_config(new_config)
        if validation_errors:
            self.config_errors.labels(error_type='validation').inc()
            self.logger.error(f"Configuration validation failed: {validation_errors}")
            raise ConfigurationError(f"Configuration validation errors: {validation_errors}")

        old_config = self.current_config
        self.current_config = new_config

        if old_config is not None and old_config != new_config:
            self._notify_config_watchers(old_config, new_config)

        return new_config

    def _notify_config_watchers(self, old_config: AlertEngineConfig, new_config: AlertEngineConfig):
        """Notify registered watchers of configuration changes."""
        for watcher in self.config_watchers:
            try:
                watcher(old_config, new_config)
            except Exception as e:
                self.logger.error(f"Error in configuration watcher: {str(e)}")
