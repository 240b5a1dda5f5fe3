"""Configuration management for damage triage."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv

from .errors import ConfigurationError


@dataclass(frozen=True)
class RatesConfig:
    """Unit costs used by the estimator."""
    labor_rate: float = 95.0
    paint_cost: float = 180.0


@dataclass(frozen=True)
class RoutingThresholds:
    """Routing thresholds for the decision engine."""
    auto_max_severity: int = 2
    auto_max_cost: float = 1500.0
    auto_min_confidence: float = 0.75
    specialist_min_severity: int = 4
    specialist_min_cost: float = 5000.0

    def validate(self) -> "RoutingThresholds":
        """
        Check that the auto-approve and specialist bands do not overlap.

        Returns:
            self, so the call can be chained

        Raises:
            ConfigurationError: If the thresholds are inconsistent
        """
        if not 0.0 <= self.auto_min_confidence <= 1.0:
            raise ConfigurationError.invalid(
                f"auto_min_confidence must be within [0, 1], got {self.auto_min_confidence}",
                auto_min_confidence=self.auto_min_confidence,
            )
        if self.auto_max_severity >= self.specialist_min_severity:
            raise ConfigurationError.invalid(
                "auto_max_severity must be below specialist_min_severity "
                f"({self.auto_max_severity} >= {self.specialist_min_severity})",
                auto_max_severity=self.auto_max_severity,
                specialist_min_severity=self.specialist_min_severity,
            )
        if self.auto_max_cost >= self.specialist_min_cost:
            raise ConfigurationError.invalid(
                "auto_max_cost must be below specialist_min_cost "
                f"({self.auto_max_cost} >= {self.specialist_min_cost})",
                auto_max_cost=self.auto_max_cost,
                specialist_min_cost=self.specialist_min_cost,
            )
        return self


@dataclass(frozen=True)
class BedrockConfig:
    """AWS Bedrock configuration."""
    region: str = "us-east-1"
    model_id: str = "amazon.nova-pro-v1:0"
    timeout: int = 120
    max_retries: int = 3


@dataclass(frozen=True)
class DetectorConfig:
    """Optional object detector used to seed damage geometry."""
    url: str = ""
    api_key: str = ""
    timeout: float = 15.0

    @property
    def enabled(self) -> bool:
        return bool(self.url and self.api_key)


@dataclass(frozen=True)
class LoggingConfig:
    """Logging configuration."""
    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    file: Optional[str] = None


@dataclass(frozen=True)
class Config:
    """Main configuration class."""
    rates: RatesConfig = field(default_factory=RatesConfig)
    thresholds: RoutingThresholds = field(default_factory=RoutingThresholds)
    bedrock: BedrockConfig = field(default_factory=BedrockConfig)
    detector: DetectorConfig = field(default_factory=DetectorConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    mock_mode: bool = False

    @classmethod
    def load(cls, config_path: str = "config.yaml") -> "Config":
        """
        Load configuration from file and environment variables.

        Environment variables override config file values:
        - LABOR_RATE, PAINT_MAT_COST
        - AUTO_MAX_SEVERITY, AUTO_MAX_COST, AUTO_MIN_CONF
        - SPECIALIST_MIN_SEVERITY, SPECIALIST_MIN_COST
        - AWS_REGION, BEDROCK_MODEL_ID
        - YOLO_API_URL, YOLO_API_KEY
        - LOG_LEVEL, MOCK_API

        A missing config file falls back to built-in defaults.

        Args:
            config_path: Path to YAML configuration file

        Returns:
            Config instance with loaded settings

        Raises:
            ConfigurationError: If a value is non-numeric or the routing
                thresholds are inconsistent
        """
        load_dotenv()

        config_data: Dict[str, Any] = {}
        path = Path(config_path)
        if path.exists():
            with open(path, 'r') as f:
                config_data = yaml.safe_load(f) or {}

        rates_data = config_data.get("rates", {}) or {}
        defaults = RatesConfig()
        rates = RatesConfig(
            labor_rate=_number("LABOR_RATE", rates_data.get("labor_rate", defaults.labor_rate)),
            paint_cost=_number("PAINT_MAT_COST", rates_data.get("paint_cost", defaults.paint_cost)),
        )

        routing = config_data.get("routing", {}) or {}
        base = RoutingThresholds()
        thresholds = RoutingThresholds(
            auto_max_severity=int(_number(
                "AUTO_MAX_SEVERITY", routing.get("auto_max_severity", base.auto_max_severity))),
            auto_max_cost=_number("AUTO_MAX_COST", routing.get("auto_max_cost", base.auto_max_cost)),
            auto_min_confidence=_number(
                "AUTO_MIN_CONF", routing.get("auto_min_confidence", base.auto_min_confidence)),
            specialist_min_severity=int(_number(
                "SPECIALIST_MIN_SEVERITY",
                routing.get("specialist_min_severity", base.specialist_min_severity))),
            specialist_min_cost=_number(
                "SPECIALIST_MIN_COST", routing.get("specialist_min_cost", base.specialist_min_cost)),
        ).validate()

        bedrock_data = (config_data.get("aws", {}) or {}).get("bedrock", {}) or {}
        bedrock_defaults = BedrockConfig()
        bedrock = BedrockConfig(
            region=os.getenv("AWS_REGION", (config_data.get("aws", {}) or {}).get("region", bedrock_defaults.region)),
            model_id=os.getenv("BEDROCK_MODEL_ID", bedrock_data.get("model_id", bedrock_defaults.model_id)).strip(),
            timeout=int(bedrock_data.get("timeout", bedrock_defaults.timeout)),
            max_retries=int(bedrock_data.get("max_retries", bedrock_defaults.max_retries)),
        )

        detector_data = config_data.get("detector", {}) or {}
        detector = DetectorConfig(
            url=os.getenv("YOLO_API_URL", detector_data.get("url", "")).strip(),
            api_key=os.getenv("YOLO_API_KEY", detector_data.get("api_key", "")).strip(),
            timeout=float(detector_data.get("timeout", DetectorConfig.timeout)),
        )

        logging_data = config_data.get("logging", {}) or {}
        logging_defaults = LoggingConfig()
        logging_config = LoggingConfig(
            level=os.getenv("LOG_LEVEL", logging_data.get("level", logging_defaults.level)),
            format=logging_data.get("format", logging_defaults.format),
            file=logging_data.get("file"),
        )

        mock_mode = os.getenv("MOCK_API", "1" if config_data.get("mock_mode") else "0") == "1"

        return cls(
            rates=rates,
            thresholds=thresholds,
            bedrock=bedrock,
            detector=detector,
            logging=logging_config,
            mock_mode=mock_mode,
        )


def _number(env_name: str, fallback: Any) -> float:
    """Read a numeric setting, letting the environment override the file value."""
    raw = os.getenv(env_name)
    value = fallback if raw is None or raw.strip() == "" else raw
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ConfigurationError.invalid(
            f"{env_name} must be numeric, got {value!r}",
            setting=env_name,
        )
