"""
Startup Validation Module

Fail-fast checks run by the application factory before serving requests:
1. Configuration validation - database URL, session secret
2. Ordering engine settings - gap and rebalance threshold must be usable
3. Structured startup logging for observability

In development, failures are logged and startup continues. In production,
any critical failure stops the process.
"""

import os
import sys
import logging
from typing import Any, Dict, List, Mapping, Optional
from dataclasses import dataclass, field
from datetime import datetime, timezone

logger = logging.getLogger(__name__)


@dataclass
class ValidationResult:
    """Result of a validation check."""
    name: str
    passed: bool
    message: str
    severity: str = "error"  # error, warning, info
    remediation: Optional[str] = None


@dataclass
class StartupReport:
    """Startup validation report, exposed by /health/startup."""
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    environment: str = "unknown"
    validations: List[ValidationResult] = field(default_factory=list)
    ready_for_production: bool = False

    def add_validation(self, result: ValidationResult):
        self.validations.append(result)

    def has_critical_failures(self) -> bool:
        return any(v.severity == "error" and not v.passed for v in self.validations)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "environment": self.environment,
            "ready_for_production": self.ready_for_production,
            "validations": [
                {
                    "name": v.name,
                    "passed": v.passed,
                    "message": v.message,
                    "severity": v.severity,
                    "remediation": v.remediation
                }
                for v in self.validations
            ],
            "summary": {
                "total_validations": len(self.validations),
                "passed": sum(1 for v in self.validations if v.passed),
                "failed": sum(1 for v in self.validations if not v.passed),
            }
        }


class StartupValidator:
    """
    Validates the Flask config the application factory produced.

    Checks:
    1. Database URL is configured
    2. Session secret is set and long enough (strict in production)
    3. KANBAN_POSITION_GAP / KANBAN_REBALANCE_THRESHOLD are positive integers
       and leave room for at least one midpoint insert after a rebalance
    """

    MIN_SECRET_LENGTH = 32

    def __init__(self, config: Mapping[str, Any], environment: Optional[str] = None):
        self.config = config
        self.report = StartupReport()
        self.report.environment = environment or os.getenv("FLASK_ENV", "development")

    def is_production(self) -> bool:
        return self.report.environment == "production"

    def validate_database_url(self) -> None:
        if self.config.get("SQLALCHEMY_DATABASE_URI"):
            self.report.add_validation(ValidationResult(
                name="db:url",
                passed=True,
                message="Database URL is configured"
            ))
        else:
            self.report.add_validation(ValidationResult(
                name="db:url",
                passed=False,
                message="Missing required: DATABASE_URL",
                remediation="Set DATABASE_URL to a PostgreSQL (or SQLite) connection string"
            ))

    def validate_secret_key_strength(self) -> None:
        """Validate session secret key meets security requirements."""
        secret = self.config.get("SECRET_KEY") or ""

        if not secret:
            self.report.add_validation(ValidationResult(
                name="security:session_secret",
                passed=not self.is_production(),
                message="SESSION_SECRET not set",
                severity="error" if self.is_production() else "warning",
                remediation="Generate a strong random key: python -c 'import secrets; print(secrets.token_hex(32))'"
            ))
            return

        if len(secret) < self.MIN_SECRET_LENGTH:
            self.report.add_validation(ValidationResult(
                name="security:session_secret",
                passed=not self.is_production(),
                message=f"SESSION_SECRET too short ({len(secret)} chars, need {self.MIN_SECRET_LENGTH}+)",
                severity="error" if self.is_production() else "warning",
                remediation=f"Use at least {self.MIN_SECRET_LENGTH} characters for SESSION_SECRET"
            ))
        else:
            self.report.add_validation(ValidationResult(
                name="security:session_secret",
                passed=True,
                message="SESSION_SECRET meets length requirements"
            ))

    def _positive_int(self, key: str) -> Optional[int]:
        value = self.config.get(key)
        if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
            self.report.add_validation(ValidationResult(
                name=f"ordering:{key.lower()}",
                passed=False,
                message=f"{key} must be a positive integer (got {value!r})",
                remediation=f"Set {key} to a positive integer or unset it to use the default"
            ))
            return None
        self.report.add_validation(ValidationResult(
            name=f"ordering:{key.lower()}",
            passed=True,
            message=f"{key} = {value}"
        ))
        return value

    def validate_ordering_settings(self) -> None:
        gap = self._positive_int("KANBAN_POSITION_GAP")
        threshold = self._positive_int("KANBAN_REBALANCE_THRESHOLD")
        if gap is None or threshold is None:
            return

        # A freshly rebalanced column must survive at least one midpoint insert
        if gap < 2 * threshold:
            self.report.add_validation(ValidationResult(
                name="ordering:spacing",
                passed=False,
                message=f"KANBAN_POSITION_GAP ({gap}) must be at least twice "
                        f"KANBAN_REBALANCE_THRESHOLD ({threshold})",
                remediation="Increase the gap or lower the threshold"
            ))
        else:
            self.report.add_validation(ValidationResult(
                name="ordering:spacing",
                passed=True,
                message=f"~{(gap // threshold).bit_length() - 1} midpoint inserts between neighbours before rebalance",
                severity="info"
            ))

    def run_all_validations(self) -> StartupReport:
        """Run all validation checks and return the report."""
        logger.info("=" * 60)
        logger.info("STARTUP VALIDATION")
        logger.info(f"Environment: {self.report.environment}")

        self.validate_database_url()
        self.validate_secret_key_strength()
        self.validate_ordering_settings()

        self.report.ready_for_production = not self.report.has_critical_failures()

        summary = self.report.to_dict()["summary"]
        logger.info(f"Validations: {summary['passed']}/{summary['total_validations']} passed")

        if self.report.ready_for_production:
            logger.info("✅ Configuration valid")
        else:
            logger.error("❌ Configuration invalid")
            for v in self.report.validations:
                if not v.passed and v.severity == "error":
                    logger.error(f"  - {v.name}: {v.message}")
                    if v.remediation:
                        logger.error(f"    Fix: {v.remediation}")

        logger.info("=" * 60)
        return self.report

    def fail_if_not_ready(self) -> None:
        """
        Fail fast if critical validations fail in production.
        In development, log a warning and continue.
        """
        if not self.report.ready_for_production:
            if self.is_production():
                logger.critical("Application cannot start - critical configuration missing")
                sys.exit(1)
            else:
                logger.warning("Development mode: continuing despite validation failures")


def run_startup_validation(config: Mapping[str, Any], environment: Optional[str] = None) -> StartupReport:
    """Validate ``config`` and stop the process in production if it is unusable."""
    validator = StartupValidator(config, environment=environment)
    report = validator.run_all_validations()
    validator.fail_if_not_ready()
    return report
