"""
Startup Validation

Fail fast on missing critical settings before serving requests:
1. Required configuration (session secret, database URL)
2. Database connectivity
3. Optional collaborators (attachment blob store)
"""

import logging
import os
import sys
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from flask import Flask
from sqlalchemy import text

from models import db
from models.base import utcnow

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
    timestamp: str = field(default_factory=lambda: utcnow().isoformat())
    environment: str = "development"
    validations: List[ValidationResult] = field(default_factory=list)
    ready: bool = False

    def add_validation(self, result: ValidationResult):
        self.validations.append(result)

    def has_critical_failures(self) -> bool:
        return any(v.severity == "error" and not v.passed for v in self.validations)

    def failures(self) -> List[ValidationResult]:
        return [v for v in self.validations if not v.passed]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "environment": self.environment,
            "ready": self.ready,
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
    Validates a configured app.

    Checks read app.config rather than the process environment, so the same
    validator covers test apps built with explicit configuration.
    """

    REQUIRED_SETTINGS = [
        ("SECRET_KEY", "SESSION_SECRET", "Session signing key"),
        ("SQLALCHEMY_DATABASE_URI", "DATABASE_URL", "Database connection string"),
    ]

    MIN_SECRET_LENGTH = 32

    def __init__(self, app: Flask):
        self.app = app
        self.report = StartupReport(environment=os.getenv("FLASK_ENV", "development"))

    def is_production(self) -> bool:
        return self.report.environment == "production"

    def validate_required_settings(self) -> None:
        for config_key, env_var, description in self.REQUIRED_SETTINGS:
            if self.app.config.get(config_key):
                self.report.add_validation(ValidationResult(
                    name=f"config:{env_var}",
                    passed=True,
                    message=f"{env_var} is configured",
                ))
            else:
                self.report.add_validation(ValidationResult(
                    name=f"config:{env_var}",
                    passed=False,
                    message=f"Missing required: {env_var}",
                    remediation=f"Set {env_var} environment variable. {description}"
                ))

    def validate_secret_key_strength(self) -> None:
        secret = self.app.config.get("SECRET_KEY") or ""
        if not secret or len(secret) >= self.MIN_SECRET_LENGTH:
            return

        # Short keys only block production; locally they are a warning
        self.report.add_validation(ValidationResult(
            name="security:session_secret",
            passed=not self.is_production(),
            message=f"SESSION_SECRET too short ({len(secret)} chars, need {self.MIN_SECRET_LENGTH}+)",
            severity="error" if self.is_production() else "warning",
            remediation=f"Use at least {self.MIN_SECRET_LENGTH} characters for SESSION_SECRET"
        ))

    def validate_database_connection(self) -> None:
        try:
            with self.app.app_context():
                db.session.execute(text("SELECT 1"))
                db.session.rollback()
            self.report.add_validation(ValidationResult(
                name="db:connection",
                passed=True,
                message="Database connection successful",
            ))
        except Exception as e:
            self.report.add_validation(ValidationResult(
                name="db:connection",
                passed=False,
                message=f"Database connection failed: {str(e)[:100]}",
                remediation="Check DATABASE_URL and ensure the database is reachable"
            ))

    def validate_blob_store(self) -> None:
        configured = self.app.extensions.get('blob_store') is not None
        self.report.add_validation(ValidationResult(
            name="attachments:blob_store",
            passed=True,
            message="Blob store registered" if configured else "Blob store not registered - attachments disabled",
            severity="info" if configured else "warning",
        ))

    def run_all_validations(self) -> StartupReport:
        logger.info(f"[STARTUP] Validating configuration (environment={self.report.environment})")

        self.validate_required_settings()
        self.validate_secret_key_strength()
        self.validate_database_connection()
        self.validate_blob_store()

        self.report.ready = not self.report.has_critical_failures()

        summary = self.report.to_dict()["summary"]
        logger.info(f"[STARTUP] Validations: {summary['passed']}/{summary['total_validations']} passed")
        for v in self.report.failures():
            logger.error(f"[STARTUP]   - {v.name}: {v.message}")
            if v.remediation:
                logger.error(f"[STARTUP]     Fix: {v.remediation}")

        return self.report

    def fail_if_not_ready(self) -> None:
        """
        Exit in production when a critical check failed.
        In development, log and continue.
        """
        if self.report.ready:
            return
        if self.is_production():
            logger.critical("Application cannot start - critical configuration missing")
            sys.exit(1)
        logger.warning("Development mode: continuing despite validation failures")


def run_startup_validation(app: Flask) -> StartupReport:
    """Validate `app` and exit if it is not fit to serve in production."""
    validator = StartupValidator(app)
    report = validator.run_all_validations()
    validator.fail_if_not_ready()
    return report
