"""
Session Validation

Two kinds of checks run here:

READING VALIDATION (before a session exists):
- Readings are finite, non-negative numbers
- The new reading is strictly above the previous one

SESSION INTEGRITY (before any stored session is changed):
- Has an id and a timestamp
- new_reading > previous_reading
- kwh_used > 0 and cost > 0

IMPORTANT: Validation NEVER silently fixes issues.
It reports them, and the caller refuses the operation.
"""

import math
from typing import Optional

from zapntap.models.session import ChargingSession, ValidationIssue, ValidationResult


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


class SessionValidator:
    """Validates readings, rates and stored sessions."""

    def validate_readings(
        self,
        previous_reading: float,
        new_reading: float,
    ) -> ValidationResult:
        """Check that a reading pair can produce a session."""
        issues = []

        for field, value in (("previous_reading", previous_reading), ("new_reading", new_reading)):
            if not _is_number(value):
                issues.append(ValidationIssue(
                    field=field,
                    issue_type="invalid_value",
                    message="Please enter a valid number",
                    severity="error",
                ))
            elif value < 0:
                issues.append(ValidationIssue(
                    field=field,
                    issue_type="invalid_value",
                    message="Meter readings cannot be negative",
                    severity="error",
                ))

        if not issues and new_reading <= previous_reading:
            issues.append(ValidationIssue(
                field="new_reading",
                issue_type="inconsistent",
                message="New reading must be greater than previous reading",
                severity="error",
                suggested_fix=f"Enter a reading above {previous_reading:g}",
            ))

        return ValidationResult(issues=issues)

    def validate_rate(self, rate: float) -> ValidationResult:
        """Check an electricity rate."""
        issues = []
        if not _is_number(rate):
            issues.append(ValidationIssue(
                field="electricity_rate",
                issue_type="invalid_value",
                message="Please enter a valid number",
                severity="error",
            ))
        elif rate <= 0:
            issues.append(ValidationIssue(
                field="electricity_rate",
                issue_type="invalid_value",
                message="Rate must be greater than 0",
                severity="error",
            ))
        return ValidationResult(issues=issues)

    def validate_session(self, session: ChargingSession) -> ValidationResult:
        """Check the structural invariants of a stored session."""
        issues = []

        if session.id is None or not str(session.id):
            issues.append(ValidationIssue(
                field="id",
                issue_type="missing",
                message="Session has no identifier",
                severity="error",
            ))

        if session.timestamp is None:
            issues.append(ValidationIssue(
                field="timestamp",
                issue_type="missing",
                message="Session has no timestamp",
                severity="error",
            ))

        if not session.new_reading > session.previous_reading:
            issues.append(ValidationIssue(
                field="new_reading",
                issue_type="inconsistent",
                message="New reading is not above the previous reading",
                severity="error",
            ))

        if not session.kwh_used > 0:
            issues.append(ValidationIssue(
                field="kwh_used",
                issue_type="invalid_value",
                message="Energy used must be greater than zero",
                severity="error",
            ))

        if not session.cost > 0:
            issues.append(ValidationIssue(
                field="cost",
                issue_type="invalid_value",
                message="Cost must be greater than zero",
                severity="error",
            ))

        return ValidationResult(entity_id=session.id, issues=issues)

    def get_user_friendly_summary(
        self,
        result: ValidationResult,
        title: Optional[str] = None,
    ) -> str:
        """
        Generate a user-friendly summary of validation results.
        """
        if result.is_valid and not result.warnings:
            return "✅ All checks passed."

        lines = []
        if result.has_errors:
            lines.append(title or "❌ This can't be saved:")
            for issue in result.issues:
                if issue.severity == "error":
                    lines.append(f"   • {issue.message}")
                    if issue.suggested_fix:
                        lines.append(f"     💡 {issue.suggested_fix}")

        if result.warnings:
            if lines:
                lines.append("")
            lines.append("⚠️ Please verify the following:")
            for warning in result.warnings:
                lines.append(f"   • {warning}")

        return "\n".join(lines)
