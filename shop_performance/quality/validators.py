"""
Report Quality Checks

Rule-based checks over normalized report frames. Uploads are never rejected
for bad values (they are already coerced to 0 by the normalizer), but the
checks make suspicious data visible before it reaches the dashboard.

Checks:
- key columns present and not null
- one row per (shop_id, report_date)
- money columns non-negative
- cancellations + returns not larger than gross revenue
- breakthrough goal not below the feasible goal
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence

import polars as pl
import structlog

logger = structlog.get_logger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class ValidationSeverity(str, Enum):
    """Severity levels for check failures"""
    ERROR = "error"  # key integrity broken
    WARNING = "warning"  # suspicious values, data still usable
    INFO = "info"


class ValidationStatus(str, Enum):
    PASSED = "passed"
    FAILED = "failed"
    PARTIAL = "partial"


@dataclass
class ValidationCheck:
    """Single check outcome"""
    name: str
    passed: bool
    severity: ValidationSeverity
    message: str
    details: Optional[Dict[str, Any]] = None
    failed_rows: int = 0
    total_rows: int = 0


@dataclass
class ValidationResult:
    """Outcome of a whole check suite"""
    status: ValidationStatus
    total_checks: int
    passed_checks: int
    failed_checks: int
    warning_count: int
    checks: List[ValidationCheck] = field(default_factory=list)
    started_at: datetime = field(default_factory=_now)
    completed_at: Optional[datetime] = None

    @property
    def success_rate(self) -> float:
        if self.total_checks == 0:
            return 100.0
        return (self.passed_checks / self.total_checks) * 100

    def failures(self) -> List[ValidationCheck]:
        return [c for c in self.checks if not c.passed]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "passed": self.passed_checks,
            "failed": self.failed_checks,
            "warnings": self.warning_count,
            "failures": [
                {"name": c.name, "severity": c.severity.value, "message": c.message}
                for c in self.failures()
            ],
        }


def _missing(name: str, columns: Sequence[str], severity: ValidationSeverity) -> ValidationCheck:
    return ValidationCheck(
        name=name,
        passed=False,
        severity=severity,
        message=f"Column(s) not found: {', '.join(columns)}",
    )


class DataValidator:
    """
    Fluent check suite over a polars DataFrame.

    Example:
        validator = (
            DataValidator()
            .add_not_null_check("shop_id")
            .add_unique_check(["shop_id", "report_date"])
        )
        result = validator.validate(df)
    """

    def __init__(self, strict_mode: bool = False):
        self.strict_mode = strict_mode  # warnings fail the suite
        self._checks: List[Callable[[pl.DataFrame], ValidationCheck]] = []

    def __len__(self) -> int:
        return len(self._checks)

    def add_not_null_check(
        self,
        column: str,
        severity: ValidationSeverity = ValidationSeverity.ERROR,
    ) -> "DataValidator":
        def check(df: pl.DataFrame) -> ValidationCheck:
            name = f"not_null_{column}"
            if column not in df.columns:
                return _missing(name, [column], severity)
            null_count = df[column].null_count()
            passed = null_count == 0
            return ValidationCheck(
                name=name,
                passed=passed,
                severity=severity,
                message=(
                    f"Column '{column}' has {null_count} null values"
                    if not passed else f"Column '{column}' has no null values"
                ),
                details={"null_count": null_count},
                failed_rows=null_count,
                total_rows=len(df),
            )

        self._checks.append(check)
        return self

    def add_unique_check(
        self,
        columns: Sequence[str],
        severity: ValidationSeverity = ValidationSeverity.ERROR,
    ) -> "DataValidator":
        """Rows must be unique over the combination of `columns`"""
        columns = [columns] if isinstance(columns, str) else list(columns)

        def check(df: pl.DataFrame) -> ValidationCheck:
            name = f"unique_{'_'.join(columns)}"
            absent = [c for c in columns if c not in df.columns]
            if absent:
                return _missing(name, absent, severity)
            total = len(df)
            duplicate_count = total - df.select(columns).unique().height
            passed = duplicate_count == 0
            return ValidationCheck(
                name=name,
                passed=passed,
                severity=severity,
                message=(
                    f"{duplicate_count} duplicate rows on ({', '.join(columns)})"
                    if not passed else f"Rows are unique on ({', '.join(columns)})"
                ),
                details={"duplicate_count": duplicate_count},
                failed_rows=duplicate_count,
                total_rows=total,
            )

        self._checks.append(check)
        return self

    def add_non_negative_check(
        self,
        column: str,
        severity: ValidationSeverity = ValidationSeverity.WARNING,
    ) -> "DataValidator":
        return self.add_row_check(
            f"non_negative_{column}",
            [column],
            pl.col(column) < 0,
            f"Column '{column}' has negative values",
            severity=severity,
        )

    def add_row_check(
        self,
        name: str,
        columns: Sequence[str],
        violation: pl.Expr,
        message_on_fail: str,
        severity: ValidationSeverity = ValidationSeverity.WARNING,
    ) -> "DataValidator":
        """Rows matching the `violation` expression fail the check"""
        columns = list(columns)

        def check(df: pl.DataFrame) -> ValidationCheck:
            absent = [c for c in columns if c not in df.columns]
            if absent:
                return _missing(name, absent, severity)
            failed = df.filter(violation.fill_null(False)).height
            passed = failed == 0
            return ValidationCheck(
                name=name,
                passed=passed,
                severity=severity,
                message=f"{message_on_fail} ({failed} rows)" if not passed else "Check passed",
                failed_rows=failed,
                total_rows=len(df),
            )

        self._checks.append(check)
        return self

    def validate(self, df: pl.DataFrame) -> ValidationResult:
        """Run every check against df"""
        started_at = _now()
        results: List[ValidationCheck] = []

        for check_func in self._checks:
            result = check_func(df)
            results.append(result)
            if not result.passed:
                logger.warning(
                    "Quality check failed",
                    check=result.name,
                    message=result.message,
                    severity=result.severity.value,
                )

        passed_checks = sum(1 for r in results if r.passed)
        failed_checks = sum(
            1 for r in results if not r.passed and r.severity == ValidationSeverity.ERROR
        )
        warning_count = sum(
            1 for r in results if not r.passed and r.severity == ValidationSeverity.WARNING
        )

        if failed_checks > 0:
            status = ValidationStatus.FAILED
        elif warning_count > 0 and self.strict_mode:
            status = ValidationStatus.FAILED
        elif warning_count > 0:
            status = ValidationStatus.PARTIAL
        else:
            status = ValidationStatus.PASSED

        logger.info(
            "Quality checks complete",
            status=status.value,
            rows=len(df),
            passed=passed_checks,
            failed=failed_checks,
            warnings=warning_count,
        )
        return ValidationResult(
            status=status,
            total_checks=len(results),
            passed_checks=passed_checks,
            failed_checks=failed_checks,
            warning_count=warning_count,
            checks=results,
            started_at=started_at,
            completed_at=_now(),
        )


# Pre-built suites
def create_report_validator(strict_mode: bool = False) -> DataValidator:
    """Suite for normalized daily report frames"""
    validator = (
        DataValidator(strict_mode=strict_mode)
        .add_not_null_check("shop_id")
        .add_not_null_check("report_date")
        .add_unique_check(["shop_id", "report_date"])
    )
    for column in ("total_revenue", "cancelled_revenue", "returned_revenue"):
        validator.add_non_negative_check(column)
    return validator.add_row_check(
        "adjustments_within_total",
        ["total_revenue", "cancelled_revenue", "returned_revenue"],
        (pl.col("cancelled_revenue") + pl.col("returned_revenue")) > pl.col("total_revenue"),
        "Cancelled + returned revenue exceeds total revenue",
    )


def create_goal_validator() -> DataValidator:
    """Suite for goal frames (shop_id, period, feasible_goal, breakthrough_goal)"""
    return (
        DataValidator()
        .add_not_null_check("shop_id")
        .add_unique_check(["shop_id", "period"])
        .add_non_negative_check("feasible_goal")
        .add_row_check(
            "breakthrough_not_below_feasible",
            ["feasible_goal", "breakthrough_goal"],
            pl.col("breakthrough_goal") < pl.col("feasible_goal"),
            "Breakthrough goal is below the feasible goal",
        )
    )
