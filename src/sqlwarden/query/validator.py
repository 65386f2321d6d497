"""SQL Query Validator for tool-issued queries.

Classifies a statement against four pattern families and decides whether
the current safety policy permits it:
- Dangerous server functions (xp_cmdshell, OPENROWSET, ...) are always denied
- Schema changes (CREATE/DROP/ALTER/GRANT/REVOKE) need allow_schema_changes
- Read-only mode admits only SELECT/SHOW/DESCRIBE/EXPLAIN/WITH ... SELECT
- Destructive operations (INSERT/UPDATE/DELETE/TRUNCATE/EXEC/CALL) need
  allow_destructive_operations

Classification is pattern based, not a SQL grammar. Text after every ``;``
is classified too, so stacked statements cannot hide behind a SELECT.
Comments are removed first so they cannot hide a keyword.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, NamedTuple

from sqlwarden.core.types import SafetyPolicy, merge_config
from sqlwarden.query.shape import QueryShape, analyze_shape, strip_comments

logger = logging.getLogger(__name__)


class QueryCategory(StrEnum):
    """Risk categories a statement can fall into."""

    EMPTY = "empty"
    DANGEROUS = "dangerous"
    SELECT = "select"
    NON_SELECT = "non-select"
    DESTRUCTIVE = "destructive"
    SCHEMA = "schema"
    UNKNOWN = "unknown"


class PatternFamily(StrEnum):
    """Pattern families used for classification."""

    DANGEROUS = "dangerous"
    SCHEMA_CHANGES = "schema_changes"
    DESTRUCTIVE = "destructive"
    READ_ONLY = "read_only"


class ClassificationPattern(NamedTuple):
    """A tagged classification rule."""

    family: PatternFamily
    pattern: re.Pattern[str]


def _rule(family: PatternFamily, regex: str) -> ClassificationPattern:
    return ClassificationPattern(family, re.compile(regex, re.IGNORECASE))


# Ordered rule table. Group 1 of every pattern captures the keyword that
# matched, which is echoed back in rejection reasons.
CLASSIFICATION_PATTERNS: list[ClassificationPattern] = [
    _rule(
        PatternFamily.DANGEROUS,
        r"\b(XP_CMDSHELL|SP_CONFIGURE|SP_OACREATE|SP_OAMETHOD)\b",
    ),
    _rule(PatternFamily.DANGEROUS, r"\b(OPENQUERY|OPENROWSET|OPENDATASOURCE)\b"),
    _rule(PatternFamily.SCHEMA_CHANGES, r"(?:^|;)\s*(CREATE|DROP|ALTER)\b"),
    _rule(PatternFamily.SCHEMA_CHANGES, r"(?:^|;)\s*(GRANT|REVOKE)\b"),
    _rule(PatternFamily.DESTRUCTIVE, r"(?:^|;)\s*(DELETE|UPDATE|INSERT|TRUNCATE)\b"),
    _rule(PatternFamily.DESTRUCTIVE, r"(?:^|;)\s*(EXEC(?:UTE)?)\b"),
    _rule(PatternFamily.DESTRUCTIVE, r"(?:^|;)\s*(CALL)\b"),
    _rule(PatternFamily.READ_ONLY, r"^\s*(SELECT)\b"),
    _rule(PatternFamily.READ_ONLY, r"^\s*(SHOW)\b"),
    _rule(PatternFamily.READ_ONLY, r"^\s*(DESCRIBE|DESC)\b"),
    _rule(PatternFamily.READ_ONLY, r"^\s*(EXPLAIN)\b"),
    _rule(PatternFamily.READ_ONLY, r"^\s*(WITH)\s[\s\S]*?\bSELECT\b"),
]

READ_ONLY_REASON = (
    "Read-only mode is enabled. Only SELECT, SHOW, DESCRIBE, EXPLAIN and "
    "WITH ... SELECT queries are allowed. Set read_only_mode=false "
    "(SQLWARDEN_READ_ONLY=false) to disable."
)


@dataclass
class Classification:
    """First keyword matched per pattern family."""

    dangerous: str | None = None
    schema_change: str | None = None
    destructive: str | None = None
    read_only: str | None = None


@dataclass
class ValidationResult:
    """Result of query validation."""

    allowed: bool
    """Whether the query may be executed under the current policy."""

    reason: str
    """Human-readable reason. Rejections name the policy clause that blocked them."""

    query_type: QueryCategory = QueryCategory.UNKNOWN
    """Detected risk category."""

    fallback: bool = False
    """True when the result comes from the fail-closed fallback path."""

    matched_keyword: str | None = None
    """Keyword that decided the classification (e.g. DELETE)."""

    warnings: list[str] = field(default_factory=list)
    """Non-fatal advisory warnings about the query."""

    shape: QueryShape | None = None
    """Statement shape shared with the streaming handler."""

    def to_dict(self) -> dict[str, Any]:
        """Return the result as a JSON-serializable dict."""
        return {
            "allowed": self.allowed,
            "reason": self.reason,
            "query_type": str(self.query_type),
            "fallback": self.fallback,
            "matched_keyword": self.matched_keyword,
            "warnings": list(self.warnings),
        }


class QueryValidator:
    """Validates SQL queries against a configurable safety policy.

    Pure function of (query, policy): no I/O and no caching, so a policy
    update is visible to the very next call.
    """

    def __init__(
        self,
        policy: SafetyPolicy | None = None,
        patterns: list[ClassificationPattern] | None = None,
    ) -> None:
        """Initialize the validator.

        Args:
            policy: Safety policy (secure defaults if not provided)
            patterns: Classification rule table (defaults to CLASSIFICATION_PATTERNS)
        """
        self._policy = policy or SafetyPolicy()
        self._patterns = patterns if patterns is not None else CLASSIFICATION_PATTERNS

    @property
    def policy(self) -> SafetyPolicy:
        """Current policy (a copy, mutations do not affect the validator)."""
        return self._policy.model_copy()

    def validate(self, sql: str) -> ValidationResult:
        """Validate an SQL query against the current policy.

        Args:
            sql: SQL query string to validate

        Returns:
            ValidationResult with allow/deny decision and reason
        """
        query = sql.strip() if sql else ""
        if not query:
            return ValidationResult(
                allowed=True,
                reason="Empty query",
                query_type=QueryCategory.EMPTY,
            )

        policy = self._policy
        try:
            classification = self._classify(strip_comments(query))
            result = self._decide(classification, policy)
        except Exception as e:
            logger.warning(f"Query classification failed, denying query: {e}")
            return ValidationResult(
                allowed=False,
                reason="Could not safely classify query; it was blocked as a precaution.",
                query_type=QueryCategory.UNKNOWN,
                fallback=True,
            )

        shape = analyze_shape(query)
        result.shape = shape
        result.warnings = self._check_warnings(shape)

        if not result.allowed:
            logger.info(f"Query rejected ({result.query_type}): {result.reason}")
        return result

    def _classify(self, query: str) -> Classification:
        """Run every rule and keep the first keyword matched per family."""
        classification = Classification()
        for rule in self._patterns:
            match = rule.pattern.search(query)
            if not match:
                continue
            keyword = match.group(1).upper()
            if rule.family == PatternFamily.DANGEROUS:
                classification.dangerous = classification.dangerous or keyword
            elif rule.family == PatternFamily.SCHEMA_CHANGES:
                classification.schema_change = classification.schema_change or keyword
            elif rule.family == PatternFamily.DESTRUCTIVE:
                classification.destructive = classification.destructive or keyword
            else:
                classification.read_only = classification.read_only or keyword
        return classification

    def _decide(self, classification: Classification, policy: SafetyPolicy) -> ValidationResult:
        """Apply the policy to a classification.

        Precedence: dangerous functions (never allowed), schema changes, then
        read-only mode, then destructive operations.
        """
        if classification.dangerous:
            return ValidationResult(
                allowed=False,
                reason=(
                    f"Query contains dangerous function '{classification.dangerous.lower()}' "
                    "which is prohibited for security. No policy setting allows it."
                ),
                query_type=QueryCategory.DANGEROUS,
                matched_keyword=classification.dangerous,
            )

        if classification.schema_change and not policy.allow_schema_changes:
            return ValidationResult(
                allowed=False,
                reason=(
                    f"Schema change ({classification.schema_change}) requires "
                    "allow_schema_changes=true (SQLWARDEN_ALLOW_SCHEMA_CHANGES=true)."
                ),
                query_type=QueryCategory.SCHEMA,
                matched_keyword=classification.schema_change,
            )

        if policy.read_only_mode:
            is_pure_read = (
                classification.read_only is not None
                and classification.destructive is None
                and classification.schema_change is None
            )
            if not is_pure_read:
                return ValidationResult(
                    allowed=False,
                    reason=READ_ONLY_REASON,
                    query_type=QueryCategory.NON_SELECT,
                    matched_keyword=classification.destructive or classification.schema_change,
                )

        if classification.destructive and not policy.allow_destructive_operations:
            return ValidationResult(
                allowed=False,
                reason=(
                    f"Destructive operation ({classification.destructive}) requires "
                    "allow_destructive_operations=true "
                    "(SQLWARDEN_ALLOW_DESTRUCTIVE_OPERATIONS=true)."
                ),
                query_type=QueryCategory.DESTRUCTIVE,
                matched_keyword=classification.destructive,
            )

        if classification.schema_change:
            category, keyword = QueryCategory.SCHEMA, classification.schema_change
        elif classification.destructive:
            category, keyword = QueryCategory.DESTRUCTIVE, classification.destructive
        elif classification.read_only:
            category, keyword = QueryCategory.SELECT, classification.read_only
        else:
            category, keyword = QueryCategory.UNKNOWN, None

        return ValidationResult(
            allowed=True,
            reason="Query validation passed",
            query_type=category,
            matched_keyword=keyword,
        )

    def _check_warnings(self, shape: QueryShape) -> list[str]:
        """Generate advisory warnings. Never affects the decision.

        Args:
            shape: Shape of the validated statement

        Returns:
            List of warning messages
        """
        if shape.truncated_analysis:
            return [f"Query is {shape.length} characters long; advisory analysis was skipped."]

        warnings = []
        if shape.select_star:
            warnings.append(
                "Using SELECT * may return more data than needed. "
                "Consider selecting specific columns."
            )
        if shape.keyword in ("UPDATE", "DELETE") and not shape.has_where:
            warnings.append(f"{shape.keyword} without WHERE clause affects every row in the table.")
        if shape.multi_statement:
            warnings.append("Query contains multiple statements; each one is classified.")
        return warnings

    def update_config(self, **changes: bool) -> SafetyPolicy:
        """Merge policy changes into the current policy.

        Args:
            **changes: Any of read_only_mode, allow_destructive_operations,
                allow_schema_changes

        Returns:
            The new policy

        Raises:
            ConfigurationError: If a key is unknown or a value is invalid
        """
        self._policy = merge_config(self._policy, changes)
        logger.info(f"Security policy updated: {self._policy.model_dump()}")
        return self.policy

    def get_config(self) -> SafetyPolicy:
        """Get a copy of the current policy."""
        return self.policy


def validate_query(sql: str, policy: SafetyPolicy | None = None) -> ValidationResult:
    """Convenience function to validate a query.

    Args:
        sql: SQL query to validate
        policy: Optional policy (secure defaults if omitted)

    Returns:
        ValidationResult
    """
    validator = QueryValidator(policy=policy)
    return validator.validate(sql)
