from enum import Enum


class ApplicationStatus(str, Enum):
    DRAFT = "draft"
    SUBMITTED = "submitted"
    UNDER_REVIEW = "under_review"
    CERTIFIED = "certified"


class MeasurementUnit(str, Enum):
    SCORE = "score"            # Score (0-N) / Score (1-5)
    PERCENTAGE = "percentage"  # Percentage (%)
    BINARY = "binary"          # Binary (0-1)
    NUMBER = "number"          # Count against a benchmark ceiling
    HOURS = "hours"            # Hours per employee
    RATIO = "ratio"            # "proactive:reactive" or 0-1 fraction


class ChangeType(str, Enum):
    INDICATOR = "indicator"
    EVIDENCE = "evidence"


class CertificationLevel(str, Enum):
    GOLD = "GOLD"
    CERTIFIED = "CERTIFIED"
    NOT_CERTIFIED = "NOT_CERTIFIED"


class SaveLaneState(str, Enum):
    IDLE = "idle"
    PENDING_DEBOUNCE = "pending_debounce"
    IN_FLIGHT = "in_flight"
    PENDING_RETRY = "pending_retry"
    FAILED = "failed"


class NotificationVariant(str, Enum):
    DEFAULT = "default"
    DESTRUCTIVE = "destructive"
