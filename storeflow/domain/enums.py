"""Domain enumerations for workflow definitions.

Values are the wire strings stored in workflow documents; they are a
closed set (no aliases).
"""

from enum import Enum


class _ValuesMixin:
    """Mixin that adds a values() classmethod to str Enums."""

    @classmethod
    def values(cls) -> list[str]:
        """Return all valid values as strings."""
        return [member.value for member in cls]


class TriggerType(_ValuesMixin, str, Enum):
    """Event types (plus manual and schedule) that can fire a workflow."""

    SALE_CREATED = "sale.created"
    SALE_COMPLETED = "sale.completed"
    SALE_VOIDED = "sale.voided"
    PRODUCT_CREATED = "product.created"
    PRODUCT_UPDATED = "product.updated"
    PRODUCT_LOW_STOCK = "product.low_stock"
    CUSTOMER_CREATED = "customer.created"
    CUSTOMER_VIP = "customer.vip"
    EMPLOYEE_CLOCK_IN = "employee.clock_in"
    EMPLOYEE_CLOCK_OUT = "employee.clock_out"
    INVENTORY_LOW = "inventory.low"
    CREDIT_OVERDUE = "credit.overdue"
    MANUAL = "manual"
    SCHEDULE = "schedule"


class ConditionOperator(_ValuesMixin, str, Enum):
    """Comparison operators for trigger and branch conditions."""

    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    GREATER_OR_EQUAL = "greater_or_equal"
    LESS_OR_EQUAL = "less_or_equal"
    CONTAINS = "contains"
    NOT_CONTAINS = "not_contains"
    IN = "in"
    NOT_IN = "not_in"


class ScheduleType(_ValuesMixin, str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    CRON = "cron"


class ActionType(_ValuesMixin, str, Enum):
    """Action kinds; the wire value is the action's ``type`` field."""

    EMAIL = "email"
    NOTIFICATION = "notification"
    WEBHOOK = "webhook"
    UPDATE = "update"
    CREATE = "create"
    APPROVAL = "approval"
    DELAY = "delay"
    CONDITION = "condition"


class EntityKind(_ValuesMixin, str, Enum):
    """Business entity kinds reachable from update/create actions."""

    SALE = "sale"
    PRODUCT = "product"
    CUSTOMER = "customer"
    EMPLOYEE = "employee"
    STORE = "store"
    USER = "user"

    @classmethod
    def parse(cls, raw: str | None) -> "EntityKind":
        """Resolve a kind case-insensitively. Raises InvalidTargetError when unknown."""
        from storeflow.domain.exceptions import InvalidTargetError

        if isinstance(raw, str):
            try:
                return cls(raw.strip().lower())
            except ValueError:
                pass
        raise InvalidTargetError(f"Unknown entity type: {raw}", target=str(raw))


class ErrorKind(_ValuesMixin, str, Enum):
    """Failure taxonomy for action errors; every failure has exactly one kind."""

    CONFIG_MISSING = "config_missing"
    INVALID_TARGET = "invalid_target"
    TRANSIENT = "transient"
    CANCELLED = "cancelled"
    DEFINITION = "definition"
    INTERNAL = "internal"


class ActionStatus(_ValuesMixin, str, Enum):
    """Per-action status recorded in an execution trace."""

    SUCCESS = "success"
    FAILED = "failed"
    UNIMPLEMENTED = "unimplemented"
