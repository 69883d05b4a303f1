"""Trigger types offered to workflow authors, with the payload fields each exposes."""

from dataclasses import dataclass

from storeflow.domain.enums import TriggerType


@dataclass(frozen=True)
class TriggerInfo:
    type: TriggerType
    label: str
    description: str
    available_fields: tuple[str, ...] = ()


AVAILABLE_TRIGGERS: tuple[TriggerInfo, ...] = (
    TriggerInfo(
        TriggerType.SALE_CREATED,
        "Sale Created",
        "Triggered when a new sale is created",
        ("total", "items", "customerId", "employeeId", "status"),
    ),
    TriggerInfo(
        TriggerType.SALE_COMPLETED,
        "Sale Completed",
        "Triggered when a sale is completed",
        ("total", "items", "customerId", "employeeId", "paymentMethod"),
    ),
    TriggerInfo(
        TriggerType.PRODUCT_LOW_STOCK,
        "Low Stock Alert",
        "Triggered when product quantity falls below threshold",
        ("name", "sku", "quantity", "lowStockThreshold"),
    ),
    TriggerInfo(
        TriggerType.CUSTOMER_CREATED,
        "New Customer",
        "Triggered when a new customer is created",
        ("name", "email", "phone"),
    ),
    TriggerInfo(
        TriggerType.CUSTOMER_VIP,
        "VIP Customer",
        "Triggered when customer spending crosses VIP threshold",
        ("name", "email", "totalSpent", "purchaseCount"),
    ),
    TriggerInfo(TriggerType.MANUAL, "Manual Trigger", "Manually triggered workflow"),
    TriggerInfo(TriggerType.SCHEDULE, "Scheduled", "Runs on a schedule"),
)
