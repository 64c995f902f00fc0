from enum import Enum

# Enums
class ItemStatus(str, Enum):
    ACTIVE = "ACTIVE"
    DEACTIVATED = "DEACTIVATED"

class CountStatus(str, Enum):
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    VOIDED = "VOIDED"

class InventoryTransactionType(str, Enum):
    RECEIVING = "RECEIVING"
    OUTGOING = "OUTGOING"
    WASTE = "WASTE"
    ADJUSTMENT = "ADJUSTMENT"

class TransactionReferenceType(str, Enum):
    INVENTORY_COUNT = "INVENTORY_COUNT"
    MANUAL = "MANUAL"
