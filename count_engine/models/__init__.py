from count_engine.models.inventory.category import InventoryCategory
from count_engine.models.inventory.item import InventoryItem
from count_engine.models.inventory.inventory_template import InventoryTemplate
from count_engine.models.inventory.inventory_template_item import InventoryTemplateItem
from count_engine.models.inventory.inventory_count import InventoryCount
from count_engine.models.inventory.inventory_count_item import InventoryCountItem
from count_engine.models.inventory.inventory_transaction import InventoryTransaction
from count_engine.models.inventory.sku_counter import SkuCounter
