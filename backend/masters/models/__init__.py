from masters.models.fabric import Fabric, FabricVariant
from masters.models.product import Product
from masters.models.customer import Customer
from masters.models.import_run import ImportRun
from masters.models.audit import AuditLog

__all__ = [
    "Fabric", "FabricVariant",
    "Product",
    "Customer",
    "ImportRun",
    "AuditLog",
]
