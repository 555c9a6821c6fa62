"""
ERP Modules.

Stateful orchestration over the kernel and the pure engines.  Each module
contains:
- Domain models (frozen dataclass DTOs)
- ORM models (persistence)
- Services (transaction boundaries)
- Workflows (state machines), where the module has a lifecycle

Modules:
- Inventory: stock-keeping items, movement ledger, replenishment alerts
- BOM: bills of material, explosion, cost roll-up
- Orders: sales order editing and lifecycle
- Invoicing: invoices, credit notes, invoice status workflow
"""
