"""
Inventory Kernel

Stock mutation, audit trail and threshold alerting pipeline:
- Per-item serialized stock mutation
- Append-only movement records (new_stock = old_stock + quantity)
- At most one unresolved low-stock alert per item
- Best-effort real-time publication of newly raised alerts
"""

__version__ = "0.1.0"
