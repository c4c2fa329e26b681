from .stock_audit import StockAdjustment, StockAuditService, adjust_absolute_stock

__all__ = ["StockAdjustment", "StockAuditService", "adjust_absolute_stock"]
