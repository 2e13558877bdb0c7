# app/domain/__init__.py

# 1. Schema & Result Contracts
from .report_entities import (
    ColumnType,
    Report,
    ReportSection,
    TableInfo,
    TabularResult,
)

# 2. Derived Report Entities
from .report_entities import (
    AgentPerformance,
    AgentSales,
    CountrySales,
    GenreSales,
    PurchaseTypeBreakdown,
)


__all__ = [
    "AgentPerformance",
    "AgentSales",
    "ColumnType",
    "CountrySales",
    "GenreSales",
    "PurchaseTypeBreakdown",
    "Report",
    "ReportSection",
    "TableInfo",
    "TabularResult",
]
