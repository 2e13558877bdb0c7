from datetime import date
from enum import Enum
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

DAYS_PER_MONTH = 30
OTHER_LABEL = "Other"


class ColumnType(str, Enum):
    """Semantic column types exposed to the report assembler."""
    INTEGER = "integer"
    FLOAT = "float"
    STRING = "string"
    DATE = "date"


_ANNOTATION_TYPES = {
    int: ColumnType.INTEGER,
    float: ColumnType.FLOAT,
    date: ColumnType.DATE,
}


class BaseReportModel(BaseModel):
    """Base config for all derived report entities."""
    model_config = ConfigDict(from_attributes=True)


class TableInfo(BaseReportModel):
    """One entry of the schema catalog."""
    name: str
    kind: Literal["table", "view"]


class GenreSales(BaseReportModel):
    """Tracks sold per genre for one billing country."""
    genre_name: str
    tracks_sold: int = Field(ge=0)
    pct_of_total: float = Field(ge=0.0, le=100.0)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {"genre_name": "Rock", "tracks_sold": 561, "pct_of_total": 53.38}
        }
    )


class AgentSales(BaseReportModel):
    """Invoice totals of the customers assigned to one support agent."""
    employee_id: int
    employee_name: str
    hire_date: date
    total_sales: float = Field(ge=0.0)


class AgentPerformance(BaseReportModel):
    """Sales of one support agent, normalized by tenure up to the as-of date.

    Months are a fixed 30 days; this is a deliberate simplification and is not
    calendar-accurate.
    """
    employee_id: int
    employee_name: str
    total_sales: float = Field(ge=0.0)
    hire_date: date
    days_since_reference_date: int = Field(gt=0)
    sales_per_day: float = Field(ge=0.0)
    sales_per_month: float = Field(ge=0.0)

    @model_validator(mode="after")
    def check_monthly_rate(self) -> "AgentPerformance":
        if self.sales_per_month != self.sales_per_day * DAYS_PER_MONTH:
            raise ValueError("sales_per_month must equal sales_per_day * 30")
        return self

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "employee_id": 3,
                "employee_name": "Jane Peacock",
                "total_sales": 1731.51,
                "hire_date": "2017-04-01",
                "days_since_reference_date": 1431,
                "sales_per_day": 1.21,
                "sales_per_month": 36.3
            }
        }
    )


class CountrySales(BaseReportModel):
    """Sales rolled up per customer country; single-customer countries become 'Other'."""
    country_label: str
    n_customers: int = Field(ge=1)
    total_sales: float = Field(ge=0.0)
    avg_sales_per_customer: float = Field(ge=0.0)
    avg_order_value: float = Field(ge=0.0)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "country_label": "USA",
                "n_customers": 13,
                "total_sales": 1040.49,
                "avg_sales_per_customer": 80.04,
                "avg_order_value": 7.94
            }
        }
    )


class PurchaseTypeBreakdown(BaseReportModel):
    """Share of invoices that bought a whole album versus individual tracks."""
    type_of_purchase: Literal["album", "single_track", "mixed"]
    count: int = Field(ge=0)
    pct_of_total: float = Field(ge=0.0, le=100.0)


class TabularResult(BaseModel):
    """Rows of one report section plus their column schema.

    Consumers render this; they must not mutate it.
    """
    name: str
    columns: dict[str, ColumnType]
    rows: list[dict[str, Any]]

    @classmethod
    def from_records(cls, name: str, model: type[BaseModel], records: list[BaseModel]) -> "TabularResult":
        columns = {
            field_name: _ANNOTATION_TYPES.get(field.annotation, ColumnType.STRING)
            for field_name, field in model.model_fields.items()
        }
        return cls(name=name, columns=columns, rows=[r.model_dump() for r in records])


class ReportSection(BaseModel):
    """Outcome of one report section; failures carry the error instead of rows."""
    name: str
    status: Literal["ok", "failed"]
    result: Optional[TabularResult] = None
    error: Optional[str] = None


class Report(BaseModel):
    as_of_date: Optional[date] = None
    sections: list[ReportSection]

    def section(self, name: str) -> ReportSection:
        for s in self.sections:
            if s.name == name:
                return s
        raise KeyError(name)
