from datetime import datetime
from typing import Optional

from sqlmodel import Field, SQLModel

# --- Chinook source tables ---
# The report only ever reads these; the classes document the schema the
# query catalog relies on and let tests build a throw-away store.


class Genre(SQLModel, table=True):
    __tablename__ = "genre"
    genre_id: Optional[int] = Field(default=None, primary_key=True)
    name: str


class Album(SQLModel, table=True):
    __tablename__ = "album"
    album_id: Optional[int] = Field(default=None, primary_key=True)
    title: str


class Track(SQLModel, table=True):
    __tablename__ = "track"
    track_id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    album_id: Optional[int] = Field(default=None, foreign_key="album.album_id")
    genre_id: Optional[int] = Field(default=None, foreign_key="genre.genre_id")
    unit_price: float = 0.99


class Employee(SQLModel, table=True):
    __tablename__ = "employee"
    employee_id: Optional[int] = Field(default=None, primary_key=True)
    first_name: str
    last_name: str
    title: Optional[str] = None       # e.g., "Sales Support Agent"
    hire_date: datetime


class Customer(SQLModel, table=True):
    __tablename__ = "customer"
    customer_id: Optional[int] = Field(default=None, primary_key=True)
    first_name: str
    last_name: str
    country: str
    support_rep_id: Optional[int] = Field(default=None, foreign_key="employee.employee_id")


class Invoice(SQLModel, table=True):
    __tablename__ = "invoice"
    invoice_id: Optional[int] = Field(default=None, primary_key=True)
    customer_id: int = Field(foreign_key="customer.customer_id")
    invoice_date: datetime
    billing_country: str
    total: float


class InvoiceLine(SQLModel, table=True):
    __tablename__ = "invoice_line"
    invoice_line_id: Optional[int] = Field(default=None, primary_key=True)
    invoice_id: int = Field(foreign_key="invoice.invoice_id")
    track_id: int = Field(foreign_key="track.track_id")
    unit_price: float
    quantity: int = Field(default=1, gt=0)


REQUIRED_TABLES = (
    "album",
    "customer",
    "employee",
    "genre",
    "invoice",
    "invoice_line",
    "track",
)
