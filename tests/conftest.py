from collections.abc import Callable, Generator
from datetime import datetime
from typing import Any

import pytest
from sqlmodel import Session, SQLModel, create_engine

from app.data_access.database import DataSource, sqlite_url
from app.data_access.models import (
    Album,
    Customer,
    Employee,
    Genre,
    Invoice,
    InvoiceLine,
    Track,
)

StoreFactory = Callable[..., DataSource]


def chinook_records() -> list[SQLModel]:
    """A small Chinook-shaped dataset shared by most tests.

    Albums: 1 = tracks {1, 2, 3}, 2 = tracks {4, 5}, 3 = track {8};
    track 6 has no album.
    Customers: 3 in USA, 2 in Brazil, 1 each in Chile and India.
    Employees 1 and 5 have no customers with invoices.
    """
    return [
        Genre(genre_id=1, name="Rock"),
        Genre(genre_id=2, name="Jazz"),
        Genre(genre_id=3, name="Blues"),
        Genre(genre_id=4, name="Pop"),
        Album(album_id=1, title="Album A"),
        Album(album_id=2, title="Album B"),
        Album(album_id=3, title="Album C"),
        Track(track_id=1, name="A1", album_id=1, genre_id=1),
        Track(track_id=2, name="A2", album_id=1, genre_id=1),
        Track(track_id=3, name="A3", album_id=1, genre_id=1),
        Track(track_id=4, name="B1", album_id=2, genre_id=2),
        Track(track_id=5, name="B2", album_id=2, genre_id=2),
        Track(track_id=6, name="Loose", album_id=None, genre_id=3),
        Track(track_id=7, name="Unsold", album_id=None, genre_id=4),
        Track(track_id=8, name="C1", album_id=3, genre_id=1),
        Employee(employee_id=1, first_name="Andrew", last_name="Adams", title="General Manager",
                 hire_date=datetime(2023, 8, 14)),
        Employee(employee_id=3, first_name="Jane", last_name="Peacock", title="Sales Support Agent",
                 hire_date=datetime(2024, 1, 1)),
        Employee(employee_id=4, first_name="Margaret", last_name="Park", title="Sales Support Agent",
                 hire_date=datetime(2024, 6, 1)),
        Employee(employee_id=5, first_name="Steve", last_name="Johnson", title="Sales Support Agent",
                 hire_date=datetime(2025, 1, 1)),
        Customer(customer_id=1, first_name="Frank", last_name="Harris", country="USA", support_rep_id=3),
        Customer(customer_id=2, first_name="Jack", last_name="Smith", country="USA", support_rep_id=3),
        Customer(customer_id=3, first_name="Michelle", last_name="Brooks", country="USA", support_rep_id=4),
        Customer(customer_id=4, first_name="Luis", last_name="Goncalves", country="Brazil", support_rep_id=4),
        Customer(customer_id=5, first_name="Eduardo", last_name="Martins", country="Brazil", support_rep_id=3),
        Customer(customer_id=6, first_name="Luis", last_name="Rojas", country="Chile", support_rep_id=4),
        Customer(customer_id=7, first_name="Manoj", last_name="Pareek", country="India", support_rep_id=3),
        # inv1: whole album 1
        Invoice(invoice_id=1, customer_id=1, invoice_date=datetime(2025, 1, 10), billing_country="USA", total=2.97),
        InvoiceLine(invoice_id=1, track_id=1, unit_price=0.99, quantity=1),
        InvoiceLine(invoice_id=1, track_id=2, unit_price=0.99, quantity=1),
        InvoiceLine(invoice_id=1, track_id=3, unit_price=0.99, quantity=1),
        # inv2: one track of album 2, bought twice
        Invoice(invoice_id=2, customer_id=2, invoice_date=datetime(2025, 2, 10), billing_country="USA", total=1.98),
        InvoiceLine(invoice_id=2, track_id=4, unit_price=0.99, quantity=2),
        # inv3: an album-less track plus a track of album 1
        Invoice(invoice_id=3, customer_id=3, invoice_date=datetime(2025, 3, 1), billing_country="USA", total=1.98),
        InvoiceLine(invoice_id=3, track_id=1, unit_price=0.99, quantity=1),
        InvoiceLine(invoice_id=3, track_id=6, unit_price=0.99, quantity=1),
        # inv4: whole album 2
        Invoice(invoice_id=4, customer_id=4, invoice_date=datetime(2025, 4, 1), billing_country="Brazil", total=1.98),
        InvoiceLine(invoice_id=4, track_id=4, unit_price=0.99, quantity=1),
        InvoiceLine(invoice_id=4, track_id=5, unit_price=0.99, quantity=1),
        # inv5: tracks from albums 1 and 2
        Invoice(invoice_id=5, customer_id=5, invoice_date=datetime(2025, 5, 1), billing_country="Brazil", total=1.98),
        InvoiceLine(invoice_id=5, track_id=1, unit_price=0.99, quantity=1),
        InvoiceLine(invoice_id=5, track_id=4, unit_price=0.99, quantity=1),
        # inv6: whole single-track album 3
        Invoice(invoice_id=6, customer_id=6, invoice_date=datetime(2025, 6, 1), billing_country="Chile", total=0.99),
        InvoiceLine(invoice_id=6, track_id=8, unit_price=0.99, quantity=1),
        # inv7: latest invoice, defines the as-of date
        Invoice(invoice_id=7, customer_id=7, invoice_date=datetime(2025, 6, 30), billing_country="India", total=0.99),
        InvoiceLine(invoice_id=7, track_id=2, unit_price=0.99, quantity=1),
    ]


@pytest.fixture(name="make_store")
def make_store_fixture(tmp_path: Any) -> Generator[StoreFactory, Any, None]:
    """Creates SQLite files seeded with the given records and returns read-only data sources."""
    sources: list[DataSource] = []

    def _make(records: list[SQLModel], name: str = "chinook.db", extra_sql: tuple[str, ...] = ()) -> DataSource:
        path = tmp_path / name
        engine = create_engine(sqlite_url(path, read_only=False))
        SQLModel.metadata.create_all(engine)
        with Session(engine) as session:
            session.add_all(records)
            session.commit()
            for statement in extra_sql:
                session.connection().exec_driver_sql(statement)
            session.commit()
        engine.dispose()

        data_source = DataSource(sqlite_url(path))
        sources.append(data_source)
        return data_source

    yield _make

    for data_source in sources:
        data_source.dispose()


@pytest.fixture(name="data_source")
def data_source_fixture(make_store: StoreFactory) -> DataSource:
    return make_store(chinook_records())
