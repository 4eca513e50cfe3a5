"""Fixed sample documents written into the `inventory` database."""
from datetime import datetime, timezone
from typing import Optional

CUSTOMERS_COLLECTION = "customers"
ORDERS_COLLECTION = "orders"
COLLECTIONS = (CUSTOMERS_COLLECTION, ORDERS_COLLECTION)

# labels written by this project; the collection does not enforce them
ORDER_STATUSES = ("PENDING", "PROCESSING", "COMPLETED", "SHIPPED", "DELIVERED", "CANCELLED")

_CUSTOMERS = (
    (1001, "John", "Doe"),
    (1002, "Jane", "Smith"),
    (1003, "Bob", "Johnson"),
    (1004, "Alice", "Brown"),
    (1005, "Charlie", "Davis"),
)

_ORDERS = (
    (2001, 1001, "COMPLETED", 99.99),
    (2002, 1001, "PENDING", 15.50),
    (2003, 1002, "CANCELLED", 25.75),
    (2004, 1003, "COMPLETED", 75.25),
    (2005, 1004, "PENDING", 35.50),
)

CUSTOMER_IDS = tuple(c[0] for c in _CUSTOMERS)
ORDER_IDS = tuple(o[0] for o in _ORDERS)


def make_email(first_name: str, last_name: str, tag: Optional[int] = None) -> str:
    local = f"{first_name}.{last_name}".lower()
    if tag is not None:
        local = f"{local}+{tag}"
    return f"{local}@example.com"


def sample_customers(now: Optional[datetime] = None) -> list:
    now = now or datetime.now(timezone.utc)
    return [
        {
            "_id": cid,
            "first_name": first,
            "last_name": last,
            "email": make_email(first, last),
            "created_at": now,
        }
        for cid, first, last in _CUSTOMERS
    ]


def sample_orders(now: Optional[datetime] = None) -> list:
    now = now or datetime.now(timezone.utc)
    return [
        {
            "_id": oid,
            "customer_id": cid,
            "order_date": now,
            "status": status,
            "total": total,
        }
        for oid, cid, status, total in _ORDERS
    ]


def sample_documents(now: Optional[datetime] = None) -> dict:
    """Both collections' documents keyed by collection name, sharing one timestamp."""
    now = now or datetime.now(timezone.utc)
    return {
        CUSTOMERS_COLLECTION: sample_customers(now),
        ORDERS_COLLECTION: sample_orders(now),
    }
