from datetime import datetime
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Query
from pydantic import AliasChoices, BaseModel, Field
from pymongo import DESCENDING
from pymongo.errors import PyMongoError

from mongodb_source.connect_db import get_database
from mongodb_source.sample_data import CUSTOMERS_COLLECTION, ORDERS_COLLECTION

app = FastAPI(title="MongoDB Source Inventory API", version="1.0.0")


def db_conn():
    db = get_database()
    try:
        yield db
    finally:
        db.client.close()


# ======== Schemas ========
class CustomerOut(BaseModel):
    id: int = Field(validation_alias=AliasChoices("_id", "id"))
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    created_at: Optional[datetime] = None


class OrderOut(BaseModel):
    id: int = Field(validation_alias=AliasChoices("_id", "id"))
    customer_id: Optional[int] = None
    order_date: Optional[datetime] = None
    status: Optional[str] = None
    total: Optional[float] = None


# ======== Customers ========
@app.get("/customers", response_model=list[CustomerOut], tags=["Customers"])
def list_customers(
    limit: int = Query(default=100, ge=1, le=1000),
    db=Depends(db_conn),
):
    # newest first, like /orders
    cursor = db[CUSTOMERS_COLLECTION].find({}).sort("_id", DESCENDING).limit(limit)
    return [CustomerOut(**doc) for doc in cursor]


@app.get("/customers/{customer_id}", response_model=CustomerOut, tags=["Customers"])
def get_customer(customer_id: int, db=Depends(db_conn)):
    doc = db[CUSTOMERS_COLLECTION].find_one({"_id": customer_id})
    if not doc:
        raise HTTPException(status_code=404, detail="Customer not found")
    return CustomerOut(**doc)


@app.get("/customers/{customer_id}/orders", response_model=list[OrderOut], tags=["Customers"])
def list_customer_orders(customer_id: int, db=Depends(db_conn)):
    if not db[CUSTOMERS_COLLECTION].find_one({"_id": customer_id}, {"_id": 1}):
        raise HTTPException(status_code=404, detail="Customer not found")
    cursor = db[ORDERS_COLLECTION].find({"customer_id": customer_id}).sort("_id", DESCENDING)
    return [OrderOut(**doc) for doc in cursor]


# ======== Orders ========
@app.get("/orders", response_model=list[OrderOut], tags=["Orders"])
def list_orders(
    status: Optional[str] = None,
    limit: int = Query(default=100, ge=1, le=1000),
    db=Depends(db_conn),
):
    # newest first, so the first element is the latest order
    query = {"status": status} if status else {}
    cursor = db[ORDERS_COLLECTION].find(query).sort("_id", DESCENDING).limit(limit)
    return [OrderOut(**doc) for doc in cursor]


@app.get("/orders/{order_id}", response_model=OrderOut, tags=["Orders"])
def get_order(order_id: int, db=Depends(db_conn)):
    doc = db[ORDERS_COLLECTION].find_one({"_id": order_id})
    if not doc:
        raise HTTPException(status_code=404, detail="Order not found")
    return OrderOut(**doc)


@app.get("/health", response_model=dict, tags=["Health"])
def health(db=Depends(db_conn)):
    try:
        db.client.admin.command("ping")
        status = db.client.admin.command("replSetGetStatus")
    except PyMongoError:
        raise HTTPException(status_code=500, detail="db ping failed")
    return {
        "status": "ok",
        "database": db.name,
        "replica_set": status.get("set"),
        "state": status.get("myState"),
    }
