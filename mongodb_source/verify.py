"""Check that a seeded node looks the way the seeder leaves it."""
import logging
from dataclasses import dataclass, field

from pymongo.errors import OperationFailure

from .config import MongoSettings
from .errors import AUTHENTICATION_FAILED
from .sample_data import (
    COLLECTIONS,
    CUSTOMERS_COLLECTION,
    ORDERS_COLLECTION,
    sample_customers,
    sample_orders,
)
from .schema import document_errors
from .seeder import ADMIN_ROLES, PRIMARY_STATE

logger = logging.getLogger(__name__)

# fields compared against the literals; timestamps differ per run
_CUSTOMER_FIELDS = ("first_name", "last_name", "email")
_ORDER_FIELDS = ("customer_id", "status", "total")
# rewritten by the change generator, so only compared in exact mode
_MUTABLE_FIELDS = ("email", "status")


@dataclass
class VerificationReport:
    problems: list = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.problems

    def add(self, message: str):
        logger.warning("Verification problem: %s", message)
        self.problems.append(message)


def _check_authentication(client, settings: MongoSettings, report: VerificationReport) -> bool:
    try:
        client.admin.command("ping")
    except OperationFailure as err:
        if err.code != AUTHENTICATION_FAILED:
            raise
        report.add(f"authentication failed for user '{settings.admin_user}'")
        return False
    return True


def _check_replica_set(client, settings: MongoSettings, report: VerificationReport):
    try:
        status = client.admin.command("replSetGetStatus")
    except OperationFailure as err:
        report.add(f"replica set status unavailable: {err}")
        return
    if status.get("set") != settings.replica_set_name:
        report.add(
            f"replica set is '{status.get('set')}', expected '{settings.replica_set_name}'"
        )
    if status.get("myState") != PRIMARY_STATE:
        report.add(f"member is not primary (state {status.get('myState')})")


def _check_admin_user(client, settings: MongoSettings, report: VerificationReport):
    try:
        info = client[settings.admin_db].command("usersInfo", settings.admin_user)
    except OperationFailure as err:
        report.add(f"cannot read user '{settings.admin_user}': {err}")
        return
    users = info.get("users", [])
    if not users:
        report.add(f"user '{settings.admin_user}' not found in '{settings.admin_db}'")
        return
    roles = {(r.get("role"), r.get("db")) for r in users[0].get("roles", [])}
    expected = {(role, "admin") for role in ADMIN_ROLES}
    missing = sorted(role for role, _ in expected - roles)
    if missing:
        report.add(f"user '{settings.admin_user}' is missing roles: {', '.join(missing)}")


def _check_documents(db, collection: str, expected: list, fields, exact: bool, report):
    docs = {d["_id"]: d for d in db[collection].find({})}
    if not exact:
        fields = [f for f in fields if f not in _MUTABLE_FIELDS]
    if exact and len(docs) != len(expected):
        report.add(f"'{collection}' holds {len(docs)} documents, expected {len(expected)}")
    for want in expected:
        got = docs.get(want["_id"])
        if got is None:
            report.add(f"'{collection}' is missing _id {want['_id']}")
            continue
        for name in fields:
            if got.get(name) != want[name]:
                report.add(
                    f"'{collection}' _id {want['_id']}: {name} is {got.get(name)!r}, "
                    f"expected {want[name]!r}"
                )
        for message in document_errors(collection, got):
            report.add(f"'{collection}' _id {want['_id']}: {message}")
    return docs


def verify_environment(client, settings: MongoSettings, exact: bool = True) -> VerificationReport:
    """Inspect the node and return every mismatch found; empty means healthy.

    With `exact=False` the changes the generator makes are tolerated: extra
    documents, and rewritten emails or statuses on the samples.
    """
    report = VerificationReport()
    if not _check_authentication(client, settings, report):
        return report
    _check_replica_set(client, settings, report)
    _check_admin_user(client, settings, report)

    db = client[settings.db_name]
    names = set(db.list_collection_names())
    wanted = set(COLLECTIONS)
    if not wanted <= names:
        report.add(f"missing collections: {', '.join(sorted(wanted - names))}")
        return report
    if exact and names != wanted:
        report.add(f"unexpected collections: {', '.join(sorted(names - wanted))}")

    customers = _check_documents(
        db, CUSTOMERS_COLLECTION, sample_customers(), _CUSTOMER_FIELDS, exact, report
    )
    orders = _check_documents(
        db, ORDERS_COLLECTION, sample_orders(), _ORDER_FIELDS, exact, report
    )
    for oid, order in sorted(orders.items()):
        if order.get("customer_id") not in customers:
            report.add(f"order {oid} references unknown customer {order.get('customer_id')}")
    return report
