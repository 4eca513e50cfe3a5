"""Bootstrap the MongoDB source node for the CDC demo.

The sequence mirrors what the demo needs before a connector can attach:

1. initiate a single-member replica set
2. wait until the member reports PRIMARY
3. create the admin user
4. reconnect with that user's credentials
5. select the inventory database
6. create the `customers` and `orders` collections
7. insert the sample documents

Each step is a plain function so it can be exercised on its own. By default
every step fails on a non-pristine node; with `idempotent=True` the steps
check before creating and skip whatever already exists.
"""
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Optional

from pymongo.errors import (
    BulkWriteError,
    CollectionInvalid,
    ConnectionFailure,
    OperationFailure,
    PyMongoError,
)

from .config import MongoSettings
from .connect_db import get_client
from .errors import (
    ALREADY_INITIALIZED,
    AUTHENTICATION_FAILED,
    DUPLICATE_KEY,
    NAMESPACE_EXISTS,
    NOT_YET_INITIALIZED,
    USER_ALREADY_EXISTS,
    AuthenticationFailed,
    CollectionAlreadyExists,
    DuplicateSampleDocument,
    ReplicaSetAlreadyInitialized,
    ReplicaSetNotReady,
    SeedError,
    UserAlreadyExists,
)
from .sample_data import COLLECTIONS, sample_documents

logger = logging.getLogger(__name__)

PRIMARY_STATE = 1

# every role is granted on the admin database
ADMIN_ROLES = (
    "root",
    "userAdminAnyDatabase",
    "dbAdminAnyDatabase",
    "readWriteAnyDatabase",
)


class SeedStage(str, Enum):
    START = "start"
    REPLICA_INITIATED = "replica_initiated"
    AUTHENTICATED = "authenticated"
    COLLECTIONS_CREATED = "collections_created"
    SEEDED = "seeded"
    DONE = "done"


@dataclass
class SeedReport:
    stage: SeedStage = SeedStage.START
    inserted: dict = field(default_factory=dict)
    skipped: list = field(default_factory=list)


def admin_roles() -> list:
    return [{"role": role, "db": "admin"} for role in ADMIN_ROLES]


def replica_set_config(settings: MongoSettings) -> dict:
    return {
        "_id": settings.replica_set_name,
        "members": [{"_id": 0, "host": settings.member_host}],
    }


def replica_set_status(client) -> Optional[dict]:
    """Return `replSetGetStatus`, or None when the node is still standalone."""
    try:
        return client.admin.command("replSetGetStatus")
    except OperationFailure as err:
        if err.code == NOT_YET_INITIALIZED:
            return None
        raise


def initiate_replica_set(client, settings: MongoSettings, idempotent: bool = False) -> bool:
    """Run `replSetInitiate`; returns False when an existing set was reused."""
    if idempotent:
        status = replica_set_status(client)
        if status is not None:
            if status.get("set") != settings.replica_set_name:
                raise ReplicaSetAlreadyInitialized(
                    f"Node already belongs to replica set '{status.get('set')}', "
                    f"expected '{settings.replica_set_name}'"
                )
            logger.info("Replica set '%s' already initiated, reusing it", settings.replica_set_name)
            return False

    try:
        client.admin.command("replSetInitiate", replica_set_config(settings))
    except OperationFailure as err:
        if err.code == ALREADY_INITIALIZED:
            raise ReplicaSetAlreadyInitialized(
                f"Replica set already initialized: {err}"
            ) from err
        raise
    logger.info(
        "Initiated replica set '%s' with member %s",
        settings.replica_set_name,
        settings.member_host,
    )
    return True


def wait_for_primary(
    client,
    settings: MongoSettings,
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> dict:
    """Poll the replica set status until this member is PRIMARY."""
    deadline = clock() + settings.ready_timeout_seconds
    attempts = 0
    while True:
        attempts += 1
        try:
            status = client.admin.command("replSetGetStatus")
            if status.get("myState") == PRIMARY_STATE:
                logger.info("Replica set primary ready after %d check(s)", attempts)
                return status
            last_seen = f"member state {status.get('myState')}"
        except OperationFailure as err:
            if err.code != NOT_YET_INITIALIZED:
                raise
            last_seen = "replica set not yet initialized"
        except ConnectionFailure as err:
            last_seen = f"connection failure: {err}"

        if clock() >= deadline:
            raise ReplicaSetNotReady(
                f"No primary after {settings.ready_timeout_seconds}s ({last_seen})"
            )
        logger.debug("Waiting for primary: %s", last_seen)
        sleep(settings.ready_poll_interval_seconds)


def user_exists(client, settings: MongoSettings) -> bool:
    info = client[settings.admin_db].command("usersInfo", settings.admin_user)
    return bool(info.get("users"))


def create_admin_user(client, settings: MongoSettings, idempotent: bool = False) -> bool:
    """Create the admin principal; returns False when it already existed."""
    password = settings.require_password()
    if idempotent and user_exists(client, settings):
        logger.info("User '%s' already exists, keeping it", settings.admin_user)
        return False

    try:
        client[settings.admin_db].command(
            "createUser",
            settings.admin_user,
            pwd=password,
            roles=admin_roles(),
        )
    except OperationFailure as err:
        if err.code == USER_ALREADY_EXISTS:
            raise UserAlreadyExists(f"User '{settings.admin_user}' already exists") from err
        raise
    logger.info("Created user '%s' on '%s'", settings.admin_user, settings.admin_db)
    return True


def authenticate(settings: MongoSettings, client_factory=get_client):
    """Open a client carrying the admin credential and prove it works."""
    settings.require_password()
    client = client_factory(settings, authenticated=True)
    try:
        client.admin.command("ping")
    except OperationFailure as err:
        client.close()
        if err.code == AUTHENTICATION_FAILED:
            raise AuthenticationFailed(
                f"Authentication failed for user '{settings.admin_user}'"
            ) from err
        raise
    except PyMongoError:
        client.close()
        raise
    logger.info("Authenticated as '%s'", settings.admin_user)
    return client


def create_collections(db, idempotent: bool = False) -> list:
    """Create the sample collections; returns the names actually created."""
    existing = set(db.list_collection_names()) if idempotent else set()
    created = []
    for name in COLLECTIONS:
        if name in existing:
            logger.info("Collection '%s' already exists, skipping", name)
            continue
        try:
            db.create_collection(name)
        except CollectionInvalid as err:
            raise CollectionAlreadyExists(f"Collection '{name}' already exists") from err
        except OperationFailure as err:
            if err.code == NAMESPACE_EXISTS:
                raise CollectionAlreadyExists(f"Collection '{name}' already exists") from err
            raise
        logger.info("Created collection '%s'", name)
        created.append(name)
    return created


def insert_sample_data(db, now: Optional[datetime] = None, idempotent: bool = False) -> dict:
    """Insert the sample customers and orders; returns counts per collection."""
    inserted = {}
    for name, docs in sample_documents(now).items():
        if idempotent:
            ids = [d["_id"] for d in docs]
            present = set(db[name].distinct("_id", {"_id": {"$in": ids}}))
            docs = [d for d in docs if d["_id"] not in present]
        if not docs:
            inserted[name] = 0
            continue
        try:
            result = db[name].insert_many(docs)
        except BulkWriteError as err:
            codes = {e.get("code") for e in err.details.get("writeErrors", [])}
            if DUPLICATE_KEY in codes:
                raise DuplicateSampleDocument(
                    f"Sample documents already present in '{name}'"
                ) from err
            raise
        inserted[name] = len(result.inserted_ids)
        logger.info("Inserted %d document(s) into '%s'", inserted[name], name)
    return inserted


def _bootstrap_client(settings: MongoSettings, client_factory, idempotent: bool):
    # A node that was already seeded has auth on, so an idempotent re-run
    # starts from the admin credential when it works.
    if idempotent and settings.password():
        try:
            return authenticate(settings, client_factory), True
        except (AuthenticationFailed, OperationFailure):
            logger.info("Admin credential not usable yet, bootstrapping unauthenticated")
    return client_factory(settings, authenticated=False), False


def seed_environment(
    settings: Optional[MongoSettings] = None,
    client_factory=get_client,
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
    now: Optional[datetime] = None,
) -> SeedReport:
    """Run the whole bootstrap sequence, stopping at the first failure."""
    settings = settings or MongoSettings.from_env()
    settings.require_password()
    idempotent = settings.idempotent
    now = now or datetime.now(timezone.utc)
    report = SeedReport()
    clients = []

    try:
        client, is_admin = _bootstrap_client(settings, client_factory, idempotent)
        clients.append(client)

        if not initiate_replica_set(client, settings, idempotent):
            report.skipped.append("replSetInitiate")
        wait_for_primary(client, settings, sleep=sleep, clock=clock)
        report.stage = SeedStage.REPLICA_INITIATED

        if not create_admin_user(client, settings, idempotent):
            report.skipped.append("createUser")

        if is_admin:
            admin_client = client
        else:
            admin_client = authenticate(settings, client_factory)
            clients.append(admin_client)
        report.stage = SeedStage.AUTHENTICATED

        db = admin_client[settings.db_name]
        created = create_collections(db, idempotent)
        report.skipped.extend(f"create:{name}" for name in COLLECTIONS if name not in created)
        report.stage = SeedStage.COLLECTIONS_CREATED

        report.inserted = insert_sample_data(db, now, idempotent)
        report.stage = SeedStage.SEEDED
    except SeedError as err:
        if err.stage is None:
            err.stage = report.stage.value
        logger.error("Seeding halted after stage '%s': %s", err.stage, err)
        raise
    except PyMongoError as err:
        logger.error("Seeding halted after stage '%s': %s", report.stage.value, err)
        raise SeedError(f"MongoDB error: {err}", stage=report.stage.value) from err
    finally:
        for c in clients:
            c.close()

    report.stage = SeedStage.DONE
    logger.info("Seeding complete: %s", report.inserted)
    return report
