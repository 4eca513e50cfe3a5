# connect_db.py - MongoClient construction for the source node
from typing import Optional

from pymongo import MongoClient

from .config import MongoSettings


def get_client(settings: MongoSettings, authenticated: bool = True) -> MongoClient:
    """Build a client talking directly to the configured node.

    A direct connection is needed because the node is not yet a replica set
    member when the seeder first reaches it.
    """
    kwargs = {
        "directConnection": True,
        "serverSelectionTimeoutMS": settings.server_selection_timeout_ms,
    }
    if settings.tls:
        kwargs["tls"] = True
        kwargs["tlsAllowInvalidCertificates"] = settings.tls_allow_invalid_certificates
    password = settings.password()
    if authenticated and password:
        kwargs["username"] = settings.admin_user
        kwargs["password"] = password
        kwargs["authSource"] = settings.admin_db
    return MongoClient(settings.mongo_uri, **kwargs)


def get_database(settings: Optional[MongoSettings] = None):
    settings = settings or MongoSettings.from_env()
    try:
        client = get_client(settings)

        # Test the connection
        client.admin.command("ping")

        db = client[settings.db_name]
        print(f"✅ Connected to MongoDB database: {settings.db_name}")
        return db
    except Exception as e:
        print(f"❌ Failed to connect to MongoDB: {e}")
        raise


if __name__ == "__main__":
    get_database()
