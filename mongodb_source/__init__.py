"""mongodb_source package initializer

Bootstrap tooling for the MongoDB source of the CDC demo: replica set
initiation, the admin user, the `inventory` sample data, a verification pass
and a change generator that keeps the change stream busy.

Run it with `python -m mongodb_source` or the `mongodb-source` console script.
"""

__all__ = [
    "config",
    "connect_db",
    "errors",
    "generator",
    "sample_data",
    "schema",
    "seeder",
    "verify",
]

__version__ = "1.0.0"
