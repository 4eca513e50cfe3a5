import pytest
from pymongo.errors import OperationFailure

from mongodb_source.generator import ChangeGenerator
from mongodb_source.verify import verify_environment

from conftest import FakeClient


@pytest.fixture
def admin_client(seeded_server, settings):
    return FakeClient(seeded_server, (settings.admin_user, settings.password()))


def test_freshly_seeded_node_is_healthy(admin_client, settings):
    report = verify_environment(admin_client, settings)
    assert report.ok, report.problems


def test_wrong_replica_set_name(admin_client, settings):
    report = verify_environment(admin_client, settings.model_copy(update={"replica_set_name": "rs9"}))
    assert report.problems == ["replica set is 'rs0', expected 'rs9'"]


def test_uninitialized_node(server, settings):
    report = verify_environment(FakeClient(server), settings)
    assert not report.ok
    assert report.problems[0].startswith("replica set status unavailable")
    assert any("user 'admin' not found" in p for p in report.problems)
    assert any("missing collections: customers, orders" in p for p in report.problems)


def test_missing_role(admin_client, seeded_server, settings):
    seeded_server.users["admin"]["roles"] = [
        r for r in seeded_server.users["admin"]["roles"] if r["role"] != "dbAdminAnyDatabase"
    ]
    report = verify_environment(admin_client, settings)
    assert report.problems == ["user 'admin' is missing roles: dbAdminAnyDatabase"]


def test_changed_and_missing_documents(admin_client, seeded_server, settings):
    customers = seeded_server.databases["inventory"]["customers"]
    customers[1002]["email"] = "jane@example.org"
    del customers[1005]

    report = verify_environment(admin_client, settings)

    assert "'customers' holds 4 documents, expected 5" in report.problems
    assert "'customers' is missing _id 1005" in report.problems
    assert any("_id 1002: email is 'jane@example.org'" in p for p in report.problems)


def test_dangling_customer_reference(admin_client, seeded_server, settings):
    del seeded_server.databases["inventory"]["customers"][1004]
    report = verify_environment(admin_client, settings, exact=False)
    assert "order 2005 references unknown customer 1004" in report.problems


def test_extra_documents_only_fail_exact_mode(admin_client, inventory, settings):
    inventory["orders"].insert_one({"_id": 2006, "customer_id": 1001, "status": "PENDING", "total": 1.0})
    assert not verify_environment(admin_client, settings).ok
    assert verify_environment(admin_client, settings, exact=False).ok


def test_schema_violations_are_reported(admin_client, seeded_server, settings):
    seeded_server.databases["inventory"]["orders"][2003]["order_date"] = "yesterday"
    report = verify_environment(admin_client, settings)
    assert any("_id 2003" in p and "datetime" in p for p in report.problems)


def test_unexpected_collection(admin_client, inventory, settings):
    inventory.create_collection("audit")
    report = verify_environment(admin_client, settings)
    assert report.problems == ["unexpected collections: audit"]


def test_wrong_credential_is_reported(seeded_server, settings):
    report = verify_environment(FakeClient(seeded_server, ("admin", "wrong")), settings)
    assert report.problems == ["authentication failed for user 'admin'"]


def test_unreadable_user_info_is_reported(admin_client, seeded_server, settings, monkeypatch):
    real_command = seeded_server.run_command

    def run_command(client, db_name, name, value=1, **kwargs):
        if name == "usersInfo":
            raise OperationFailure("not authorized on admin", code=13)
        return real_command(client, db_name, name, value, **kwargs)

    monkeypatch.setattr(seeded_server, "run_command", run_command)
    report = verify_environment(admin_client, settings)
    assert report.problems == ["cannot read user 'admin': not authorized on admin"]


def test_generator_changes_pass_relaxed_check(admin_client, inventory, settings, generator_settings):
    generator = ChangeGenerator(inventory, generator_settings)
    for _ in range(30):
        generator.update_random_record()
    for _ in range(5):
        generator.execute_batch()

    assert not verify_environment(admin_client, settings).ok
    relaxed = verify_environment(admin_client, settings, exact=False)
    assert relaxed.ok, relaxed.problems


def test_relaxed_check_still_compares_names_and_totals(admin_client, seeded_server, settings):
    seeded_server.databases["inventory"]["orders"][2004]["total"] = 1.0
    report = verify_environment(admin_client, settings, exact=False)
    assert report.problems == ["'orders' _id 2004: total is 1.0, expected 75.25"]
