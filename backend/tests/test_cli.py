# Overview: Pytest coverage for the flask CLI command groups.

from storetrack.models import Staff, Store, User

from conftest import PASSWORD


class TestCli:

    def test_init_db_is_idempotent(self, app, db_session):
        runner = app.test_cli_runner()
        result = runner.invoke(args=["system", "init-db"])
        assert result.exit_code == 0
        assert "PASS" in result.output

    def test_create_owner(self, app, db_session):
        runner = app.test_cli_runner()
        result = runner.invoke(args=[
            "owners", "create",
            "--name", "Cli Owner",
            "--email", "cli@example.com",
            "--password", PASSWORD,
            "--store-name", "Cli Store",
        ])

        assert result.exit_code == 0, result.output
        user = db_session.query(User).filter_by(email="cli@example.com").one()
        assert db_session.get(Store, user.store_id).name == "Cli Store"

    def test_create_owner_weak_password_fails(self, app, db_session):
        runner = app.test_cli_runner()
        result = runner.invoke(args=[
            "owners", "create", "--name", "Weak", "--email", "weak@example.com", "--password", "weak",
        ])
        assert result.exit_code != 0
        assert db_session.query(User).count() == 0

    def test_create_staff(self, app, db_session, store_a):
        runner = app.test_cli_runner()
        result = runner.invoke(args=[
            "staff", "create",
            "--store-id", str(store_a.id),
            "--name", "Cli Staff",
            "--email", "cli.staff@example.com",
            "--password", PASSWORD,
        ])

        assert result.exit_code == 0, result.output
        staff = db_session.query(Staff).filter_by(email="cli.staff@example.com").one()
        assert staff.store_id == store_a.id
        assert staff.role == "staff"

        listing = runner.invoke(args=["staff", "list", "--store-id", str(store_a.id)])
        assert "cli.staff@example.com" in listing.output

    def test_create_staff_unknown_store(self, app, db_session):
        runner = app.test_cli_runner()
        result = runner.invoke(args=[
            "staff", "create", "--store-id", "99999",
            "--name", "Nobody", "--email", "nobody@example.com", "--password", PASSWORD,
        ])
        assert result.exit_code != 0
        assert "not found" in result.output
