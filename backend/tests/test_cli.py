from laundrypos.models import User
from laundrypos.services import sequence_service


def test_sequences_set_and_show(app, db_session):
    runner = app.test_cli_runner()

    result = runner.invoke(args=["sequences", "set", "TRX", "120"])
    assert result.exit_code == 0
    assert "TRX counter is now 120" in result.output

    result = runner.invoke(args=["sequences", "show"])
    assert "Store: database" in result.output
    assert "TRX" in result.output and "120" in result.output


def test_sequences_set_refuses_to_rewind(app, db_session):
    sequence_service.set_counter("C", 10)
    result = app.test_cli_runner().invoke(args=["sequences", "set", "C", "3"])
    assert result.exit_code != 0
    assert sequence_service.list_counters() == [{"prefix": "C", "counter_value": 10}]


def test_create_admin(app, db_session):
    runner = app.test_cli_runner()
    args = ["users", "create-admin", "--username", "owner",
            "--email", "owner@shop.local", "--password", "Password123!"]

    result = runner.invoke(args=args)
    assert result.exit_code == 0
    assert db_session.query(User).filter_by(username="owner").count() == 1

    duplicate = runner.invoke(args=args)
    assert duplicate.exit_code != 0
