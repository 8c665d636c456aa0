from sqlalchemy import DateTime
from sqlmodel import SQLModel

from Auth import users
from Auth.database import make_engine  # noqa: F401  (registers every table)

from conftest import PASSWORD


def test_timestamp_columns_are_naive():
    columns = [
        column
        for table in SQLModel.metadata.sorted_tables
        for column in table.columns
        if isinstance(column.type, DateTime)
    ]
    assert {c.name for c in columns} >= {"created_at", "locked_until", "attempted_at", "visited_at"}
    assert all(c.type.timezone is False for c in columns)


def test_naive_utc_round_trip(db, frozen_clock):
    user = users.create_user(db, "clock@example.com", PASSWORD)
    user.locked_until = frozen_clock.now
    db.add(user)
    db.commit()
    db.refresh(user)
    assert user.locked_until == frozen_clock.now
    assert user.locked_until.tzinfo is None
    assert user.created_at.tzinfo is None
