import pytest
from sqlalchemy import inspect
from sqlalchemy.exc import IntegrityError

from clinic_scheduler.models.participant import Participant


def test_first_session_creates_every_table(database) -> None:
    with database.session_scope():
        pass

    assert {'participants', 'availability', 'appointments'} <= set(inspect(database.engine).get_table_names())


def test_ensure_schema_is_idempotent(database) -> None:
    database.ensure_schema()
    database.ensure_schema()

    assert 'appointments' in inspect(database.engine).get_table_names()


def test_session_scope_rolls_back_on_database_error(database) -> None:
    with pytest.raises(IntegrityError):
        with database.session_scope() as session:
            session.add(Participant(id='D1', role='doctor', name='Dr. Avery'))
            session.flush()
            session.add(Participant(id='D2', role='doctor', name=None))
            session.flush()

    with database.session_scope() as session:
        assert session.query(Participant).count() == 0
