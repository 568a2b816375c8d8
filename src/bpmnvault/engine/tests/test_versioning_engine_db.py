from __future__ import annotations

import threading

import pytest
from sqlalchemy.orm import sessionmaker

from bpmnvault.bootstrap import import_all_models
from bpmnvault.config import get_settings
from bpmnvault.database import create_db_engine
from bpmnvault.engine.kinds import FILE
from bpmnvault.engine.version.service import VersioningEngine
from bpmnvault.exceptions import ConcurrentModificationError
from bpmnvault.models.base import Base

pytestmark = pytest.mark.requires_db


@pytest.fixture()
def session_factory():
    url = get_settings().TEST_DATABASE_URL
    if url.startswith("sqlite"):
        pytest.skip("row-lock tests need a server database (BPMNVAULT_TEST_DATABASE_URL)")
    import_all_models()
    engine = create_db_engine(url, echo=False)
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    try:
        yield sessionmaker(bind=engine, expire_on_commit=False)
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


def test_parallel_saves_serialize_on_row_lock(session_factory):
    setup = session_factory()
    stored = VersioningEngine(setup, FILE).create(file_name="race", data=b"v1")
    setup.commit()
    file_id = stored.id
    setup.close()

    barrier = threading.Barrier(2)
    outcomes = []

    def worker(payload: bytes):
        session = session_factory()
        try:
            barrier.wait()
            VersioningEngine(session, FILE).save(file_id, {"data": payload}, expected_version=1)
            session.commit()
            outcomes.append("saved")
        except ConcurrentModificationError:
            session.rollback()
            outcomes.append("conflict")
        finally:
            session.close()

    threads = [threading.Thread(target=worker, args=(p,)) for p in (b"a", b"b")]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert sorted(outcomes) == ["conflict", "saved"]

    check = session_factory()
    try:
        engine = VersioningEngine(check, FILE)
        assert engine.get(file_id).current_version == 2
        assert [v.version_number for v in engine.list_versions(file_id)] == [1]
    finally:
        check.close()
