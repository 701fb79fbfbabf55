import sys

import pytest

from components.errors import EngineConnectionError, SessionStateError
from engines.session import STARTED, STOPPED, UNINITIALIZED, ComputeSession


def test_lifecycle(fake_autogluon, tmp_path):
    session = ComputeSession(workspace=tmp_path / "ws")
    assert session.state == UNINITIALIZED
    session.start()
    assert session.state == STARTED
    assert (tmp_path / "ws").is_dir()
    assert session.predictor_cls is fake_autogluon
    session.stop()
    assert session.state == STOPPED
    assert not (tmp_path / "ws").exists()


def test_start_twice_is_a_no_op(fake_autogluon, tmp_path):
    session = ComputeSession(workspace=tmp_path / "ws").start()
    assert session.start() is session
    session.stop()


def test_stopped_session_cannot_restart(fake_autogluon, tmp_path):
    session = ComputeSession(workspace=tmp_path / "ws").start()
    session.stop()
    with pytest.raises(SessionStateError):
        session.start()


def test_unreachable_engine_raises_connection_error(monkeypatch, tmp_path):
    monkeypatch.setitem(sys.modules, "autogluon.tabular", None)
    session = ComputeSession(workspace=tmp_path / "ws")
    with pytest.raises(ConnectionError) as excinfo:
        session.start()
    assert isinstance(excinfo.value, EngineConnectionError)
    assert session.state == UNINITIALIZED


def test_unusable_workspace_raises_connection_error(fake_autogluon, tmp_path):
    blocker = tmp_path / "file"
    blocker.write_text("not a directory")
    with pytest.raises(EngineConnectionError):
        ComputeSession(workspace=blocker / "ws").start()


def test_calls_before_start_fail(fake_autogluon):
    session = ComputeSession()
    with pytest.raises(SessionStateError):
        session.model_path("m")
    with pytest.raises(SessionStateError):
        session.predictor_cls


def test_temporary_workspace(fake_autogluon):
    with ComputeSession() as session:
        workspace = session.workspace
        assert workspace.is_dir()
    assert not workspace.exists()


def test_keep_workspace(fake_autogluon, tmp_path):
    with ComputeSession(workspace=tmp_path / "ws", keep_workspace=True):
        pass
    assert (tmp_path / "ws").is_dir()


def test_stop_releases_handles(engine, session, partition, housing):
    handle = engine.train(housing.features, "medv", partition.train, model_id="m1", seed=1)
    assert session.get("m1") is handle
    session.stop()
    assert handle.released
    with pytest.raises(SessionStateError):
        handle.predict(partition.test)
