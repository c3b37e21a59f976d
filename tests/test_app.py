import dataclasses
import time
from types import SimpleNamespace

import pytest

import orbitai.settings as settings
from orbitai.app import OrbitAIApp
from orbitai.errors import ErrorCode, ExportError
from orbitai.learning import LearningSession, SessionState
from orbitai.local.console import ConsoleParameterSource, execute_command


@pytest.fixture
def app_config(tmp_path, mochi_dirs):
    params_file = tmp_path / "params_to_enable.txt"
    params_file.write_text(",".join(settings.PARAMETER_NAMES))
    return SimpleNamespace(
        PARAMETER_NAMES=settings.PARAMETER_NAMES,
        PHOTODIODE_NAMES=settings.PHOTODIODE_NAMES,
        PARAMS_DEFAULT_VALUE=42.0,
        PARAMS_TO_ENABLE_FILE=params_file,
        DATA_DIR=mochi_dirs["to_ground"] / "data",
        DATA_LOG_MIN_INTERVAL=4.5,
        TO_GROUND_DIR=mochi_dirs["to_ground"],
        MOCHI_DIR=mochi_dirs["mochi"],
        MOCHI_EXECUTABLE=mochi_dirs["mochi"] / "OrbitAI_Mochi",
        MOCHI_MODELS_DIR=mochi_dirs["models"],
        MOCHI_LOGS_DIR=mochi_dirs["logs"],
        MOCHI_ADDRESS="127.0.0.1",
        MOCHI_PORT=9999,
        MOCHI_CONNECT_DELAY=0,
        MOCHI_SETTLE_DELAY=0,
        EXPERIMENT_MODE="train",
        LEARNING_INTERVAL=10,
        LEARNING_ITERATIONS=1000,
        PD6_ELEVATION_THRESHOLD=1.0472,
        GRACEFUL_SHUTDOWN_TIMEOUT=5,
        CONNECT_TIMEOUT=1,
        EXPORT_LEARNING_DIR="learning",
        EXPORT_PREFIX="mochi",
    )


@pytest.fixture
def sessions(supervisor, channel, exporter):
    """Session factory sharing the fake collaborators, remembering every session built."""
    built = []

    def factory(store, session_config, on_finished):
        config = dataclasses.replace(session_config, grace_period=0)
        session = LearningSession(
            store, config, on_experiment_finished=on_finished,
            supervisor=supervisor, channel=channel, exporter=exporter,
        )
        built.append(session)
        return session

    factory.built = built
    return factory


@pytest.fixture
def app(app_config, sessions):
    closes = []
    application = OrbitAIApp(
        app_config, ConsoleParameterSource(), session_factory=sessions, close_callback=lambda: closes.append(True),
    )
    application.closes = closes
    yield application
    if not application.closed.is_set():
        application.on_close()


def test_start_and_stop_learning(app, sessions, exporter):
    assert app.start_learning() is None
    assert app.session.state is SessionState.RUNNING
    assert app.start_learning() is ErrorCode.ALREADY_RUNNING
    assert app.stop_learning() is None
    assert app.session.state is SessionState.IDLE
    assert len(sessions.built) == 1
    assert len(exporter.calls) == 1


def test_stop_learning_before_any_start(app):
    assert app.stop_learning() is None


def test_start_failures_are_reported_as_codes(app, supervisor, channel):
    supervisor.fail_start = True
    assert app.start_learning() is ErrorCode.PROCESS_START_FAILED

    supervisor.fail_start = False
    channel.fail_connect = True
    assert app.start_learning() is ErrorCode.CONNECT_FAILED
    # The learning process left behind must be stopped before a new start.
    assert app.start_learning() is ErrorCode.ALREADY_RUNNING
    assert app.stop_learning() is None
    assert not supervisor.is_alive()

    channel.fail_connect = False
    assert app.start_learning() is None


def test_invalid_mode_is_reported(app, app_config):
    app_config.EXPERIMENT_MODE = "evaluate"
    assert app.start_learning() is ErrorCode.PROCESS_START_FAILED
    assert app.session is None


def test_export_failure_is_reported(app, exporter):
    exporter.error = ExportError("disk full")
    app.start_learning()
    assert app.stop_learning() is ErrorCode.EXPORT_FAILED


def test_experiment_end_closes_application(app, app_config, channel):
    app_config.LEARNING_INTERVAL = 0.01
    app_config.LEARNING_ITERATIONS = 2
    assert app.start_fetching_data() is None
    assert app.start_learning() is None

    assert app.closed.wait(timeout=5)
    assert app.closes == [True]
    assert not app.data_logger.is_open
    assert channel.commands()[-2:] == ["save", "exit"]


def test_on_close_stops_everything(app, supervisor):
    app.start_fetching_data()
    app.start_learning()
    assert app.on_close() is True
    assert app.closed.is_set()
    assert not app.data_logger.is_open
    assert not supervisor.is_alive()
    assert app.session.state is SessionState.IDLE


def test_console_push_reaches_store(app, capsys):
    source = app.data_handler.source
    execute_command(app, source, "push", ["CADC0894", "1.5"])
    assert "not being fetched" in capsys.readouterr().out

    execute_command(app, source, "fetch-start", [])
    execute_command(app, source, "push", ["cadc0894", "1.5"])
    assert app.store.get("CADC0894") == 1.5


def test_console_exit_closes_app(app):
    source = app.data_handler.source
    execute_command(app, source, "start", [])
    assert execute_command(app, source, "exit", []) is True
    assert app.closed.is_set()
    assert app.session.state is SessionState.IDLE


def test_second_on_close_does_nothing(app, exporter):
    app.start_learning()
    assert app.on_close() is True
    assert app.on_close() is True
    assert app.closes == [True]
    assert len(exporter.calls) == 1


def test_close_racing_experiment_end_closes_once(app, app_config, exporter):
    app_config.LEARNING_INTERVAL = 0.05
    app_config.LEARNING_ITERATIONS = 1
    assert app.start_learning() is None

    time.sleep(0.05)
    app.on_close()
    assert app.closed.wait(timeout=5)
    assert app.session.join(timeout=5)
    assert app.closes == [True]
    assert len(exporter.calls) == 1
    assert app.session.state is SessionState.IDLE
