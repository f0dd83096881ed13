import errno
import re
import subprocess
import sys
import threading

import pytest

from adbtool_core.infrastructure.logcat import stream_supervisor as supervisor_module
from adbtool_core.infrastructure.logcat import (
    ActiveLogStream,
    AlreadyStreamingError,
    LogcatStreamSupervisor,
    NotStreamingError,
    StreamSpawnError,
    StreamState,
)
from adbtool_core.logic.models import LogcatLine, ToolConfig

SERIAL = "emulator-5554"
ADB = "/opt/platform-tools/adb"

SLEEP_SCRIPT = "import time\ntime.sleep(60)\n"

THREADTIME_ONE = "01-15 12:34:56.789  1234  5678 D ActivityManager: one"
THREADTIME_TWO = "01-15 12:34:56.790  1234  5679 I PackageManager: two: with colon"


def emit_script(stdout_lines, stderr_lines=(), exit_code=0):
    """Child program that prints the given lines and exits."""
    return (
        "import sys\n"
        f"for line in {list(stderr_lines)!r}:\n"
        "    sys.stderr.write(line + '\\n')\n"
        "sys.stderr.flush()\n"
        f"for line in {list(stdout_lines)!r}:\n"
        "    sys.stdout.write(line + '\\n')\n"
        "sys.stdout.flush()\n"
        f"sys.exit({exit_code})\n"
    )


class FakeAdb:
    """Stands in for the adb binary by running a Python child instead."""

    def __init__(self, script):
        self.script = script
        self.commands = []

    def __call__(self, command, **kwargs):
        self.commands.append(command)
        return subprocess.Popen([sys.executable, "-c", self.script], **kwargs)


class DummyProcess:
    pid = 4242

    def __init__(self):
        self.terminated = False

    def terminate(self):
        self.terminated = True


class FullDiskFile:
    """Log file whose close fails the way it does on a full disk."""

    def __init__(self, path):
        self._file = open(path, "a", encoding="utf-8")

    @property
    def closed(self):
        return self._file.closed

    def write(self, text):
        return self._file.write(text)

    def flush(self):
        self._file.flush()

    def close(self):
        self._file.close()
        raise OSError(errno.ENOSPC, "No space left on device")


def drain(stream, timeout=10):
    events = []
    while True:
        event = stream.events.get(timeout=timeout)
        if event is None:
            return events
        events.append(event)


@pytest.fixture
def log_dir(tmp_path):
    return tmp_path / "logs"


def make_supervisor(log_dir, script):
    fake = FakeAdb(script)
    return LogcatStreamSupervisor(log_dir, adb_path=ADB, popen_factory=fake), fake


def test_relays_lines_and_persists_log(log_dir):
    supervisor, fake = make_supervisor(log_dir, emit_script(
        ["--------- beginning of main", THREADTIME_ONE, "", THREADTIME_TWO],
        stderr_lines=["adb: device offline"]
    ))

    stream = supervisor.start(SERIAL)
    events = drain(stream)
    assert stream.wait_finished(timeout=10)

    assert fake.commands == [[ADB, "-s", SERIAL, "logcat", "-v", "threadtime"]]
    assert events == [
        LogcatLine.raw_only("--------- beginning of main"),
        LogcatLine("01-15 12:34:56.789", "1234", "5678", "D", "ActivityManager", "one", THREADTIME_ONE),
        LogcatLine("01-15 12:34:56.790", "1234", "5679", "I", "PackageManager", "two: with colon", THREADTIME_TWO),
    ]
    assert stream.lines_relayed == 3
    assert stream.exit_code == 0
    assert stream.state == StreamState.IDLE
    assert not supervisor.is_streaming(SERIAL)

    assert stream.log_path.parent == log_dir
    assert re.fullmatch(r"logcat_emulator-5554_\d{8}_\d{6}_\d{3}\.log", stream.log_path.name)
    content = stream.log_path.read_text(encoding="utf-8")
    assert content.index("--------- beginning of main\n") < content.index(THREADTIME_ONE) < content.index(THREADTIME_TWO)
    assert "[STDERR] adb: device offline\n" in content
    assert content.endswith("\n--- logcat terminated: code 0 ---\n")


def test_stderr_is_not_relayed(log_dir):
    supervisor, _ = make_supervisor(log_dir, emit_script([], stderr_lines=["error: device not found"], exit_code=1))

    stream = supervisor.start(SERIAL)

    assert drain(stream) == []
    assert stream.wait_finished(timeout=10)
    assert stream.exit_code == 1
    content = stream.log_path.read_text(encoding="utf-8")
    assert content == "[STDERR] error: device not found\n\n--- logcat terminated: code 1 ---\n"


def test_second_start_is_rejected(log_dir):
    supervisor, fake = make_supervisor(log_dir, SLEEP_SCRIPT)
    stream = supervisor.start(SERIAL)
    try:
        with pytest.raises(AlreadyStreamingError) as excinfo:
            supervisor.start(SERIAL)
        assert excinfo.value.serial == SERIAL
        assert len(fake.commands) == 1
        assert supervisor.active_serials() == [SERIAL]
    finally:
        supervisor.stop(SERIAL)
        assert stream.wait_finished(timeout=10)


def test_stop_without_stream(log_dir):
    supervisor, _ = make_supervisor(log_dir, SLEEP_SCRIPT)

    with pytest.raises(NotStreamingError):
        supervisor.stop(SERIAL)


def test_stop_terminates_and_finalizes(log_dir):
    supervisor, _ = make_supervisor(log_dir, SLEEP_SCRIPT)
    stream = supervisor.start(SERIAL)

    supervisor.stop(SERIAL)

    assert not supervisor.is_streaming(SERIAL)
    with pytest.raises(NotStreamingError):
        supervisor.stop(SERIAL)

    assert stream.wait_finished(timeout=10)
    assert drain(stream) == []
    assert stream.exit_code is not None and stream.exit_code != 0
    content = stream.log_path.read_text(encoding="utf-8")
    assert content.endswith(f"\n--- logcat terminated: code {stream.exit_code} ---\n")


def test_start_again_after_stop(log_dir):
    supervisor, fake = make_supervisor(log_dir, SLEEP_SCRIPT)
    first = supervisor.start(SERIAL)
    supervisor.stop(SERIAL)

    second = supervisor.start(SERIAL)
    try:
        assert second is not first
        assert supervisor.is_streaming(SERIAL)
        # The old stream's exit must not evict the new one
        assert first.wait_finished(timeout=10)
        assert supervisor.is_streaming(SERIAL)
    finally:
        supervisor.stop(SERIAL)
        assert second.wait_finished(timeout=10)
    assert second.log_path != first.log_path
    assert len(fake.commands) == 2


def test_restart_after_process_exit(log_dir):
    supervisor, fake = make_supervisor(log_dir, emit_script([THREADTIME_ONE]))

    first = supervisor.start(SERIAL)
    assert first.wait_finished(timeout=10)
    assert not supervisor.is_streaming(SERIAL)

    second = supervisor.start(SERIAL)
    assert [e.message for e in drain(second)] == ["one"]
    assert second.wait_finished(timeout=10)
    assert len(fake.commands) == 2


def test_closing_subscription_keeps_stream_running(log_dir):
    supervisor, _ = make_supervisor(log_dir, SLEEP_SCRIPT)
    stream = supervisor.start(SERIAL)
    try:
        stream.events.close()

        assert stream.events.closed
        assert stream.events.get(timeout=1) is None
        assert supervisor.is_streaming(SERIAL)
        assert stream.process.poll() is None
    finally:
        supervisor.stop(SERIAL)
        assert stream.wait_finished(timeout=10)


def test_spawn_failure_leaves_no_entry(log_dir):
    def missing_adb(command, **kwargs):
        raise FileNotFoundError(2, "No such file or directory", command[0])

    supervisor = LogcatStreamSupervisor(log_dir, adb_path=ADB, popen_factory=missing_adb)

    with pytest.raises(StreamSpawnError) as excinfo:
        supervisor.start(SERIAL)

    assert isinstance(excinfo.value.cause, FileNotFoundError)
    assert not supervisor.is_streaming(SERIAL)
    assert supervisor.active_serials() == []


def test_unusable_log_directory(tmp_path):
    blocker = tmp_path / "not-a-directory"
    blocker.write_text("occupied")
    fake = FakeAdb(SLEEP_SCRIPT)
    supervisor = LogcatStreamSupervisor(blocker, adb_path=ADB, popen_factory=fake)

    with pytest.raises(StreamSpawnError):
        supervisor.start(SERIAL)

    assert fake.commands == []
    assert not supervisor.is_streaming(SERIAL)


def test_shutdown_all(log_dir):
    supervisor, _ = make_supervisor(log_dir, SLEEP_SCRIPT)
    streams = [supervisor.start(serial) for serial in ("emulator-5554", "192.168.1.5:5555")]
    assert supervisor.active_serials() == ["192.168.1.5:5555", "emulator-5554"]

    supervisor.shutdown_all()

    assert supervisor.active_serials() == []
    for stream in streams:
        assert stream.wait_finished(timeout=10)
    assert streams[1].log_path.name.startswith("logcat_192.168.1.5_5555_")


def test_concurrent_starts_have_one_winner(log_dir):
    supervisor, fake = make_supervisor(log_dir, SLEEP_SCRIPT)
    started, rejected = [], []
    barrier = threading.Barrier(8)

    def attempt():
        barrier.wait()
        try:
            started.append(supervisor.start(SERIAL))
        except AlreadyStreamingError as e:
            rejected.append(e)

    threads = [threading.Thread(target=attempt) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=10)

    try:
        assert len(started) == 1
        assert len(rejected) == 7
        assert len(fake.commands) == 1
    finally:
        supervisor.shutdown_all()
        for stream in started:
            assert stream.wait_finished(timeout=10)


def test_from_config(tmp_path):
    config = ToolConfig.from_dict({
        "logcat": {"log_directory": str(tmp_path / "captures"), "format": "brief", "stderr_prefix": "E> "}
    })

    supervisor = LogcatStreamSupervisor.from_config(config, ADB)

    assert supervisor.log_directory == tmp_path / "captures"
    assert supervisor.stderr_prefix == "E> "
    assert supervisor.build_command("abc") == [ADB, "-s", "abc", "logcat", "-v", "brief"]


class TestActiveLogStream:

    @pytest.fixture
    def stream(self, tmp_path):
        path = tmp_path / "capture.log"
        return ActiveLogStream(SERIAL, DummyProcess(), open(path, "a", encoding="utf-8"), path)

    def test_file_before_event_in_arrival_order(self, stream):
        lines = [f"01-15 12:34:56.{i:03d}  1  2 V Tag: line {i}" for i in range(50)]
        for line in lines:
            stream.relay_line(line)
            assert stream.log_path.read_text(encoding="utf-8").endswith(line + "\n")
        stream.finish(0)

        assert [e.message for e in drain(stream)] == [f"line {i}" for i in range(50)]
        assert stream.log_path.read_text(encoding="utf-8") == (
            "".join(line + "\n" for line in lines) + "\n--- logcat terminated: code 0 ---\n"
        )

    def test_blank_line_is_logged_but_not_relayed(self, stream):
        assert stream.relay_line("") is None
        stream.finish(0)

        assert drain(stream) == []
        assert stream.lines_relayed == 0
        assert stream.log_path.read_text(encoding="utf-8").startswith("\n")

    def test_closed_subscription_still_writes_file(self, stream):
        stream.events.close()
        stream.relay_line(THREADTIME_ONE)
        stream.finish(0)

        assert stream.lines_relayed == 0
        assert THREADTIME_ONE in stream.log_path.read_text(encoding="utf-8")

    def test_stderr_prefix(self, stream):
        stream.record_stderr("adb: warning")
        stream.finish(255)

        assert stream.log_path.read_text(encoding="utf-8") == (
            "[STDERR] adb: warning\n\n--- logcat terminated: code 255 ---\n"
        )

    def test_writes_after_finish_are_dropped(self, stream):
        stream.finish(0)
        stream.record_stderr("late")

        assert "late" not in stream.log_path.read_text(encoding="utf-8")

    def test_terminate(self, stream):
        stream.terminate()

        assert stream.process.terminated
        assert stream.state == StreamState.STOPPING
        assert stream.pid == 4242


def test_exit_cleanup_survives_failing_close(log_dir, monkeypatch):
    monkeypatch.setattr(supervisor_module, "open", lambda path, *args, **kwargs: FullDiskFile(path), raising=False)
    supervisor, _ = make_supervisor(log_dir, emit_script([THREADTIME_ONE]))

    stream = supervisor.start(SERIAL)

    assert [e.message for e in drain(stream)] == ["one"]
    assert stream.wait_finished(timeout=10)
    assert stream.state == StreamState.IDLE
    assert not supervisor.is_streaming(SERIAL)

    second = supervisor.start(SERIAL)
    assert [e.message for e in drain(second)] == ["one"]
    assert second.wait_finished(timeout=10)


class TestStreamCleanup:

    def test_finish_tolerates_close_failure(self, tmp_path):
        path = tmp_path / "capture.log"
        stream = ActiveLogStream(SERIAL, DummyProcess(), FullDiskFile(path), path)
        stream.relay_line(THREADTIME_ONE)

        stream.finish(0)

        assert stream.state == StreamState.IDLE
        assert [e.message for e in drain(stream)] == ["one"]
        assert path.read_text(encoding="utf-8").endswith("\n--- logcat terminated: code 0 ---\n")

    def test_close_drops_unread_events(self, tmp_path):
        path = tmp_path / "capture.log"
        stream = ActiveLogStream(SERIAL, DummyProcess(), open(path, "a", encoding="utf-8"), path)
        for i in range(100):
            stream.relay_line(f"01-15 12:34:56.000  1  2 V Tag: line {i}")
        assert stream.events.pending() == 100

        stream.events.close()

        assert stream.events.pending() == 0
        assert stream.events.get(timeout=1) is None
        stream.finish(0)
        assert len(path.read_text(encoding="utf-8").splitlines()) == 102
