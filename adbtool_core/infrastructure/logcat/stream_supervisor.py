"""
Logcat stream supervisor.

Owns one `adb -s <serial> logcat -v threadtime` child process per device.
Each line the child prints is appended verbatim to a per-start log file and
then relayed, tokenized where possible, to the stream's event channel.
Standard error goes to the same file with a prefix and is never relayed.

The registry of active streams belongs to the supervisor instance and every
access to it happens under the supervisor's lock. At most one stream exists
per serial; a stream leaves the registry on `stop()` or when its process
exits, whichever comes first.
"""

import logging
import queue
import subprocess
import threading
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, IO, Iterator, List, Optional

from adbtool_core.logic.models import LogcatLine, ToolConfig
from ..parsers.logcat_parser import to_event
from .log_directory import ensure_log_directory, unique_log_path

TERMINATION_MARKER = "\n--- logcat terminated: code {code} ---\n"


class LogcatStreamError(Exception):
    """Base class for stream state violations."""

    def __init__(self, message: str, serial: str):
        super().__init__(message)
        self.serial = serial


class AlreadyStreamingError(LogcatStreamError):
    """A stream is already active for the serial."""

    def __init__(self, serial: str):
        super().__init__(f"Logcat stream already active for device {serial}", serial)


class NotStreamingError(LogcatStreamError):
    """No stream is active for the serial."""

    def __init__(self, serial: str):
        super().__init__(f"No active logcat stream for device {serial}", serial)


class StreamSpawnError(LogcatStreamError):
    """The log file could not be opened or the child process could not be started."""

    def __init__(self, serial: str, cause: Exception):
        super().__init__(f"Failed to start logcat for device {serial}: {cause}", serial)
        self.cause = cause


class StreamState(Enum):
    """Lifecycle of a single stream."""
    IDLE = "idle"
    STARTING = "starting"
    STREAMING = "streaming"
    STOPPING = "stopping"


_END_OF_STREAM = object()


class LogcatSubscription:
    """
    Unbounded, ordered channel of LogcatLine events for one stream.

    Publishing never blocks. Closing the subscription discards further
    events but leaves the underlying process running; only `stop()` or the
    process exiting ends a stream.
    """

    def __init__(self, serial: str):
        self.serial = serial
        self._queue: "queue.Queue" = queue.Queue()
        self._closed = threading.Event()

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def publish(self, line: LogcatLine) -> bool:
        if self._closed.is_set():
            return False
        self._queue.put_nowait(line)
        return True

    def end(self) -> None:
        """Signal that no further events will arrive."""
        self._queue.put_nowait(_END_OF_STREAM)

    def close(self) -> None:
        """Stop receiving events and drop any still queued. Does not terminate the stream."""
        self._closed.set()
        while True:
            try:
                self._queue.get_nowait()
            except queue.Empty:
                break
        self._queue.put_nowait(_END_OF_STREAM)

    def pending(self) -> int:
        """Number of queued events not yet read."""
        with self._queue.mutex:
            return sum(1 for item in self._queue.queue if item is not _END_OF_STREAM)

    def get(self, timeout: Optional[float] = None) -> Optional[LogcatLine]:
        """
        Next event, or None once the stream has ended or the channel is closed.

        Raises:
            queue.Empty: if `timeout` elapses first
        """
        item = self._queue.get(timeout=timeout)
        if item is _END_OF_STREAM:
            # Keep the marker so later readers see the end too
            self._queue.put_nowait(_END_OF_STREAM)
            return None
        return item

    def __iter__(self) -> Iterator[LogcatLine]:
        while True:
            item = self.get()
            if item is None:
                return
            yield item


class ActiveLogStream:
    """
    Handle for one running logcat capture.

    Only the supervisor and this object write to the log file or signal the
    process.
    """

    def __init__(self,
                 serial: str,
                 process: subprocess.Popen,
                 log_file: IO[str],
                 log_path: Path,
                 stderr_prefix: str = "[STDERR] "):
        self.serial = serial
        self.process = process
        self.log_path = log_path
        self.stderr_prefix = stderr_prefix
        self.events = LogcatSubscription(serial)
        self.state = StreamState.STARTING
        self.exit_code: Optional[int] = None
        self.lines_relayed = 0

        self._log_file = log_file
        self._write_lock = threading.Lock()
        self._finished = threading.Event()
        self.logger = logging.getLogger("logcat.stream")

    @property
    def pid(self) -> int:
        return self.process.pid

    def relay_line(self, raw_line: str) -> Optional[LogcatLine]:
        """
        Persist one stdout line, then relay its event.

        Returns:
            The event relayed, or None for a blank line
        """
        self._write(raw_line + "\n")
        event = to_event(raw_line)
        if event is not None and self.events.publish(event):
            self.lines_relayed += 1
        return event

    def record_stderr(self, line: str) -> None:
        self._write(f"{self.stderr_prefix}{line}\n")

    def _write(self, text: str) -> None:
        with self._write_lock:
            if self._log_file.closed:
                return
            try:
                self._log_file.write(text)
                self._log_file.flush()
            except OSError as e:
                # Keep streaming even if the capture file becomes unwritable
                self.logger.warning(f"Write to {self.log_path} failed: {e}")

    def terminate(self) -> None:
        """Send the graceful termination signal without waiting for exit."""
        self.state = StreamState.STOPPING
        try:
            self.process.terminate()
        except OSError as e:
            self.logger.debug(f"Terminate for {self.serial} ignored: {e}")

    def finish(self, exit_code: Optional[int]) -> None:
        """Append the termination marker, close the file and end the channel."""
        self.exit_code = exit_code
        try:
            with self._write_lock:
                if not self._log_file.closed:
                    try:
                        self._log_file.write(TERMINATION_MARKER.format(code=exit_code))
                    except OSError as e:
                        self.logger.warning(f"Could not write termination marker to {self.log_path}: {e}")
                    try:
                        self._log_file.close()
                    except OSError as e:
                        self.logger.warning(f"Closing {self.log_path} failed: {e}")
        finally:
            self.state = StreamState.IDLE
            self.events.end()

    def release_waiters(self) -> None:
        """Wake `wait_finished` callers once the registry no longer holds this stream."""
        self._finished.set()

    def wait_finished(self, timeout: Optional[float] = None) -> bool:
        """Block until exit cleanup has run. Returns False on timeout."""
        return self._finished.wait(timeout)


def _decode_line(raw: bytes) -> str:
    line = raw.decode('utf-8', errors='replace')
    if line.endswith('\n'):
        line = line[:-1]
    if line.endswith('\r'):
        line = line[:-1]
    return line


class LogcatStreamSupervisor:
    """
    Starts, tracks and stops logcat streams, one per device serial.

    Each stream runs two daemon threads: one relaying stdout line by line and
    one copying stderr into the log file. The stdout thread also performs the
    exit cleanup once the process closes its output.
    """

    def __init__(self,
                 log_directory: Path,
                 adb_path: str = "adb",
                 logcat_format: str = "threadtime",
                 stderr_prefix: str = "[STDERR] ",
                 popen_factory: Callable[..., subprocess.Popen] = subprocess.Popen):
        self.log_directory = Path(log_directory)
        self.adb_path = adb_path
        self.logcat_format = logcat_format
        self.stderr_prefix = stderr_prefix
        self._popen_factory = popen_factory

        self._streams: Dict[str, ActiveLogStream] = {}
        self._lock = threading.Lock()
        self.logger = logging.getLogger("logcat.supervisor")

    @classmethod
    def from_config(cls, config: ToolConfig, adb_path: str, **kwargs) -> 'LogcatStreamSupervisor':
        return cls(
            log_directory=config.logcat.log_directory,
            adb_path=adb_path,
            logcat_format=config.logcat.format,
            stderr_prefix=config.logcat.stderr_prefix,
            **kwargs
        )

    def build_command(self, serial: str) -> List[str]:
        return [self.adb_path, "-s", serial, "logcat", "-v", self.logcat_format]

    def start(self, serial: str) -> ActiveLogStream:
        """
        Start streaming logcat for a device.

        Events are buffered without limit until read. A caller that stops
        reading must call `handle.events.close()`; dropping the handle does
        not release the buffer, since the registry still holds the stream.

        Returns:
            The new stream handle; consume `handle.events` for LogcatLine events

        Raises:
            AlreadyStreamingError: if the serial already has an active stream
            StreamSpawnError: if the log file or the process cannot be created
        """
        with self._lock:
            if serial in self._streams:
                raise AlreadyStreamingError(serial)

            try:
                directory = ensure_log_directory(self.log_directory)
                log_path = unique_log_path(directory, serial)
                log_file = open(log_path, 'a', encoding='utf-8')
            except OSError as e:
                raise StreamSpawnError(serial, e) from e

            try:
                process = self._popen_factory(
                    self.build_command(serial),
                    stdin=subprocess.DEVNULL,
                    stdout=subprocess.PIPE,
                    stderr=subprocess.PIPE
                )
            except (OSError, ValueError) as e:
                log_file.close()
                self.logger.error(f"Failed to spawn logcat for {serial}: {e}")
                raise StreamSpawnError(serial, e) from e

            stream = ActiveLogStream(serial, process, log_file, log_path, self.stderr_prefix)
            self._streams[serial] = stream

        stderr_thread = threading.Thread(
            target=self._copy_stderr,
            args=(stream,),
            name=f"logcat-stderr-{serial}",
            daemon=True
        )
        stdout_thread = threading.Thread(
            target=self._relay_stdout,
            args=(stream, stderr_thread),
            name=f"logcat-stdout-{serial}",
            daemon=True
        )
        stream.state = StreamState.STREAMING
        stderr_thread.start()
        stdout_thread.start()

        self.logger.info(f"Logcat stream started for {serial} (pid {stream.pid}) -> {log_path}")
        return stream

    def stop(self, serial: str) -> None:
        """
        Signal the stream's process to terminate and forget the stream.

        Returns immediately; the file is closed once the process has exited.

        Raises:
            NotStreamingError: if no stream is active for the serial
        """
        with self._lock:
            stream = self._streams.pop(serial, None)
        if stream is None:
            raise NotStreamingError(serial)

        stream.terminate()
        self.logger.info(f"Logcat stream stop requested for {serial}")

    def shutdown_all(self) -> None:
        """Terminate every active stream. Used once at application teardown."""
        with self._lock:
            streams = list(self._streams.values())
            self._streams.clear()

        for stream in streams:
            stream.terminate()
        if streams:
            self.logger.info(f"Terminated {len(streams)} logcat streams")

    def is_streaming(self, serial: str) -> bool:
        with self._lock:
            return serial in self._streams

    def active_serials(self) -> List[str]:
        with self._lock:
            return sorted(self._streams)

    def _relay_stdout(self, stream: ActiveLogStream, stderr_thread: threading.Thread) -> None:
        try:
            for raw in iter(stream.process.stdout.readline, b''):
                stream.relay_line(_decode_line(raw))
        except (OSError, ValueError) as e:
            self.logger.warning(f"Reading logcat output for {stream.serial} failed: {e}")
        finally:
            exit_code = None
            try:
                stderr_thread.join()
                exit_code = stream.process.wait()
                stream.finish(exit_code)
            finally:
                # Process exit always frees the serial
                self._release(stream)
                stream.release_waiters()
            self.logger.info(f"Logcat stream for {stream.serial} ended with code {exit_code}")

    def _copy_stderr(self, stream: ActiveLogStream) -> None:
        try:
            for raw in iter(stream.process.stderr.readline, b''):
                stream.record_stderr(_decode_line(raw))
        except (OSError, ValueError) as e:
            self.logger.warning(f"Reading logcat stderr for {stream.serial} failed: {e}")

    def _release(self, stream: ActiveLogStream) -> None:
        # A newer stream may already own this serial after stop() + start()
        with self._lock:
            if self._streams.get(stream.serial) is stream:
                del self._streams[stream.serial]
