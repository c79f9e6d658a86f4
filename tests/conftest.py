import pytest
from pathlib import Path

from recorder_backup.acquisition.ui import UiApplication, UiElement
from recorder_backup.models import AcquisitionTimeouts
from recorder_backup.transcoding.engine import EngineResult


class FakeClock:
    """monotonic()/sleep() pair where sleeping just advances time."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.now += seconds


class FakeElement(UiElement):
    def __init__(self, name="", control_type="text", children=None, is_password=False,
                 rect=(0, 0, 0, 0), supports_value=False, on_invoke=None):
        self._name = name
        self._type = control_type
        self._children = list(children or [])
        self._is_password = is_password
        self._rect = rect
        self._supports_value = supports_value
        self.on_invoke = on_invoke
        self.value = None
        self.invoked = 0
        self.pasted = None
        self.closed = False

    @property
    def name(self):
        return self._name

    @property
    def control_type(self):
        return self._type

    @property
    def is_password(self):
        return self._is_password

    @property
    def rectangle(self):
        return self._rect

    @property
    def supports_value(self):
        return self._supports_value

    def children(self):
        return list(self._children)

    def add(self, *elements):
        self._children.extend(elements)

    def invoke(self):
        self.invoked += 1
        if self.on_invoke:
            self.on_invoke()

    def set_value(self, text):
        if not self._supports_value:
            raise NotImplementedError
        self.value = text

    def click_input(self):
        pass

    def paste_text(self, text):
        self.pasted = text
        self.value = text

    def close(self):
        self.closed = True


class FakeWatcher:
    def __init__(self, volumes=None, marked=None):
        self.volumes = set(volumes or {"C:\\"})
        self.marked = marked
        self.find_calls = 0

    def list_volumes(self):
        return set(self.volumes)

    def find_marked_volume(self, markers):
        self.find_calls += 1
        return self.marked

    def wait_for_new_volume(self, before, timeout):
        fresh = self.volumes - set(before)
        return min(fresh) if fresh else None


class FakeDeviceApp(UiApplication):
    """
    Scripted stand-in for the vendor application:
    Connect -> password + Login -> (dialog) -> USB Mode [+ Sync Time] -> drive mounts.
    """

    def __init__(self, watcher, password="secret", login_error=None, exit_after_login=False,
                 mount_volume="E:\\", mount=True, sync_button=True, closes=True,
                 show_window=True, value_pattern=True, close_raises=False):
        self.watcher = watcher
        self.password = password
        self.login_error = login_error
        self.exit_after_login = exit_after_login
        self.mount_volume = mount_volume
        self.mount = mount
        self.sync_button = sync_button
        self.closes = closes
        self.show_window = show_window
        self.value_pattern = value_pattern
        self.close_raises = close_raises

        self.running = False
        self.windows = []
        self.entered = None
        self.close_requested = False
        self.killed = False
        self.synced = False
        self.main = None

    # UiApplication

    def start(self, exe_path):
        self.running = True
        self.main = FakeElement("Recorder Manager", "window")
        self.main.add(FakeElement("Connect", "button", on_invoke=self._on_connect))
        if self.show_window:
            self.windows = [self.main]

    def top_windows(self):
        return list(self.windows) if self.running else []

    def is_running(self):
        return self.running

    def request_close(self):
        self.close_requested = True
        if self.close_raises:
            raise RuntimeError("close failed")
        if self.closes:
            self.running = False

    def kill(self):
        self.killed = True
        self.running = False

    # Script

    def _on_connect(self):
        self.edit = FakeElement("", "edit", rect=(90, 50, 200, 70), supports_value=self.value_pattern)
        self.main.add(
            FakeElement("Password:", "text", rect=(10, 50, 80, 70)),
            self.edit,
            FakeElement("Login", "button", on_invoke=self._on_login),
        )

    def _on_login(self):
        self.entered = self.edit.value
        if self.exit_after_login:
            self.running = False
            return
        if self.entered != self.password:
            self._show_dialog("Error", "Password error, please try again")
            return
        if self.login_error:
            self._show_dialog("Error", self.login_error)
            return
        self._show_dialog("Notice", "Login successful")
        self.main.add(FakeElement("USB Mode", "button", on_invoke=self._on_storage))
        if self.sync_button:
            self.main.add(FakeElement("Sync Time", "button", on_invoke=self._on_sync))

    def _on_sync(self):
        self.synced = True
        self._show_dialog("Notice", "Time synchronization completed")

    def _on_storage(self):
        self._show_dialog("Notice", "Operation successful")
        if self.mount:
            self.watcher.volumes.add(self.mount_volume)

    def _show_dialog(self, title, message):
        dialog = FakeElement(title, "window")
        dialog.add(FakeElement(message, "text"),
                   FakeElement("OK", "button", on_invoke=lambda: self.windows.remove(dialog)))
        self.windows.append(dialog)


class DeviceAppFactory:
    """app_factory that remembers every application it created."""

    def __init__(self, watcher, **kwargs):
        self.watcher = watcher
        self.kwargs = kwargs
        self.apps = []

    def __call__(self):
        app = FakeDeviceApp(self.watcher, **self.kwargs)
        self.apps.append(app)
        return app


class FakeEngine:
    """
    Stand-in for FfmpegEngine. `results` is a list of exit codes consumed one
    per run; `output_bytes` is written to the output path on exit code 0.
    """

    def __init__(self, results=None, output_bytes=1024, encoders=None, decoders=None,
                 partial_on_failure=True):
        self.ffmpeg = "ffmpeg"
        self.poll_interval = 1.0
        self.results = list(results or [])
        self.output_bytes = output_bytes
        self.encoders = {"libx265", "libx264"} if encoders is None else set(encoders)
        self.decoders = set() if decoders is None else set(decoders)
        self.partial_on_failure = partial_on_failure
        self.commands = []
        self.encoder_queries = 0

    def list_encoders(self):
        self.encoder_queries += 1
        return set(self.encoders)

    def list_decoders(self):
        return set(self.decoders)

    def run(self, cmd, on_poll=None):
        self.commands.append(list(cmd))
        progress = Path(cmd[cmd.index("-progress") + 1])
        progress.write_text("out_time_us=1000000\nspeed=2.0x\nprogress=continue\n")
        if on_poll:
            on_poll()

        code = self.results.pop(0) if self.results else 0
        output = Path(cmd[-1])
        if code == 0:
            with open(output, "wb") as f:
                f.truncate(self.output_bytes)
        elif self.partial_on_failure:
            output.write_bytes(b"partial")
        return EngineResult(code, "" if code == 0 else "Error while decoding stream")


class FakeProbe:
    def __init__(self, durations=None, codec="h264", default=10.0):
        self.durations = durations or {}
        self.codec = codec
        self.default = default

    def get_duration(self, path):
        return self.durations.get(Path(path).name, self.default)

    def get_codec_family(self, path):
        return self.codec


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def timeouts():
    return AcquisitionTimeouts(ui_timeout=5.0, drive_timeout=5.0, modal_timeout=1.0,
                               close_grace=2.0, poll_interval=0.1, volume_poll_interval=0.5)


@pytest.fixture
def watcher():
    return FakeWatcher()


@pytest.fixture
def exe(tmp_path):
    p = tmp_path / "Recorder.exe"
    p.write_bytes(b"MZ")
    return p


def write_sized(path: Path, size: int) -> Path:
    """Creates a file of `size` bytes without writing them all."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "wb") as f:
        f.truncate(size)
    return path
