"""
Drives the device application from launch to a mounted storage volume.

    IDLE -> LAUNCHED -> CONNECTING -> AUTHENTICATING
         -> (AUTH_RETRY | AWAITING_STORAGE_CONTROL) -> STORAGE_ACTIVATING
         -> AWAITING_NEW_VOLUME -> DONE | FAILED

Only an authentication failure is retried, and always with a fresh launch.
The application is shut down at the end of every session no matter how
the session ended.
"""
import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Union

from .. import config
from ..exceptions import AcquisitionError
from ..models import AcquisitionState, AcquisitionTimeouts, FailureReason, ModalKind, MODAL_FAILURES
from ..polling import wait_until
from .modals import dismiss_modal, modal_summary, scan_modals
from .ui import UiApplication, UiElement, enter_secret, find_control, find_password_field
from .volumes import VolumeWatcher


@dataclass
class AcquisitionSession:
    exe_path: Path
    credential: str = field(repr=False)
    timeouts: AcquisitionTimeouts
    attempt: int = 1
    app: Optional[UiApplication] = None
    volume: Optional[str] = None
    failure: Optional[AcquisitionError] = None


class AcquisitionStateMachine:
    def __init__(self,
                 app_factory: Callable[[], UiApplication],
                 watcher: VolumeWatcher,
                 timeouts: Optional[AcquisitionTimeouts] = None,
                 max_auth_retries: int = config.MAX_AUTH_RETRIES,
                 sync_clock: bool = True,
                 markers: Iterable[str] = config.MARKER_FOLDERS,
                 clock: Callable[[], float] = time.monotonic,
                 sleep: Callable[[float], None] = time.sleep):
        self.app_factory = app_factory
        self.watcher = watcher
        self.timeouts = timeouts or AcquisitionTimeouts()
        self.max_auth_retries = max(0, max_auth_retries)
        self.sync_clock = sync_clock
        self.markers = tuple(markers)
        self.clock = clock
        self.sleep = sleep

        self.state = AcquisitionState.IDLE
        self.history: List[AcquisitionState] = [AcquisitionState.IDLE]
        self.launches = 0

    def acquire(self,
                exe_path: Optional[Path],
                credential: Union[str, Callable[[], str]],
                force_reattach: bool = False,
                credential_prompt: Optional[Callable[[int], Optional[str]]] = None) -> str:
        """
        Returns the id of the device volume, launching and driving the device
        application only when the volume is not already mounted.

        Args:
            credential: The device password, or a callable returning it. The
                callable is only invoked once the application must be launched.
            credential_prompt: Called with the failed attempt number after an
                authentication failure; returns a new credential or None to give up.

        Raises:
            AcquisitionError: with the FailureReason of the terminal failure.
        """
        self.state = AcquisitionState.IDLE
        self.history = [AcquisitionState.IDLE]
        self.launches = 0

        if not force_reattach:
            volume = self.watcher.find_marked_volume(self.markers)
            if volume:
                logging.info(f"Device already mounted at {volume}, skipping application.")
                self._transition(AcquisitionState.DONE)
                return volume

        if exe_path is None or not Path(exe_path).is_file():
            self._transition(AcquisitionState.FAILED)
            raise AcquisitionError(FailureReason.EXECUTABLE_NOT_FOUND, f"Executable not found: {exe_path}")

        exe_path = Path(exe_path)
        if callable(credential):
            credential = credential()

        attempt = 1
        while True:
            session = AcquisitionSession(exe_path, credential, self.timeouts, attempt=attempt)
            try:
                return self._run_session(session)
            except AcquisitionError as e:
                retry_left = attempt <= self.max_auth_retries
                if e.reason is not FailureReason.AUTH_FAILED or not retry_left:
                    self._transition(AcquisitionState.FAILED)
                    raise

                logging.warning(f"Authentication failed (attempt {attempt}/{self.max_auth_retries + 1}).")
                self._transition(AcquisitionState.AUTH_RETRY)
                if credential_prompt is not None:
                    new_credential = credential_prompt(attempt)
                    if not new_credential:
                        self._transition(AcquisitionState.FAILED)
                        raise AcquisitionError(FailureReason.AUTH_FAILED, "No new password supplied.") from e
                    credential = new_credential
                attempt += 1

    # --- Session ---

    def _run_session(self, session: AcquisitionSession) -> str:
        t = session.timeouts
        try:
            session.app = app = self.app_factory()
            volumes_before = self.watcher.list_volumes()

            logging.info(f"Launching device application (attempt {session.attempt}): {session.exe_path}")
            app.start(str(session.exe_path))
            self.launches += 1
            self._transition(AcquisitionState.LAUNCHED)

            window = app.main_window(t.ui_timeout, t.poll_interval, clock=self.clock, sleep=self.sleep)
            if window is None:
                raise AcquisitionError(FailureReason.WINDOW_NOT_FOUND, "Device application window did not appear.")

            self._transition(AcquisitionState.CONNECTING)
            self._wait_control(window, config.CONNECT_LABELS, "connect").invoke()

            self._transition(AcquisitionState.AUTHENTICATING)
            password_field = wait_until(lambda: find_password_field(window), t.ui_timeout,
                                        t.poll_interval, clock=self.clock, sleep=self.sleep)
            if password_field is None:
                raise AcquisitionError(FailureReason.CONTROL_NOT_FOUND, "Password field not found.")
            method = enter_secret(password_field, session.credential)
            logging.debug(f"Password entered via {method}.")

            self._wait_control(window, config.LOGIN_LABELS, "login").invoke()
            self._dismiss_success(app, window)

            self._transition(AcquisitionState.AWAITING_STORAGE_CONTROL)
            self._await_storage_control(app, window)

            if self.sync_clock:
                self._sync_device_clock(app, window)

            self._transition(AcquisitionState.STORAGE_ACTIVATING)
            # Elements found before a dialog was dismissed may be stale
            self._wait_control(window, config.STORAGE_LABELS, "storage").invoke()
            self._dismiss_success(app, window)

            self._transition(AcquisitionState.AWAITING_NEW_VOLUME)
            volume = self.watcher.wait_for_new_volume(volumes_before, t.drive_timeout)
            if not volume:
                self._raise_for_modal(app, window)
                raise AcquisitionError(FailureReason.NO_DRIVE_DETECTED,
                                       f"No new drive appeared within {t.drive_timeout:.0f}s.")

            session.volume = volume
            self._transition(AcquisitionState.DONE)
            return volume

        except AcquisitionError as e:
            session.failure = e
            raise
        except Exception as e:
            session.failure = AcquisitionError(FailureReason.GENERIC, f"{type(e).__name__}: {e}")
            raise session.failure from e
        finally:
            self._shutdown(session)

    def _shutdown(self, session: AcquisitionSession) -> None:
        if session.app is None:
            return
        try:
            session.app.terminate(session.timeouts.close_grace, session.timeouts.poll_interval,
                                  clock=self.clock, sleep=self.sleep)
        except Exception as e:
            if session.volume is not None:
                logging.warning(f"Device application cleanup failed after success: {e}")
            else:
                logging.error(f"Device application cleanup failed: {e}")

    # --- Steps ---

    def _wait_control(self, window: UiElement, labels, what: str) -> UiElement:
        t = self.timeouts
        control = wait_until(lambda: find_control(window, labels), t.ui_timeout, t.poll_interval,
                             clock=self.clock, sleep=self.sleep)
        if control is None:
            raise AcquisitionError(FailureReason.CONTROL_NOT_FOUND, f"'{what}' control not found.")
        return control

    def _dismiss_success(self, app: UiApplication, window: UiElement) -> None:
        """Waits briefly for a dialog and dismisses it if it reports success."""
        t = self.timeouts

        def _any_modal():
            kind, modal = scan_modals(app, window)
            return (kind, modal) if modal is not None else None

        found = wait_until(_any_modal, t.modal_timeout, t.poll_interval, clock=self.clock, sleep=self.sleep)
        if found and found[0] is ModalKind.SUCCESS:
            logging.debug(f"Dismissing success dialog: {modal_summary(found[1])}")
            dismiss_modal(found[1])

    def _await_storage_control(self, app: UiApplication, window: UiElement) -> UiElement:
        t = self.timeouts

        def _check() -> Optional[UiElement]:
            if not app.is_running():
                raise AcquisitionError(FailureReason.PROCESS_EXITED, "Device application exited unexpectedly.")
            kind, modal = scan_modals(app, window)
            if kind in MODAL_FAILURES:
                summary = modal_summary(modal)
                dismiss_modal(modal)
                raise AcquisitionError(MODAL_FAILURES[kind], summary)
            if kind is ModalKind.SUCCESS:
                dismiss_modal(modal)
                return None
            return find_control(window, config.STORAGE_LABELS)

        control = wait_until(_check, t.ui_timeout, t.poll_interval, clock=self.clock, sleep=self.sleep)
        if control is None:
            raise AcquisitionError(FailureReason.CONTROL_NOT_FOUND, "'storage' control never appeared.")
        return control

    def _sync_device_clock(self, app: UiApplication, window: UiElement) -> None:
        try:
            control = find_control(window, config.CLOCK_SYNC_LABELS)
            if control is None:
                logging.warning("Clock sync control not found, device time left unchanged.")
                return
            control.invoke()

            t = self.timeouts
            found = wait_until(lambda: scan_modals(app, window)[1], t.modal_timeout, t.poll_interval,
                               clock=self.clock, sleep=self.sleep)
            if found is not None:
                summary = modal_summary(found)
                dismiss_modal(found)
                logging.info(f"Clock sync: {summary}")
        except Exception as e:
            logging.warning(f"Clock sync failed, continuing: {e}")

    def _raise_for_modal(self, app: UiApplication, window: UiElement) -> None:
        kind, modal = scan_modals(app, window)
        if kind in MODAL_FAILURES:
            summary = modal_summary(modal)
            dismiss_modal(modal)
            raise AcquisitionError(MODAL_FAILURES[kind], summary)

    def _transition(self, state: AcquisitionState) -> None:
        logging.debug(f"Acquisition state: {self.state.value} -> {state.value}")
        self.state = state
        self.history.append(state)
