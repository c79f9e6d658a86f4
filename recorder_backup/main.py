import argparse
import getpass
import logging
import os
import sys
from pathlib import Path

from . import config
from .core import RecorderBackupApp
from .exceptions import AcquisitionError, SettingsError
from .models import BatchStatistics
from .reporting import ReportGenerator, format_summary
from .settings import RETENTION_MODES, Settings, load_settings

PASSWORD_ENV = "RECORDER_BACKUP_PASSWORD"
DEFAULT_SETTINGS_FILE = Path("recorder_backup.ini")


def setup_logging(log_dir: Path, verbose: bool):
    """Sets up logging to both console and a file in the log directory."""
    log_level = logging.DEBUG if verbose else logging.INFO

    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / config.LOG_FILE_NAME

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s [%(levelname)s] %(message)s",
        handlers=[
            logging.FileHandler(log_file, encoding='utf-8'),
            logging.StreamHandler(sys.stdout)
        ]
    )

    # Silence chatty libraries
    logging.getLogger("pywinauto").setLevel(logging.WARNING)
    logging.getLogger("comtypes").setLevel(logging.ERROR)


def parse_args(argv=None):
    p = argparse.ArgumentParser(description="Recorder Backup: mount, transcode and clean up device recordings")

    p.add_argument("--settings", type=Path, default=DEFAULT_SETTINGS_FILE,
                   help="key=value settings file (default: ./recorder_backup.ini)")
    p.add_argument("--output", type=Path, default=None, help="Output library root")
    p.add_argument("--exe", type=Path, default=None, help="Path to the device application")
    p.add_argument("--password", default=None,
                   help=f"Device password (default: ${PASSWORD_ENV}, else prompt)")

    p.add_argument("--force-reattach", action="store_true",
                   help="Drive the device application even if the device is already mounted")
    p.add_argument("--skip-acquire", metavar="DRIVE", default=None,
                   help="Use this mounted drive directly and skip the device application")
    p.add_argument("--delete-originals", action="store_true", default=None,
                   help="Delete each recording after a verified transcode")
    p.add_argument("--retention-days", type=int, default=None, help="Delete outputs older than N days")
    p.add_argument("--retention-mode", choices=RETENTION_MODES, default=None,
                   help="prompt before deleting, delete automatically, or skip cleanup")

    p.add_argument("--report-csv", type=Path, default=None, help="Write a per-file CSV report")
    p.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    return p.parse_args(argv)


def build_settings(args) -> Settings:
    settings = load_settings(args.settings)
    if args.output is not None:
        settings.output_dir = args.output
    if args.exe is not None:
        settings.exe_path = args.exe
    if args.delete_originals is not None:
        settings.delete_originals = args.delete_originals
    if args.retention_days is not None:
        settings.retention_days = args.retention_days
    if args.retention_mode is not None:
        settings.retention_mode = args.retention_mode
    return settings


def password_provider(args):
    """Returns a callable so the password is only asked for if the app must be driven."""
    def _get() -> str:
        if args.password:
            return args.password
        env = os.environ.get(PASSWORD_ENV)
        if env:
            return env
        return getpass.getpass("Device password: ")
    return _get


def reprompt_password(attempt: int):
    answer = getpass.getpass(f"Password rejected (attempt {attempt}). Enter it again, or leave blank to stop: ")
    return answer or None


def main(argv=None):
    args = parse_args(argv)

    try:
        settings = build_settings(args)
    except SettingsError as e:
        print(f"Settings error: {e}", file=sys.stderr)
        sys.exit(2)

    output_dir = settings.output_dir.resolve()
    settings.output_dir = output_dir
    setup_logging(settings.log_dir or output_dir, args.verbose)

    logging.info("=== Recorder Backup Started ===")
    logging.info(f"Output: {output_dir}")

    app = RecorderBackupApp(settings)

    # 1. Acquisition
    try:
        if args.skip_acquire:
            volume = args.skip_acquire
            logging.info(f"Using drive {volume} (acquisition skipped)")
        else:
            if settings.exe_path is None and not args.force_reattach:
                logging.info("No device application configured; looking for a mounted device only.")
            volume = app.acquire(password_provider(args), force_reattach=args.force_reattach,
                                 credential_prompt=reprompt_password)
    except AcquisitionError as e:
        logging.error(f"Could not acquire the device drive: {e}")
        sys.exit(2)
    except KeyboardInterrupt:
        logging.warning("Operation cancelled by user.")
        sys.exit(1)

    # 2. Transcoding
    stats = BatchStatistics()
    exit_code = 0
    try:
        app.transcode(volume, stats)
    except KeyboardInterrupt:
        logging.warning("Operation cancelled by user.")
        exit_code = 1
    except Exception:
        logging.exception("Fatal error during transcoding.")
        exit_code = 1
    finally:
        for line in format_summary(stats).splitlines():
            logging.info(line)
        if args.report_csv:
            ReportGenerator(stats).write_csv(args.report_csv)

    if exit_code:
        sys.exit(exit_code)

    # 3. Retention
    try:
        app.cleanup()
    except KeyboardInterrupt:
        logging.warning("Cleanup cancelled by user.")
        sys.exit(1)
    except Exception:
        logging.exception("Fatal error during cleanup.")
        sys.exit(1)

    if stats.errors or stats.copy_errors:
        sys.exit(1)


if __name__ == "__main__":
    main()
