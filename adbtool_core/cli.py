import sys
import json
import logging
from pathlib import Path

from . import __version__

USAGE = """Usage:
    adbtool [--verbose|-v] [--config <file>] package-name <apk>
    adbtool [--verbose|-v] [--config <file>] parse-line <line>
    adbtool [--verbose|-v] [--config <file>] devices
    adbtool [--verbose|-v] [--config <file>] detail <serial>
    adbtool [--verbose|-v] [--config <file>] packages <serial> [--system]
    adbtool [--verbose|-v] [--config <file>] clear|force-stop|launch <serial> <package>
    adbtool [--verbose|-v] [--config <file>] ls <serial> <remote dir>
    adbtool [--verbose|-v] [--config <file>] push <serial> <local> <remote>
    adbtool [--verbose|-v] [--config <file>] pull <serial> <remote> <local>
    adbtool [--verbose|-v] [--config <file>] screenshot <serial> <local png>
    adbtool [--verbose|-v] [--config <file>] kill-server|start-server
    adbtool [--verbose|-v] [--config <file>] connect|disconnect <host:port>
    adbtool [--verbose|-v] [--config <file>] install <serial> <apk> [install flags...]
    adbtool [--verbose|-v] [--config <file>] uninstall <serial> <package>
    adbtool [--verbose|-v] [--config <file>] logcat <serial>
    adbtool [--verbose|-v] [--config <file>] oplog [--type <op_type>] [--device <serial>]

    Options:
    --verbose, -v    Enable verbose logging on stderr
    --config         YAML or JSON configuration file
    --version        Print the version and exit"""


def _setup_basic_logging(verbose=False):
    # log to stderr only so stdout stays clean for JSON
    # in non-verbose mode, only show WARNING and above to reduce noise
    level = logging.INFO if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stderr)],
    )


def _default_config_path():
    # when frozen by PyInstaller, sys._MEIPASS points to bundle root
    if getattr(sys, "frozen", False):
        base = Path(getattr(sys, "_MEIPASS", Path.cwd()))
        return base / "config.yaml"
    # source mode: config lives next to this file
    return Path(__file__).parent / "config.yaml"


def _pop_option(argv, name):
    """Remove `name <value>` from argv and return the value."""
    if name in argv:
        i = argv.index(name)
        if i + 1 < len(argv):
            value = argv[i + 1]
            del argv[i:i + 2]
            return value
        del argv[i]
    return None


def _print_json(payload):
    print(json.dumps(payload, indent=2, ensure_ascii=False))


def _load_config(config_path):
    from .logic.models import ToolConfig

    if config_path:
        return ToolConfig.from_file(config_path)
    return ToolConfig()


def _stream_logcat(config, adb_path, serial):
    from .infrastructure.logcat import LogcatStreamSupervisor, cleanup_old_logs

    cleanup_old_logs(config.logcat.log_directory, config.logcat.retention_days)
    supervisor = LogcatStreamSupervisor.from_config(config, adb_path)
    stream = supervisor.start(serial)
    try:
        for line in stream.events:
            print(json.dumps(line.to_dict(), ensure_ascii=False), flush=True)
    except KeyboardInterrupt:
        pass
    finally:
        supervisor.shutdown_all()
        stream.wait_finished(timeout=5)
    return 0 if stream.exit_code in (0, None) else 1


def run_command(argv, config):
    """Dispatch one command. Returns the process exit code."""
    from .infrastructure.apk import extract_package_name_from_path
    from .infrastructure.parsers import parse_logcat_line
    from .infrastructure.device import AdbLocator, AdbCommandRunner
    from .infrastructure.storage import OpLogStore
    from .application import InstallApkUseCase, DeviceFileUseCase

    if not argv:
        print(USAGE, file=sys.stderr)
        return 2

    command, args = argv[0], argv[1:]

    if command == "package-name" and len(args) == 1:
        _print_json({"apk": args[0], "package_name": extract_package_name_from_path(args[0])})
        return 0

    if command == "parse-line" and len(args) == 1:
        parsed = parse_logcat_line(args[0])
        _print_json(parsed.to_dict() if parsed else None)
        return 0 if parsed else 1

    if command == "oplog":
        op_type = _pop_option(args, "--type")
        device = _pop_option(args, "--device")
        store = OpLogStore(config.op_log.path)
        store.load()
        _print_json([entry.to_dict() for entry in store.get_entries(op_type, device)])
        return 0

    adb_path = AdbLocator(config.adb.path).resolve()
    runner = AdbCommandRunner(adb_path, timeout_seconds=config.adb.command_timeout_seconds)

    if command == "devices" and not args:
        _print_json([device.to_dict() for device in runner.list_devices()])
        return 0

    if command == "detail" and len(args) == 1:
        _print_json(runner.get_device_detail(args[0]).to_dict())
        return 0

    if command == "packages" and args:
        include_system = "--system" in args
        if include_system:
            args.remove("--system")
        if len(args) == 1:
            _print_json([app.to_dict() for app in runner.list_packages(args[0], include_system)])
            return 0

    if command == "ls" and len(args) == 2:
        _print_json(runner.list_files(args[0], args[1]))
        return 0

    app_commands = {
        "clear": runner.clear_app_data,
        "force-stop": runner.force_stop_app,
        "launch": runner.launch_app,
    }
    if command in app_commands and len(args) == 2:
        _print_json({"output": app_commands[command](args[0], args[1])})
        return 0

    server_commands = {
        "kill-server": (runner.kill_server, 0),
        "start-server": (runner.start_server, 0),
        "connect": (runner.connect_wifi, 1),
        "disconnect": (runner.disconnect_wifi, 1),
    }
    if command in server_commands and len(args) == server_commands[command][1]:
        action = server_commands[command][0]
        _print_json({"output": action(*args)})
        return 0

    if command in ("push", "pull", "screenshot"):
        store = OpLogStore(config.op_log.path)
        store.load()
        files = DeviceFileUseCase(runner, store)
        if command == "push" and len(args) == 3:
            _print_json({"output": files.push(args[0], args[1], args[2])})
            return 0
        if command == "pull" and len(args) == 3:
            _print_json({"output": files.pull(args[0], args[1], args[2])})
            return 0
        if command == "screenshot" and len(args) == 2:
            _print_json({"path": files.screenshot(args[0], args[1])})
            return 0

    if command in ("install", "uninstall") and len(args) >= 2:
        store = OpLogStore(config.op_log.path)
        store.load()
        use_case = InstallApkUseCase(
            runner,
            store,
            uninstall_before_install=config.install.uninstall_before_install
        )
        if command == "install":
            result = use_case.execute(args[0], args[1], args[2:])
            _print_json(result.to_dict())
            return 0 if result.success else 1
        if len(args) == 2:
            _print_json({"output": use_case.uninstall(args[0], args[1])})
            return 0

    if command == "logcat" and len(args) == 1:
        return _stream_logcat(config, adb_path, args[0])

    print(USAGE, file=sys.stderr)
    return 2


def main(argv=None):
    argv = list(argv if argv is not None else sys.argv[1:])

    # Fast path for version
    if "--version" in argv:
        print(__version__)
        return 0

    verbose = "--verbose" in argv or "-v" in argv
    if "--verbose" in argv:
        argv.remove("--verbose")
    if "-v" in argv:
        argv.remove("-v")

    _setup_basic_logging(verbose)

    config_path = _pop_option(argv, "--config")
    if not config_path:
        default_config = _default_config_path()
        if default_config.exists():
            config_path = str(default_config)

    from .infrastructure.device import AdbCommandError
    from .infrastructure.logcat import LogcatStreamError

    try:
        config = _load_config(config_path)
        return run_command(argv, config)
    except (AdbCommandError, LogcatStreamError, FileNotFoundError, ValueError) as e:
        logging.getLogger("cli").error(f"Command failed: {e}")
        _print_json({"error": str(e), "error_type": type(e).__name__})
        return 1


if __name__ == "__main__":
    sys.exit(main())
