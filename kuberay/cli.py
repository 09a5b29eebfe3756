"""The kuberay command line: configuration management and logging setup."""

from __future__ import annotations

import argparse
import enum
import logging
import os
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Sequence

import yaml
from termcolor import colored

from kuberay.version import get_version

DEFAULT_RPC_ADDRESS = "127.0.0.1"
DEFAULT_RPC_PORT = "8887"
CONFIG_FILE_NAME = ".kuberay.yaml"
SUPPORTED_KEYS = ("endpoint",)
LOG_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"


class LogLevel(enum.IntFlag):
    """Kinds of log line that may be shown."""

    DEPRECATED = 1
    ALWAYS = 2
    SUCCESS = 4
    CRITICAL = 8
    WARNING = 16
    INFO = 32
    DEBUG = 64
    EVERYTHING = ALWAYS | SUCCESS | CRITICAL | WARNING | INFO | DEBUG


_PREFIX_STYLE = {
    "always": ("✿", "green"),
    "critical": ("✖", "red"),
    "info": ("ℹ", "cyan"),
    "debug": ("▶", "green"),
    "success": ("✔", "cyan"),
    "warning": ("!", "green"),
}
_DEFAULT_STYLE = ("ℹ", "cyan")


class UnsupportedKeyError(ValueError):
    """A configuration key that the tool does not know."""

    def __init__(self, key: str):
        super().__init__(
            f"key {key} is not supported, supported keys are: [{' '.join(SUPPORTED_KEYS)}]"
        )
        self.key = key


def default_endpoint() -> str:
    return f"{DEFAULT_RPC_ADDRESS}:{DEFAULT_RPC_PORT}"


def _validate_key(key: str) -> None:
    if key not in SUPPORTED_KEYS:
        raise UnsupportedKeyError(key)


class ConfigStore:
    """Settings kept in a YAML file; environment variables named after a key win."""

    def __init__(self, path: str | os.PathLike[str]):
        self.path = Path(path)
        self.defaults: dict[str, Any] = {}
        self._values: dict[str, Any] = self._load()

    def _load(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        data = yaml.safe_load(self.path.read_text(encoding="utf-8"))
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ValueError(f"config file {self.path} does not hold a mapping")
        return data

    def get(self, key: str) -> str:
        _validate_key(key)
        from_env = os.environ.get(key.upper())
        if from_env is not None:
            return from_env
        value = self._values.get(key, self.defaults.get(key, ""))
        return "" if value is None else str(value)

    def set(self, key: str, value: str) -> None:
        _validate_key(key)
        self._values[key] = value
        self._write()

    def reset(self) -> None:
        self._values["endpoint"] = default_endpoint()
        self._write()

    def _write(self) -> None:
        merged = {**self.defaults, **self._values}
        self.path.write_text(yaml.safe_dump(merged, default_flow_style=False), encoding="utf-8")

    def _safe_write(self) -> bool:
        """Write the file only if it does not exist yet."""
        if self.path.exists():
            return False
        self._write()
        return True


def init_config(path: str | os.PathLike[str] | None) -> ConfigStore:
    """Open the configuration; without a path, use and create one in the home directory."""
    if path:
        store = ConfigStore(path)
        if not store.path.exists():
            raise FileNotFoundError(f"config file {store.path} not found")
        return store
    store = ConfigStore(Path.home() / CONFIG_FILE_NAME)
    store.defaults["endpoint"] = default_endpoint()
    store._safe_write()
    return store


def log_level_mask(level: int) -> LogLevel:
    """The kinds of log line shown at a verbosity level from 0 to 4."""
    base = LogLevel.DEPRECATED | LogLevel.ALWAYS | LogLevel.SUCCESS
    masks = {
        0: base,
        1: base | LogLevel.CRITICAL,
        2: base | LogLevel.CRITICAL | LogLevel.WARNING,
        3: base | LogLevel.CRITICAL | LogLevel.WARNING | LogLevel.INFO,
        4: base | LogLevel.CRITICAL | LogLevel.WARNING | LogLevel.INFO | LogLevel.DEBUG,
    }
    return masks.get(level, LogLevel.DEPRECATED | LogLevel.EVERYTHING)


def format_log_line(prefix: str, message: str, now: datetime, colorize: bool) -> str:
    """Render one log line: time, icon and message, ending in a newline."""
    if "\n" not in message:
        message += "\n"
    icon, color = _PREFIX_STYLE.get(prefix, _DEFAULT_STYLE)
    line = f"{now.strftime(LOG_TIME_FORMAT)} [{icon}]  {message}"
    return colored(line, color) if colorize else line


class _LineFormatter(logging.Formatter):
    def __init__(self, colorize: bool):
        super().__init__()
        self.colorize = colorize

    def format(self, record: logging.LogRecord) -> str:
        if record.levelno >= logging.ERROR:
            prefix = "critical"
        elif record.levelno >= logging.WARNING:
            prefix = "warning"
        elif record.levelno >= logging.INFO:
            prefix = "info"
        else:
            prefix = "debug"
        line = format_log_line(
            prefix,
            record.getMessage(),
            datetime.fromtimestamp(record.created),
            self.colorize,
        )
        return line.rstrip("\n")


def _configure_logging(level: int, color: str) -> None:
    mask = log_level_mask(level)
    if LogLevel.DEBUG in mask:
        threshold = logging.DEBUG
    elif LogLevel.INFO in mask:
        threshold = logging.INFO
    elif LogLevel.WARNING in mask:
        threshold = logging.WARNING
    elif LogLevel.CRITICAL in mask:
        threshold = logging.ERROR
    else:
        threshold = logging.CRITICAL + 1
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(_LineFormatter(colorize=color == "true"))
    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(threshold)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="kuberay", description="kuberay offers life cycle management of ray clusters"
    )
    parser.add_argument(
        "-l",
        "--log-level",
        type=int,
        default=3,
        help="set log level, use 0 to silence, 4 for debugging",
    )
    parser.add_argument(
        "-C",
        "--color",
        default="true",
        help="toggle colorized logs (valid options: true, false, fabulous)",
    )
    parser.add_argument(
        "--config", default="", help=f"config file (default is $HOME/{CONFIG_FILE_NAME})"
    )
    commands = parser.add_subparsers(dest="command")
    commands.add_parser("version", help="Output the version of kuberay")
    commands.add_parser("info", help="Output the version of kuberay, and OS info")

    config = commands.add_parser("config", help="Kuberay Config Management")
    config_commands = config.add_subparsers(dest="config_command")
    set_cmd = config_commands.add_parser("set", help="Set configuration in kuberay.")
    set_cmd.add_argument("key")
    set_cmd.add_argument("value")
    get_cmd = config_commands.add_parser("get", help="Get configuration in kuberay with key.")
    get_cmd.add_argument("key")
    config_commands.add_parser("reset", help="Reset configuration in kuberay to default.")
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.log_level, args.color)

    try:
        store = init_config(args.config or None)
    except (OSError, ValueError, yaml.YAMLError) as err:
        print(f"Error: {err}", file=sys.stderr)
        return 1

    if args.command == "version":
        print(get_version())
        return 0
    if args.command == "info":
        print(f"KubeRay version: {get_version()}")
        print(f"OS: {sys.platform}")
        return 0
    if args.command == "config" and args.config_command:
        try:
            if args.config_command == "get":
                print(store.get(args.key))
            elif args.config_command == "set":
                store.set(args.key, args.value)
            else:
                store.reset()
        except UnsupportedKeyError as err:
            print(err)
            return 1
        except OSError as err:
            print(f"Not able to write to config file {store.path}")
            print(err)
            return 1
        return 0

    parser.print_help()
    return 0


if __name__ == "__main__":
    sys.exit(main())