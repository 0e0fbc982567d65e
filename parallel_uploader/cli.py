"""Command line interface for parallel_uploader."""
from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from rich.logging import RichHandler

from .cli_progress import StreamProgressDisplay, render_configuration_summary, render_result
from .errors import UploadError
from .models import MIB, UploadConfig

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "http://localhost:9000/irods-http-api/0.5.0"


class CLIError(RuntimeError):
    """Raised when CLI validation/execution fails."""


ENV_KEYS = (
    "PWRITE_BASE_URL",
    "PWRITE_USERNAME",
    "PWRITE_PASSWORD",
    "PWRITE_STREAM_COUNT",
    "LOG_LEVEL",
)


def _setup_logging(debug: bool, silent: bool, log_level: Optional[str]) -> str:
    """
    Configure logging.

    Silent unless --debug, --log-level or LOG_LEVEL asks for output.
    Returns a string describing effective mode.
    """
    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)

    logging.disable(logging.NOTSET)

    log_level = log_level or os.getenv("LOG_LEVEL")
    if silent or (not debug and not log_level):
        logging.disable(logging.CRITICAL)
        root_logger.setLevel(logging.CRITICAL + 1)
        return "silent"

    if debug:
        level = logging.DEBUG
    else:
        level = getattr(logging, log_level.strip().upper(), logging.INFO)

    handler = RichHandler(
        rich_tracebacks=True,
        markup=False,
        show_time=False,
        show_path=False,
    )
    handler.setFormatter(logging.Formatter("%(message)s"))
    root_logger.addHandler(handler)
    root_logger.setLevel(level)
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(max(level, logging.WARNING))
    return logging.getLevelName(level)


def _unquote(value: str) -> str:
    value = value.strip()
    if value[:1] in ("'", '"') and value.endswith(value[0]) and len(value) > 1:
        return value[1:-1]
    return value


def _parse_env(content: str) -> Dict[str, str]:
    """Parse KEY=VALUE lines. Blank lines, comments and `export ` prefixes are skipped."""
    values: Dict[str, str] = {}
    for number, raw in enumerate(content.splitlines(), start=1):
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        key, sep, value = line.removeprefix("export ").partition("=")
        key = key.strip()
        if not sep or not key:
            logger.debug("env line %d ignored: %r", number, raw)
            continue
        values[key] = _unquote(value)
    return values


def _load_env_file(path: Path, override: bool = False) -> List[str]:
    """
    Export the variables of a .env file into os.environ.

    Variables already set win unless ``override``. Returns the keys applied.
    """
    if not path.is_file():
        raise CLIError(f"env file not found: {path}" if not path.exists() else f"env path is not a file: {path}")
    try:
        values = _parse_env(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise CLIError(f"could not read env file {path}: {exc}") from exc

    applied = [key for key in values if override or key not in os.environ]
    for key in applied:
        os.environ[key] = values[key]

    unknown = sorted(set(values) - set(ENV_KEYS))
    if unknown:
        logger.debug("%s sets keys pwrite-up does not read: %s", path, ", ".join(unknown))
    return applied


def _default_env_file() -> Optional[Path]:
    candidate = Path.cwd() / ".env"
    return candidate if candidate.is_file() else None


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise CLIError(f"{name} must be an integer, got {raw!r}") from exc


def _build_config(args: argparse.Namespace) -> UploadConfig:
    stream_count = args.streams if args.streams is not None else _env_int("PWRITE_STREAM_COUNT", 4)
    try:
        return UploadConfig(
            stream_count=stream_count,
            buffer_size=args.buffer_size,
            timeout=args.timeout,
            frame_retries=args.retries,
        )
    except ValueError as exc:
        raise CLIError(str(exc)) from exc


async def _run_upload(
    source: Path,
    target: str,
    base_url: str,
    username: str,
    password: str,
    config: UploadConfig,
    show_progress: bool,
) -> int:
    from .orchestrator import ParallelUploadOrchestrator, plan

    ranges = plan(source.stat().st_size, config.stream_count)

    try:
        async with ParallelUploadOrchestrator(base_url, username, password, config) as uploader:
            with StreamProgressDisplay(source, ranges, enabled=show_progress) as display:
                result = await uploader.upload(source, target, progress_callback=display.get_callback())
    except UploadError as exc:
        raise CLIError(str(exc)) from exc

    render_result(result)
    return 0 if result.success else 1


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pwrite-up",
        description="Upload one file over N parallel streams of a single parallel write session.",
    )
    parser.add_argument("source", nargs="?", type=Path, help="Local file to upload")
    parser.add_argument("target", nargs="?", help="Remote logical path (example: /tempZone/home/rods/big.bin)")
    parser.add_argument(
        "-n",
        "--streams",
        type=int,
        default=None,
        help="Number of parallel streams (default from PWRITE_STREAM_COUNT or 4)",
    )
    parser.add_argument(
        "--buffer-size",
        type=int,
        default=4 * MIB,
        help="Bytes sent per write frame (default 4 MiB)",
    )
    parser.add_argument(
        "--base-url",
        default=None,
        help=f"API base URL (default from PWRITE_BASE_URL or {DEFAULT_BASE_URL})",
    )
    parser.add_argument("-u", "--username", default=None, help="Username (default from PWRITE_USERNAME)")
    parser.add_argument("-p", "--password", default=None, help="Password (default from PWRITE_PASSWORD)")
    parser.add_argument("--timeout", type=float, default=60.0, help="Per-request timeout in seconds")
    parser.add_argument(
        "--retries",
        type=int,
        default=0,
        help="Resend a failed frame this many times on connection errors or 5xx",
    )
    parser.add_argument(
        "--env-file",
        type=Path,
        default=None,
        help="Load environment variables from this .env file",
    )
    parser.add_argument("--no-progress", action="store_true", help="Hide progress bars")
    parser.add_argument("--debug", action="store_true", help="Enable debug logs")
    parser.add_argument("--silent", action="store_true", help="Only print errors")
    parser.add_argument(
        "--log-level",
        default=None,
        help="Explicit log level (DEBUG/INFO/WARNING/ERROR)",
    )
    parser.add_argument(
        "--version",
        action="version",
        version="pwrite-up (from parallel_uploader)",
    )
    return parser


def run_cli(argv: Optional[Sequence[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    used_env_file = args.env_file or _default_env_file()
    if used_env_file is not None:
        try:
            _load_env_file(Path(used_env_file))
        except CLIError as exc:
            print(f"ERROR: {exc}", file=sys.stderr)
            return 1

    effective_log_mode = _setup_logging(
        debug=args.debug,
        silent=args.silent,
        log_level=args.log_level,
    )

    if args.source is None or args.target is None:
        parser.print_help()
        return 0

    source = Path(args.source).expanduser()
    if not source.is_file():
        print(f"ERROR: source is not a file: {source}", file=sys.stderr)
        return 1

    base_url = args.base_url or os.getenv("PWRITE_BASE_URL") or DEFAULT_BASE_URL
    username = args.username or os.getenv("PWRITE_USERNAME")
    password = args.password or os.getenv("PWRITE_PASSWORD")

    try:
        if not username or password is None:
            raise CLIError("credentials missing: pass --username/--password or set PWRITE_USERNAME/PWRITE_PASSWORD")
        config = _build_config(args)

        render_configuration_summary(
            source,
            args.target,
            base_url,
            username,
            config,
            env_file=used_env_file,
            log_mode=effective_log_mode,
        )

        return asyncio.run(
            _run_upload(
                source=source,
                target=args.target,
                base_url=base_url,
                username=username,
                password=password,
                config=config,
                show_progress=not args.no_progress and not args.silent,
            )
        )
    except CLIError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("Cancelled.", file=sys.stderr)
        return 130


def main() -> None:
    raise SystemExit(run_cli())


if __name__ == "__main__":
    main()
