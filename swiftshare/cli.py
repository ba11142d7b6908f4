"""
Command-line shell for the SwiftShare LAN file transfer tool.
"""

from __future__ import annotations

import argparse
import ipaddress
import logging
import os
import sys
from pathlib import Path
from typing import Optional, Sequence, Union

from rich.logging import RichHandler

from . import __version__
from .app import SwiftShareApp
from .config import AppConfig, load_config, resolve_download_dir
from .discovery import PeerRecord
from .language import get_message, render_message
from .transfer import TRANSFER_PORT, TransferHandle
from .ui import StatusPrinter, TerminalUI, show_message
from .utils import default_device_name

DEFAULT_BROWSE_SECONDS = 3.0
DEBUG_ENV = "SWIFTSHARE_DEBUG"


def debug_requested(flag: bool = False) -> bool:
    return flag or os.getenv(DEBUG_ENV, "").strip().lower() in {"1", "true", "yes", "on"}


def setup_logging(debug: bool) -> None:
    level = logging.DEBUG if debug else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(show_path=debug, rich_tracebacks=debug)],
        force=True,
    )
    # zeroconf is chatty at DEBUG
    logging.getLogger("zeroconf").setLevel(logging.INFO if debug else logging.WARNING)


def initialize_application(
    *,
    quiet: bool = False,
    download_dir: Optional[str] = None,
) -> tuple[SwiftShareApp, AppConfig, TerminalUI, str]:
    config = load_config()
    if download_dir:
        config.download_dir = download_dir
    ui = TerminalUI()
    language = config.language
    app = SwiftShareApp(
        device_name=config.device_name or default_device_name(),
        on_event=StatusPrinter(ui, language, quiet=quiet),
        connect_timeout=config.connect_timeout,
        accept_timeout=config.accept_timeout,
    )
    return app, config, ui, language


def prepare_download_dir(app: SwiftShareApp, config: AppConfig) -> None:
    """Create the download directory once a receive is about to start."""

    if app.transfer.download_dir is None:
        app.transfer.download_dir = resolve_download_dir(config)


def start_discovery(
    ui: TerminalUI, app: SwiftShareApp, language: str, *, advertise: bool, quiet: bool = False
) -> None:
    app.start(advertise=advertise)
    if app.discovery_error is not None:
        show_message(ui, "discovery_failed", language, error=app.discovery_error)
    elif advertise and not quiet:
        show_message(
            ui,
            "advertising",
            language,
            name=app.discovery.advertised_name or app.device_name,
            port=TRANSFER_PORT,
        )


def list_peers_cli(ui: TerminalUI, peers: Sequence[PeerRecord], language: str) -> None:
    if not peers:
        show_message(ui, "no_peers", language)
        return
    for index, peer in enumerate(peers, start=1):
        address = peer.resolve_address()
        if address is None:
            show_message(ui, "peer_no_address", language, index=index, name=peer.instance_name)
        else:
            show_message(
                ui,
                "peer_entry",
                language,
                index=index,
                name=peer.instance_name,
                ip=address,
                port=peer.port,
            )


def is_ipv4_address(value: str) -> bool:
    try:
        ipaddress.IPv4Address(value)
    except ValueError:
        return False
    return True


def choose_peer(
    ui: TerminalUI,
    app: SwiftShareApp,
    language: str,
    query: Optional[str],
    wait: float,
) -> Optional[Union[PeerRecord, str]]:
    """Resolve a peer from a name, a literal address, or an interactive pick."""

    if query and is_ipv4_address(query):
        return query
    show_message(ui, "browsing", language, seconds=int(wait))
    peers = app.wait_for_peers(wait)
    if query:
        peer = app.find_peer(query)
        if peer is None:
            show_message(ui, "peer_not_found", language, name=query)
        return peer
    if not peers:
        show_message(ui, "no_peers", language)
        return None
    list_peers_cli(ui, peers, language)
    while True:
        try:
            raw = ui.input(render_message("prompt_peer_choice", language, count=len(peers)))
        except (KeyboardInterrupt, EOFError):
            ui.blank()
            return None
        choice = raw.strip()
        if choice.isdigit() and 1 <= int(choice) <= len(peers):
            return peers[int(choice) - 1]
        show_message(ui, "invalid_choice", language)


def wait_for_completion(handle: TransferHandle) -> bool:
    """Block until the transfer ends; Ctrl+C cancels it."""

    try:
        while not handle.join(0.2):
            pass
    except KeyboardInterrupt:
        handle.cancel()
        handle.join(2.0)
    return handle.succeeded


def send_file_cli(ui: TerminalUI, app: SwiftShareApp, language: str, path_text: str) -> bool:
    file_path = Path(path_text.strip().strip('"')).expanduser()
    if not file_path.is_file():
        show_message(ui, "file_not_found", language, path=file_path)
        return False
    return wait_for_completion(app.send(file_path))


def receive_file_cli(
    ui: TerminalUI,
    app: SwiftShareApp,
    language: str,
    query: Optional[str],
    wait: float,
) -> bool:
    target = choose_peer(ui, app, language, query, wait)
    if target is None:
        return False
    if isinstance(target, str):
        handle = app.transfer.start_receive(target)
    else:
        try:
            handle = app.receive(target)
        except ValueError:
            show_message(ui, "peer_no_address", language, index=1, name=target.instance_name)
            return False
    return wait_for_completion(handle)


def run_send_command(path: str, *, quiet: bool = False) -> int:
    app, _config, ui, language = initialize_application(quiet=quiet)
    try:
        start_discovery(ui, app, language, advertise=True, quiet=quiet)
        return 0 if send_file_cli(ui, app, language, path) else 1
    finally:
        app.stop()


def run_receive_command(
    peer: Optional[str],
    download_dir: Optional[str],
    wait: float,
    *,
    quiet: bool = False,
) -> int:
    app, config, ui, language = initialize_application(quiet=quiet, download_dir=download_dir)
    try:
        prepare_download_dir(app, config)
        if not (peer and is_ipv4_address(peer)):
            start_discovery(ui, app, language, advertise=False, quiet=quiet)
        return 0 if receive_file_cli(ui, app, language, peer, wait) else 1
    finally:
        app.stop()


def run_peers_command(wait: float) -> int:
    app, _config, ui, language = initialize_application()
    try:
        start_discovery(ui, app, language, advertise=False)
        show_message(ui, "browsing", language, seconds=int(wait))
        app.wait_for_peers(wait)
        list_peers_cli(ui, app.list_peers(), language)
    finally:
        app.stop()
    return 0


def run_cli() -> int:
    app, config, ui, language = initialize_application()
    start_discovery(ui, app, language, advertise=True)
    show_message(ui, "ready", language)
    try:
        while True:
            ui.blank()
            show_message(ui, "menu_header", language)
            show_message(ui, "menu_options", language)
            try:
                choice = ui.input(render_message("prompt_choice", language)).strip()
            except (KeyboardInterrupt, EOFError):
                ui.blank()
                break
            if choice == "1":
                list_peers_cli(ui, app.list_peers(), language)
            elif choice == "2":
                try:
                    path_text = ui.input(render_message("prompt_file_path", language))
                except (KeyboardInterrupt, EOFError):
                    ui.blank()
                    continue
                send_file_cli(ui, app, language, path_text)
            elif choice == "3":
                prepare_download_dir(app, config)
                receive_file_cli(ui, app, language, None, DEFAULT_BROWSE_SECONDS)
            elif choice == "4":
                break
            else:
                show_message(ui, "invalid_choice", language)
    finally:
        # Withdraw the advertisement so peers do not keep resolving a dead host.
        app.stop()
    show_message(ui, "goodbye", language)
    return 0


def build_parser(language: str) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="swiftshare",
        description=get_message("cli_description", language),
    )
    parser.add_argument(
        "-V",
        "--version",
        action="version",
        help=get_message("cli_version_help", language),
        version=get_message("cli_version_output", language, version=__version__),
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help=get_message("cli_debug_help", language),
    )
    subparsers = parser.add_subparsers(
        dest="command",
        title=get_message("cli_commands_title", language),
    )

    send_parser = subparsers.add_parser(
        "send",
        help=get_message("cli_send_help", language),
        description=get_message("cli_send_help", language),
    )
    send_parser.add_argument("path", help=get_message("cli_send_path_help", language))
    send_parser.add_argument(
        "-q",
        "--quiet",
        action="store_true",
        help=get_message("cli_quiet_help", language),
    )

    receive_parser = subparsers.add_parser(
        "receive",
        help=get_message("cli_receive_help", language),
        description=get_message("cli_receive_help", language),
    )
    receive_parser.add_argument(
        "peer",
        nargs="?",
        help=get_message("cli_receive_peer_help", language),
    )
    receive_parser.add_argument("--dir", help=get_message("cli_receive_dir_help", language))
    receive_parser.add_argument(
        "--wait",
        type=float,
        default=DEFAULT_BROWSE_SECONDS,
        help=get_message("cli_wait_help", language),
    )
    receive_parser.add_argument(
        "-q",
        "--quiet",
        action="store_true",
        help=get_message("cli_quiet_help", language),
    )

    peers_parser = subparsers.add_parser(
        "peers",
        help=get_message("cli_peers_help", language),
        description=get_message("cli_peers_help", language),
    )
    peers_parser.add_argument(
        "--wait",
        type=float,
        default=DEFAULT_BROWSE_SECONDS,
        help=get_message("cli_wait_help", language),
    )
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    arguments = sys.argv[1:] if argv is None else argv
    config = load_config()
    parser = build_parser(config.language)
    args = parser.parse_args(arguments)
    setup_logging(debug_requested(args.debug))
    if args.command == "send":
        return run_send_command(args.path, quiet=args.quiet)
    if args.command == "receive":
        return run_receive_command(args.peer, args.dir, args.wait, quiet=args.quiet)
    if args.command == "peers":
        return run_peers_command(args.wait)
    return run_cli()


if __name__ == "__main__":
    sys.exit(main())
