"""
Application facade tying discovery and transfers together for the shell.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Callable, Dict, List, Optional

from .discovery import DiscoveryService, PeerRecord
from .errors import DiscoveryError
from .events import StatusEvent
from .transfer import TRANSFER_PORT, TransferHandle, TransferService
from .utils import default_device_name

logger = logging.getLogger(__name__)


class SwiftShareApp:
    """
    Owns one DiscoveryService and one TransferService.

    A consumer thread drains the discovery queue into a peer table keyed
    by instance name, so re-announcements replace earlier entries.
    """

    def __init__(
        self,
        *,
        device_name: Optional[str] = None,
        download_dir: Optional[Path] = None,
        on_event: Optional[Callable[[StatusEvent], None]] = None,
        connect_timeout: Optional[float] = None,
        accept_timeout: Optional[float] = None,
        port: int = TRANSFER_PORT,
        discovery: Optional[DiscoveryService] = None,
        transfer: Optional[TransferService] = None,
    ) -> None:
        self.device_name = device_name or default_device_name()
        self.discovery = discovery or DiscoveryService(port=port)
        self.transfer = transfer or TransferService(
            port=port,
            download_dir=download_dir,
            on_event=on_event,
            accept_timeout=accept_timeout,
        )
        if connect_timeout is not None:
            self.transfer.connect_timeout = connect_timeout
        self.discovery_error: Optional[DiscoveryError] = None
        self._cancel = threading.Event()
        self._peers: Dict[str, PeerRecord] = {}
        self._peers_lock = threading.Lock()
        self._peers_changed = threading.Condition(self._peers_lock)
        self._consumer: Optional[threading.Thread] = None
        self._stopped = False

    def start(self, advertise: bool = True) -> None:
        """
        Advertise and browse. Failures are recorded in `discovery_error`
        instead of raised; transfers by address still work without mDNS.
        """

        if advertise:
            try:
                self.discovery.advertise(self.device_name)
            except DiscoveryError as exc:
                logger.warning("advertisement failed: %s", exc)
                self.discovery_error = exc
        try:
            self.discovery.start_browsing(self._cancel)
        except DiscoveryError as exc:
            logger.warning("browsing failed: %s", exc)
            self.discovery_error = self.discovery_error or exc
            return
        self._consumer = threading.Thread(
            target=self._consume_peers, name="swiftshare-peers", daemon=True
        )
        self._consumer.start()

    def stop(self) -> None:
        if self._stopped:
            return
        self._stopped = True
        self._cancel.set()
        self.discovery.shutdown()
        if self._consumer and self._consumer.is_alive():
            self._consumer.join(timeout=1.0)

    def list_peers(self) -> List[PeerRecord]:
        with self._peers_lock:
            peers = list(self._peers.values())
        peers.sort(key=lambda peer: peer.instance_name.lower())
        return peers

    def wait_for_peers(self, timeout: float) -> List[PeerRecord]:
        """Wait up to `timeout` seconds for at least one peer."""

        with self._peers_changed:
            self._peers_changed.wait_for(lambda: bool(self._peers), timeout=timeout)
        return self.list_peers()

    def find_peer(self, name: str) -> Optional[PeerRecord]:
        query = name.strip().lower()
        for peer in self.list_peers():
            if peer.instance_name.lower() == query:
                return peer
        return None

    def send(self, file_path: Path) -> TransferHandle:
        return self.transfer.start_send(file_path)

    def receive(self, peer: PeerRecord) -> TransferHandle:
        address = peer.resolve_address()
        if address is None:
            raise ValueError(f"peer {peer.instance_name} has no usable IPv4 address")
        return self.transfer.start_receive(address)

    def _consume_peers(self) -> None:
        own_name = self.discovery.advertised_name
        for record in self.discovery.iter_peers():
            if own_name and record.instance_name == own_name:
                continue
            with self._peers_changed:
                self._peers[record.instance_name] = record
                self._peers_changed.notify_all()
