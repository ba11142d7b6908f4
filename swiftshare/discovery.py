"""
Peer discovery over mDNS/DNS-SD using zeroconf.
"""

from __future__ import annotations

import logging
import queue
import threading
from dataclasses import dataclass, field
from typing import Callable, Iterator, List, Optional

from zeroconf import (
    Error as ZeroconfError,
    IPVersion,
    ServiceBrowser,
    ServiceInfo,
    ServiceStateChange,
    Zeroconf,
)

from .errors import DiscoveryError
from .transfer import TRANSFER_PORT
from .utils import default_device_name, is_loopback, local_ipv4_addresses

logger = logging.getLogger(__name__)

SERVICE_NAME = "_swiftshare._tcp"
SERVICE_DOMAIN = "local."
SERVICE_TYPE = f"{SERVICE_NAME}.{SERVICE_DOMAIN}"
TXT_PROPERTIES = {"txtv": "0"}
RESOLVE_TIMEOUT_MS = 3000
CANCEL_POLL_INTERVAL = 0.2


@dataclass
class PeerRecord:
    """A resolved peer advertisement."""

    instance_name: str
    ipv4_addresses: List[str] = field(default_factory=list)
    port: int = TRANSFER_PORT

    def resolve_address(self) -> Optional[str]:
        return resolve_address(self)


def resolve_address(record: PeerRecord) -> Optional[str]:
    """Return the first non-loopback IPv4 address, or None when there is none."""

    for address in record.ipv4_addresses:
        if not is_loopback(address):
            return address
    return None


def instance_name_from(service_name: str, service_type: str = SERVICE_TYPE) -> str:
    suffix = "." + service_type
    if service_name.endswith(suffix):
        return service_name[: -len(suffix)]
    return service_name


class DiscoveryService:
    """
    Advertise this host as a SwiftShare peer and browse for others.

    Resolved peers are pushed onto an unbounded queue by the zeroconf
    browser thread and drained by a single consumer through `iter_peers`
    or `get_peer`. `shutdown` withdraws the advertisement and closes the
    queue, which ends any consumer blocked on it.
    """

    def __init__(
        self,
        port: int = TRANSFER_PORT,
        service_type: str = SERVICE_TYPE,
        zeroconf_factory: Optional[Callable[[], Zeroconf]] = None,
    ) -> None:
        self.port = port
        self.service_type = service_type
        self._zeroconf_factory = zeroconf_factory or (lambda: Zeroconf(ip_version=IPVersion.V4Only))
        self._zeroconf: Optional[Zeroconf] = None
        self._info: Optional[ServiceInfo] = None
        self._browser: Optional[ServiceBrowser] = None
        self._watcher: Optional[threading.Thread] = None
        self._peers: "queue.Queue[Optional[PeerRecord]]" = queue.Queue()
        self._lock = threading.Lock()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def advertised_name(self) -> Optional[str]:
        if self._info is None:
            return None
        return instance_name_from(self._info.name, self.service_type)

    def advertise(self, instance_name: Optional[str] = None) -> ServiceInfo:
        """
        Register this host under `instance_name` (default: the host name).
        A second call withdraws the earlier registration first.
        """

        name = instance_name or default_device_name()
        host = default_device_name().split(".")[0] or "swiftshare"
        info = ServiceInfo(
            self.service_type,
            f"{name}.{self.service_type}",
            port=self.port,
            properties=TXT_PROPERTIES,
            server=f"{host}.local.",
            parsed_addresses=local_ipv4_addresses(),
        )
        with self._lock:
            if self._closed:
                raise DiscoveryError("discovery service is shut down")
            zeroconf = self._ensure_zeroconf()
            if self._info is not None:
                # Re-advertising replaces the earlier registration.
                try:
                    zeroconf.unregister_service(self._info)
                except (ZeroconfError, OSError) as exc:
                    raise DiscoveryError(f"failed to withdraw previous advertisement: {exc}") from exc
                self._info = None
            try:
                zeroconf.register_service(info, allow_name_change=True)
            except (ZeroconfError, OSError) as exc:
                raise DiscoveryError(f"failed to register service: {exc}") from exc
            self._info = info
        logger.info("advertising %s on port %d", info.name, self.port)
        return info

    def start_browsing(self, cancel_event: Optional[threading.Event] = None) -> None:
        """
        Start browsing for peers; runs until `cancel_event` is set or
        `shutdown` is called.
        """

        with self._lock:
            if self._closed:
                raise DiscoveryError("discovery service is shut down")
            if self._browser is not None:
                return
            zeroconf = self._ensure_zeroconf()
            try:
                self._browser = ServiceBrowser(
                    zeroconf,
                    self.service_type,
                    handlers=[self._on_service_state_change],
                )
            except (ZeroconfError, OSError) as exc:
                raise DiscoveryError(f"failed to browse services: {exc}") from exc

        if cancel_event is not None:
            self._watcher = threading.Thread(
                target=self._watch_cancel,
                args=(cancel_event,),
                name="swiftshare-discovery-cancel",
                daemon=True,
            )
            self._watcher.start()

    def get_peer(self, timeout: Optional[float] = None) -> Optional[PeerRecord]:
        """
        Block for the next resolved peer. Returns None once the service is
        shut down; raises queue.Empty when `timeout` expires first.
        """

        record = self._peers.get(timeout=timeout)
        if record is None:
            # Leave the sentinel for any later call.
            self._peers.put(None)
        return record

    def iter_peers(self) -> Iterator[PeerRecord]:
        """Yield peers as they resolve until the service is shut down."""

        while True:
            record = self.get_peer()
            if record is None:
                return
            yield record

    def shutdown(self) -> None:
        """Withdraw the advertisement and close the peer queue. Idempotent."""

        with self._lock:
            if self._closed:
                return
            self._closed = True
            browser, self._browser = self._browser, None
            info, self._info = self._info, None
            zeroconf, self._zeroconf = self._zeroconf, None

        if browser is not None:
            try:
                browser.cancel()
            except (ZeroconfError, OSError, RuntimeError) as exc:
                logger.debug("browser cancel failed: %s", exc)
        if zeroconf is not None:
            if info is not None:
                try:
                    zeroconf.unregister_service(info)
                except (ZeroconfError, OSError) as exc:
                    logger.warning("failed to withdraw advertisement: %s", exc)
            zeroconf.close()
        self._peers.put(None)
        logger.info("discovery stopped")

    # Internal helpers -------------------------------------------------

    def _ensure_zeroconf(self) -> Zeroconf:
        if self._zeroconf is None:
            try:
                self._zeroconf = self._zeroconf_factory()
            except (ZeroconfError, OSError) as exc:
                raise DiscoveryError(f"failed to start mDNS: {exc}") from exc
        return self._zeroconf

    def _watch_cancel(self, cancel_event: threading.Event) -> None:
        while not cancel_event.wait(CANCEL_POLL_INTERVAL):
            if self._closed:
                return
        self.shutdown()

    def _on_service_state_change(
        self,
        zeroconf: Zeroconf,
        service_type: str,
        name: str,
        state_change: ServiceStateChange,
    ) -> None:
        if state_change not in (ServiceStateChange.Added, ServiceStateChange.Updated):
            return
        info = zeroconf.get_service_info(service_type, name, timeout=RESOLVE_TIMEOUT_MS)
        if info is None:
            logger.debug("could not resolve %s", name)
            return
        record = PeerRecord(
            instance_name=instance_name_from(name, service_type),
            ipv4_addresses=list(info.parsed_addresses(IPVersion.V4Only)),
            port=info.port or self.port,
        )
        if self._closed:
            return
        logger.debug("resolved %s -> %s", record.instance_name, record.ipv4_addresses)
        self._peers.put(record)


__all__ = [
    "SERVICE_TYPE",
    "PeerRecord",
    "DiscoveryService",
    "resolve_address",
    "instance_name_from",
]
