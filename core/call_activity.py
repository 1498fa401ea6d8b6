"""
Detects live calls so restarts never interrupt a meeting.

A communication client being open is not enough: the client must also own
a network endpoint bound to a concrete local address, which is what a call
in progress looks like.
"""

from __future__ import annotations

from typing import Callable, FrozenSet, Iterable, Set

import psutil

from shared.outcomes import CallState
from app_update_gate.app_update_gate import logger as app_logger

COMMUNICATION_CLIENTS: FrozenSet[str] = frozenset(
    {
        "ms-teams",
        "teams",
        "zoom",
        "cpthost",
        "webex",
        "webexmta",
        "ciscocollabhost",
        "slack",
        "lync",
    }
)
_WILDCARD_ADDRESSES = frozenset({"0.0.0.0", "::", ""})


def normalize_process_name(name: str) -> str:
    lowered = (name or "").strip().lower()
    if lowered.endswith(".exe"):
        lowered = lowered[:-4]
    return lowered


class CallActivityDetector:
    """Read-only process and endpoint inspection with injectable sources."""

    def __init__(
        self,
        *,
        client_names: Iterable[str] = COMMUNICATION_CLIENTS,
        process_iter: Callable = psutil.process_iter,
        net_connections: Callable = psutil.net_connections,
    ) -> None:
        self.client_names = frozenset(normalize_process_name(n) for n in client_names)
        self._process_iter = process_iter
        self._net_connections = net_connections
        self._logger = app_logger.get_logger()

    def detect(self) -> CallState:
        pids = self._client_pids()
        if not pids:
            self._logger.info("No communication client running.")
            return CallState.INACTIVE

        try:
            connections = self._net_connections(kind="udp")
        except (psutil.Error, OSError) as exc:
            self._logger.warning("Endpoint enumeration failed ({}); assuming no active call.", exc)
            return CallState.INACTIVE

        live = [
            conn
            for conn in connections
            if conn.pid in pids and _local_ip(conn) not in _WILDCARD_ADDRESSES
        ]
        if live:
            self._logger.info(
                "Active call detected: {} endpoint(s) owned by pid(s) {}.",
                len(live),
                sorted({conn.pid for conn in live}),
            )
            return CallState.ACTIVE

        self._logger.info("Communication client idle (pids {}).", sorted(pids))
        return CallState.INACTIVE

    def _client_pids(self) -> Set[int]:
        pids: Set[int] = set()
        try:
            for proc in self._process_iter(["name"]):
                try:
                    name = proc.info.get("name") if hasattr(proc, "info") else proc.name()
                except (psutil.NoSuchProcess, psutil.AccessDenied):
                    continue
                if normalize_process_name(name or "") in self.client_names:
                    pids.add(proc.pid)
        except (psutil.Error, OSError) as exc:
            self._logger.warning("Process enumeration failed ({}); assuming no client.", exc)
            return set()
        return pids


def _local_ip(conn) -> str:
    laddr = conn.laddr
    if not laddr:
        return ""
    return getattr(laddr, "ip", None) or laddr[0]


def detect_call_state() -> CallState:
    return CallActivityDetector().detect()
