"""Tests for the call-activity detector."""

from __future__ import annotations

import psutil

from core.call_activity import CallActivityDetector, normalize_process_name
from shared.outcomes import CallState


def _detector(processes, connections=None, *, connections_error=None):
    calls = []

    def process_iter(_attrs):
        return iter(processes)

    def net_connections(kind):
        calls.append(kind)
        if connections_error is not None:
            raise connections_error
        return list(connections or [])

    detector = CallActivityDetector(process_iter=process_iter, net_connections=net_connections)
    return detector, calls


def test_no_client_is_inactive_regardless_of_network(make_process, make_connection) -> None:
    detector, calls = _detector(
        [make_process(10, "chrome.exe")],
        [make_connection(10, "192.168.1.20")],
    )

    assert detector.detect() is CallState.INACTIVE
    assert calls == []


def test_client_with_only_wildcard_endpoints_is_inactive(make_process, make_connection) -> None:
    detector, _ = _detector(
        [make_process(20, "ms-teams.exe")],
        [make_connection(20, "0.0.0.0"), make_connection(20, "::")],
    )

    assert detector.detect() is CallState.INACTIVE


def test_client_with_bound_endpoint_is_active(make_process, make_connection) -> None:
    detector, calls = _detector(
        [make_process(20, "Teams.exe"), make_process(21, "explorer.exe")],
        [make_connection(20, "0.0.0.0"), make_connection(20, "10.0.0.15")],
    )

    assert detector.detect() is CallState.ACTIVE
    assert calls == ["udp"]


def test_endpoints_of_other_processes_are_ignored(make_process, make_connection) -> None:
    detector, _ = _detector(
        [make_process(30, "Zoom.exe")],
        [make_connection(99, "10.0.0.15")],
    )

    assert detector.detect() is CallState.INACTIVE


def test_endpoint_enumeration_failure_is_inactive(make_process) -> None:
    detector, _ = _detector(
        [make_process(40, "ms-teams.exe")],
        connections_error=psutil.AccessDenied(),
    )

    assert detector.detect() is CallState.INACTIVE


def test_process_enumeration_failure_is_inactive() -> None:
    def process_iter(_attrs):
        raise OSError("enumeration unavailable")

    detector = CallActivityDetector(process_iter=process_iter, net_connections=lambda kind: [])

    assert detector.detect() is CallState.INACTIVE


def test_custom_client_names() -> None:
    detector = CallActivityDetector(client_names=["Discord.exe"], process_iter=lambda _a: iter(()))
    assert detector.client_names == frozenset({"discord"})


def test_normalize_process_name() -> None:
    assert normalize_process_name("MS-Teams.EXE") == "ms-teams"
    assert normalize_process_name("  zoom ") == "zoom"
    assert normalize_process_name("") == ""
