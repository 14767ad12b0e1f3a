import asyncio

import httpx

from satguard.refresh import refresh_threats
from satguard.schemas import Severity, ThreatKind
from satguard.settings import settings

STORM = [{"time_tag": "2023-01-01T00:00:00", "kp_index": 7}]


def _router(kp=None, catalog=None):
    def handler(request):
        url = str(request.url)
        if url.startswith(settings.kp_url):
            return kp(request) if kp else httpx.Response(200, json=STORM)
        if url.startswith(settings.celestrak_gp_url):
            return catalog(request) if catalog else httpx.Response(404)
        return httpx.Response(404)
    return handler


def _refresh(handler, *args, **kwargs):
    async def go():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            return await refresh_threats(*args, http=http, **kwargs)
    return asyncio.run(go())


def test_storm_first_then_conjunctions(scenario_orbit, near_twin, epoch):
    report = _refresh(_router(), [scenario_orbit], debris=[near_twin], now=epoch)
    kinds = [t.kind for t in report.threats]
    assert kinds == [ThreatKind.GEOMAGNETIC_STORM, ThreatKind.CONJUNCTION]
    assert report.threats[1].severity is Severity.HIGH
    assert report.diagnostics == []
    assert report.fetched_debris is None


def test_kp_failure_keeps_conjunctions(scenario_orbit, near_twin, epoch):
    handler = _router(kp=lambda r: httpx.Response(500, text="down"))
    report = _refresh(handler, [scenario_orbit], debris=[near_twin], now=epoch)
    assert [t.kind for t in report.threats] == [ThreatKind.CONJUNCTION]
    assert any("Geomagnetic" in d for d in report.diagnostics)


def test_debris_failure_keeps_storm(scenario_orbit, epoch):
    handler = _router(catalog=lambda r: httpx.Response(503, text="busy"))
    report = _refresh(handler, [scenario_orbit], now=epoch)
    assert [t.kind for t in report.threats] == [ThreatKind.GEOMAGNETIC_STORM]
    assert report.conjunctions == []
    assert any("Debris catalogue" in d for d in report.diagnostics)


def test_transport_error_is_a_diagnostic(scenario_orbit, near_twin, epoch):
    def kp_down(request):
        raise httpx.ConnectError("no route", request=request)

    report = _refresh(_router(kp=kp_down), [scenario_orbit], debris=[near_twin], now=epoch)
    assert [t.kind for t in report.threats] == [ThreatKind.CONJUNCTION]
    assert len(report.diagnostics) == 1


def test_fetches_catalogue_when_not_cached(scenario_orbit, catalog_text, epoch):
    handler = _router(catalog=lambda r: httpx.Response(200, text=catalog_text))
    report = _refresh(handler, [scenario_orbit], now=epoch)
    assert len(report.fetched_debris) == 2
    assert len(report.conjunctions) == 1
    assert report.threats[-1].kind is ThreatKind.CONJUNCTION


def test_empty_catalogue_skips_screening(scenario_orbit, epoch):
    report = _refresh(_router(), [scenario_orbit], debris=[], now=epoch)
    assert report.conjunctions == []
    assert [t.kind for t in report.threats] == [ThreatKind.GEOMAGNETIC_STORM]


def test_malformed_kp_entry_is_a_diagnostic(scenario_orbit, near_twin, epoch):
    bad = [{"time_tag": "2023-01-01T00:00:00", "kp_index": [7]}]
    handler = _router(kp=lambda r: httpx.Response(200, json=bad))
    report = _refresh(handler, [scenario_orbit], debris=[near_twin], now=epoch)
    assert [t.kind for t in report.threats] == [ThreatKind.CONJUNCTION]
    assert len(report.diagnostics) == 1
    assert report.diagnostics[0].startswith("Geomagnetic index unavailable")
