import asyncio
from datetime import date

from fakes import (
    HTML_BYTES,
    PDF_BYTES,
    FakeAPIResponse,
    FakeBrowserContext,
    FakeHttpClient,
    FakePage,
    FakeRequestContext,
    pdf_response,
)

from sheetfetch.workflows.acquire import STATUS_FAILED, STATUS_NOT_APPLICABLE, STATUS_SUCCESS, Acquirer
from sheetfetch.workflows.acquire_config import TRIGGER_SELECTOR, AcquireConfig
from sheetfetch.workflows.models import (
    AcquisitionRequest,
    Failed,
    FailureKind,
    NotApplicable,
    StrategyName,
    Success,
)

TODAY = date(2026, 10, 19)
CONFIG = AcquireConfig(platform="linux", clock=lambda: TODAY)
FORM = {"id": "42", "token": "abc"}
VIEWER_HTML = '<html><body><embed type="application/pdf" src="about:blank"></body></html>'


def _request(root, source_id="42"):
    return AcquisitionRequest(("P1", "中"), root, source_id)


def _replay_context(status=200, body=PDF_BYTES, content_type="application/pdf"):
    return FakeBrowserContext(request=FakeRequestContext(FakeAPIResponse(status=status, body=body, content_type=content_type)))


def _acquire(acquirer, page, request):
    return asyncio.run(acquirer.acquire(page, request))


def test_direct_replay_success_writes_deterministic_path(tmp_path):
    root = tmp_path / "downloads"
    page = FakePage(tmp_path, form=FORM, context=_replay_context())
    http = FakeHttpClient()

    result = _acquire(Acquirer(CONFIG, http=http), page, _request(root))

    expected = root / "2026-10-19" / "P1-中-2026-10-19-42.pdf"
    assert result.ok is True
    assert result.path == expected
    assert expected.read_bytes() == PDF_BYTES
    assert result.record.source_strategy is StrategyName.DIRECT_REPLAY
    assert result.record.size_bytes == len(PDF_BYTES)
    assert [a.strategy for a in result.attempts] == [StrategyName.DIRECT_REPLAY]
    assert page.download_waits == []
    assert http.calls == []


def test_viewer_shortcut_after_replay_error_and_silent_click(tmp_path):
    root = tmp_path / "downloads"
    page = FakePage(
        tmp_path,
        form=FORM,
        context=_replay_context(status=500, body=b"", content_type="text/html"),
        html_after_click=VIEWER_HTML,
        downloads_on=["key:Control+S"],
    )

    result = _acquire(Acquirer(CONFIG, http=FakeHttpClient()), page, _request(root))

    assert result.ok is True
    assert result.record.source_strategy is StrategyName.VIEWER
    assert result.path.read_bytes() == PDF_BYTES
    replay, native, via_viewer = result.attempts
    assert (replay.status, replay.kind) == (STATUS_FAILED, FailureKind.TRANSPORT_ERROR)
    assert (native.status, native.kind) == (STATUS_FAILED, FailureKind.TIMEOUT)
    assert via_viewer.status == STATUS_SUCCESS


def test_exhaustion_leaves_filesystem_untouched(tmp_path):
    root = tmp_path / "downloads"
    page = FakePage(
        tmp_path,
        form=FORM,
        context=_replay_context(body=HTML_BYTES, content_type="text/html"),
        html="<html><body><form id='dlform'></form></body></html>",
    )
    http = FakeHttpClient(post_response=pdf_response(body=HTML_BYTES, content_type="text/html"))

    result = _acquire(Acquirer(CONFIG, http=http), page, _request(root))

    assert result.ok is False
    assert result.record is None
    assert result.error == "all strategies exhausted"
    assert not root.exists()
    statuses = [(a.strategy, a.status, a.kind) for a in result.attempts]
    assert statuses == [
        (StrategyName.DIRECT_REPLAY, STATUS_FAILED, FailureKind.VALIDATION_FAILED),
        (StrategyName.NATIVE_EVENT, STATUS_FAILED, FailureKind.TIMEOUT),
        (StrategyName.VIEWER, STATUS_NOT_APPLICABLE, None),
        (StrategyName.RESOURCE_URL, STATUS_NOT_APPLICABLE, None),
        (StrategyName.HTTP_REPLICATION, STATUS_FAILED, FailureKind.VALIDATION_FAILED),
    ]


def test_later_strategies_do_not_run_after_success(tmp_path):
    calls = []

    def _make(name, outcome):
        async def _strategy(page, request, ctx):
            calls.append(name)
            return outcome

        return name, _strategy

    strategies = [
        _make(StrategyName.DIRECT_REPLAY, NotApplicable("no form")),
        _make(StrategyName.NATIVE_EVENT, Success(PDF_BYTES, "")),
        _make(StrategyName.VIEWER, Success(b"%PDF-other", "application/pdf")),
    ]
    result = _acquire(Acquirer(CONFIG, strategies=strategies), FakePage(tmp_path), _request(tmp_path))

    assert result.ok is True
    assert calls == [StrategyName.DIRECT_REPLAY, StrategyName.NATIVE_EVENT]
    assert result.path.read_bytes() == PDF_BYTES


def test_invalid_success_falls_through(tmp_path):
    async def _html(page, request, ctx):
        return Success(HTML_BYTES, "text/html")

    async def _pdf(page, request, ctx):
        return Success(PDF_BYTES, "application/pdf")

    strategies = [(StrategyName.DIRECT_REPLAY, _html), (StrategyName.RESOURCE_URL, _pdf)]
    result = _acquire(Acquirer(CONFIG, strategies=strategies), FakePage(tmp_path), _request(tmp_path))

    assert result.record.source_strategy is StrategyName.RESOURCE_URL
    assert result.attempts[0].kind is FailureKind.VALIDATION_FAILED


def test_budget_overrun_is_a_timeout(tmp_path):
    async def _slow(page, request, ctx):
        await asyncio.sleep(5)
        return Success(PDF_BYTES, "application/pdf")

    async def _fast(page, request, ctx):
        return Success(PDF_BYTES, "application/pdf")

    config = AcquireConfig(platform="linux", clock=lambda: TODAY, direct_replay_budget=0.01)
    strategies = [(StrategyName.DIRECT_REPLAY, _slow), (StrategyName.NATIVE_EVENT, _fast)]
    result = _acquire(Acquirer(config, strategies=strategies), FakePage(tmp_path), _request(tmp_path))

    assert result.ok is True
    assert result.attempts[0].kind is FailureKind.TIMEOUT
    assert result.record.source_strategy is StrategyName.NATIVE_EVENT


def test_unguarded_error_aborts_acquisition(tmp_path):
    async def _explode(page, request, ctx):
        raise RuntimeError("page crashed")

    strategies = [(StrategyName.DIRECT_REPLAY, _explode)]
    result = _acquire(Acquirer(CONFIG, strategies=strategies), FakePage(tmp_path), _request(tmp_path / "out"))

    assert result.ok is False
    assert result.error == "RuntimeError: page crashed"
    assert not (tmp_path / "out").exists()


def test_missing_form_is_only_a_warning(tmp_path):
    page = FakePage(tmp_path, present=(TRIGGER_SELECTOR,), downloads_on=[f"click:{TRIGGER_SELECTOR}"])
    result = _acquire(Acquirer(CONFIG, http=FakeHttpClient()), page, _request(tmp_path / "out", None))

    assert result.ok is True
    assert result.record.source_strategy is StrategyName.NATIVE_EVENT
    assert result.path.name == "P1-中-2026-10-19.pdf"


def test_result_serializes(tmp_path):
    page = FakePage(tmp_path, form=FORM, context=_replay_context())
    result = _acquire(Acquirer(CONFIG), page, _request(tmp_path))
    payload = result.to_dict()
    assert payload["ok"] is True
    assert payload["source_strategy"] == "direct_replay"
    assert payload["attempts"][0]["strategy"] == "direct_replay"
    assert payload["error"] is None


def test_failed_outcome_kinds_are_recorded(tmp_path):
    async def _fail(page, request, ctx):
        return Failed(FailureKind.MISSING_FORM_FIELD, "hidden fields missing token")

    result = _acquire(
        Acquirer(CONFIG, strategies=[(StrategyName.HTTP_REPLICATION, _fail)]),
        FakePage(tmp_path),
        _request(tmp_path),
    )
    (attempt,) = result.attempts
    assert attempt.to_dict()["kind"] == "missing_form_field"
    assert attempt.to_dict()["detail"] == "hidden fields missing token"


def test_browser_download_named_pdf_still_needs_signature(tmp_path):
    root = tmp_path / "downloads"
    page = FakePage(
        tmp_path,
        form=None,
        downloads_on=[f"click:{TRIGGER_SELECTOR}"],
        download_bytes=HTML_BYTES,
    )
    http = FakeHttpClient(post_response=pdf_response(body=HTML_BYTES, content_type="text/html"))

    result = _acquire(Acquirer(CONFIG, http=http), page, _request(root))

    assert result.ok is False
    assert not root.exists()
    native = result.attempts[1]
    assert native.strategy is StrategyName.NATIVE_EVENT
    assert native.kind is FailureKind.VALIDATION_FAILED


def test_non_variant_outcome_aborts(tmp_path):
    async def _bogus(page, request, ctx):
        return None

    result = _acquire(
        Acquirer(CONFIG, strategies=[(StrategyName.DIRECT_REPLAY, _bogus)]),
        FakePage(tmp_path),
        _request(tmp_path / "out"),
    )
    assert result.ok is False
    assert result.error.startswith("TypeError: direct_replay returned NoneType")
