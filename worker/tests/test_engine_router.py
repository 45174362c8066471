import asyncio

import pytest

from notegen.db import ENGINE_KEY
from notegen.errors import EngineNotConfigured, EngineNotReady
from notegen.models.engine import EngineCapability
from notegen.models.registry import Folder
from notegen.services.engine_router import EngineRouter
from notegen.services.templates import list_templates

from conftest import Error, FakeLocalBackend, FakeRemoteBackend, default_responder

FOLDERS = [Folder(id="f-work", name="Work", description="Team meetings"), Folder(id="f-home", name="Home")]


def _router(remote, local, preferences, settings, engine=None):
    router = EngineRouter(remote, local, preferences, settings)
    if engine is not None:
        router.set_engine(engine)
    return router


def test_engine_preference_round_trip(router, preferences):
    assert router.get_engine() is EngineCapability.REMOTE
    router.set_engine(EngineCapability.LOCAL)
    assert preferences.get(ENGINE_KEY) == "local"
    assert router.get_engine() is EngineCapability.LOCAL


def test_invalid_stored_engine_uses_default(router, preferences):
    preferences.set(ENGINE_KEY, "quantum")
    assert router.get_engine() is EngineCapability.REMOTE


def test_remote_without_credential_never_touches_local(preferences, settings):
    remote = FakeRemoteBackend(credential=False)
    local = FakeLocalBackend()
    router = _router(remote, local, preferences, settings, EngineCapability.REMOTE)

    with pytest.raises(EngineNotConfigured):
        asyncio.run(router.generate_enhanced_notes("t" * 2000, raw_notes=""))
    with pytest.raises(EngineNotConfigured):
        asyncio.run(router.ask_question("who owns it?", "t" * 100, "", "Sync"))

    assert local.calls == []
    assert local.probes == 0
    assert remote.calls == []


def test_remote_generation_uses_blocking_fallback(remote, local, preferences, settings):
    router = _router(remote, local, preferences, settings, EngineCapability.REMOTE)
    result = asyncio.run(router.generate_enhanced_notes("t" * 2000))
    assert remote.purposes == ["pass1"]
    assert local.calls == []
    assert result.enhanced_notes.startswith("## Key Points")


def test_local_not_installed_is_not_configured(remote, preferences, settings):
    local = FakeLocalBackend(ready=False, downloaded=False)
    router = _router(remote, local, preferences, settings, EngineCapability.LOCAL)
    with pytest.raises(EngineNotConfigured):
        asyncio.run(router.generate_enhanced_notes("t" * 2000))
    assert local.probes == 1
    assert remote.calls == []


def test_local_readiness_is_retried(remote, preferences, settings):
    local = FakeLocalBackend(ready_after=2)
    router = _router(remote, local, preferences, settings, EngineCapability.LOCAL)

    result = asyncio.run(router.generate_enhanced_notes("t" * 2000))

    assert local.probes == 3
    assert local.purposes == ["pass1"]
    assert result.summary


def test_local_readiness_gives_up_after_retries(remote, preferences, settings):
    local = FakeLocalBackend(ready_after=10)
    router = _router(remote, local, preferences, settings, EngineCapability.LOCAL)
    with pytest.raises(EngineNotReady):
        asyncio.run(router.generate_enhanced_notes("t" * 2000))
    assert local.probes == 1 + settings.local_ready_retries
    assert local.calls == []


def test_ask_question_does_not_retry(remote, preferences, settings):
    local = FakeLocalBackend(ready_after=1)
    router = _router(remote, local, preferences, settings, EngineCapability.LOCAL)
    with pytest.raises(EngineNotReady):
        asyncio.run(router.ask_question("when?", "t" * 100, "", "Sync"))
    assert local.probes == 1


def test_ask_question_answer(remote, local, preferences, settings):
    router = _router(remote, local, preferences, settings, EngineCapability.LOCAL)
    assert asyncio.run(router.ask_question("who?", "t" * 100, "notes", "Sync")) == "Ana owns the release notes."
    assert local.purposes == ["ask"]


def test_suggestions_use_selected_local_when_ready(remote, local, preferences, settings):
    router = _router(remote, local, preferences, settings, EngineCapability.LOCAL)
    suggestion = asyncio.run(router.suggest_folder("planning the beta launch", "Beta", FOLDERS))
    assert suggestion.id == "f-work"
    assert suggestion.confidence == "high"
    assert local.purposes == ["suggest_folder"]
    assert local.calls[0].json_mode
    assert remote.calls == []


def test_suggestions_use_selected_remote_when_ready(remote, local, preferences, settings):
    router = _router(remote, local, preferences, settings, EngineCapability.REMOTE)
    assert asyncio.run(router.suggest_folder("planning the beta launch", "Beta", FOLDERS)).id == "f-work"
    assert remote.purposes == ["suggest_folder"]
    assert remote.calls[0].json_mode
    assert local.calls == []


def test_suggestions_leave_unready_local_for_remote(remote, preferences, settings):
    local = FakeLocalBackend(ready=False)
    router = _router(remote, local, preferences, settings, EngineCapability.LOCAL)
    assert asyncio.run(router.suggest_folder("planning the beta launch", "Beta", FOLDERS)).id == "f-work"
    assert remote.purposes == ["suggest_folder"]
    assert local.calls == []


def test_title_uses_selected_local(remote, local, preferences, settings):
    router = _router(remote, local, preferences, settings, EngineCapability.LOCAL)
    segments = [f"Speaker {i}: beta plan" for i in range(5)]
    assert asyncio.run(router.generate_title(segments)) == "Beta Release Planning"
    assert local.purposes == ["title"]
    assert remote.calls == []


def test_suggestions_fall_back_to_local(preferences, settings):
    remote = FakeRemoteBackend(credential=False)
    local = FakeLocalBackend()
    router = _router(remote, local, preferences, settings, EngineCapability.REMOTE)
    suggestion = asyncio.run(router.suggest_template("Daily", "yesterday: fixed login", "", list_templates()))
    assert suggestion.id == list_templates()[0].id
    assert local.purposes == ["suggest_template"]


def test_suggestions_without_ready_engine(preferences, settings):
    remote = FakeRemoteBackend(credential=False)
    local = FakeLocalBackend(ready=False)
    router = _router(remote, local, preferences, settings)
    assert asyncio.run(router.suggest_folder("content", "t", FOLDERS)) is None
    assert local.calls == []


@pytest.mark.parametrize(
    "output, expected",
    [
        ('{"number": 2, "confidence": "medium", "reason": "personal"}', "f-home"),
        ('{"number": 2, "confidence": "low", "reason": "maybe"}', None),
        ('{"number": 0, "confidence": "low"}', None),
        ("2", "f-home"),
        ("I cannot decide", None),
    ],
)
def test_suggestion_confidence_filter(output, expected, local, preferences, settings):
    remote = FakeRemoteBackend(responder=lambda req: output)
    router = _router(remote, local, preferences, settings)
    suggestion = asyncio.run(router.suggest_folder("content", "t", FOLDERS))
    assert (suggestion.id if suggestion else None) == expected


def test_suggestion_backend_error_is_none(local, preferences, settings):
    remote = FakeRemoteBackend(responder=lambda req: Error("HTTP 500: upstream"))
    router = _router(remote, local, preferences, settings)
    assert asyncio.run(router.suggest_folder("content", "t", FOLDERS)) is None


def test_empty_lists_skip_the_backend(router, remote):
    assert asyncio.run(router.suggest_folder("content", "t", [])) is None
    assert asyncio.run(router.suggest_template("t", "notes", "", [])) is None
    assert remote.calls == []


def test_generate_title(router, remote):
    segments = [f"Speaker {i}: beta plan" for i in range(80)]
    assert asyncio.run(router.generate_title(segments)) == "Beta Release Planning"
    prompt = remote.calls[0].messages[-1].content
    assert "Speaker 49" in prompt
    assert "Speaker 50" not in prompt


def test_generate_title_needs_enough_text(router, remote):
    assert asyncio.run(router.generate_title(["hi", "hello"])) is None
    assert remote.calls == []


@pytest.mark.parametrize("output", ['""', "x" * 120])
def test_generate_title_rejects_bad_output(output, local, preferences, settings):
    remote = FakeRemoteBackend(responder=lambda req: output)
    router = _router(remote, local, preferences, settings)
    assert asyncio.run(router.generate_title("a fairly long transcript line " * 5)) is None


def test_chat_completion_follows_selection(remote, local, preferences, settings):
    from notegen.models.notes import ChatMessage, GenerationRequest

    router = _router(remote, local, preferences, settings, EngineCapability.LOCAL)
    req = GenerationRequest(messages=[ChatMessage(role="user", content="hi")])
    assert asyncio.run(router.chat_completion(req)) == default_responder(req)
    assert local.purposes == ["chat"]


def test_status_and_load(remote, preferences, settings):
    local = FakeLocalBackend(ready=False)
    router = _router(remote, local, preferences, settings)
    assert router.status()["engine"] is EngineCapability.REMOTE
    assert asyncio.run(router.load_local_engine()) == {"ok": True, "ready": True}
    assert local.load_requests == 1
