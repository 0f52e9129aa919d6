"""Tests for the explain and translate endpoints."""

from unittest.mock import MagicMock, patch

import httpx
import openai
import pytest

from briefe_einfach import config
from briefe_einfach.errors import ValidationError
from briefe_einfach.explain import EMPTY_COMPLETION, explain, explain_locally, split_sentences

LETTER = (
    "Sehr geehrte Frau Muster, das Finanzamt Köln hat Ihre Steuererklärung geprüft. "
    "Bitte überweisen Sie den Betrag von 1.234,56 € bis zum 15.03.2025. "
    "Reichen Sie außerdem eine Bescheinigung Ihres Arbeitgebers innerhalb von zwei Wochen ein. "
    "Gegen diesen Bescheid können Sie Widerspruch einlegen."
)


def completion(content):
    client = MagicMock()
    client.chat.completions.create.return_value = MagicMock(
        choices=[MagicMock(message=MagicMock(content=content))]
    )
    return client


def test_split_sentences():
    assert split_sentences("Erster Satz.  Zweiter\nSatz! Dritter?") == ["Erster Satz.", "Zweiter Satz!", "Dritter?"]


def test_explain_locally_finds_details():
    result = explain_locally(LETTER)

    assert result.startswith("Das ist eine einfache Erklärung:")
    assert "Finanzamt" in result
    assert "15.03.2025" in result
    assert "innerhalb von zwei Wochen" in result
    assert "1.234,56 €" in result
    assert "Bescheinigung" in result
    assert "Widerspruch" in result


def test_explain_locally_plain_text_still_has_content():
    result = explain_locally("Some letter text.")

    assert "Some letter text." in result
    assert "Was muss ich jetzt tun?" in result


@pytest.mark.parametrize("text", ["", "   ", "\n\t", None])
def test_explain_rejects_empty(text):
    with pytest.raises(ValidationError) as exc:
        explain(text)
    assert exc.value.code == "empty_text"


def test_explain_rejects_too_long(monkeypatch):
    monkeypatch.setattr(config, "MAX_TEXT_LENGTH", 10)
    with pytest.raises(ValidationError) as exc:
        explain("Dieser Text ist eindeutig zu lang.")
    assert exc.value.code == "text_too_long"


@pytest.mark.asyncio
async def test_explain_endpoint_local(client):
    res = await client.post("/erklaeren", json={"text": "Some letter text."})

    assert res.status_code == 200
    body = res.json()
    assert body["ok"] is True
    assert body["result"].strip()


@pytest.mark.asyncio
@pytest.mark.parametrize("path", ["/erklaeren", "/api/explain"])
async def test_explain_endpoint_empty(client, path):
    res = await client.post(path, json={"text": "   "})

    assert res.status_code == 400
    assert res.json() == {"ok": False, "error": "empty_text", "message": "Kein Text übergeben."}


@pytest.mark.asyncio
async def test_explain_uses_openai_when_key_set(client, monkeypatch):
    monkeypatch.setattr(config, "OPENAI_API_KEY", "sk-test")
    with patch("briefe_einfach.explain.OpenAI", return_value=completion("  - Sie müssen zahlen.  ")) as openai_cls:
        res = await client.post("/api/explain", json={"text": LETTER})

    assert res.json() == {"ok": True, "result": "- Sie müssen zahlen."}
    kwargs = openai_cls.return_value.chat.completions.create.call_args.kwargs
    assert kwargs["model"] == config.OPENAI_MODEL
    assert LETTER in kwargs["messages"][1]["content"]


@pytest.mark.asyncio
async def test_explain_empty_completion(client, monkeypatch):
    monkeypatch.setattr(config, "OPENAI_API_KEY", "sk-test")
    with patch("briefe_einfach.explain.OpenAI", return_value=completion(None)):
        res = await client.post("/api/explain", json={"text": LETTER})

    assert res.json()["result"] == EMPTY_COMPLETION


@pytest.mark.asyncio
async def test_explain_upstream_failure(client, monkeypatch):
    monkeypatch.setattr(config, "OPENAI_API_KEY", "sk-test")
    failing = MagicMock()
    failing.chat.completions.create.side_effect = openai.APIConnectionError(
        request=httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
    )
    with patch("briefe_einfach.explain.OpenAI", return_value=failing):
        res = await client.post("/api/explain", json={"text": LETTER})

    assert res.status_code == 502
    assert res.json()["error"] == "upstream_unavailable"


@pytest.mark.asyncio
async def test_explain_local_provider_ignores_key(client, monkeypatch):
    monkeypatch.setattr(config, "OPENAI_API_KEY", "sk-test")
    monkeypatch.setattr(config, "EXPLAIN_PROVIDER", "local")
    with patch("briefe_einfach.explain.OpenAI") as openai_cls:
        res = await client.post("/api/explain", json={"text": LETTER})

    assert res.status_code == 200
    openai_cls.assert_not_called()


@pytest.mark.asyncio
async def test_explain_openai_provider_without_key(client, monkeypatch):
    monkeypatch.setattr(config, "EXPLAIN_PROVIDER", "openai")
    res = await client.post("/api/explain", json={"text": LETTER})

    assert res.status_code == 500
    assert res.json()["error"] == "explain_not_configured"


@pytest.mark.asyncio
async def test_translate_requires_login(client):
    res = await client.post("/api/translate", json={"text": LETTER})

    assert res.status_code == 401
    assert res.json()["error"] == "not_authenticated"


@pytest.mark.asyncio
async def test_translate_requires_subscription(client, register_user, bearer):
    data = await register_user()
    res = await client.post("/api/translate", json={"text": LETTER}, headers=bearer(data["token"]))

    assert res.status_code == 402
    assert res.json()["error"] == "subscription_required"


@pytest.mark.asyncio
async def test_translate_for_subscriber(client, users, monkeypatch, register_user, bearer):
    monkeypatch.setattr(config, "OPENAI_API_KEY", "sk-test")
    data = await register_user()
    users.update_subscription(data["user"]["id"], True)

    with patch("briefe_einfach.explain.OpenAI", return_value=completion("Please pay by 15 March.")) as openai_cls:
        res = await client.post(
            "/api/translate", json={"text": LETTER, "target": "en"}, headers=bearer(data["token"])
        )

    assert res.json() == {"ok": True, "result": "Please pay by 15 March."}
    prompt = openai_cls.return_value.chat.completions.create.call_args.kwargs["messages"][1]["content"]
    assert "Englisch" in prompt


@pytest.mark.asyncio
async def test_translate_unknown_language(client, monkeypatch, register_user, bearer):
    monkeypatch.setattr(config, "DEV_ALLOW_ALL", True)
    monkeypatch.setattr(config, "OPENAI_API_KEY", "sk-test")
    data = await register_user()
    res = await client.post(
        "/api/translate", json={"text": LETTER, "target": "xx"}, headers=bearer(data["token"])
    )

    assert res.status_code == 400
    assert res.json()["error"] == "unknown_language"


@pytest.mark.asyncio
async def test_translate_not_configured(client, monkeypatch, register_user, bearer):
    monkeypatch.setattr(config, "TEST_EMAIL", "anna@example.com")
    data = await register_user()
    res = await client.post("/api/translate", json={"text": LETTER}, headers=bearer(data["token"]))

    assert res.status_code == 500
    assert res.json()["error"] == "translate_not_configured"
