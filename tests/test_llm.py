"""Tests for the language-model client using mocked HTTP responses."""

import json

import pytest
import requests
import responses

from jobsieve.config import LLMConfig
from jobsieve.llm import LLMConnectionError, LLMResponseError, OllamaClient

HOST = "http://llm.test:11434"
CHAT_URL = f"{HOST}/api/chat"
TAGS_URL = f"{HOST}/api/tags"


@pytest.fixture
def client():
    return OllamaClient(LLMConfig(host=HOST + "/", model="llama3.2", timeout_seconds=5))


@responses.activate
def test_chat_returns_message_content(client):
    responses.add(
        responses.POST,
        CHAT_URL,
        json={"message": {"role": "assistant", "content": "Hello there"}, "done": True},
        status=200,
    )

    reply = client.chat([{"role": "user", "content": "Hi"}])

    assert reply == "Hello there"
    sent = json.loads(responses.calls[0].request.body)
    assert sent["model"] == "llama3.2"
    assert sent["stream"] is False
    assert sent["messages"] == [{"role": "user", "content": "Hi"}]


@responses.activate
def test_chat_model_override(client):
    responses.add(responses.POST, CHAT_URL, json={"message": {"content": "ok"}}, status=200)
    client.chat([{"role": "user", "content": "Hi"}], model="mistral")
    assert json.loads(responses.calls[0].request.body)["model"] == "mistral"


@responses.activate
def test_chat_connection_error(client):
    responses.add(responses.POST, CHAT_URL, body=requests.ConnectionError("refused"))
    with pytest.raises(LLMConnectionError):
        client.chat([{"role": "user", "content": "Hi"}])


@responses.activate
def test_chat_timeout_is_connection_error(client):
    responses.add(responses.POST, CHAT_URL, body=requests.Timeout("slow"))
    with pytest.raises(LLMConnectionError):
        client.chat([{"role": "user", "content": "Hi"}])


@responses.activate
def test_chat_http_error(client):
    responses.add(responses.POST, CHAT_URL, body="model not found", status=404)
    with pytest.raises(LLMResponseError, match="HTTP 404"):
        client.chat([{"role": "user", "content": "Hi"}])


@responses.activate
def test_chat_non_json_body(client):
    responses.add(responses.POST, CHAT_URL, body="<html>oops</html>", status=200)
    with pytest.raises(LLMResponseError):
        client.chat([{"role": "user", "content": "Hi"}])


@responses.activate
def test_chat_missing_content(client):
    responses.add(responses.POST, CHAT_URL, json={"done": True}, status=200)
    with pytest.raises(LLMResponseError, match="no message content"):
        client.chat([{"role": "user", "content": "Hi"}])


@responses.activate
def test_check_status_up(client):
    responses.add(responses.GET, TAGS_URL, json={"models": []}, status=200)
    assert client.check_status() is True


@responses.activate
def test_check_status_down(client):
    responses.add(responses.GET, TAGS_URL, body=requests.ConnectionError("refused"))
    assert client.check_status() is False


@responses.activate
def test_check_status_server_error(client):
    responses.add(responses.GET, TAGS_URL, status=500)
    assert client.check_status() is False
