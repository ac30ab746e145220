from types import SimpleNamespace

import pytest
import requests

from pdf_relay import streamlit_app


class FakeResponse:
    def __init__(self, status_code: int, content: bytes, content_type: str) -> None:
        self.status_code = status_code
        self.content = content
        self.text = content.decode("utf-8", errors="replace")
        self.headers = {"content-type": content_type}


@pytest.fixture
def session(monkeypatch):
    fake_st = SimpleNamespace(session_state={})
    monkeypatch.setattr(streamlit_app, "st", fake_st)
    return fake_st.session_state


def test_generate_pdf_returns_bytes(monkeypatch, session):
    sent = {}

    def fake_post(url, json, timeout):
        sent.update(url=url, json=json)
        return FakeResponse(200, b"%PDF-1.4 ...", "application/pdf")

    monkeypatch.setattr(streamlit_app.requests, "post", fake_post)

    pdf = streamlit_app._generate_pdf("<h1>Hi</h1>")

    assert pdf == b"%PDF-1.4 ..."
    assert sent == {"url": f"{streamlit_app.API_BASE}/api/generate-pdf", "json": {"html": "<h1>Hi</h1>"}}
    assert "error" not in session


def test_generate_pdf_surfaces_server_message(monkeypatch, session):
    monkeypatch.setattr(
        streamlit_app.requests,
        "post",
        lambda url, json, timeout: FakeResponse(500, b"Failed to authenticate with Adobe.", "text/plain"),
    )

    assert streamlit_app._generate_pdf("<p/>") is None
    assert session["error"] == "PDF generation failed: 500 Failed to authenticate with Adobe."


def test_generate_pdf_connection_error(monkeypatch, session):
    def refuse(url, json, timeout):
        raise requests.ConnectionError("refused")

    monkeypatch.setattr(streamlit_app.requests, "post", refuse)

    assert streamlit_app._generate_pdf("<p/>") is None
    assert session["error"].startswith("Failed to connect to API:")
