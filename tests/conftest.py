import json
import re
from collections import defaultdict

import httpx
import pytest

from pdf_relay.config import RelaySettings

IMS_URL = "https://ims.test/ims/token/v3"
PDF_SERVICES_URL = "https://pdf.test"
STORAGE = "https://storage.test"

PDF_HEADER = b"%PDF-1.4\n"


def in_progress() -> dict[str, object]:
    return {"status": "in progress"}


class FakeAdobe:
    """In-memory stand-in for Adobe IMS, PDF Services and its asset storage.

    Every pipeline gets its own numbered token (T1, T2, ...), asset (A1, ...),
    upload URI (U1, ...), polling URL (P1, ...) and download URI (D1, ...).
    The downloaded "PDF" is PDF_HEADER followed by the HTML that was uploaded
    for that asset, so callers can check they got their own document back.

    `statuses` is the sequence of poll answers for every job; the last entry
    repeats. Entries may be a status string, a full payload dict, an
    `httpx.Response` or an exception to raise. `failures` maps a step name
    (token, assets, upload, job, poll, download) to a Response or exception
    that replaces the normal answer.
    """

    def __init__(self, statuses=None, failures=None) -> None:
        self.statuses = list(statuses or ["succeeded"])
        self.failures = dict(failures or {})
        self.requests: list[httpx.Request] = []
        self.uploads: dict[int, bytes] = {}
        self.job_payloads: list[dict[str, object]] = []
        self.polls: dict[int, int] = defaultdict(int)
        self._issued = 0
        self.download_stream: httpx.AsyncByteStream | None = None

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))

    def calls(self, step: str) -> list[httpx.Request]:
        return [r for r in self.requests if self._step(r) == step]

    @staticmethod
    def _number(url: str) -> int:
        match = re.search(r"(\d+)(?:/status)?$", url)
        assert match, url
        return int(match.group(1))

    @staticmethod
    def _step(request: httpx.Request) -> str:
        url = str(request.url)
        if url == IMS_URL:
            return "token"
        if url == f"{PDF_SERVICES_URL}/assets":
            return "assets"
        if url.startswith(f"{STORAGE}/U"):
            return "upload"
        if url == f"{PDF_SERVICES_URL}/operation/htmltopdf":
            return "job"
        if url.startswith(f"{PDF_SERVICES_URL}/status/"):
            return "poll"
        if url.startswith(f"{STORAGE}/D"):
            return "download"
        return "unknown"

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        step = self._step(request)
        failure = self.failures.get(step)
        if isinstance(failure, Exception):
            raise failure
        if failure is not None:
            return failure
        return getattr(self, f"_{step}")(request)

    def _token(self, request: httpx.Request) -> httpx.Response:
        self._issued += 1
        return httpx.Response(200, json={"access_token": f"T{self._issued}", "expires_in": 86399})

    def _assets(self, request: httpx.Request) -> httpx.Response:
        n = int(request.headers["authorization"].removeprefix("Bearer T"))
        return httpx.Response(200, json={"assetID": f"A{n}", "uploadUri": f"{STORAGE}/U{n}"})

    def _upload(self, request: httpx.Request) -> httpx.Response:
        self.uploads[self._number(str(request.url))] = request.content
        return httpx.Response(200)

    def _job(self, request: httpx.Request) -> httpx.Response:
        payload = json.loads(request.content)
        self.job_payloads.append(payload)
        n = int(str(payload["assetID"]).removeprefix("A"))
        return httpx.Response(201, headers={"location": f"{PDF_SERVICES_URL}/status/P{n}"})

    def _poll(self, request: httpx.Request) -> httpx.Response:
        n = self._number(str(request.url))
        answer = self.statuses[min(self.polls[n], len(self.statuses) - 1)]
        self.polls[n] += 1
        if isinstance(answer, Exception):
            raise answer
        if isinstance(answer, httpx.Response):
            return answer
        if isinstance(answer, str):
            answer = {"status": answer}
            if answer["status"] in {"succeeded", "done"}:
                answer["asset"] = {"assetID": f"A{n}", "downloadUri": f"{STORAGE}/D{n}"}
        return httpx.Response(200, json=answer)

    def _download(self, request: httpx.Request) -> httpx.Response:
        if self.download_stream is not None:
            return httpx.Response(200, headers={"content-type": "application/pdf"}, stream=self.download_stream)
        n = self._number(str(request.url))
        return httpx.Response(200, headers={"content-type": "application/pdf"}, content=PDF_HEADER + self.uploads[n])

    def _unknown(self, request: httpx.Request) -> httpx.Response:
        return httpx.Response(404, json={"error": "not found"})


class ChunkedBody(httpx.AsyncByteStream):
    """Download body served in separate chunks that remembers how often it was closed."""

    def __init__(self, chunks, error: Exception | None = None) -> None:
        self.chunks = list(chunks)
        self.error = error
        self.close_count = 0

    async def __aiter__(self):
        for chunk in self.chunks:
            yield chunk
        if self.error is not None:
            raise self.error

    async def aclose(self) -> None:
        self.close_count += 1


class SleepRecorder:
    def __init__(self) -> None:
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture
def settings() -> RelaySettings:
    return RelaySettings(
        client_id="client-123",
        client_secret="shh",
        ims_token_url=IMS_URL,
        pdf_services_url=PDF_SERVICES_URL,
    )


@pytest.fixture
def sleeps() -> SleepRecorder:
    return SleepRecorder()
