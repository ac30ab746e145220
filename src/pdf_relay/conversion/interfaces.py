from dataclasses import dataclass, field
from typing import AsyncIterator, Protocol


class JobStatus:
    IN_PROGRESS = "in progress"
    SUCCEEDED = "succeeded"
    DONE = "done"
    FAILED = "failed"

    SUCCESS = frozenset({SUCCEEDED, DONE})


@dataclass(frozen=True)
class AssetHandle:
    asset_id: str
    upload_uri: str = field(repr=False)


@dataclass(frozen=True)
class RenderOptions:
    """Page options sent with the conversion job. Sizes are in inches (A4)."""

    include_header_footer: bool = True
    page_width: float = 8.27
    page_height: float = 11.69


@dataclass(frozen=True)
class JobSnapshot:
    status: str
    download_uri: str | None = None
    raw: dict[str, object] = field(default_factory=dict, compare=False)

    @classmethod
    def from_payload(cls, payload: dict[str, object]) -> "JobSnapshot":
        asset = payload.get("asset")
        download_uri = None
        if isinstance(asset, dict):
            uri = asset.get("downloadUri")
            download_uri = str(uri) if uri else None
        return cls(status=str(payload.get("status", "")), download_uri=download_uri, raw=payload)


class PdfStream(Protocol):
    def iter_bytes(self) -> AsyncIterator[bytes]:
        """Yield the document in chunks, pulling from the source on demand."""

    async def aclose(self) -> None:
        ...


class AuthGateway(Protocol):
    async def authenticate(self) -> str:
        ...


class AssetGateway(Protocol):
    async def request_upload_slot(self, token: str, media_type: str = "text/html") -> AssetHandle:
        ...

    async def upload_content(self, upload_uri: str, content: bytes, media_type: str = "text/html") -> None:
        ...


class JobGateway(Protocol):
    async def start_job(self, asset_id: str, token: str, options: RenderOptions) -> str:
        """Start a conversion and return its polling URL."""

    async def fetch_status(self, polling_url: str, token: str) -> JobSnapshot:
        ...


class ResultGateway(Protocol):
    async def open(self, download_uri: str) -> PdfStream:
        ...
