import logging

import httpx

from ..config import RelaySettings
from .errors import (
    AuthenticationFailure,
    JobSubmissionFailure,
    PollingFailure,
    RelayError,
    StreamingFailure,
    UploadFailure,
)
from .interfaces import (
    AssetGateway,
    AssetHandle,
    AuthGateway,
    JobGateway,
    JobSnapshot,
    PdfStream,
    RenderOptions,
    ResultGateway,
)

logger = logging.getLogger(__name__)


def _vendor_detail(response: httpx.Response) -> object:
    try:
        return response.json()
    except ValueError:
        return response.text


async def _send(
    http: httpx.AsyncClient,
    method: str,
    url: str,
    *,
    failure: type[RelayError],
    action: str,
    **kwargs: object,
) -> httpx.Response:
    """Issue one vendor request, turning transport and HTTP errors into `failure`."""
    try:
        response = await http.request(method, url, **kwargs)  # type: ignore[arg-type]
        response.raise_for_status()
    except httpx.HTTPStatusError as e:
        logger.error("Error %s: HTTP %s %s", action, e.response.status_code, _vendor_detail(e.response))
        raise failure() from e
    except httpx.HTTPError as e:
        logger.error("Error %s: %s", action, e)
        raise failure() from e
    return response


def _json_object(response: httpx.Response, *, failure: type[RelayError], action: str) -> dict[str, object]:
    try:
        body = response.json()
    except ValueError as e:
        logger.error("Error %s: response is not JSON: %r", action, response.text[:200])
        raise failure() from e
    if not isinstance(body, dict):
        logger.error("Error %s: expected a JSON object, got %r", action, body)
        raise failure()
    return body


class AdobeAuthenticator(AuthGateway):
    """Client-credentials grant against Adobe IMS."""

    def __init__(self, http: httpx.AsyncClient, settings: RelaySettings) -> None:
        self._http = http
        self._settings = settings

    async def authenticate(self) -> str:
        form = {
            "client_id": self._settings.client_id,
            "client_secret": self._settings.client_secret,
            "grant_type": "client_credentials",
            "scope": self._settings.scopes,
        }
        action = "getting Adobe access token"
        response = await _send(
            self._http, "POST", self._settings.ims_token_url,
            failure=AuthenticationFailure, action=action, data=form,
        )
        body = _json_object(response, failure=AuthenticationFailure, action=action)
        token = body.get("access_token")
        if not token:
            logger.error("Error %s: no access_token in response", action)
            raise AuthenticationFailure()
        return str(token)


class _PdfServicesClient:
    def __init__(self, http: httpx.AsyncClient, settings: RelaySettings) -> None:
        self._http = http
        self._settings = settings

    def _headers(self, token: str) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {token}",
            "x-api-key": self._settings.client_id,
        }

    def _url(self, path: str) -> str:
        return f"{self._settings.pdf_services_url.rstrip('/')}/{path.lstrip('/')}"


class AdobeAssetUploader(_PdfServicesClient, AssetGateway):
    async def request_upload_slot(self, token: str, media_type: str = "text/html") -> AssetHandle:
        action = "requesting asset upload URI"
        response = await _send(
            self._http, "POST", self._url("/assets"),
            failure=UploadFailure, action=action,
            headers=self._headers(token), json={"mediaType": media_type},
        )
        body = _json_object(response, failure=UploadFailure, action=action)
        asset_id = body.get("assetID")
        upload_uri = body.get("uploadUri")
        if not asset_id or not upload_uri:
            logger.error("Error %s: missing assetID or uploadUri in %r", action, sorted(body))
            raise UploadFailure()
        return AssetHandle(asset_id=str(asset_id), upload_uri=str(upload_uri))

    async def upload_content(self, upload_uri: str, content: bytes, media_type: str = "text/html") -> None:
        # Pre-signed storage URL: no bearer or API key headers.
        await _send(
            self._http, "PUT", upload_uri,
            failure=UploadFailure, action="uploading HTML asset",
            headers={"Content-Type": media_type}, content=content,
        )


class AdobeHtmlToPdfJobs(_PdfServicesClient, JobGateway):
    async def start_job(self, asset_id: str, token: str, options: RenderOptions) -> str:
        payload = {
            "assetID": asset_id,
            "includeHeaderFooter": options.include_header_footer,
            "pageLayout": {
                "pageWidth": options.page_width,
                "pageHeight": options.page_height,
            },
        }
        response = await _send(
            self._http, "POST", self._url("/operation/htmltopdf"),
            failure=JobSubmissionFailure, action="starting PDF conversion job",
            headers=self._headers(token), json=payload,
        )
        polling_url = response.headers.get("location")
        if not polling_url:
            logger.error("Error starting PDF conversion job: no location header (HTTP %s)", response.status_code)
            raise JobSubmissionFailure()
        return polling_url

    async def fetch_status(self, polling_url: str, token: str) -> JobSnapshot:
        action = "polling job status"
        response = await _send(
            self._http, "GET", polling_url,
            failure=PollingFailure, action=action, headers=self._headers(token),
        )
        return JobSnapshot.from_payload(_json_object(response, failure=PollingFailure, action=action))


class HttpPdfStream(PdfStream):
    """Pass-through over an open streaming response.

    Bytes are read from the vendor only as fast as the consumer asks for them.
    """

    def __init__(self, response: httpx.Response, chunk_size: int | None = None) -> None:
        self._response = response
        self._chunk_size = chunk_size
        self._closed = False
        self.bytes_sent = 0

    async def iter_bytes(self):
        try:
            async for chunk in self._response.aiter_bytes(self._chunk_size):
                self.bytes_sent += len(chunk)
                yield chunk
        except httpx.HTTPError as e:
            logger.error("PDF download broke after %d bytes: %s", self.bytes_sent, e)
            raise StreamingFailure() from e
        finally:
            await self.aclose()

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self._response.aclose()


class HttpResultFetcher(ResultGateway):
    def __init__(self, http: httpx.AsyncClient, chunk_size: int | None = None) -> None:
        self._http = http
        self._chunk_size = chunk_size

    async def open(self, download_uri: str) -> HttpPdfStream:
        request = self._http.build_request("GET", download_uri)
        try:
            response = await self._http.send(request, stream=True)
        except httpx.HTTPError as e:
            logger.error("Error downloading PDF: %s", e)
            raise StreamingFailure() from e
        if response.is_error:
            try:
                await response.aread()
                logger.error("Error downloading PDF: HTTP %s %s", response.status_code, _vendor_detail(response))
            except httpx.HTTPError as e:
                logger.error("Error downloading PDF: HTTP %s, body unreadable: %s", response.status_code, e)
                raise StreamingFailure() from e
            finally:
                await response.aclose()
            raise StreamingFailure()
        return HttpPdfStream(response, self._chunk_size)
