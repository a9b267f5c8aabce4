"""
KoboToolbox Client - EEM-OMEC Scoring Engine
eem_omec/services/kobo_client.py

Async client for the KoboToolbox v2 API, the survey backend that stores
the EEM/OMEC assessment submissions.

Endpoints used:
    GET {base}/assets/{form}/data/{id}/    one submission
    GET {base}/assets/{form}/data/         paginated listing (limit/start)
    GET {base}/assets/{form}/              form definition

Kobo answers with an HTML login page instead of JSON when the token is
wrong, so an HTML body counts as a failure even with status 200.
"""

from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple
from urllib.parse import quote

import httpx
import structlog

from eem_omec.config import Settings, get_settings
from eem_omec.core.exceptions import SubmissionNotFound, UpstreamUnavailable
from eem_omec.models.scoring import SubmissionOverview, SubmissionPage

logger = structlog.get_logger(__name__)

AREA_NAME_KEY = "_0305_nombre_aconserv"
PROVINCE_KEY = "_0302_provincia"


# =============================================================================
# SUBMISSION FLATTENING
# =============================================================================

def _iter_fields(record: Mapping[str, Any], prefix: str = "") -> Iterator[Tuple[str, Any]]:
    """Yield (path, value) pairs, descending into nested groups."""
    for key, value in record.items():
        key = str(key)
        if prefix and not key.startswith(prefix + "/"):
            path = f"{prefix}/{key}"
        else:
            path = key
        if key.startswith("_"):
            # Kobo metadata (_id, _validation_status, _geolocation, ...)
            yield path, value
        elif isinstance(value, Mapping):
            yield from _iter_fields(value, path)
        elif isinstance(value, list) and value and all(isinstance(v, Mapping) for v in value):
            # repeat group
            for item in value:
                yield from _iter_fields(item, path)
        else:
            yield path, value


def flatten_submission(raw: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Expose every answer under its trailing key as well as its full path.

    Existing keys are kept. A plain top-level key is never overwritten by
    a flattened leaf; among compound paths sharing a leaf, the last wins.
    """
    flat: Dict[str, Any] = dict(raw)
    for path, value in _iter_fields(raw):
        if "/" not in path:
            continue
        flat.setdefault(path, value)
        leaf = path.rsplit("/", 1)[-1]
        if leaf not in raw:
            flat[leaf] = value
    return flat


def _text(value: Any) -> Optional[str]:
    return None if value is None else str(value)


def summarize_submission(flat: Mapping[str, Any]) -> SubmissionOverview:
    """Listing row for one flattened submission."""
    status = flat.get("_validation_status")
    return SubmissionOverview(
        id=str(flat.get("_id", flat.get("_uuid", ""))),
        uuid=_text(flat.get("_uuid")),
        submitted_at=_text(flat.get("_submission_time")),
        submitted_by=_text(flat.get("_submitted_by")),
        validation_status=_text(status.get("label")) if isinstance(status, Mapping) else None,
        area_name=_text(flat.get(AREA_NAME_KEY)),
        province=_text(flat.get(PROVINCE_KEY)),
    )


# =============================================================================
# CLIENT
# =============================================================================

class KoboToolboxClient:
    """Read-only access to one KoboToolbox form's submissions."""

    def __init__(
        self,
        base_url: str,
        form_id: str,
        token: Optional[str] = None,
        timeout: float = 30.0,
        user_agent: str = "EEM-OMECS/1.0",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.form_id = form_id
        self._token = token
        self.timeout = timeout
        self.user_agent = user_agent
        self._transport = transport

    @classmethod
    def from_settings(
        cls,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "KoboToolboxClient":
        settings = settings or get_settings()
        token = settings.KOBO_API_TOKEN.get_secret_value() if settings.KOBO_API_TOKEN else None
        return cls(
            base_url=settings.KOBO_BASE_URL,
            form_id=settings.KOBO_FORM_ID,
            token=token,
            timeout=settings.KOBO_TIMEOUT_SECONDS,
            user_agent=settings.KOBO_USER_AGENT,
            transport=transport,
        )

    @property
    def configured(self) -> bool:
        return bool(self._token and self.form_id)

    def _headers(self) -> Dict[str, str]:
        headers = {
            "Accept": "application/json",
            "User-Agent": self.user_agent,
        }
        if self._token:
            headers["Authorization"] = f"Token {self._token}"
        return headers

    # -- public API ----------------------------------------------------------

    async def fetch_submission(self, submission_id: str) -> Dict[str, Any]:
        """
        One submission, flattened.

        Raises:
            SubmissionNotFound: Kobo has no submission with this ID.
            UpstreamUnavailable: any other failure.
        """
        raw = await self._get_json(
            f"/assets/{self.form_id}/data/{quote(submission_id, safe='')}/",
            submission_id=submission_id,
        )
        if not isinstance(raw, dict):
            raise UpstreamUnavailable("Survey backend returned an unexpected payload")
        return flatten_submission(raw)

    async def list_submissions(self, page: int = 1, page_size: int = 50) -> SubmissionPage:
        """One page of submissions, newest last (Kobo's order)."""
        page = max(1, page)
        params = {"limit": page_size, "start": (page - 1) * page_size}
        body = await self._get_json(f"/assets/{self.form_id}/data/", params=params)
        if not isinstance(body, dict):
            raise UpstreamUnavailable("Survey backend returned an unexpected payload")
        results: List[Dict[str, Any]] = body.get("results") or []
        count = body.get("count")
        return SubmissionPage(
            count=int(count) if count is not None else len(results),
            page=page,
            page_size=page_size,
            results=[summarize_submission(flatten_submission(r)) for r in results],
        )

    async def fetch_form(self) -> Dict[str, Any]:
        """Form (asset) definition."""
        body = await self._get_json(f"/assets/{self.form_id}/")
        if not isinstance(body, dict):
            raise UpstreamUnavailable("Survey backend returned an unexpected payload")
        return body

    # -- internals -----------------------------------------------------------

    async def _get_json(
        self,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        submission_id: Optional[str] = None,
    ) -> Any:
        url = f"{self.base_url}{path}"
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                headers=self._headers(),
                transport=self._transport,
            ) as client:
                response = await client.get(url, params=params)
        except httpx.TimeoutException as e:
            logger.warning("kobo_timeout", url=url)
            raise UpstreamUnavailable("Survey backend timed out") from e
        except httpx.HTTPError as e:
            logger.warning("kobo_transport_error", url=url, error=str(e))
            raise UpstreamUnavailable(f"Survey backend unreachable: {e}") from e

        if response.status_code == 404 and submission_id is not None:
            raise SubmissionNotFound(submission_id)

        content_type = response.headers.get("content-type", "")
        text = response.text.lstrip()[:100].lower()
        if "text/html" in content_type or text.startswith(("<!doctype html", "<html")):
            logger.warning("kobo_html_response", url=url, status=response.status_code)
            raise UpstreamUnavailable(
                "Survey backend returned HTML instead of JSON; check KOBO_API_TOKEN",
                status_code=response.status_code,
            )

        if not response.is_success:
            logger.warning("kobo_error_status", url=url, status=response.status_code)
            raise UpstreamUnavailable(
                f"Survey backend returned HTTP {response.status_code}",
                status_code=response.status_code,
            )

        try:
            return response.json()
        except ValueError as e:
            raise UpstreamUnavailable(
                "Survey backend returned a non-JSON body",
                status_code=response.status_code,
            ) from e
