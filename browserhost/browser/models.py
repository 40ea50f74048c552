"""
Browser session data models.
"""
import base64
import binascii
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Dict, Any

from ..errors import BadRequest

PNG_MIME_TYPE = "image/png"


def utc_timestamp() -> str:
    """ISO-8601 UTC timestamp with millisecond precision, e.g. 2024-01-01T00:00:00.000Z"""
    now = datetime.now(timezone.utc)
    return now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"


class BrowserType(Enum):
    CHROMIUM = "chromium"
    FIREFOX = "firefox"
    WEBKIT = "webkit"


class BodyEncoding(Enum):
    UTF8 = "utf8"
    BASE64 = "base64"


@dataclass
class EngineConfig:
    """Launch and per-session context options for the browser engine."""
    headless: bool = True
    browser_type: BrowserType = BrowserType.CHROMIUM
    viewport_width: int = 1280
    viewport_height: int = 720
    user_agent: str = ""
    ignore_https_errors: bool = False
    timeout_ms: int = 30000

    def context_options(self) -> Dict[str, Any]:
        options = {
            "viewport": {
                "width": self.viewport_width,
                "height": self.viewport_height,
            },
            "ignore_https_errors": self.ignore_https_errors,
        }
        if self.user_agent:
            options["user_agent"] = self.user_agent
        return options

    def to_dict(self) -> Dict[str, Any]:
        return {
            "headless": self.headless,
            "browser_type": self.browser_type.value,
            "viewport_width": self.viewport_width,
            "viewport_height": self.viewport_height,
            "user_agent": self.user_agent,
            "ignore_https_errors": self.ignore_https_errors,
            "timeout_ms": self.timeout_ms,
        }


@dataclass
class Session:
    """One isolated browser surface and the page that drives it.

    ``surface`` is the Playwright BrowserContext, ``page`` the single Page
    bound to it for the session's whole life.
    """
    id: str
    surface: Any
    page: Any
    current_url: str = ""
    created_at: str = field(default_factory=utc_timestamp)

    def is_destroyed(self) -> bool:
        return self.page.is_closed()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "currentUrl": self.current_url,
            "createdAt": self.created_at,
            "closed": self.is_destroyed(),
        }


# Descriptor keys handed to the page's fetch() untouched.
PASSTHROUGH_FIELDS = (
    "method",
    "redirect",
    "credentials",
    "cache",
    "mode",
    "referrer",
    "referrerPolicy",
    "integrity",
    "keepalive",
)


@dataclass
class FetchDescriptor:
    """A network request to be issued from inside a session's page."""
    url: str
    headers: Optional[Dict[str, str]] = None
    body: Optional[str] = None
    body_encoding: BodyEncoding = BodyEncoding.UTF8
    options: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Any) -> "FetchDescriptor":
        """Validate a JSON-shaped descriptor. Raises BadRequest."""
        if not isinstance(data, dict):
            raise BadRequest("Request url is required")

        url = data.get("url")
        if not isinstance(url, str) or not url:
            raise BadRequest("Request url is required")

        headers = data.get("headers")
        if headers is not None:
            if not isinstance(headers, dict) or not all(
                isinstance(k, str) and isinstance(v, str) for k, v in headers.items()
            ):
                raise BadRequest("Request headers must map strings to strings")

        raw_encoding = data.get("bodyEncoding")
        try:
            body_encoding = BodyEncoding(raw_encoding) if raw_encoding is not None else BodyEncoding.UTF8
        except ValueError:
            raise BadRequest(f"Unsupported bodyEncoding: {raw_encoding!r} (expected 'utf8' or 'base64')")

        body = data.get("body")
        if body is not None:
            if not isinstance(body, str):
                raise BadRequest("Request body must be a string")
            if body_encoding is BodyEncoding.BASE64:
                try:
                    base64.b64decode(body, validate=True)
                except (binascii.Error, ValueError):
                    raise BadRequest("Request body is not valid base64")

        options = {key: data[key] for key in PASSTHROUGH_FIELDS if data.get(key) is not None}

        return cls(url=url, headers=headers, body=body, body_encoding=body_encoding, options=options)

    def to_payload(self) -> Dict[str, Any]:
        """The serializable form passed into the page script."""
        payload: Dict[str, Any] = {"url": self.url, "bodyEncoding": self.body_encoding.value}
        if self.headers is not None:
            payload["headers"] = dict(self.headers)
        if self.body is not None:
            payload["body"] = self.body
        payload.update(self.options)
        return payload


@dataclass
class FetchResult:
    """Transport-safe response of a fetch executed inside a page."""
    ok: bool
    status: int
    status_text: str
    url: str = ""
    redirected: bool = False
    type: str = "basic"
    headers: Dict[str, str] = field(default_factory=dict)
    body_base64: str = ""

    @classmethod
    def failure(cls, status: int, status_text: str) -> "FetchResult":
        return cls(ok=False, status=status, status_text=status_text)

    def body(self) -> bytes:
        return base64.b64decode(self.body_base64) if self.body_base64 else b""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ok": self.ok,
            "status": self.status,
            "statusText": self.status_text,
            "url": self.url,
            "redirected": self.redirected,
            "type": self.type,
            "headers": dict(self.headers),
            "bodyBase64": self.body_base64,
        }


@dataclass
class OperationResult:
    """Outcome of a registry operation as seen by a transport."""
    success: bool
    message: str
    id: Optional[str] = None
    current_url: Optional[str] = None
    data: Optional[bytes] = None
    mime_type: Optional[str] = None
    status_code: int = 200

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"success": self.success, "message": self.message}
        if self.id is not None:
            result["id"] = self.id
        if self.current_url is not None:
            result["currentUrl"] = self.current_url
        return result
