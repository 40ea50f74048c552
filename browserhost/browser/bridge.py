"""
Fetch bridge: runs a network request with the page's own fetch(), so the
request carries the page's cookies, origin and network stack, and brings
the response back as base64.
"""
from typing import Any, Dict, Iterable, List, Sequence

from ..logging_config import get_logger
from .models import FetchDescriptor, FetchResult

logger = get_logger("browserhost.bridge")

FETCH_SCRIPT = """
async (serialized) => {
  const { url, headers, body, bodyEncoding, ...rest } = serialized;

  let payload = undefined;
  if (body !== undefined && body !== null) {
    if (bodyEncoding === "base64") {
      const binary = atob(body);
      const bytes = new Uint8Array(binary.length);
      for (let i = 0; i < binary.length; i++) {
        bytes[i] = binary.charCodeAt(i);
      }
      payload = bytes;
    } else {
      payload = body;
    }
  }

  const init = { ...rest, method: rest.method || "GET", body: payload };
  if (headers) {
    init.headers = new Headers(headers);
  }

  const response = await fetch(url, init);

  const headerPairs = [];
  response.headers.forEach((value, key) => {
    headerPairs.push([key, value]);
  });

  const bytes = new Uint8Array(await response.arrayBuffer());
  let binary = "";
  const chunkSize = 0x8000;
  for (let i = 0; i < bytes.length; i += chunkSize) {
    binary += String.fromCharCode.apply(null, bytes.subarray(i, i + chunkSize));
  }

  return {
    ok: response.ok,
    status: response.status,
    statusText: response.statusText,
    url: response.url,
    redirected: response.redirected,
    type: response.type,
    headerPairs,
    bodyBase64: btoa(binary),
  };
}
"""


def flatten_headers(pairs: Iterable[Sequence[str]]) -> Dict[str, str]:
    """Collapse (name, value) pairs into one mapping.

    Names are lower-cased. A repeated name keeps its first position and its
    values are joined with ", " in iteration order.
    """
    headers: Dict[str, str] = {}
    for name, value in pairs:
        key = str(name).lower()
        if key in headers:
            headers[key] = f"{headers[key]}, {value}"
        else:
            headers[key] = str(value)
    return headers


def result_from_script(raw: Dict[str, Any]) -> FetchResult:
    pairs: List[Sequence[str]] = raw.get("headerPairs") or []
    return FetchResult(
        ok=bool(raw["ok"]),
        status=int(raw["status"]),
        status_text=str(raw.get("statusText", "")),
        url=str(raw.get("url", "")),
        redirected=bool(raw.get("redirected", False)),
        type=str(raw.get("type", "basic")),
        headers=flatten_headers(pairs),
        body_base64=str(raw.get("bodyBase64", "")),
    )


class FetchBridge:
    """Executes fetch descriptors inside a page.

    ``execute`` never raises for failures inside the page: they come back
    as a FetchResult with ok=False and status 500.
    """

    def __init__(self, script: str = FETCH_SCRIPT):
        self.script = script

    async def execute(self, page, descriptor: FetchDescriptor) -> FetchResult:
        try:
            raw = await page.evaluate(self.script, descriptor.to_payload())
        except Exception as e:
            logger.warning(f"Renderer fetch of {descriptor.url} failed: {e}")
            return FetchResult.failure(500, f"Renderer fetch failed: {e}")

        try:
            return result_from_script(raw)
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            logger.warning(f"Renderer fetch of {descriptor.url} returned a malformed result: {e}")
            return FetchResult.failure(500, f"Renderer fetch failed: malformed result ({e})")
