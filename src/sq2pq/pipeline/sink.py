"""
Sinks - Artifact delivery

A sink receives the path of a finished artifact and delivers it. The sink
only reads the file; it never modifies or deletes it, so a failed delivery
leaves the artifact on disk for inspection or a later re-run.

Sinks:
- NoopSink: delivery disabled, always succeeds
- BasinSink: signed upload of the artifact bytes to a vault endpoint
"""

import logging
import time
from collections.abc import Callable
from pathlib import Path
from typing import Optional, Protocol
from urllib.parse import quote

import requests

from ..cancel import CancellationToken
from ..domain.enums import ExportState, HttpMethod
from ..signing import Signer
from ..types import DeliveryError

logger = logging.getLogger(__name__)


class Sink(Protocol):
    """Delivery contract: raise DeliveryError when the artifact was not accepted."""

    def send(self, artifact_path: Path, cancel_token: Optional[CancellationToken] = None) -> None:
        ...


class NoopSink:
    """Sink used when upload is disabled."""

    def send(self, artifact_path: Path, cancel_token: Optional[CancellationToken] = None) -> None:
        logger.debug(f"Upload disabled, keeping {artifact_path} local")


class BasinSink:
    """
    Signed upload sink.

    Reads the artifact fully, signs its bytes and writes it as a vault event:

        POST {provider_url}/vaults/{vault}/events?timestamp=..&signature=..&filename=..

    The request body is the raw artifact with an exact Content-Length. Any
    non-2xx status is a DeliveryError carrying the endpoint's {"error": ...}
    detail when the body provides one. No retries are attempted.

    Args:
        provider_url: Endpoint base URL
        vault: Destination vault (namespace)
        signer: Signs the artifact bytes
        method: POST or PUT
        timeout_s: Request timeout in seconds, None to wait indefinitely
        session: Optional requests session (shared connection pool)
    """

    def __init__(
        self,
        provider_url: str,
        vault: str,
        signer: Signer,
        method: HttpMethod = HttpMethod.POST,
        timeout_s: Optional[float] = None,
        session: Optional[requests.Session] = None,
        clock: Callable[[], float] = time.time
    ):
        self.provider_url = provider_url.rstrip("/")
        self.vault = vault
        self.signer = signer
        self.method = HttpMethod(method)
        self.timeout_s = timeout_s or None
        self.session = session or requests.Session()
        self._clock = clock

    def events_url(self) -> str:
        return f"{self.provider_url}/vaults/{quote(self.vault, safe='')}/events"

    def send(self, artifact_path: Path, cancel_token: Optional[CancellationToken] = None) -> None:
        """
        Upload one artifact.

        Raises:
            DeliveryError: If the file cannot be read, signing fails, the
                endpoint is unreachable or it answers with a non-2xx status
        """
        artifact_path = Path(artifact_path)
        table = artifact_path.stem
        filename = artifact_path.name

        if cancel_token is not None:
            cancel_token.raise_if_cancelled(table, ExportState.FINALIZED)

        try:
            data = artifact_path.read_bytes()
        except OSError as e:
            raise DeliveryError(f"cannot read artifact {artifact_path}: {e}", table)

        try:
            signature = self.signer.sign(data).hex()
        except Exception as e:
            raise DeliveryError(f"signing the file failed: {e}", table)

        params = {
            "timestamp": str(int(self._clock())),
            "signature": signature,
            "filename": filename,
        }
        headers = {
            "filename": filename,
            "Content-Type": "application/octet-stream",
            "Content-Length": str(len(data)),
        }

        logger.info(f"Uploading {filename} ({len(data):,} bytes) to vault {self.vault}")
        try:
            response = self.session.request(
                self.method.value,
                self.events_url(),
                params=params,
                data=data,
                headers=headers,
                timeout=self.timeout_s,
            )
        except requests.RequestException as e:
            raise DeliveryError(f"request to write vault event failed: {e}", table)

        if not 200 <= response.status_code < 300:
            raise DeliveryError(_error_detail(response), table, status_code=response.status_code)

        logger.info(f"Delivered {filename} to vault {self.vault} (HTTP {response.status_code})")


def _error_detail(response: requests.Response) -> str:
    """Extract {"error": "..."} from a failed response, falling back to the status."""
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and isinstance(body.get("error"), str) and body["error"]:
        return body["error"]
    return f"HTTP {response.status_code} {response.reason or ''}".strip()
