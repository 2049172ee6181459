"""Client for the upstream prediction service (Replicate predictions API).

The HTTP calls are plain blocking ``requests`` calls. The async wrappers run
them in the event loop's default thread executor so a slow upstream never
stalls the loop serving status polls. Each executor thread gets its own
``requests.Session``; sessions are not shared across threads.
"""

import asyncio
import logging
import threading
from functools import partial
from typing import Any, Dict, Optional

import requests

from app.errors import UpstreamFailure

logger = logging.getLogger(__name__)


class PredictionClient:
    """Starts predictions and fetches their state.

    Usage:
        client = PredictionClient(api_token="r8_...", model_version="f203...")
        poll_url = await client.start({"image": url, "clothing": "topwear", "prompt": p})
        state = await client.poll(poll_url)   # {"status": ..., "output": ...}
    """

    def __init__(
        self,
        api_token: str,
        model_version: str,
        api_url: str = "https://api.replicate.com/v1/predictions",
        timeout: float = 30.0,
        session: Optional[requests.Session] = None,
    ):
        self.api_url = api_url
        self.model_version = model_version
        self.timeout = timeout
        self._headers = {
            "Content-Type": "application/json",
            "Authorization": f"Token {api_token}",
        }
        self._injected = session
        if session is not None:
            session.headers.update(self._headers)
        self._local = threading.local()
        self._sessions = []
        self._sessions_lock = threading.Lock()

    def _session(self) -> requests.Session:
        """Session for the calling thread, created on first use."""
        if self._injected is not None:
            return self._injected
        session = getattr(self._local, "session", None)
        if session is None:
            session = requests.Session()
            session.headers.update(self._headers)
            self._local.session = session
            with self._sessions_lock:
                self._sessions.append(session)
        return session

    # -- blocking calls -----------------------------------------------------

    def start_prediction(self, model_input: Dict[str, Any]) -> str:
        """POST a new prediction and return its polling URL (``urls.get``)."""
        body = {"version": self.model_version, "input": model_input}
        try:
            response = self._session().post(self.api_url, json=body, timeout=self.timeout)
            response.raise_for_status()
            payload = response.json()
        except requests.RequestException as exc:
            raise UpstreamFailure(f"Prediction start failed: {exc}") from exc
        except ValueError as exc:
            raise UpstreamFailure(f"Prediction start returned invalid JSON: {exc}") from exc

        try:
            poll_url = payload["urls"]["get"]
        except (KeyError, TypeError) as exc:
            raise UpstreamFailure("Prediction start response has no urls.get") from exc
        if not isinstance(poll_url, str) or not poll_url:
            raise UpstreamFailure("Prediction start response has an empty urls.get")
        return poll_url

    def get_prediction(self, poll_url: str) -> Dict[str, Any]:
        """GET the current prediction state."""
        try:
            response = self._session().get(poll_url, timeout=self.timeout)
            response.raise_for_status()
            payload = response.json()
        except requests.RequestException as exc:
            raise UpstreamFailure(f"Prediction poll failed: {exc}") from exc
        except ValueError as exc:
            raise UpstreamFailure(f"Prediction poll returned invalid JSON: {exc}") from exc

        if not isinstance(payload, dict) or "status" not in payload:
            raise UpstreamFailure("Prediction poll response has no status")
        return payload

    # -- async wrappers -----------------------------------------------------

    async def start(self, model_input: Dict[str, Any]) -> str:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, partial(self.start_prediction, model_input))

    async def poll(self, poll_url: str) -> Dict[str, Any]:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, partial(self.get_prediction, poll_url))

    def close(self) -> None:
        """Close every session opened by this client."""
        with self._sessions_lock:
            sessions, self._sessions = self._sessions, []
        if self._injected is not None:
            sessions.append(self._injected)
        for session in sessions:
            session.close()
