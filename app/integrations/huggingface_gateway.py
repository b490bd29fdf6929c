"""HuggingFace Inference API gateway.

Used by the contradiction analysis:
  - sentence similarity   sentence-transformers/all-mpnet-base-v2
  - NLI contradiction     MoritzLaurer/DeBERTa-v3-base-mnli

Provider constants:
  timeout    = 30 s
  retry_max  = 5 attempts; 503 (model loading) and 429 are retried
  backoff    = base * 2**attempt seconds, +0-10% jitter (429 waits 4x longer)

The ``requests.Session`` is injectable so tests never reach the network.
"""

from __future__ import annotations

import logging
import random
import time
from typing import Callable

import requests
from flask import current_app

from app.core.exceptions import ProviderNotConfiguredError

logger = logging.getLogger(__name__)

HF_API_URL = "https://api-inference.huggingface.co/models/{model}"
SIMILARITY_MODEL = "sentence-transformers/all-mpnet-base-v2"
NLI_MODEL = "MoritzLaurer/DeBERTa-v3-base-mnli"

_DEFAULT_TIMEOUT = 30
_RETRY_MAX = 5
_RETRYABLE = {429, 503}


class HuggingFaceError(Exception):
    """Raised when an inference call fails after all retries."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class HuggingFaceGateway:
    """Thin typed client over the hosted inference endpoints.

    Usage:
        gw = get_huggingface_gateway()
        sim = gw.similarity("The system shall ...", "Users must ...")
        score = gw.contradiction_score(premise, hypothesis)
    """

    def __init__(
        self,
        api_token: str,
        session: requests.Session | None = None,
        *,
        base_delay: float = 1.0,
        max_retries: int = _RETRY_MAX,
        timeout: int = _DEFAULT_TIMEOUT,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if not api_token:
            raise ProviderNotConfiguredError("huggingface")
        self._token = api_token
        self.session = session or requests.Session()
        self.base_delay = base_delay
        self.max_retries = max_retries
        self.timeout = timeout
        self._sleep = sleep

    # ── HTTP ──────────────────────────────────────────────────────────────────

    def _backoff(self, attempt: int) -> None:
        delay = self.base_delay * (2 ** attempt)
        delay += random.random() * 0.1 * delay
        if delay > 0:
            self._sleep(delay)

    def _post(self, model: str, payload: dict):
        url = HF_API_URL.format(model=model)
        headers = {
            "Authorization": f"Bearer {self._token}",
            "Content-Type": "application/json",
        }
        last_error: HuggingFaceError | None = None

        for attempt in range(self.max_retries):
            if attempt > 0:
                logger.info("Retrying HuggingFace request to %s (attempt %d/%d)",
                            model, attempt + 1, self.max_retries)
                self._backoff(attempt)
            try:
                resp = self.session.post(url, json=payload, headers=headers, timeout=self.timeout)
            except requests.RequestException as e:
                last_error = HuggingFaceError(f"HuggingFace request to {model} failed: {e}")
                logger.warning("%s", last_error)
                continue

            if resp.status_code in _RETRYABLE:
                last_error = HuggingFaceError(
                    f"HuggingFace model {model} unavailable ({resp.status_code})",
                    status_code=resp.status_code,
                )
                logger.info("%s, will retry", last_error)
                if resp.status_code == 429:
                    self._backoff(attempt + 2)
                continue

            if not resp.ok:
                raise HuggingFaceError(
                    f"HuggingFace API error for model {model}: {resp.status_code}",
                    status_code=resp.status_code,
                )
            return resp.json()

        raise last_error or HuggingFaceError(
            f"Maximum retries ({self.max_retries}) exceeded for model {model}"
        )

    # ── Inference helpers ─────────────────────────────────────────────────────

    def similarity(self, text1: str, text2: str) -> float:
        """Cosine similarity in [0, 1]; 0.0 for an unrecognised response shape."""
        result = self._post(
            SIMILARITY_MODEL,
            {"inputs": {"source_sentence": text1, "sentences": [text2]}},
        )
        if isinstance(result, list) and result and isinstance(result[0], (int, float)):
            return float(result[0])
        if isinstance(result, dict):
            scores = [v for v in result.values() if isinstance(v, (int, float))]
            if scores:
                return float(scores[0])
        logger.warning("Unexpected similarity response format: %.200s", result)
        return 0.0

    def contradiction_score(self, premise: str, hypothesis: str) -> float:
        """Probability that ``hypothesis`` contradicts ``premise``."""
        result = self._post(NLI_MODEL, {"inputs": f"{premise}\n{hypothesis}"})
        # Some deployments wrap the label list in another list.
        if isinstance(result, list) and result and isinstance(result[0], list):
            result = result[0]
        if isinstance(result, list):
            for item in result:
                if isinstance(item, dict) and str(item.get("label", "")).lower() == "contradiction":
                    return float(item.get("score", 0.0))
            if len(result) == 3 and isinstance(result[2], dict) and "score" in result[2]:
                return float(result[2]["score"])
        logger.warning("Unexpected NLI response format: %.200s", result)
        return 0.0


def get_huggingface_gateway() -> HuggingFaceGateway:
    """Return the app's gateway, or build one from HUGGINGFACE_API_KEY.

    Raises:
        ProviderNotConfiguredError: no token configured.
    """
    gw = current_app.extensions.get("huggingface_gateway")
    if gw is not None:
        return gw
    gw = HuggingFaceGateway(
        current_app.config.get("HUGGINGFACE_API_KEY", ""),
        base_delay=0.0 if current_app.config.get("TESTING") else 1.0,
    )
    current_app.extensions["huggingface_gateway"] = gw
    return gw
