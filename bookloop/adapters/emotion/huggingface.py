import logging

import httpx

from bookloop.ports.emotion import EmotionPort, EmotionScores

logger = logging.getLogger(__name__)

HF_INFERENCE_URL = "https://router.huggingface.co/hf-inference/models"


class HuggingFaceEmotionAdapter(EmotionPort):
    """Emotion classifier backed by the Hugging Face hosted inference API."""

    def __init__(self, token: str, model: str, base_url: str = HF_INFERENCE_URL) -> None:
        self._token = token
        self._model = model
        self._base_url = base_url.rstrip("/")

    async def classify(self, text: str) -> EmotionScores:
        headers = {"Authorization": f"Bearer {self._token}"}
        payload = {"inputs": text, "parameters": {"top_k": None}}
        try:
            async with httpx.AsyncClient(timeout=30.0) as client:
                logger.info("HF emotion request: model=%s, %d chars", self._model, len(text))
                resp = await client.post(
                    f"{self._base_url}/{self._model}", json=payload, headers=headers
                )
                resp.raise_for_status()
                result = resp.json()
        except (httpx.HTTPError, ValueError):
            # Model cold starts and rate limits are common; scores fall back to zero.
            logger.exception("Emotion classification failed, using zero scores")
            return EmotionScores()

        if not isinstance(result, list):
            logger.warning("Unexpected emotion payload: %r", result)
            return EmotionScores()
        # Single-input calls come back either flat or wrapped in one extra list.
        if result and isinstance(result[0], list):
            result = result[0]
        try:
            scores = EmotionScores.from_labels(result)
        except (KeyError, TypeError, ValueError):
            logger.warning("Malformed emotion labels: %r", result)
            return EmotionScores()
        logger.debug("HF emotion scores: %s", scores)
        return scores
