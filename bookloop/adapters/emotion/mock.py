import logging
import re

from bookloop.ports.emotion import EmotionPort, EmotionScores

logger = logging.getLogger(__name__)

_LEXICON: dict[str, frozenset[str]] = {
    "joy": frozenset({"joy", "happy", "delight", "love", "fun", "hope", "wonderful", "cheerful"}),
    "sadness": frozenset({"sad", "grief", "loss", "tragic", "tragedy", "lonely", "mourning", "tears"}),
    "fear": frozenset({"fear", "horror", "terror", "afraid", "dread", "haunted", "dark"}),
    "surprise": frozenset({"surprise", "twist", "unexpected", "shock", "sudden"}),
    "anger": frozenset({"anger", "rage", "fury", "revenge", "angry"}),
}


class MockEmotionAdapter(EmotionPort):
    """Keyword-count emotion classifier for development and tests."""

    async def classify(self, text: str) -> EmotionScores:
        words = re.findall(r"[a-z]+", text.lower())
        hits = {label: sum(1 for w in words if w in vocab) for label, vocab in _LEXICON.items()}
        total = sum(hits.values())
        if not total:
            return EmotionScores()
        logger.debug("MockEmotion: %d keyword hits", total)
        return EmotionScores(**{label: count / total for label, count in hits.items()})
