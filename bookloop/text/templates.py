"""
Versioned text templates for everything sent to the embedding and emotion providers.

Books embedded at submission time and queries embedded at search time are
rendered here so both sides share one shape and one input limit.
"""

from dataclasses import dataclass


# ── Token Estimation ─────────────────────────────────────────────
# Rough estimate: 1 token ≈ 4 characters for English text.

CHARS_PER_TOKEN = 4


def truncate_to_tokens(text: str, max_tokens: int) -> str:
    """Truncate text to approximately max_tokens, preferring a sentence boundary."""
    max_chars = max_tokens * CHARS_PER_TOKEN
    if len(text) <= max_chars:
        return text
    truncated = text[:max_chars]
    last_period = truncated.rfind(".")
    if last_period > max_chars * 0.8:
        truncated = truncated[: last_period + 1]
    return truncated


# ── Text Template ────────────────────────────────────────────────

@dataclass(frozen=True)
class TextTemplate:
    """
    Immutable provider-input template.

    Attributes:
        name:              Identifier used in logs.
        version:           Bumped whenever the rendered shape changes, since
                           stored embeddings depend on it.
        template:          Format string with {variable} placeholders.
        input_token_limit: Upper bound on the rendered text.
    """

    name: str
    version: str
    template: str
    input_token_limit: int = 2000

    def render(self, **kwargs: str) -> str:
        return truncate_to_tokens(self.template.format(**kwargs), self.input_token_limit)


BOOK_PROFILE = TextTemplate(
    name="book_profile",
    version="1.0.0",
    template="Title: {title}. Author: {author}. Category: {category}. Description: {description}",
)

# The emotion classifier is a RoBERTa model with a 512 token window.
EMOTION_INPUT = TextTemplate(
    name="emotion_input",
    version="1.0.0",
    template="{description}",
    input_token_limit=500,
)

SEARCH_QUERY = TextTemplate(
    name="search_query",
    version="1.0.0",
    template="{query}",
    input_token_limit=500,
)


# ── Rendering Helpers ────────────────────────────────────────────

def render_book_profile(
    title: str, author: str | None, category: str | None, description: str | None
) -> str:
    """Text embedded for a newly submitted book."""
    return BOOK_PROFILE.render(
        title=title,
        author=author or "",
        category=category or "",
        description=description or "",
    )


def render_emotion_input(description: str) -> str:
    return EMOTION_INPUT.render(description=description)


def render_search_query(query: str) -> str:
    return SEARCH_QUERY.render(query=query.strip())


def render_seed_text(title: str, description: str | None) -> str:
    """Seed for personalized recommendations: the description, else the title."""
    if description and description.strip():
        return SEARCH_QUERY.render(query=description.strip())
    return SEARCH_QUERY.render(query=title)
