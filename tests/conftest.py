"""Shared fixtures and test doubles."""

import json

import pytest

from models import CompetitorCandidate, CompetitorDocument, SourceArticle

ORIGINAL_BODY = (
    "<p>Chatbots answer customer questions instantly.</p>\n"
    "<p>They work around the clock, even on holidays.</p>\n"
    '<img src="https://example.com/bot.png" alt="Bot">\n'
    "<p>Setting one up takes minutes.</p>"
)

ENHANCED_DOCUMENT = (
    "<h1>Chatbot Benefits: A Complete Guide</h1>\n"
    "<p>Chatbots answer customer questions instantly.</p>\n"
    '<p><mark class="ai-addition">They also cut support costs by resolving routine tickets.</mark></p>\n'
    "<p>They work around the clock, even on holidays.</p>\n"
    '<img src="https://example.com/bot.png" alt="Bot">\n'
    '<mark class="ai-addition"><p>Most platforms plug straight into an existing CRM.</p></mark>\n'
    "<p>Setting one up takes minutes.</p>"
)

GAP_JSON = json.dumps({
    "missing": ["Cost savings", "CRM integration"],
    "improve": ["Add statistics"],
    "strengths": ["Clear intro"],
    "keywords_missing": ["customer support automation"],
    "overall_score": 7,
    "recommendations": ["Add a cost section", "Mention integrations", "Add examples", "Add FAQ"],
})


class ScriptedGenerator:
    """
    TextGenerator double. Gap-analysis prompts get `gap_response`; every other
    prompt gets the next entry of `enhance_responses` (the last one repeats).
    """

    def __init__(self, gap_response=GAP_JSON, enhance_responses=(ENHANCED_DOCUMENT,)):
        self.gap_response = gap_response
        self.enhance_responses = list(enhance_responses)
        self.prompts = []

    def generate(self, prompt, *, temperature, max_tokens):
        self.prompts.append(prompt)
        if prompt.startswith("Analyze the original article"):
            if isinstance(self.gap_response, Exception):
                raise self.gap_response
            return self.gap_response
        response = self.enhance_responses.pop(0) if len(self.enhance_responses) > 1 else self.enhance_responses[0]
        if isinstance(response, Exception):
            raise response
        return response


def make_source(title="Chatbot Benefits", original_url="https://beyondchats.com/blogs/chatbot-benefits/", **kwargs):
    defaults = dict(
        id=1,
        title=title,
        content=ORIGINAL_BODY,
        excerpt="Why chatbots matter",
        author="BeyondChats",
        published_at="2024-01-10",
        featured_image=None,
        original_url=original_url,
        slug="chatbot-benefits",
    )
    defaults.update(kwargs)
    return SourceArticle(**defaults)


def make_document(n=1, text=None, excerpt="", image_url=None):
    candidate = CompetitorCandidate(
        title=f"Competitor Article {n}",
        url=f"https://www.competitor{n}.com/blog/chatbots-{n}",
        snippet=f"Snippet for competitor {n}",
    )
    return CompetitorDocument(
        candidate=candidate,
        text=text if text is not None else f"Competitor {n} explains chatbot cost savings in detail. " * 10,
        excerpt=excerpt,
        image_url=image_url,
    )


@pytest.fixture
def source_article():
    return make_source()


@pytest.fixture
def competitor_docs():
    return [make_document(1), make_document(2)]


@pytest.fixture
def generator():
    return ScriptedGenerator()
