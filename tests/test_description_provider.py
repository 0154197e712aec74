import httpx
import pytest
from langchain_core.messages import AIMessage, HumanMessage, SystemMessage

from search_ai.core.exceptions import ImageDescriptionError
from search_ai.services.description_provider import (
    SYSTEM_PROMPT,
    LLMImageDescriptionProvider,
    url_keyword_mismatch,
)

IMAGE = "https://cdn.example.com/linen-blazer.jpg"


class FakeChatModel:
    """Returns (or raises) queued answers in order."""

    def __init__(self, *answers):
        self.answers = list(answers)
        self.calls = []

    async def ainvoke(self, messages):
        self.calls.append(messages)
        answer = self.answers.pop(0)
        if isinstance(answer, Exception):
            raise answer
        return answer


def reply(content, finish_reason="stop"):
    return AIMessage(content=content, response_metadata={"finish_reason": finish_reason})


def image_host(request: httpx.Request) -> httpx.Response:
    if "missing" in request.url.path:
        return httpx.Response(404)
    if request.url.path.endswith(".html"):
        return httpx.Response(200, headers={"content-type": "text/html"})
    return httpx.Response(200, headers={"content-type": "image/jpeg"})


def make_provider(primary, fallback):
    http = httpx.AsyncClient(transport=httpx.MockTransport(image_host))
    return LLMImageDescriptionProvider(primary, fallback, http)


async def test_describe_sends_name_and_valid_images():
    primary = FakeChatModel(reply("Blazer\nTailored fit"))
    fallback = FakeChatModel()
    provider = make_provider(primary, fallback)

    text = await provider.describe(
        [IMAGE, "https://cdn.example.com/missing.jpg", "https://cdn.example.com/page.html"],
        "Linen Blazer",
    )

    assert text == "Blazer\nTailored fit"
    system, human = primary.calls[0]
    assert isinstance(system, SystemMessage)
    assert system.content == SYSTEM_PROMPT
    assert isinstance(human, HumanMessage)
    assert human.content == [
        {"type": "text", "text": "Linen Blazer"},
        {"type": "image_url", "image_url": {"url": IMAGE}},
    ]
    assert fallback.calls == []


async def test_describe_without_valid_images_raises():
    primary = FakeChatModel()
    provider = make_provider(primary, FakeChatModel())

    with pytest.raises(ImageDescriptionError):
        await provider.describe(["https://cdn.example.com/missing.jpg"], "Linen Blazer")

    assert primary.calls == []


async def test_content_filter_switches_to_fallback():
    fallback = FakeChatModel(reply("Blazer"))
    provider = make_provider(FakeChatModel(reply("", "content_filter")), fallback)

    assert await provider.describe([IMAGE], "Linen Blazer") == "Blazer"
    assert len(fallback.calls) == 1


async def test_content_filter_on_both_models_yields_empty():
    provider = make_provider(
        FakeChatModel(reply("", "content_filter")),
        FakeChatModel(reply("", "SAFETY")),
    )

    assert await provider.describe([IMAGE], "Linen Blazer") == ""


async def test_primary_error_switches_to_fallback():
    fallback = FakeChatModel(reply([{"type": "text", "text": "Blazer"}, {"type": "text", "text": "\nLinen"}]))
    provider = make_provider(FakeChatModel(ValueError("invalid_request: image too large")), fallback)

    assert await provider.describe([IMAGE], "Linen Blazer") == "Blazer\nLinen"


async def test_both_models_failing_raises():
    provider = make_provider(
        FakeChatModel(ValueError("invalid_request: bad image")),
        FakeChatModel(PermissionError("authentication failed")),
    )

    with pytest.raises(ImageDescriptionError) as exc_info:
        await provider.describe([IMAGE], "Linen Blazer")

    assert isinstance(exc_info.value.original_error, PermissionError)


async def test_empty_answer_is_returned_as_empty():
    provider = make_provider(FakeChatModel(reply("   ")), FakeChatModel())

    assert await provider.describe([IMAGE], "Linen Blazer") == ""


def test_url_keyword_mismatch():
    assert url_keyword_mismatch([IMAGE], "Linen Blazer") is False
    assert url_keyword_mismatch([IMAGE], "The Wool Coat") is True
    assert url_keyword_mismatch(["https://cdn.example.com/x.jpg"], "A (Backorder)") is True
