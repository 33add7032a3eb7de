import json

import pytest
import requests

from revelevate.errors import ExtractionError, PlanGenerationError
from revelevate.llm import (
    EXTRACTION_FIELDS,
    LLMClient,
    LLMLedgerExtractor,
    extract_citations,
    extract_first_json_object,
    extract_response_text,
)
from revelevate.plan_request import build_plan_request
from revelevate.planner import PlanGenerator


class FakeResponse:
    def __init__(self, payload, status_code=200):
        self.payload = payload
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def json(self):
        return self.payload


def chat_reply(content, **extra):
    return {"choices": [{"message": {"role": "assistant", "content": content}}], **extra}


@pytest.fixture
def captured_post(monkeypatch):
    calls = []

    def install(response):
        def fake_post(url, headers=None, data=None, timeout=None):
            calls.append({"url": url, "headers": headers, "body": json.loads(data), "timeout": timeout})
            if isinstance(response, Exception):
                raise response
            return response

        monkeypatch.setattr(requests, "post", fake_post)
        return calls

    return install


@pytest.mark.parametrize(
    "base_url,endpoint",
    [
        ("https://generativelanguage.googleapis.com/v1beta/openai/", "https://generativelanguage.googleapis.com/v1beta/openai/chat/completions"),
        ("https://api.groq.com/openai/v1", "https://api.groq.com/openai/v1/chat/completions"),
        ("http://localhost:8000", "http://localhost:8000/v1/chat/completions"),
    ],
)
def test_client_endpoint(base_url, endpoint):
    assert LLMClient(base_url, "m").endpoint == endpoint


def test_client_posts_payload_with_bearer_token(captured_post):
    calls = captured_post(FakeResponse(chat_reply("hi")))
    client = LLMClient("http://llm.local/v1", "gemini-x", api_key="secret", timeout=5)

    result = client.complete({"messages": []})

    assert result["choices"][0]["message"]["content"] == "hi"
    assert calls[0]["headers"]["Authorization"] == "Bearer secret"
    assert calls[0]["body"]["model"] == "gemini-x"
    assert calls[0]["timeout"] == 5


def test_client_raises_on_http_error(captured_post):
    captured_post(FakeResponse({}, status_code=500))

    with pytest.raises(requests.HTTPError):
        LLMClient("http://llm.local", "m").complete({"messages": []})


def test_response_text_from_content_parts():
    raw = {"choices": [{"message": {"content": [{"type": "text", "text": "a"}, "b"]}}]}

    assert extract_response_text(raw) == "ab"
    assert extract_response_text({"response": "ollama"}) == "ollama"
    assert extract_response_text({}) == ""


def test_first_json_object_skips_prose_and_repairs_quirks():
    text = 'Sure! {"a": [1, 2,], "b": “x”, "c": true} and then {"d": 1}'

    assert extract_first_json_object(text) == {"a": [1, 2], "b": "x", "c": True}


def test_first_json_object_accepts_python_literals():
    assert extract_first_json_object("{'a': True, 'b': None}") == {"a": True, "b": None}


def test_first_json_object_handles_braces_inside_strings():
    assert extract_first_json_object('{"note": "use {braces}"}') == {"note": "use {braces}"}


def test_first_json_object_returns_none_without_object():
    assert extract_first_json_object("no json here [1, 2]") is None
    assert extract_first_json_object("") is None


def test_citations_are_collected_and_deduplicated():
    raw = {
        "citations": ["https://a.example", "#"],
        "search_results": [{"title": "B", "url": "https://b.example"}, {"url": "https://a.example"}],
        "choices": [
            {
                "message": {
                    "content": "x",
                    "annotations": [
                        {"type": "url_citation", "url_citation": {"url": "https://c.example", "title": "C"}}
                    ],
                }
            }
        ],
    }

    assert extract_citations(raw) == [
        {"title": "https://a.example", "uri": "https://a.example"},
        {"title": "B", "uri": "https://b.example"},
        {"title": "C", "uri": "https://c.example"},
    ]


def test_ledger_extractor_returns_record(captured_post):
    record = {name: 1 for name in EXTRACTION_FIELDS}
    calls = captured_post(FakeResponse(chat_reply(f"```json\n{json.dumps(record)}\n```")))

    result = LLMLedgerExtractor(LLMClient("http://llm.local", "m"))("Revenue was 1")

    assert result == record
    assert "occupied_rooms" in calls[0]["body"]["messages"][0]["content"]
    assert calls[0]["body"]["messages"][1]["content"] == "Revenue was 1"


def test_ledger_extractor_wraps_network_errors(captured_post):
    captured_post(requests.ConnectionError("down"))

    with pytest.raises(ExtractionError):
        LLMLedgerExtractor(LLMClient("http://llm.local", "m"))("text")


def test_ledger_extractor_rejects_prose(captured_post):
    captured_post(FakeResponse(chat_reply("I could not find any figures.")))

    with pytest.raises(ExtractionError):
        LLMLedgerExtractor(LLMClient("http://llm.local", "m"))("text")


def test_plan_generator_returns_normalized_plan(captured_post, snapshot, raw_plan):
    calls = captured_post(FakeResponse(chat_reply(json.dumps(raw_plan))))
    generator = PlanGenerator(LLMClient("http://llm.local", "m"), temperature=0.1, max_tokens=2000)

    result = generator.generate(build_plan_request(snapshot, 15, 3, "Lisbon"))

    assert len(calls) == 1
    assert calls[0]["body"]["max_tokens"] == 2000
    assert result.plan.recommendations[0].estimated_impact == "+6%"
    assert generator.last_raw_response == result.raw_response


def test_plan_generator_reports_single_user_message(captured_post, snapshot):
    captured_post(FakeResponse(chat_reply('{"summary": "only a summary"}')))
    generator = PlanGenerator(LLMClient("http://llm.local", "m"))

    with pytest.raises(PlanGenerationError) as excinfo:
        generator.generate(build_plan_request(snapshot, 15, 3, "Lisbon"))

    assert excinfo.value.user_message.startswith("Failed to generate strategic plan")
    assert generator.last_raw_response is not None


def test_plan_generator_wraps_network_errors(captured_post, snapshot):
    captured_post(requests.Timeout("slow"))

    with pytest.raises(PlanGenerationError):
        PlanGenerator(LLMClient("http://llm.local", "m")).generate(
            build_plan_request(snapshot, 15, 3, "Lisbon")
        )


def test_response_helpers_tolerate_odd_shapes():
    assert extract_response_text([{"content": "list"}]) == ""
    assert extract_response_text({"choices": [{"message": "plain text"}]}) == "plain text"
    assert extract_response_text({"choices": [{"message": 42}]}) == ""
    assert extract_citations(["https://a.example"]) == []
    assert extract_citations(
        {
            "citations": "https://a.example",
            "search_results": {"url": "https://b.example"},
            "choices": [{"message": {"annotations": [{"url_citation": "https://c.example"}]}}],
        }
    ) == []


def test_first_python_literal_object_wins():
    assert extract_first_json_object("{'a': 1} then {'b': 2}") == {"a": 1}


def test_unrelated_fenced_block_does_not_hide_the_object():
    text = "```python\nprint(1)\n```\nResult: {\"a\": 1}"

    assert extract_first_json_object(text) == {"a": 1}


@pytest.mark.parametrize(
    "reply",
    [
        {"choices": [{"message": "Here is your plan, in prose."}]},
        [{"summary": "top-level list"}],
    ],
)
def test_plan_generator_wraps_odd_reply_shapes(captured_post, snapshot, reply):
    captured_post(FakeResponse(reply))

    with pytest.raises(PlanGenerationError):
        PlanGenerator(LLMClient("http://llm.local", "m")).generate(
            build_plan_request(snapshot, 15, 3, "Lisbon")
        )


def test_plan_generator_wraps_overflowing_scores(captured_post, snapshot, raw_plan):
    content = json.dumps(raw_plan).replace('"usageScore": 72', '"usageScore": 1e999')
    assert "1e999" in content
    captured_post(FakeResponse(chat_reply(content)))

    with pytest.raises(PlanGenerationError):
        PlanGenerator(LLMClient("http://llm.local", "m")).generate(
            build_plan_request(snapshot, 15, 3, "Lisbon")
        )
