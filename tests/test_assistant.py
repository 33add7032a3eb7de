import requests

from revelevate.assistant import (
    EMPTY_REPLY,
    ERROR_REPLY,
    GREETING,
    NO_DATA_REPLY,
    StrategyAssistant,
    opening_transcript,
)


class StubClient:
    model = "stub"

    def __init__(self, reply=None, error=None):
        self.reply = reply
        self.error = error
        self.payloads = []

    def complete(self, payload):
        self.payloads.append(payload)
        if self.error:
            raise self.error
        return self.reply


def test_no_data_short_circuits_without_network_call():
    client = StubClient(reply={"choices": [{"message": {"content": "never"}}]})

    message = StrategyAssistant(client).ask("How do I beat the Marriott?", "", has_data=False)

    assert message.text == NO_DATA_REPLY
    assert client.payloads == []


def test_reply_carries_text_and_top_three_citations():
    client = StubClient(
        reply={
            "choices": [{"message": {"content": "### Market Reality\nADR is up."}}],
            "citations": ["https://a.example", "#", "https://b.example", "https://c.example", "https://d.example"],
        }
    )

    message = StrategyAssistant(client).ask("What about Easter?", "Occupancy: 70%", has_data=True)

    assert message.role == "bot"
    assert message.text.startswith("### Market Reality")
    assert [s.uri for s in message.sources] == ["https://a.example", "https://b.example", "https://c.example"]
    assert "Occupancy: 70%" in client.payloads[0]["messages"][1]["content"]


def test_empty_reply_asks_to_rephrase():
    message = StrategyAssistant(StubClient(reply={"choices": [{"message": {"content": "  "}}]})).ask(
        "?", "ctx", has_data=True
    )

    assert message.text == EMPTY_REPLY


def test_network_failure_becomes_apology():
    client = StubClient(error=requests.ConnectionError("down"))

    message = StrategyAssistant(client).ask("?", "ctx", has_data=True)

    assert message.text == ERROR_REPLY


def test_missing_client_becomes_apology():
    assert StrategyAssistant(None).ask("?", "ctx", has_data=True).text == ERROR_REPLY


def test_transcript_opens_with_greeting():
    transcript = opening_transcript()

    assert len(transcript) == 1
    assert transcript[0].text == GREETING
    assert not transcript[0].is_user


def test_odd_reply_shapes_do_not_raise():
    assistant = StrategyAssistant(StubClient(reply=["not", "an", "object"]))
    assert assistant.ask("?", "ctx", has_data=True).text == EMPTY_REPLY

    assistant = StrategyAssistant(StubClient(reply={"choices": [{"message": "Plain answer"}]}))
    message = assistant.ask("?", "ctx", has_data=True)
    assert message.text == "Plain answer"
    assert message.sources == []
