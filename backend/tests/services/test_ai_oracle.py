"""AI Oracle Adapters: prompt assembly and reply parsing over a fake client."""

from contextlib import asynccontextmanager
from types import SimpleNamespace

from mindmeld.services.ai_oracle import AnthropicGuessJudge, AnthropicQuestionGenerator
from mindmeld.services.prompts import JUDGE_SYSTEM_PROMPT, QUESTION_SYSTEM_PROMPT


class _FakeClient:
    def __init__(self, chunks=(), reply="7"):
        self.chunks = list(chunks)
        self.reply = reply
        self.calls = []

    @asynccontextmanager
    async def stream_text(self, **kwargs):
        self.calls.append(kwargs)

        async def fragments():
            for chunk in self.chunks:
                yield chunk

        yield fragments()

    async def create_message(self, **kwargs):
        self.calls.append(kwargs)
        return SimpleNamespace(content=[SimpleNamespace(type="text", text=self.reply)])


async def test_generator_streams_fragments():
    client = _FakeClient(chunks=["If you could ", "fly, where ", "would you go?"])
    generator = AnthropicQuestionGenerator(client, "claude-haiku-4-5")

    parts = [part async for part in generator.generate("Travel", [])]

    assert "".join(parts) == "If you could fly, where would you go?"
    call = client.calls[0]
    assert call["system"] == QUESTION_SYSTEM_PROMPT
    assert call["temperature"] == 0.9
    assert 'theme: "Travel"' in call["messages"][0]["content"]


async def test_generator_lists_previous_questions():
    client = _FakeClient(chunks=["Q?"])
    generator = AnthropicQuestionGenerator(client, "claude-haiku-4-5")
    [part async for part in generator.generate("Food", ["Best pizza topping?"])]
    assert "- Best pizza topping?" in client.calls[0]["messages"][0]["content"]


async def test_judge_parses_first_number():
    client = _FakeClient(reply="8 - very close")
    judge = AnthropicGuessJudge(client, "claude-haiku-4-5")

    rating = await judge.rate("Paris", "France's capital", "Favourite city?")

    assert rating == 8.0
    call = client.calls[0]
    assert call["system"] == JUDGE_SYSTEM_PROMPT
    assert call["max_tokens"] == 10
    assert 'Original Answer: "Paris"' in call["messages"][0]["content"]


async def test_judge_clamps_and_falls_back():
    assert await AnthropicGuessJudge(_FakeClient(reply="12"), "m").rate("a", "b", "q") == 10.0
    assert await AnthropicGuessJudge(_FakeClient(reply="hmm"), "m").rate("a", "b", "q") == 5.0
    assert await AnthropicGuessJudge(_FakeClient(reply=""), "m").rate("a", "b", "q") == 5.0
