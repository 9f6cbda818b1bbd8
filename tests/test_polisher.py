"""Tests for llm/polisher.py - the optional prose rewrite. The OpenAI client is faked."""

import asyncio
from types import SimpleNamespace

import pytest


class FakeCompletions:
    def __init__(self, content=None, error=None, delay=0.0):
        self.content = content
        self.error = error
        self.delay = delay
        self.calls = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def _client(completions):
    return SimpleNamespace(chat=SimpleNamespace(completions=completions))


def _polisher(completions, enabled=True):
    from symptom_mem.llm.polisher import InsightPolisher

    return InsightPolisher(enabled=enabled, client=_client(completions))


class TestPolish:
    def test_success_returns_stripped_text(self, make_event, make_memory):
        completions = FakeCompletions(content="  Magnesium has helped before.\n")
        polisher = _polisher(completions)
        memories = [make_memory(kind="worked_remedy", resolution="magnesium")]

        result = asyncio.run(polisher.polish(make_event(symptoms=["Headache"]), memories))

        assert result.ok
        assert result.text == "Magnesium has helped before."
        call = completions.calls[0]
        assert call["model"] == "gpt-4o-mini"
        assert call["temperature"] == 0.3
        assert [m["role"] for m in call["messages"]] == ["system", "user"]
        assert "magnesium helped with Headache" in call["messages"][1]["content"]

    def test_disabled_never_calls_client(self, make_event):
        completions = FakeCompletions(content="unused")
        polisher = _polisher(completions, enabled=False)

        result = asyncio.run(polisher.polish(make_event(symptoms=["Headache"]), []))

        assert result.error == "polishing disabled"
        assert completions.calls == []

    def test_no_key_means_disabled(self):
        from symptom_mem.llm.polisher import InsightPolisher

        assert not InsightPolisher(api_key=None, enabled=True).is_enabled

    def test_request_failure_is_reported_not_raised(self, make_event, capsys):
        polisher = _polisher(FakeCompletions(error=ConnectionError("timeout")))

        result = asyncio.run(polisher.polish(make_event(symptoms=["Headache"]), []))

        assert not result.ok
        assert result.error == "timeout"
        assert "[InsightPolisher] Request failed" in capsys.readouterr().out

    @pytest.mark.parametrize("content", [None, "", "   "])
    def test_empty_completion(self, make_event, content):
        polisher = _polisher(FakeCompletions(content=content))

        result = asyncio.run(polisher.polish(make_event(symptoms=["Headache"]), []))

        assert result.error == "empty completion"


class TestStart:
    def test_task_resolves(self, make_event):
        polisher = _polisher(FakeCompletions(content="ok"))

        async def main():
            task = polisher.start(make_event(symptoms=["Headache"]), [])
            return await task

        assert asyncio.run(main()).text == "ok"

    def test_task_can_be_cancelled(self, make_event):
        polisher = _polisher(FakeCompletions(content="late", delay=10))

        async def main():
            task = polisher.start(make_event(symptoms=["Headache"]), [])
            await asyncio.sleep(0)
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task
            return task.cancelled()

        assert asyncio.run(main())


class TestPrompt:
    def test_prompt_lists_learned_facts(self, make_event, make_memory):
        from symptom_mem.llm.polisher import InsightPolisher

        memories = [
            make_memory(trigger="wine"),
            make_memory(kind="pattern", time_of_day="Morning", notes="Headache often occurs in the morning"),
            make_memory(trigger="cheese", is_active=False),
        ]

        prompt = InsightPolisher.build_prompt(
            make_event(symptoms=["Headache"], severity=4, notes="long day"), memories
        )

        assert "wine" in prompt
        assert "cheese" not in prompt
        assert "Headache often occurs in the morning" in prompt
        assert "long day" in prompt
