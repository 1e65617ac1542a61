import asyncio
import logging

import pytest

from fakes import RecordingLLM

from rag_chat.adapters.llm_mock import EchoMockLLM, ScriptedMockLLM
from rag_chat.domain.errors import ServiceTimeoutError
from rag_chat.use_cases.relay import CompletionRelay


async def _collect(agen):
    return [t async for t in agen]


def test_complete_builds_system_and_user_messages():
    llm = RecordingLLM(reply="4")
    relay = CompletionRelay(llm=llm)

    out = asyncio.run(relay.complete("ctx line 1\nctx line 2", "2+2?"))

    assert out.reply == "4"
    assert out.usage["input_tokens"] == 12
    msgs = llm.seen[0]
    assert [m.role for m in msgs] == ["system", "user"]
    assert msgs[0].content == "Answer using the context below.\n\nctx line 1\nctx line 2"
    assert msgs[1].content == "2+2?"


def test_complete_times_out_with_distinct_error():
    relay = CompletionRelay(llm=RecordingLLM(delay_s=1.0), timeout_s=0.01)

    with pytest.raises(ServiceTimeoutError) as ei:
        asyncio.run(relay.complete("", "slow"))
    assert isinstance(ei.value, TimeoutError)


def test_stream_forwards_tokens_in_order():
    llm = RecordingLLM(chunks=["The", " answer", " is", " 4."])
    relay = CompletionRelay(llm=llm)

    async def scenario():
        agen = relay.complete_stream("what is 2+2?")
        tokens = [t async for t in agen]
        # поток заканчивается ровно один раз
        with pytest.raises(StopAsyncIteration):
            await agen.__anext__()
        return tokens

    tokens = asyncio.run(scenario())
    assert tokens == ["The", " answer", " is", " 4."]
    assert "".join(tokens) == "The answer is 4."
    assert llm.closed
    assert llm.seen[0][0].content == "You are a helpful assistant."


def test_stream_skips_empty_chunks():
    relay = CompletionRelay(llm=RecordingLLM(chunks=["a", "", "b"]))
    assert asyncio.run(_collect(relay.complete_stream("x"))) == ["a", "b"]


def test_stream_mid_failure_ends_cleanly(caplog):
    llm = RecordingLLM(chunks=["one", " two", " three"], fail_after=2)
    relay = CompletionRelay(llm=llm)

    with caplog.at_level(logging.ERROR):
        tokens = asyncio.run(_collect(relay.complete_stream("x")))

    assert tokens == ["one", " two"]
    assert "stream_error" in caplog.text


def test_stream_chunk_timeout_ends_cleanly():
    llm = RecordingLLM(endless=True, delay_s=1.0)
    relay = CompletionRelay(llm=llm, chunk_timeout_s=0.01)

    assert asyncio.run(_collect(relay.complete_stream("x"))) == []
    assert llm.closed


def test_consumer_close_releases_upstream():
    llm = RecordingLLM(endless=True)
    relay = CompletionRelay(llm=llm)

    async def scenario():
        agen = relay.complete_stream("tell me everything")
        got = [await agen.__anext__(), await agen.__anext__()]
        await agen.aclose()
        return got

    got = asyncio.run(scenario())
    assert got == ["t0", "t1"]
    assert llm.closed
    assert llm.produced <= 3


def test_consumer_cancel_releases_upstream():
    llm = RecordingLLM(endless=True, delay_s=0.005)
    relay = CompletionRelay(llm=llm)

    async def consume():
        async for _ in relay.complete_stream("x"):
            pass

    async def scenario():
        task = asyncio.create_task(consume())
        await asyncio.sleep(0.05)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

    asyncio.run(scenario())
    assert llm.closed


def test_mock_llms_stream_word_chunks():
    scripted = ScriptedMockLLM(rules={"2+2": "The answer is 4."})
    relay = CompletionRelay(llm=scripted)
    assert asyncio.run(_collect(relay.complete_stream("what is 2+2"))) == ["The", " answer", " is", " 4."]

    echo = CompletionRelay(llm=EchoMockLLM())
    assert "".join(asyncio.run(_collect(echo.complete_stream("hi")))) == "[mock] Ответ на: hi"
