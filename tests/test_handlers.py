"""HandlerChain dispatch and handler adapters."""

from __future__ import annotations

import logging

import pytest

from evm_listener.abi.decoder import decode_log
from evm_listener.contracts.token_factory import handle_token_factory_event
from evm_listener.errors import HandlerError
from evm_listener.ingestion.handlers import HandlerChain, event_handler, log_event, raw_log_handler
from evm_listener.models.context import HandlerContext

from tests.factories import CONTRACT, make_token_created_log
from tests.mocks import RecordingHandler


@pytest.fixture
def ctx(chain):
    return HandlerContext(chain=chain, address=CONTRACT, contract_name="factory")


async def test_handlers_run_in_registration_order(ctx, catalog):
    order: list[str] = []

    def first(ctx, log, event):
        order.append("first")

    async def second(ctx, log, event):
        order.append("second")

    raw = make_token_created_log()
    await HandlerChain([first, second]).dispatch(ctx, raw, decode_log(raw, catalog))

    assert order == ["first", "second"]


async def test_first_failure_stops_the_chain(ctx, catalog):
    before = RecordingHandler()
    failing = RecordingHandler(fail_on_blocks={100})
    after = RecordingHandler()
    raw = make_token_created_log(block_number=100)

    with pytest.raises(HandlerError) as exc_info:
        await HandlerChain([before, failing, after]).dispatch(ctx, raw, decode_log(raw, catalog))

    assert len(before.calls) == 1
    assert len(failing.calls) == 1
    assert after.calls == []
    err = exc_info.value
    assert err.handler == "RecordingHandler"
    assert err.log is raw
    assert isinstance(err.__cause__, RuntimeError)


async def test_failing_function_handler_is_named(ctx, catalog):
    def reject(ctx, log, event):
        raise ValueError("nope")

    raw = make_token_created_log()
    with pytest.raises(HandlerError, match="reject"):
        await HandlerChain([reject]).dispatch(ctx, raw, decode_log(raw, catalog))


async def test_empty_chain_is_a_no_op(ctx, catalog):
    raw = make_token_created_log()
    chain = HandlerChain()
    await chain.dispatch(ctx, raw, decode_log(raw, catalog))
    assert len(chain) == 0


async def test_append_extends_the_chain(ctx, catalog, recorder):
    chain = HandlerChain()
    chain.append(recorder)
    raw = make_token_created_log()
    await chain.dispatch(ctx, raw, decode_log(raw, catalog))
    assert list(chain) == [recorder]
    assert recorder.names == ["TokenCreated"]


async def test_raw_log_handler_sees_only_the_log(ctx, catalog):
    seen = []

    @raw_log_handler
    def on_raw(ctx, log):
        seen.append(log)

    raw = make_token_created_log()
    await HandlerChain([on_raw]).dispatch(ctx, raw, decode_log(raw, catalog))
    assert seen == [raw]


async def test_event_handler_skips_missing_event(ctx):
    seen = []

    @event_handler
    async def on_event(ctx, log, event):
        seen.append(event.name)

    raw = make_token_created_log()
    await HandlerChain([on_event]).dispatch(ctx, raw, None)
    assert seen == []


async def test_adapters_keep_the_wrapped_name(ctx):
    @raw_log_handler
    def explode(ctx, log):
        raise RuntimeError("boom")

    with pytest.raises(HandlerError) as exc_info:
        await HandlerChain([explode]).dispatch(ctx, make_token_created_log(), None)
    assert "explode" in exc_info.value.handler


async def test_log_event_logs_decoded_events(ctx, catalog, caplog):
    raw = make_token_created_log(block_number=321)
    with caplog.at_level(logging.INFO, logger="evm_listener.handlers"):
        log_event(ctx, raw, decode_log(raw, catalog))
    assert "TokenCreated at block 321" in caplog.text


async def test_token_factory_handler_logs_typed_record(ctx, catalog, caplog):
    raw = make_token_created_log(block_number=77, level=9)
    with caplog.at_level(logging.INFO, logger="evm_listener.handlers"):
        await HandlerChain([handle_token_factory_event]).dispatch(ctx, raw, decode_log(raw, catalog))
    assert "TokenCreated event at block 77" in caplog.text
    assert "level=9" in caplog.text
