"""Tests for the invocation executor."""

import datetime
import json
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Annotated, Optional

import anyio
import pytest
from bridge.config import BridgeConfig
from bridge.descriptors import RawParameter, WebParam, web_method
from bridge.errors import (
    AmbiguousOperationError,
    ConversionError,
    InvocationError,
    OperationNotFoundError,
    SerializationError,
    StructuralDecodeError,
)
from bridge.executor import Executor
from bridge.scalars import Long


@dataclass
class Order:
    id: int
    lines: list[str] = field(default_factory=list)
    note: Optional[str] = None


@dataclass
class Session:
    user: Optional[str] = None


class Unserialisable:
    pass


class OrderService:
    def __init__(self) -> None:
        self.calls: list[str] = []

    def get_order(
        self,
        id: Long,
        session: Annotated[Optional[Session], WebParam("session", header=True)] = None,
    ) -> Order:
        return Order(int(id), note=session.user if session else None)

    def total(self, amounts: list[Decimal], discount: float) -> Decimal:
        return sum(amounts, Decimal(0)) - Decimal(str(discount))

    def due(self, on: datetime.date) -> str:
        return on.isoformat()

    def echo(self, text: str, flag: bool) -> dict:
        return {"text": text, "flag": flag}

    def place(self, order: Order) -> Order:
        return order

    def place_many(self, orders: list[Order]) -> int:
        return len(orders)

    @web_method(operation_name="submit")
    def submit_now(self, order: Order) -> None:
        pass

    @web_method(operation_name="submit")
    def submit_later(self, order: Order) -> None:
        pass

    def fail(self) -> None:
        raise KeyError("missing")

    def odd(self) -> Unserialisable:
        return Unserialisable()


def p(name, value):
    return RawParameter.parameter(name, value)


@pytest.fixture
def executor():
    return Executor(BridgeConfig(locale="en_GB"))


@pytest.fixture
def service():
    return OrderService()


class TestBinding:
    def test_textual_scalar_is_coerced(self, executor, service):
        result = json.loads(executor.invoke(service, "get_order", [p("id", "1,234")]))
        assert result["id"] == 1234
        assert result["lines"] == []
        assert result.get("note") is None

    def test_header_object(self, executor, service):
        raw = [p("id", 7), RawParameter.header_parameter("session", {"user": "ann"})]
        assert json.loads(executor.invoke(service, "get_order", raw))["note"] == "ann"

    def test_sequence_of_locale_numbers(self, executor, service):
        raw = [p("amounts", ["1,000.50", "2"]), p("discount", "0.5")]
        assert json.loads(executor.invoke(service, "total", raw)) == "1002.00"

    def test_dates(self, executor, service):
        assert json.loads(executor.invoke(service, "due", [p("on", "29/03/2019")])) == "2019-03-29"

    def test_text_passes_through(self, executor, service):
        raw = [p("text", ""), p("flag", "on")]
        assert json.loads(executor.invoke(service, "echo", raw)) == {"text": "", "flag": True}

    def test_absent_value_is_null(self, executor, service):
        raw = [p("text", None), p("flag", None)]
        result = json.loads(executor.invoke(service, "echo", raw))
        assert result["flag"] is False
        assert result.get("text") is None

    def test_structured_node(self, executor, service):
        raw = [p("order", {"id": 3, "lines": ["a", "b"]})]
        result = json.loads(executor.invoke(service, "place", raw))
        assert (result["id"], result["lines"]) == (3, ["a", "b"])

    def test_json_text_for_structured_type(self, executor, service):
        raw = [p("orders", '[{"id": 1}, {"id": 2}]')]
        assert executor.invoke(service, "place_many", raw) == "2"


class TestFailures:
    def test_not_found(self, executor, service):
        with pytest.raises(OperationNotFoundError):
            executor.invoke(service, "get_order", [p("id", "1"), p("extra", "x")])

    def test_ambiguous(self, executor, service):
        with pytest.raises(AmbiguousOperationError):
            executor.invoke(service, "submit", [p("order", {"id": 1})])

    def test_conversion_names_parameter(self, executor, service):
        with pytest.raises(ConversionError) as exc_info:
            executor.invoke(service, "get_order", [p("id", "9,99")])
        assert exc_info.value.parameter == "id"
        assert exc_info.value.offset == 1

    def test_out_of_window_date(self, executor, service):
        with pytest.raises(ConversionError):
            executor.invoke(service, "due", [p("on", "3000-01-01")])

    def test_structural_decode(self, executor, service):
        with pytest.raises(StructuralDecodeError) as exc_info:
            executor.invoke(service, "place", [p("order", {"lines": "not a list"})])
        assert exc_info.value.parameter == "order"

    @pytest.mark.parametrize(
        "raw, parameter",
        [
            ([p("text", ["a", "b"]), p("flag", "on")], "text"),
            ([p("text", "x"), p("flag", ["true", "false"])], "flag"),
        ],
    )
    def test_several_values_for_single_value_type(self, executor, service, raw, parameter):
        with pytest.raises(StructuralDecodeError) as exc_info:
            executor.invoke(service, "echo", raw)
        assert exc_info.value.parameter == parameter

    def test_single_element_array_still_unwraps(self, executor, service):
        raw = [p("text", "x"), p("flag", ["on"])]
        assert json.loads(executor.invoke(service, "echo", raw)) == {"text": "x", "flag": True}

    def test_malformed_json_text(self, executor, service):
        with pytest.raises(StructuralDecodeError):
            executor.invoke(service, "place", [p("order", '{"id": "abc"}')])

    def test_plain_text_for_structured_type(self, executor, service):
        with pytest.raises(ConversionError):
            executor.invoke(service, "place", [p("order", "order one")])

    def test_invocation_error_keeps_cause(self, executor, service):
        with pytest.raises(InvocationError) as exc_info:
            executor.invoke(service, "fail", [])
        assert isinstance(exc_info.value.cause, KeyError)
        assert exc_info.value.__cause__ is exc_info.value.cause

    def test_serialization(self, executor, service):
        with pytest.raises(SerializationError):
            executor.invoke(service, "odd", [])


@pytest.mark.anyio
async def test_invoke_async(executor, service):
    result = await executor.invoke_async(service, "get_order", [p("id", "5")])
    assert json.loads(result)["id"] == 5


@pytest.mark.anyio
async def test_concurrent_invocations(executor, service):
    results = {}

    async def run(i):
        results[i] = json.loads(await executor.invoke_async(service, "get_order", [p("id", str(i))]))["id"]

    async with anyio.create_task_group() as tg:
        for i in range(20):
            tg.start_soon(run, i)

    assert results == {i: i for i in range(20)}
