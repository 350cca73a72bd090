import asyncio
from shared.utils.fallback import first_success, first_success_over


async def slow(query):
    await asyncio.sleep(5)
    return "slow"


async def broken(query):
    raise RuntimeError("provider exploded")


async def empty(query):
    return None


async def echo(query):
    return f"echo:{query}"


def test_first_non_none_answer_wins():
    calls = []

    async def tracked(query):
        calls.append(query)
        return "late"

    result = asyncio.run(first_success([empty, echo, tracked], "q", timeout=1))
    assert result == "echo:q"
    assert calls == []


def test_failures_and_timeouts_are_skipped():
    result = asyncio.run(first_success([broken, slow, echo], "q", timeout=0.05))
    assert result == "echo:q"


def test_all_providers_failing_yields_none():
    assert asyncio.run(first_success([broken, empty, slow], "q", timeout=0.05)) is None
    assert asyncio.run(first_success([], "q", timeout=1)) is None


def test_query_variants_tried_in_order():
    async def only_token(query):
        return query if query.endswith("token") else None

    result = asyncio.run(first_success_over([only_token], ["abc", "abc token", "abc crypto"], timeout=1))
    assert result == "abc token"
    assert asyncio.run(first_success_over([empty], ["a", "b"], timeout=1)) is None
