"""Integration tests: full query lifecycle against LocalTransport.

Build a query, execute it in every mode, reset it, execute again.
"""

import threading

import pytest

import datakit
from datakit import CachePolicy, ClientSettings, LocalTransport, Query


def _background(start):
    box = {}
    done = threading.Event()

    def callback(value, error):
        box["value"], box["error"] = value, error
        done.set()

    start(callback)
    assert done.wait(timeout=5)
    return box["value"], box["error"]


def test_adults_in_nyc_or_la_every_mode(people):
    people.where_key_greater_than("age", 18)
    people.or_().where_key_equal_to("city", "NYC").where_key_equal_to("city", "LA")
    people.order_ascending_by_key("name")
    people.limit = 10

    blocking = people.find_all()
    background, error = _background(people.find_all_in_background)

    assert error is None
    assert [p["name"] for p in blocking.value] == ["Ada", "Grace"]
    assert background == blocking.value
    assert people.count_all().value == 2


@pytest.mark.asyncio
async def test_async_mode(people):
    people.where_key_exists("email")

    one = await people.find_one_async()
    count = await people.count_all_async()
    everyone = await people.find_all_async()

    assert one.value["name"] == "Barbara"
    assert count.value == 1
    assert [p.entity_id for p in everyone.value] == ["p4"]


def test_reset_then_reuse(people):
    people.where_key_equal_to("city", "Atlantis")
    assert people.find_all().value == []

    people.reset()

    assert people.entity_name == "Person"
    assert people.count_all().value == 4


def test_find_one_and_find_by_id(people):
    people.order_descending_by_key("age")

    assert people.find_one().value["name"] == "Grace"
    assert people.find_by_id("p3").value["name"] == "Alan"

    value, error = _background(lambda cb: people.find_one_in_background(cb))
    assert error is None
    assert value.entity_id == "p2"


def test_cache_else_load_serves_stale_data_until_refreshed():
    transport = LocalTransport({"Person": [{"_id": "1", "name": "Ada"}]})
    settings = ClientSettings(default_cache_policy=CachePolicy.CACHE_ELSE_LOAD)
    datakit.configure(settings, transport=transport)
    query = datakit.get_default_dispatcher().query("Person")

    assert query.count_all().value == 1
    transport.insert("Person", {"name": "Grace"})
    assert query.count_all().value == 1

    query.cache_policy = CachePolicy.LOAD_AND_CACHE
    assert query.count_all().value == 2

    query.cache_policy = CachePolicy.CACHE_ONLY
    assert query.count_all().value == 2


def test_plain_query_uses_configured_default():
    datakit.configure(ClientSettings(), transport=LocalTransport({"Person": [{"name": "Ada"}]}))

    assert Query("Person").find_one().value["name"] == "Ada"
