"""Tests for the execution dispatcher.

Focus: usage errors never dispatch, remote errors never raise, cache policy
semantics, the single-callback contract of background execution.
"""

import threading
from decimal import Decimal
from unittest.mock import MagicMock

import pytest

import datakit
from datakit import (
    CachePolicy,
    ClientSettings,
    Dispatcher,
    MapReduce,
    MemoryCache,
    Query,
)
from datakit.errors import (
    AuthenticationError,
    CacheMissError,
    InvalidOperandError,
    MalformedResponseError,
    MapReduceNotAllowedError,
    NetworkError,
    NotConfiguredError,
    RemoteError,
)
from datakit.execution import BackgroundRunner
from datakit.execution.runner import RUNNER_THREAD_NAME
from datakit.transport import Operation, Transport

JOB = MapReduce(map_function="function () {}", reduce_function="function () {}")


def _mock_transport(response=None, error=None):
    transport = MagicMock(spec=Transport)
    if error is not None:
        transport.send.side_effect = error
    else:
        transport.send.return_value = response
    return transport


def _wait_for_callback(start):
    """Run a background call and collect every callback invocation."""
    calls = []
    done = threading.Event()

    def callback(value, error):
        calls.append((value, error, threading.current_thread().name))
        done.set()

    start(callback)
    assert done.wait(timeout=5), "callback was never invoked"
    return calls


# Usage errors


@pytest.mark.parametrize("call", ["find_one", "find_by_id"])
def test_single_result_fetch_with_map_reduce_never_dispatches(call):
    """CRITICAL: find_one/find_by_id with a map reduce fail before any request.

    Why: this is a caller-contract violation, not a remote failure.
    """
    transport = _mock_transport({"result": None})
    query = Dispatcher(transport, settings=ClientSettings()).query("Person")
    query.map_reduce = JOB
    query.where_key_exists("name")

    with pytest.raises(MapReduceNotAllowedError):
        if call == "find_one":
            query.find_one()
        else:
            query.find_by_id("p1")
    transport.send.assert_not_called()


def test_background_single_result_with_map_reduce_raises_synchronously():
    transport = _mock_transport({"result": None})
    query = Dispatcher(transport, settings=ClientSettings()).query("Person")
    query.map_reduce = JOB
    callback = MagicMock()

    with pytest.raises(MapReduceNotAllowedError):
        query.find_one_in_background(callback)
    callback.assert_not_called()
    transport.send.assert_not_called()


@pytest.mark.asyncio
async def test_async_single_result_with_map_reduce_raises():
    transport = _mock_transport({"result": None})
    query = Dispatcher(transport, settings=ClientSettings()).query("Person")
    query.map_reduce = JOB

    with pytest.raises(MapReduceNotAllowedError):
        await query.find_by_id_async("p1")


def test_find_all_and_count_allowed_with_map_reduce():
    transport = _mock_transport({"results": [{"_id": "NYC", "value": 2}]})
    query = Dispatcher(transport, settings=ClientSettings()).query("Person")
    query.map_reduce = JOB

    result = query.find_all()

    assert result.ok
    assert result.value[0].entity_id == "NYC"
    assert result.value[0]["value"] == 2


def test_result_processor_output_is_returned_untouched():
    job = MapReduce(
        map_function="function () {}",
        reduce_function="function () {}",
        result_processor=lambda results: {r["_id"]: r["value"] for r in results},
    )
    transport = _mock_transport(
        {"results": [{"_id": "NYC", "value": 2}, {"_id": "LA", "value": 1}]}
    )
    query = Dispatcher(transport, settings=ClientSettings()).query("Person")
    query.map_reduce = job

    assert query.find_all().value == {"NYC": 2, "LA": 1}


def test_execution_without_dispatcher_is_a_usage_error():
    with pytest.raises(NotConfiguredError):
        Query("Person").find_all()


def test_configure_installs_default_dispatcher(transport):
    datakit.configure(ClientSettings(), transport=transport)

    assert Query("Person").count_all().value == 4


# Outcomes


def test_count_all_on_empty_collection_is_zero(dispatcher):
    query = dispatcher.query("Nobody")

    result = query.count_all()

    assert result.ok
    assert result.value == 0


def test_find_by_id_missing_is_not_an_error_blocking(people):
    result = people.find_by_id("does-not-exist")

    assert result.ok
    assert not result.found
    assert result.value is None
    assert result.error is None


def test_find_by_id_missing_is_not_an_error_background(people):
    calls = _wait_for_callback(lambda cb: people.find_by_id_in_background("nope", cb))

    assert [(value, error) for value, error, _ in calls] == [(None, None)]


@pytest.mark.asyncio
async def test_find_by_id_missing_is_not_an_error_async(people):
    result = await people.find_by_id_async("nope")

    assert result.ok
    assert not result.found


def test_find_one_no_match_is_empty_success(people):
    people.where_key_equal_to("city", "Atlantis")

    result = people.find_one()

    assert result.ok
    assert result.value is None


@pytest.mark.parametrize(
    "error",
    [
        NetworkError("connection refused"),
        AuthenticationError("bad secret", status_code=401),
        RemoteError("boom", status_code=500),
    ],
)
def test_remote_errors_are_returned_not_raised(error):
    transport = _mock_transport(error=error)
    query = Dispatcher(transport, settings=ClientSettings()).query("Person")

    result = query.find_all()

    assert result.error is error
    assert result.value is None
    with pytest.raises(type(error)):
        result.unwrap()


def test_malformed_response_is_an_error_result():
    transport = _mock_transport({"unexpected": True})
    query = Dispatcher(transport, settings=ClientSettings()).query("Person")

    result = query.count_all()

    assert isinstance(result.error, MalformedResponseError)


def test_request_carries_operation_and_description():
    transport = _mock_transport({"result": None})
    query = Dispatcher(transport, settings=ClientSettings()).query("Person")
    query.where_key_exists("name")

    query.find_by_id("p1")

    (request,), _ = transport.send.call_args
    assert request.operation is Operation.FIND_BY_ID
    assert request.entity_id == "p1"
    assert request.description == query.describe()


def test_operand_without_json_form_fails_before_dispatch():
    """Why: an unencodable operand must be a usage error at the call site,
    never a bare TypeError from the cache key or the HTTP body.
    """
    transport = _mock_transport({"results": []})
    query = Dispatcher(transport, settings=ClientSettings()).query("Person")
    query.cache_policy = CachePolicy.CACHE_ELSE_LOAD

    with pytest.raises(InvalidOperandError):
        query.where_key_equal_to("age", Decimal("36"))

    assert query.find_all().ok
    transport.send.assert_called_once()


# Background execution


def test_background_callback_runs_once_on_runner_thread(people):
    """Callback fires exactly once, never on the caller's thread."""
    calls = _wait_for_callback(people.find_all_in_background)

    assert len(calls) == 1
    value, error, thread_name = calls[0]
    assert error is None
    assert len(value) == 4
    assert thread_name == RUNNER_THREAD_NAME
    assert thread_name != threading.current_thread().name


def test_raising_callback_is_not_invoked_again(people):
    """A callback that raises is logged once; the runner keeps serving."""
    errors = []
    done = threading.Event()

    def callback(value, error):
        errors.append(error)
        done.set()
        raise RuntimeError("callback failed")

    people.count_all_in_background(callback)
    assert done.wait(timeout=5), "callback was never invoked"
    follow_up = _wait_for_callback(people.count_all_in_background)

    assert errors == [None]
    assert follow_up[0][0] == 4


def test_background_remote_error_goes_to_callback():
    transport = MagicMock(spec=Transport)
    error = NetworkError("unreachable")

    transport.send_async.side_effect = error
    query = Dispatcher(transport, settings=ClientSettings()).query("Person")

    calls = _wait_for_callback(query.count_all_in_background)

    assert [(value, err) for value, err, _ in calls] == [(None, error)]


def test_background_unexpected_failure_still_reaches_callback():
    job = MapReduce(
        map_function="function () {}",
        reduce_function="function () {}",
        result_processor=lambda results: 1 / 0,
    )
    transport = MagicMock(spec=Transport)

    transport.send_async.return_value = {"results": []}
    query = Dispatcher(transport, settings=ClientSettings()).query("Person")
    query.map_reduce = job

    calls = _wait_for_callback(query.find_all_in_background)

    assert len(calls) == 1
    value, error, _ = calls[0]
    assert value is None
    assert isinstance(error, RemoteError)
    assert isinstance(error.__cause__, ZeroDivisionError)


def test_background_runner_is_a_singleton():
    assert BackgroundRunner.get() is BackgroundRunner.get()


# Cache policies


def _counting_dispatcher(transport):
    return Dispatcher(transport, cache=MemoryCache(8), settings=ClientSettings())


def test_default_cache_policy_is_ignore_cache():
    """The default is explicit: remote every time, cache untouched."""
    assert Query("Person").cache_policy is CachePolicy.IGNORE_CACHE
    assert ClientSettings.model_fields["default_cache_policy"].default is CachePolicy.IGNORE_CACHE


def test_plain_query_takes_the_configured_default_policy(transport):
    """Why: queries built without a dispatcher still honour
    ClientSettings.default_cache_policy, including across reset().
    """
    settings = ClientSettings(default_cache_policy=CachePolicy.CACHE_ELSE_LOAD)
    datakit.configure(settings, transport=transport)
    query = Query("Person")

    assert query.cache_policy is CachePolicy.CACHE_ELSE_LOAD
    query.cache_policy = CachePolicy.IGNORE_CACHE
    query.reset()
    assert query.cache_policy is CachePolicy.CACHE_ELSE_LOAD


def test_bound_dispatcher_and_explicit_policy_take_precedence(transport):
    datakit.configure(
        ClientSettings(default_cache_policy=CachePolicy.LOAD_AND_CACHE), transport=transport
    )
    bound_settings = ClientSettings(default_cache_policy=CachePolicy.CACHE_ONLY)
    bound = Dispatcher(transport, settings=bound_settings)

    assert Query("Person", dispatcher=bound).cache_policy is CachePolicy.CACHE_ONLY
    explicit = Query("Person", cache_policy=CachePolicy.IGNORE_CACHE)
    assert explicit.cache_policy is CachePolicy.IGNORE_CACHE

    transport = _mock_transport({"count": 3})
    dispatcher = _counting_dispatcher(transport)
    query = dispatcher.query("Person")
    query.count_all()
    query.count_all()

    assert transport.send.call_count == 2
    assert len(dispatcher.cache) == 0


def test_cache_only_miss_is_remote_error():
    transport = _mock_transport({"count": 3})
    query = _counting_dispatcher(transport).query("Person")
    query.cache_policy = CachePolicy.CACHE_ONLY

    result = query.count_all()

    assert isinstance(result.error, CacheMissError)
    transport.send.assert_not_called()


def test_cache_else_load_fetches_once():
    transport = _mock_transport({"count": 3})
    query = _counting_dispatcher(transport).query("Person")
    query.cache_policy = CachePolicy.CACHE_ELSE_LOAD

    assert query.count_all().value == 3
    assert query.count_all().value == 3
    assert transport.send.call_count == 1


def test_load_and_cache_refreshes_then_cache_only_reads():
    transport = _mock_transport({"count": 3})
    query = _counting_dispatcher(transport).query("Person")
    query.cache_policy = CachePolicy.LOAD_AND_CACHE
    query.count_all()
    transport.send.return_value = {"count": 5}
    query.count_all()

    query.cache_policy = CachePolicy.CACHE_ONLY
    result = query.count_all()

    assert transport.send.call_count == 2
    assert result.value == 5


def test_failed_responses_are_not_cached():
    transport = _mock_transport({"bogus": 1})
    query = _counting_dispatcher(transport).query("Person")
    query.cache_policy = CachePolicy.CACHE_ELSE_LOAD

    assert query.count_all().error is not None
    transport.send.return_value = {"count": 1}
    assert query.count_all().value == 1
    assert transport.send.call_count == 2


def test_cache_key_depends_on_conditions():
    transport = _mock_transport({"count": 3})
    query = _counting_dispatcher(transport).query("Person")
    query.cache_policy = CachePolicy.CACHE_ELSE_LOAD
    query.count_all()

    query.where_key_exists("email")
    query.count_all()

    assert transport.send.call_count == 2


def test_dispatcher_query_uses_settings_default_policy(transport):
    settings = ClientSettings(default_cache_policy=CachePolicy.CACHE_ELSE_LOAD)
    query = Dispatcher(transport, settings=settings).query("Person")

    assert query.cache_policy is CachePolicy.CACHE_ELSE_LOAD
    query.cache_policy = CachePolicy.IGNORE_CACHE
    query.reset()
    assert query.cache_policy is CachePolicy.CACHE_ELSE_LOAD
