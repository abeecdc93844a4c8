"""Tests for single-record and batch publishing."""

import sqlite3
from datetime import datetime

import pytest

from table_sync.config import Settings
from table_sync.exceptions import ConfigurationError
from table_sync.publishing.batch_publisher import BatchPublisher, make_batch_job
from table_sync.publishing.dispatcher import ThreadedJobDispatcher
from table_sync.publishing.publisher import Publisher
from table_sync.storage.sqlite_adapter import SqliteAdapter
from table_sync.types import PublishState, SyncModel

TEST_USER = SyncModel(name="TestUser", table="users")


def expected_message(attributes, version, model="TestUser", routing_key="TestUser", event="update", metadata=None):
    return {
        "routing_key": routing_key,
        "event": "table_sync",
        "confirm_select": True,
        "realtime": True,
        "headers": None,
        "data": {
            "event": event,
            "model": model,
            "attributes": attributes,
            "version": version,
            "metadata": metadata or {},
        },
    }


@pytest.fixture
def stored_user(db_path):
    conn = sqlite3.connect(db_path)
    conn.execute("INSERT INTO users (id, email, version) VALUES (1, 'example@example.org', 3)")
    conn.commit()
    conn.close()
    return {"id": 1, "email": "example@example.org", "version": 3.0}


class TestPublisherPublishNow:
    """Publisher.publish_now."""

    def test_publishes_stored_attributes(self, adapter, bus, settings, stored_user, frozen_time):
        Publisher(TEST_USER, {"id": 1}, adapter, bus, settings=settings).publish_now()

        assert bus.messages == [expected_message([stored_user], frozen_time)]

    def test_uses_attributes_for_sync(self, adapter, bus, settings, stored_user, frozen_time):
        model = SyncModel(
            name="TestUser", table="users",
            attributes_for_sync=lambda row: {"the_ultimate_question_of_live_and_everything": 42},
        )

        Publisher(model, {"id": 1}, adapter, bus, settings=settings).publish_now()

        assert bus.messages == [
            expected_message([{"the_ultimate_question_of_live_and_everything": 42}], frozen_time)
        ]

    def test_record_not_found_publishes_nothing(self, adapter, bus, settings):
        result = Publisher(TEST_USER, {"id": 404}, adapter, bus, settings=settings).publish_now()

        assert result is None
        assert bus.messages == []

    def test_overridden_routing_key(self, adapter, bus, settings, stored_user, frozen_time):
        Publisher(TEST_USER, {"id": 1}, adapter, bus, settings=settings, routing_key="CustomKey").publish_now()

        assert bus.messages[0]["routing_key"] == "CustomKey"

    def test_custom_model_name(self, adapter, bus, stored_user, frozen_time):
        model = SyncModel(name="TestUserWithCustomStuff", table="users", sync_model_name="SomeFancyName")
        settings = Settings(routing_key_callable=lambda *_: "TestUser")

        Publisher(model, {"id": 1}, adapter, bus, settings=settings).publish_now()

        assert bus.messages == [expected_message([stored_user], frozen_time, model="SomeFancyName")]

    def test_push_original_attributes(self, adapter, bus, settings, stored_user, frozen_time):
        original = {"id": 1, "email": "original@example.org"}

        Publisher(
            TEST_USER, original, adapter, bus, settings=settings, push_original_attributes=True
        ).publish_now()

        assert bus.messages[0]["data"]["attributes"] == [original]

    def test_created_state_sets_metadata(self, adapter, bus, settings, stored_user, frozen_time):
        Publisher(TEST_USER, {"id": 1}, adapter, bus, settings=settings, state="created").publish_now()

        assert bus.messages[0]["data"]["metadata"] == {"created": True}

    def test_destroyed_state_sends_primary_key_without_lookup(self, adapter, bus, settings, frozen_time):
        Publisher(
            TEST_USER, {"id": 7, "email": "gone@example.org"}, adapter, bus,
            settings=settings, state=PublishState.DESTROYED,
        ).publish_now()

        assert bus.messages == [expected_message([{"id": 7}], frozen_time, event="destroy")]

    def test_headers_and_exchange_from_settings(self, adapter, bus, stored_user, frozen_time):
        settings = Settings(
            exchange_name="table_sync.events",
            headers_callable=lambda model_name, attributes: {"model": model_name, "rows": len(attributes)},
        )

        Publisher(TEST_USER, {"id": 1}, adapter, bus, settings=settings).publish_now()

        message = bus.messages[0]
        assert message["headers"] == {"model": "TestUser", "rows": 1}
        assert message["exchange_name"] == "table_sync.events"

    def test_stored_timestamps_are_serialized(self, adapter, bus, settings, frozen_time):
        model = SyncModel(
            name="TestUser", table="users",
            attributes_for_sync=lambda row: {**row, "seen_at": datetime(2018, 1, 1, 12, 0)},
        )
        conn = sqlite3.connect(adapter.database_path)
        conn.execute("INSERT INTO users (id, email, version) VALUES (2, 'b@example.org', 1)")
        conn.commit()
        conn.close()

        Publisher(model, {"id": 2}, adapter, bus, settings=settings).publish_now()

        assert bus.messages[0]["data"]["attributes"][0]["seen_at"] == "2018-01-01T12:00:00"


class TestBatchPublisherPublish:
    """BatchPublisher.publish hands one task to the dispatcher."""

    def test_submits_one_task(self, dispatcher):
        attributes = [{"id": 1, "email": "example@example.org"}]

        BatchPublisher(TEST_USER, attributes, dispatcher=dispatcher).publish()

        assert len(dispatcher.tasks) == 1
        task = dispatcher.last_task
        assert task.model_name == "TestUser"
        assert task.rows == attributes
        assert task.options == {"confirm": True, "push_original_attributes": False, "state": "updated"}

    def test_composite_keys(self, dispatcher):
        model = SyncModel(name="TestUser", table="memberships", primary_keys=("id", "project_id"))
        attributes = [{"id": 1, "project_id": "a"}, {"id": 1, "project_id": "b"}]

        BatchPublisher(model, attributes, dispatcher=dispatcher).publish()

        assert dispatcher.last_task.rows == attributes

    def test_filters_unsafe_attributes(self, dispatcher):
        attributes = [{
            "good_attribute": {"kek": "pek", "array_with_nil": [None]},
            "half_bad": {"bad_inside": [datetime.now(), float("inf")], "good_inside": 1},
            datetime.now(): "wtf?!",
        }]

        BatchPublisher(TEST_USER, attributes, dispatcher=dispatcher).publish()

        row = dispatcher.last_task.rows[0]
        assert len(row) == 2
        assert row["good_attribute"] == {"kek": "pek", "array_with_nil": [None]}
        assert row["half_bad"] == {"bad_inside": [], "good_inside": 1}

    def test_push_original_attributes_and_routing_key_options(self, dispatcher):
        BatchPublisher(
            TEST_USER, [{"id": 1}], dispatcher=dispatcher,
            push_original_attributes=True, routing_key="CustomKey",
        ).publish()

        assert dispatcher.last_task.options == {
            "confirm": True,
            "push_original_attributes": True,
            "state": "updated",
            "routing_key": "CustomKey",
        }

    def test_publish_without_dispatcher_fails(self):
        with pytest.raises(ConfigurationError):
            BatchPublisher(TEST_USER, [{"id": 1}]).publish()


class TestBatchPublisherPublishNow:
    """BatchPublisher.publish_now sends one message for all found rows."""

    def test_one_message_for_found_rows(self, adapter, bus, settings, stored_user, frozen_time):
        BatchPublisher(
            TEST_USER, [{"id": 1}, {"id": 404}], adapter=adapter, bus=bus, settings=settings,
        ).publish_now()

        assert bus.messages == [expected_message([stored_user], frozen_time)]

    def test_nothing_found_publishes_nothing(self, adapter, bus, settings):
        assert BatchPublisher(TEST_USER, [{"id": 404}], adapter=adapter, bus=bus, settings=settings).publish_now() is None
        assert bus.messages == []

    def test_original_attributes_are_sent(self, adapter, bus, settings, stored_user, frozen_time):
        BatchPublisher(
            TEST_USER, [{"id": 1, "email": "example@example.org"}], adapter=adapter, bus=bus,
            settings=settings, push_original_attributes=True,
        ).publish_now()

        assert bus.messages[0]["data"]["attributes"] == [{"id": 1, "email": "example@example.org"}]


class TestThreadedDispatch:
    """The job body runs outside the caller, on a worker thread."""

    def test_job_publishes_batch(self, db_path, bus, settings, stored_user, frozen_time):
        perform = make_batch_job([TEST_USER], lambda: SqliteAdapter(str(db_path)), bus, settings)
        dispatcher = ThreadedJobDispatcher(perform, max_workers=1)
        try:
            task = BatchPublisher(TEST_USER, [{"id": 1}], dispatcher=dispatcher).publish()
        finally:
            dispatcher.shutdown(wait=True)

        assert task.rows == [{"id": 1}]
        assert bus.messages == [expected_message([stored_user], frozen_time)]

    def test_destroyed_batch_keeps_its_state(self, db_path, bus, settings, dispatcher, frozen_time):
        BatchPublisher(
            TEST_USER, [{"id": 7, "email": "gone@example.org"}, {"id": 8}],
            dispatcher=dispatcher, state=PublishState.DESTROYED,
        ).publish()
        task = dispatcher.last_task
        perform = make_batch_job([TEST_USER], lambda: SqliteAdapter(str(db_path)), bus, settings)

        perform(task.model_name, task.rows, task.options)

        assert task.options["state"] == "destroyed"
        assert bus.messages == [expected_message([{"id": 7}, {"id": 8}], frozen_time, event="destroy")]

    def test_unknown_model_fails_job(self, db_path, bus):
        perform = make_batch_job([TEST_USER], lambda: SqliteAdapter(str(db_path)), bus)
        dispatcher = ThreadedJobDispatcher(perform, max_workers=1)
        try:
            future = dispatcher.submit("Ghost", [{"id": 1}], {"confirm": True})
            with pytest.raises(ConfigurationError):
                future.result(timeout=5)
        finally:
            dispatcher.shutdown(wait=True)

        assert bus.messages == []
