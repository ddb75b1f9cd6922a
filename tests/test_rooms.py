import logging

import pytest

from roadrelay.connection import Connection
from roadrelay.errors import PayloadEncodingError
from roadrelay.rooms import Membership, RoomBroker

from tests.fakes import FakeClient, FakeSocket, wait_until


@pytest.fixture
def broker():
    return RoomBroker()


class TestJoin:
    """Test joining rooms"""

    def test_join_creates_room(self, broker):
        client = FakeClient("a")

        membership = broker.join_room("lobby", client)

        assert isinstance(membership, Membership)
        assert membership.room_name == "lobby"
        assert broker.has_room("lobby")
        assert broker.members("lobby") == [client]

    def test_members_keep_join_order(self, broker):
        a, b, c = FakeClient("a"), FakeClient("b"), FakeClient("c")
        for client in (a, b, c):
            broker.join_room("r", client)

        assert broker.members("r") == [a, b, c]

    def test_duplicate_join_adds_duplicate_entry(self, broker):
        client = FakeClient("a")
        broker.join_room("r", client)
        broker.join_room("r", client)

        assert broker.members("r") == [client, client]

        broker.leave_room("r", client)
        assert broker.members("r") == [client]

    def test_rooms_are_independent(self, broker):
        client = FakeClient("a")
        broker.join_room("one", client)
        broker.join_room("two", client)

        broker.leave_room("one", client)

        assert broker.rooms == ["two"]


class TestLeave:
    """Test leaving rooms"""

    def test_leave_deletes_empty_room(self, broker):
        client = FakeClient("a")
        broker.join_room("r", client)

        assert broker.leave_room("r", client) is True
        assert not broker.has_room("r")
        assert broker.rooms == []

    def test_leave_twice_is_a_no_op(self, broker):
        a, b = FakeClient("a"), FakeClient("b")
        broker.join_room("r", a)
        broker.join_room("r", b)

        assert broker.leave_room("r", a) is True
        assert broker.leave_room("r", a) is False
        assert broker.members("r") == [b]

    def test_leave_missing_room(self, broker):
        assert broker.leave_room("nowhere", FakeClient()) is False

    def test_membership_leave(self, broker):
        client = FakeClient("a")
        membership = broker.join_room("r", client)

        membership.leave()
        membership.leave()

        assert not broker.has_room("r")

    def test_client_close_leaves_all_its_rooms(self, broker):
        a, b = FakeClient("a"), FakeClient("b")
        broker.join_room("one", a)
        broker.join_room("two", a)
        broker.join_room("two", b)

        a.fire_close()

        assert broker.rooms == ["two"]
        assert broker.members("two") == [b]

    def test_membership_ends_only_once(self, broker):
        client = FakeClient("a")
        first = broker.join_room("r", client)
        second = broker.join_room("r", client)

        first.leave()
        client.fire_close()

        assert first.left and second.left
        assert not broker.has_room("r")

    def test_close_after_explicit_leave(self, broker):
        a, b = FakeClient("a"), FakeClient("b")
        broker.join_room("r", a).leave()
        broker.join_room("r", b)

        a.fire_close()

        assert broker.members("r") == [b]


class TestEmit:
    """Test room broadcasts"""

    async def test_fan_out_to_every_member_once(self, broker):
        clients = [FakeClient(name) for name in "abc"]
        for client in clients:
            broker.join_room("r", client)

        count = await broker.emit_on_room("r", {"x": 1})

        assert count == 3
        for client in clients:
            assert client.sent == ['{"x":1}']

    async def test_text_is_json_encoded_too(self, broker):
        client = FakeClient()
        broker.join_room("r", client)

        await broker.emit_on_room("r", "hello")

        assert client.sent == ['"hello"']

    async def test_emit_to_missing_room_is_a_no_op(self, broker):
        assert await broker.emit_on_room("nowhere", {"x": 1}) == 0

    async def test_emit_after_room_deleted(self, broker):
        client = FakeClient()
        broker.join_room("r", client)
        broker.leave_room("r", client)

        assert await broker.emit_on_room("r", {"x": 1}) == 0
        assert client.sent == []

    async def test_membership_emit_is_scoped(self, broker):
        inside, outside = FakeClient("in"), FakeClient("out")
        membership = broker.join_room("r", inside)
        broker.join_room("other", outside)

        await membership.emit({"scoped": True})

        assert inside.sent == ['{"scoped":true}']
        assert outside.sent == []

    async def test_failing_member_is_skipped(self, broker, caplog):
        class BrokenClient(FakeClient):
            def send(self, payload):
                raise ConnectionError("gone")

        healthy = FakeClient("ok")
        broker.join_room("r", BrokenClient("broken"))
        broker.join_room("r", healthy)

        with caplog.at_level(logging.WARNING, logger="roadrelay.rooms"):
            count = await broker.emit_on_room("r", [1])

        assert count == 1
        assert healthy.sent == ["[1]"]
        assert "gone" in caplog.text

    async def test_unserializable_data_raises(self, broker):
        broker.join_room("r", FakeClient())

        with pytest.raises(PayloadEncodingError):
            await broker.emit_on_room("r", {"bad": object()})


class TestWithConnections:
    """Test the broker with server-side connections as clients"""

    async def test_repeated_join_and_leave_does_not_grow_close_handlers(self, broker):
        conn = Connection.attach(FakeSocket())
        baseline = len(conn.listeners("close"))

        for _ in range(1000):
            broker.join_room("r", conn).leave()

        assert len(conn.listeners("close")) == baseline
        assert not broker.has_room("r")

    async def test_leave_room_detaches_close_handler(self, broker):
        conn = Connection.attach(FakeSocket())
        broker.join_room("r", conn)
        broker.join_room("r", conn)

        broker.leave_room("r", conn)

        assert len(conn.listeners("close")) == 1
        assert broker.members("r") == [conn]

    async def test_broadcast_and_disconnect(self, broker):
        first, second = FakeSocket(), FakeSocket()
        conn_a = Connection.attach(first)
        conn_b = Connection.attach(second)
        broker.join_room("chat", conn_a)
        broker.join_room("chat", conn_b)

        await broker.emit_on_room("chat", {"text": "hi"})
        assert first.sent == second.sent == ['{"text":"hi"}']

        first.drop()
        await conn_a.serve()
        await wait_until(lambda: broker.members("chat") == [conn_b])

        await broker.emit_on_room("chat", {"text": "bye"})
        assert first.sent == ['{"text":"hi"}']
        assert second.sent[-1] == '{"text":"bye"}'


def test_stats(broker):
    broker.join_room("a", FakeClient())
    broker.join_room("b", FakeClient())
    broker.join_room("b", FakeClient())

    assert broker.get_stats() == {"rooms": 2, "room_sizes": {"a": 1, "b": 2}}


def test_brokers_do_not_share_rooms():
    first, second = RoomBroker(), RoomBroker()
    first.join_room("r", FakeClient())

    assert second.rooms == []
