"""Tests for realtime fan-out: room membership, ordering, deletion notices."""
import asyncio
import itertools
import json
import time
from contextlib import contextmanager

from app.realtime.hub import EVENT_UPDATED, RealtimeHub
from tests.conftest import HOST_ID, as_user, attendee_of, create_test_event, decide, join

SOCKET_PATH = "/socket.io/?EIO=4&transport=websocket"


class SocketClient:
    """Just enough of Engine.IO 4 / Socket.IO 5 to drive the server over a test websocket."""

    def __init__(self, ws):
        self.ws = ws
        self._ack_ids = itertools.count(1)
        assert ws.receive_text().startswith("0")  # engine.io open
        ws.send_text("40")                         # socket.io connect, default namespace
        assert self._next().startswith("40")

    def _next(self) -> str:
        while True:
            packet = self.ws.receive_text()
            if packet == "2":
                self.ws.send_text("3")
                continue
            return packet

    def call(self, event: str, *args):
        """Emit with an ack id and return the handler's reply."""
        ack_id = next(self._ack_ids)
        self.ws.send_text(f"42{ack_id}" + json.dumps([event, *args]))
        packet = self._next()
        prefix = f"43{ack_id}"
        assert packet.startswith(prefix), packet
        return json.loads(packet[len(prefix):])[0]

    def receive(self):
        """Next server emit as ``(name, payload)``."""
        packet = self._next()
        assert packet.startswith("42"), packet
        name, payload = json.loads(packet[2:])
        return name, payload


@contextmanager
def socket(client):
    with client.websocket_connect(SOCKET_PATH, headers={"upgrade": "websocket"}) as ws:
        yield SocketClient(ws)


def _subscribe(sock, event_id):
    assert sock.call("joinEvent", event_id) == {"ok": True, "eventId": event_id}


class TestSocketFanOut:
    """End-to-end over Socket.IO."""

    def test_join_pushes_snapshot_to_room(self, client):
        event = create_test_event(client)
        with socket(client) as sock:
            _subscribe(sock, event["id"])
            join(client, event["id"], "u_alice")
            name, payload = sock.receive()
        assert name == EVENT_UPDATED
        assert payload["id"] == event["id"]
        assert attendee_of(payload, "u_alice")["status"] == "pending"

    def test_updates_arrive_in_commit_order(self, client):
        event = create_test_event(client)
        eid = event["id"]
        with socket(client) as sock:
            _subscribe(sock, eid)
            attendee = attendee_of(join(client, eid, "u_alice").json(), "u_alice")
            decide(client, eid, attendee["id"], "confirm")
            client.post(f"/events/{eid}/messages", json={
                "userId": "u_alice", "text": "到了", "profile": attendee["profile"],
            })
            payloads = [sock.receive()[1] for _ in range(3)]
        assert [p["version"] for p in payloads] == [2, 3, 4]
        assert payloads[2]["messages"][0]["text"] == "到了"

    def test_other_rooms_not_notified(self, client):
        watched = create_test_event(client)
        other = create_test_event(client)
        with socket(client) as sock:
            _subscribe(sock, watched["id"])
            join(client, other["id"], "u_alice")
            join(client, watched["id"], "u_bob")
            _, payload = sock.receive()
        assert payload["id"] == watched["id"]

    def test_leave_stops_updates(self, client):
        first = create_test_event(client)
        second = create_test_event(client)
        with socket(client) as sock:
            _subscribe(sock, first["id"])
            _subscribe(sock, second["id"])
            assert sock.call("leaveEvent", first["id"]) == {"ok": True, "eventId": first["id"]}
            join(client, first["id"], "u_alice")
            join(client, second["id"], "u_alice")
            _, payload = sock.receive()
        assert payload["id"] == second["id"]

    def test_double_join_and_stray_leave_are_noops(self, client, hub):
        event = create_test_event(client)
        with socket(client) as sock:
            _subscribe(sock, event["id"])
            _subscribe(sock, event["id"])
            assert sock.call("leaveEvent", "never-joined")["ok"] is True
            assert len(hub.subscribers(event["id"])) == 1
            join(client, event["id"], "u_alice")
            name, _ = sock.receive()
            assert name == EVENT_UPDATED

    def test_deletion_notice(self, client, hub):
        event = create_test_event(client)
        with socket(client) as sock:
            _subscribe(sock, event["id"])
            client.delete(f"/events/{event['id']}", headers=as_user(HOST_ID))
            name, payload = sock.receive()
            # the room is closed after the notice went out
            assert sock.call("leaveEvent", event["id"])["ok"] is True
            assert hub.subscribers(event["id"]) == []
        assert (name, payload) == (EVENT_UPDATED, {"id": event["id"], "deleted": True})

    def test_failed_mutation_is_not_broadcast(self, client):
        event = create_test_event(client)
        with socket(client) as sock:
            _subscribe(sock, event["id"])
            assert join(client, event["id"], HOST_ID).status_code == 409
            join(client, event["id"], "u_alice")
            _, payload = sock.receive()
        assert payload["version"] == 2

    def test_malformed_room_arguments_get_error_replies(self, client, hub):
        event = create_test_event(client)
        with socket(client) as sock:
            assert sock.call("joinEvent")["ok"] is False
            assert sock.call("joinEvent", {"eventId": event["id"]})["ok"] is False
            assert sock.call("joinEvent", 42)["ok"] is False
            assert sock.call("joinEvent", "  ")["ok"] is False
            assert sock.call("leaveEvent", event["id"], "extra")["ok"] is False
            # the socket stays usable afterwards
            _subscribe(sock, event["id"])
            join(client, event["id"], "u_alice")
            name, _ = sock.receive()
        assert name == EVENT_UPDATED

    def test_disconnect_leaves_rooms(self, client, hub):
        event = create_test_event(client)
        with socket(client) as sock:
            _subscribe(sock, event["id"])
            assert len(hub.subscribers(event["id"])) == 1
        # the server side finishes its cleanup once the close is processed
        for _ in range(50):
            if not hub.subscribers(event["id"]):
                break
            time.sleep(0.01)
        assert hub.subscribers(event["id"]) == []

    def test_two_sockets_share_a_room(self, client):
        event = create_test_event(client)
        with socket(client) as first, socket(client) as second:
            _subscribe(first, event["id"])
            _subscribe(second, event["id"])
            join(client, event["id"], "u_alice")
            assert first.receive()[1]["version"] == 2
            assert second.receive()[1]["version"] == 2


class TestHub:
    """RealtimeHub without sockets; the server's emit is replaced by a recorder."""

    def test_publish_before_any_connection_is_skipped(self):
        assert RealtimeHub().publish("e1", {"id": "e1"}) is None
        assert RealtimeHub().close_room("e1") is None

    def test_publishes_from_worker_thread_keep_order(self):
        async def scenario():
            hub = RealtimeHub()
            sent = []

            async def recording_emit(event, data, room=None, namespace=None):
                # later emits would overtake earlier ones if they were not serialized
                await asyncio.sleep(0.02 if data["n"] == 0 else 0)
                sent.append((event, room, data["n"]))

            hub.sio.emit = recording_emit
            hub.bind(asyncio.get_running_loop())
            futures = await asyncio.to_thread(lambda: [hub.publish("e1", {"n": n}) for n in range(5)])
            await asyncio.gather(*(asyncio.wrap_future(f) for f in futures))
            return sent

        assert asyncio.run(scenario()) == [(EVENT_UPDATED, "e1", n) for n in range(5)]

    def test_close_room_runs_after_pending_publish(self):
        async def scenario():
            hub = RealtimeHub()
            calls = []

            async def recording_emit(event, data, room=None, namespace=None):
                await asyncio.sleep(0.02)
                calls.append(("emit", room))

            async def recording_close(room, namespace=None):
                calls.append(("close", room))

            hub.sio.emit = recording_emit
            hub.sio.close_room = recording_close
            hub.bind(asyncio.get_running_loop())
            futures = await asyncio.to_thread(
                lambda: [hub.publish("e1", {"id": "e1", "deleted": True}), hub.close_room("e1")]
            )
            await asyncio.gather(*(asyncio.wrap_future(f) for f in futures))
            return calls

        assert asyncio.run(scenario()) == [("emit", "e1"), ("close", "e1")]

    def test_failed_emit_does_not_block_later_ones(self):
        async def scenario():
            hub = RealtimeHub()
            sent = []

            async def flaky_emit(event, data, room=None, namespace=None):
                if data["n"] == 0:
                    raise ConnectionError("socket gone")
                sent.append(data["n"])

            hub.sio.emit = flaky_emit
            hub.bind(asyncio.get_running_loop())
            futures = await asyncio.to_thread(lambda: [hub.publish("e1", {"n": n}) for n in range(3)])
            await asyncio.gather(*(asyncio.wrap_future(f) for f in futures))
            return sent

        assert asyncio.run(scenario()) == [1, 2]

    def test_publish_after_loop_closed_is_skipped(self):
        hub = RealtimeHub()
        loop = asyncio.new_event_loop()
        hub.bind(loop)
        loop.close()
        assert hub.publish("e1", {"id": "e1"}) is None
