import pytest

from vizsync.channel import ChannelEndpoint, make_message, validate_message
from vizsync.errors import ChannelError


def test_validate_message_rejects_non_mapping_and_missing_type():
    with pytest.raises(ChannelError):
        validate_message("ready")
    with pytest.raises(ChannelError):
        validate_message({"source": "player"})
    with pytest.raises(ChannelError):
        validate_message({"source": "player", "type": ""})
    msg = {"source": "player", "type": "init"}
    assert validate_message(msg) is msg


def test_endpoint_stamps_source_and_freezes_payload(channel, sent):
    endpoint = ChannelEndpoint(channel, "controls")
    endpoint.send("set-quality", antialias=True)

    assert channel.flush() == 1
    assert sent[0]["source"] == "controls"
    assert sent[0]["type"] == "set-quality"
    with pytest.raises(TypeError):
        sent[0]["antialias"] = False


def test_broadcast_reaches_sender_too(channel):
    a_seen, b_seen = [], []
    channel.subscribe(a_seen.append)
    channel.subscribe(b_seen.append)
    channel.post(make_message("controls", "ready"))
    channel.flush()

    assert len(a_seen) == 1 and len(b_seen) == 1


def test_message_posted_from_handler_waits_for_current_handler(channel):
    order = []

    def first(msg):
        order.append(("start", msg["type"]))
        if msg["type"] == "ready":
            channel.post(make_message("player", "init"))
        order.append(("end", msg["type"]))

    channel.subscribe(first)
    channel.post(make_message("controls", "ready"))
    channel.flush()

    assert order == [("start", "ready"), ("end", "ready"), ("start", "init"), ("end", "init")]


def test_failing_receiver_does_not_block_others(channel):
    seen = []

    def broken(msg):
        raise RuntimeError("boom")

    channel.subscribe(broken)
    channel.subscribe(seen.append)
    channel.post(make_message("player", "init"))
    channel.flush()

    assert [m["type"] for m in seen] == ["init"]


def test_unsubscribe_stops_delivery(channel):
    seen = []
    endpoint = ChannelEndpoint(channel, "player")
    endpoint.listen(seen.append)
    endpoint.close(seen.append)
    endpoint.send("init")
    channel.flush()

    assert seen == []
    assert channel.pending() == 0
