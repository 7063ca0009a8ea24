from PyQt5.QtTest import QTest

from vizsync.handshake import HandshakeManager


def test_start_sends_ready_immediately():
    sent = []
    hs = HandshakeManager(lambda t, **kw: sent.append(t), interval_ms=250)
    hs.start()

    assert sent == ["ready"]
    assert hs.active
    hs.acknowledge()


def test_no_fourth_pulse_after_init():
    sent = []
    hs = HandshakeManager(lambda t, **kw: sent.append(t), interval_ms=250)
    hs.start()
    # deux ticks du minuteur
    hs._pulse()
    hs._pulse()
    assert hs.pulses == 3

    hs.acknowledge()
    hs._pulse()
    hs.start()

    assert hs.pulses == 3
    assert sent == ["ready"] * 3
    assert not hs.active


def test_timer_pulses_until_acknowledged():
    sent = []
    hs = HandshakeManager(lambda t, **kw: sent.append(t), interval_ms=10)
    hs.start()
    QTest.qWait(60)
    hs.acknowledge()
    count = len(sent)
    QTest.qWait(40)

    assert count >= 2
    assert len(sent) == count


def test_acknowledge_is_idempotent():
    stops = []
    hs = HandshakeManager(lambda t, **kw: None)
    hs.stopped.connect(lambda: stops.append(1))
    hs.start()
    hs.acknowledge()
    hs.acknowledge()

    assert stops == [1]
    assert hs.acknowledged
