from focuswatch.core.cooldown import CooldownChannel


def test_first_fire_is_allowed():
    ch = CooldownChannel("audio", 3000)
    assert ch.ready(0.0)
    assert ch.try_fire(0.0)
    assert ch.last_fired_at == 0.0


def test_blocks_until_cooldown_elapsed_inclusive():
    ch = CooldownChannel("clip", 7000)
    ch.fire(100.0)
    assert not ch.try_fire(106.999)
    assert ch.last_fired_at == 100.0
    assert ch.try_fire(107.0)
    assert ch.last_fired_at == 107.0


def test_remaining_ms_and_reset():
    ch = CooldownChannel("snapshot", 5000)
    assert ch.remaining_ms(0.0) == 0.0
    ch.fire(10.0)
    assert abs(ch.remaining_ms(12.0) - 3000.0) < 1e-6
    assert ch.remaining_ms(20.0) == 0.0
    ch.reset()
    assert ch.ready(10.5)
