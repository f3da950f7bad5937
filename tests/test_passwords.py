import pytest

from geph.passwords import (
    MAX_INTENSITY,
    LoginRateLimited,
    check_login_intensity,
    hash_password,
    next_login_intensity,
    verify_password,
)


def test_hash_then_verify_round_trip():
    password = "password"
    pwdhash = hash_password(password)
    assert verify_password(password, pwdhash) is True


def test_wrong_password_rejected():
    pwdhash = hash_password("password")
    assert verify_password("secret", pwdhash) is False


def test_hash_uses_argon2id_format():
    assert hash_password("password").startswith("$argon2id$")


def test_hashes_are_salted():
    assert hash_password("password") != hash_password("password") or False
    first = hash_password("password")
    second = hash_password("password")
    assert first != second
    assert verify_password("password", first) and verify_password("password", second)


@pytest.mark.parametrize("bogus", ["", "not a hash", "$argon2id$garbage", "$unknown$x"])
def test_malformed_hash_does_not_verify(bogus):
    assert verify_password("password", bogus) is False


def test_fresh_user_intensity_is_one():
    assert next_login_intensity(0.0, 0.0) == 1.0


def test_intensity_halves_per_day():
    assert next_login_intensity(4.0, 1.0) == 3.0


def test_intensity_decays_over_time():
    values = [next_login_intensity(10.0, days) for days in (0.0, 0.5, 1.0, 3.0, 10.0)]
    assert values == sorted(values, reverse=True)
    assert all(v >= 1.0 for v in values)


def test_check_allows_exactly_max():
    assert check_login_intensity(MAX_INTENSITY - 1.0, 0.0) == MAX_INTENSITY


def test_check_raises_over_max():
    with pytest.raises(LoginRateLimited) as info:
        check_login_intensity(19.5, 0.0)
    assert "too many logins recently" in str(info.value)
    assert info.value.intensity == 19.5


def test_check_recovers_after_time():
    with pytest.raises(LoginRateLimited):
        check_login_intensity(30.0, 0.0)
    assert check_login_intensity(30.0, 5.0) <= MAX_INTENSITY