import logging

import pytest

from gwinit.validation import (
    CorsKind,
    CorsRule,
    Credential,
    NetworkConfig,
    classify_cors_pattern,
    parse_cors,
    validate_api_key,
    validate_port,
)


@pytest.mark.unit
def test_port_defaults_when_unset(caplog):
    caplog.set_level(logging.WARNING)
    assert validate_port(None, is_root=False) == NetworkConfig(port=8010, privileged=False)
    assert caplog.text == ""


@pytest.mark.unit
@pytest.mark.parametrize(
    "value, expected", [("1", 1), ("8080", 8080), ("65535", 65535), ("0443", 443)]
)
def test_port_accepts_valid_values(value, expected):
    assert validate_port(value, is_root=True).port == expected


@pytest.mark.unit
@pytest.mark.parametrize("value", ["0", "65536", "99999999", "-80", "abc", "80a", "8.0", "80 80"])
def test_port_falls_back_on_invalid_values(value, caplog):
    caplog.set_level(logging.WARNING)

    network = validate_port(value, is_root=False)

    assert network.port == 8010
    assert f"Invalid PORT: '{value}'. Using default: 8010" in caplog.text


@pytest.mark.unit
def test_privileged_port_warns_when_not_root(caplog):
    caplog.set_level(logging.WARNING)

    network = validate_port("80", is_root=False)

    assert network == NetworkConfig(port=80, privileged=True)
    assert "Port 80 is privileged and might require root" in caplog.text


@pytest.mark.unit
def test_privileged_port_silent_for_root(caplog):
    caplog.set_level(logging.WARNING)

    network = validate_port("80", is_root=True)

    assert network.privileged
    assert "privileged" not in caplog.text


@pytest.mark.unit
def test_port_1024_is_not_privileged():
    assert validate_port("1024", is_root=False).privileged is False


@pytest.mark.unit
def test_api_key_absent():
    assert validate_api_key(None) == Credential(value=None, valid=False)


@pytest.mark.unit
def test_api_key_too_short_is_discarded(caplog):
    caplog.set_level(logging.WARNING)

    credential = validate_api_key("ab")

    assert credential.value is None
    assert not credential.valid
    assert "Invalid API_KEY" in caplog.text


@pytest.mark.unit
@pytest.mark.parametrize("value", ["x" * 129, "bad;key", "key$(rm -rf)", "quote'key", "tab\tkey"])
def test_api_key_unsafe_is_discarded(value):
    assert validate_api_key(value) == Credential()


@pytest.mark.unit
def test_api_key_weak_is_kept_and_flagged(caplog):
    caplog.set_level(logging.WARNING)

    credential = validate_api_key("secret")

    assert credential == Credential(value="secret", valid=True, weak=True)
    assert "common value" in caplog.text


@pytest.mark.unit
def test_api_key_weak_match_is_case_sensitive():
    assert validate_api_key("Secret").weak is False


@pytest.mark.unit
def test_api_key_strong(caplog):
    caplog.set_level(logging.WARNING)

    credential = validate_api_key("MyK3y_2024")

    assert credential == Credential(value="MyK3y_2024", valid=True, weak=False)
    assert caplog.text == ""


@pytest.mark.unit
def test_api_key_allows_safe_symbols():
    value = "user@host:pa.ss+wo=rd _-"
    assert validate_api_key(value).value == value


@pytest.mark.unit
@pytest.mark.parametrize(
    "token, kind",
    [
        ("all", CorsKind.ALLOW_ALL),
        ("*", CorsKind.ALLOW_ALL),
        ("/^https?:\\/\\/.*\\.example\\.com$/", CorsKind.REGEX_LITERAL),
        ("//", CorsKind.REGEX_LITERAL),
        ("https://app.example.com", CorsKind.URL),
        ("http://10.0.0.1:3000", CorsKind.URL),
        ("10.0.0.5", CorsKind.IPV4),
        ("10.0.0.5:9000", CorsKind.IPV4),
        ("example.com", CorsKind.HOSTNAME),
        ("my-app.example.org:8443", CorsKind.HOSTNAME),
        ("ALL", CorsKind.REJECTED),
        ("/", CorsKind.REJECTED),
        ("localhost", CorsKind.REJECTED),
        ("example.c0m", CorsKind.REJECTED),
        ("not a valid one", CorsKind.REJECTED),
        ("ftp://example.com", CorsKind.REJECTED),
    ],
)
def test_classify_cors_pattern(token, kind):
    assert classify_cors_pattern(token) == CorsRule(kind, token)


@pytest.mark.unit
def test_cors_unset_gives_no_args():
    assert parse_cors(None).to_args() == []
    assert parse_cors("").to_args() == []


@pytest.mark.unit
def test_cors_rules_keep_order():
    policy = parse_cors("https://a.example.com, 10.0.0.5:9000,example.com")

    assert policy.to_args() == [
        "--cors", "https://a.example.com",
        "--cors", "10.0.0.5:9000",
        "--cors", "example.com",
    ]


@pytest.mark.unit
def test_cors_skips_empty_tokens():
    assert parse_cors(" , example.com,, ").to_args() == ["--cors", "example.com"]


@pytest.mark.unit
def test_cors_rejects_tokens_individually(caplog):
    caplog.set_level(logging.WARNING)

    policy = parse_cors("bogus, example.com")

    assert policy.rejected == ["bogus"]
    assert policy.to_args() == ["--cors", "example.com"]
    assert "Invalid CORS pattern 'bogus' - skipping" in caplog.text


@pytest.mark.unit
@pytest.mark.parametrize(
    "value",
    ["all", "*", "example.com, all", "all, example.com", "junk, *, example.com, more junk"],
)
def test_cors_allow_all_anywhere(value):
    policy = parse_cors(value)

    assert policy.allow_all
    assert policy.rules == []
    assert policy.to_args() == ["--cors"]


@pytest.mark.unit
def test_cors_allow_all_discards_earlier_rules(caplog):
    caplog.set_level(logging.WARNING)

    policy = parse_cors("example.com, 10.0.0.5:9000, not a valid one, *")

    assert policy.rejected == ["not a valid one"]
    assert policy.to_args() == ["--cors"]
    assert "Invalid CORS pattern 'not a valid one'" in caplog.text
    assert "CORS allowing all origins" in caplog.text


@pytest.mark.unit
def test_cors_stops_scanning_after_allow_all(caplog):
    caplog.set_level(logging.WARNING)

    parse_cors("all, not valid")

    assert "not valid" not in caplog.text


@pytest.mark.unit
def test_port_with_thousands_of_digits_falls_back(caplog):
    caplog.set_level(logging.WARNING)

    assert validate_port("9" * 5000, is_root=False).port == 8010
    assert "Invalid PORT" in caplog.text


@pytest.mark.unit
def test_port_with_many_leading_zeros():
    assert validate_port("0" * 5000 + "8080", is_root=True).port == 8080
