"""Unit tests for the login challenge-response computation."""

import pytest
from fritzlog.exceptions import ChallengeError
from fritzlog.services.challenge import (
    Md5Challenge,
    Pbkdf2Challenge,
    make_response,
    parse_challenge,
)

CHALLENGE = "2$60000$d4949767019d1e6eed27c27f404c7aa7$6000$4f3415a3b5396a9675d08906ee6a6933"
PASSWORD = "vorab9049"
RESPONSE = (
    "4f3415a3b5396a9675d08906ee6a6933$"
    "16a4a11987d802c6f3e67d91d1425b5a0eade78561a5810ef905372ab1da53ca"
)


class TestPbkdf2Challenge:
    def test_parse_fields(self):
        ch = parse_challenge(CHALLENGE)
        assert isinstance(ch, Pbkdf2Challenge)
        assert ch.static.iterations == 60000
        assert ch.dynamic.iterations == 6000
        assert ch.static.salt == bytes(
            [212, 148, 151, 103, 1, 157, 30, 110, 237, 39, 194, 127, 64, 76, 122, 167]
        )
        assert ch.dynamic.salt == bytes(
            [79, 52, 21, 163, 181, 57, 106, 150, 117, 208, 137, 6, 238, 106, 105, 51]
        )

    def test_static_hash(self):
        ch = parse_challenge(CHALLENGE)
        assert ch.static.hash(PASSWORD.encode()) == bytes([
            173, 73, 26, 0, 69, 3, 2, 226, 26, 14, 168, 166, 149, 148, 120, 114,
            4, 167, 182, 35, 234, 201, 114, 174, 21, 114, 197, 66, 252, 236, 254, 29,
        ])

    def test_response(self):
        assert make_response(CHALLENGE, PASSWORD) == RESPONSE

    def test_response_starts_with_dynamic_salt(self):
        assert make_response(CHALLENGE, "other").startswith("4f3415a3b5396a9675d08906ee6a6933$")

    @pytest.mark.parametrize("challenge", [
        "",
        "2$60000$d4949767019d1e6eed27c27f404c7aa7$6000",
        "2$abc$d4949767019d1e6eed27c27f404c7aa7$6000$4f3415a3b5396a9675d08906ee6a6933",
        "2$60000$zz949767019d1e6eed27c27f404c7aa7$6000$4f3415a3b5396a9675d08906ee6a6933",
        "2$60000$d494$6000$4f3415a3b5396a9675d08906ee6a6933",
        "3$60000$d4949767019d1e6eed27c27f404c7aa7$6000$4f3415a3b5396a9675d08906ee6a6933",
    ])
    def test_malformed_challenge(self, challenge):
        with pytest.raises(ChallengeError):
            parse_challenge(challenge)


class TestMd5Challenge:
    def test_legacy_challenge_detected(self):
        assert isinstance(parse_challenge("1234567z"), Md5Challenge)

    def test_legacy_response(self):
        # Example from the AVM session-ID technical note
        assert make_response("1234567z", "äbc") == "1234567z-9e224a41eeefa284df7bb0f26c2913e2"
