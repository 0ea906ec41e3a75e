"""Tests for token generation and shareable/QR URL construction."""
import hashlib
import re
from urllib.parse import parse_qs, urlparse

from securelinks.services.token_codec import (
    build_link_url,
    build_qr_url,
    extract_token,
    generate_token,
    hash_token,
)


class TestGenerateToken:
    def test_is_64_lowercase_hex(self):
        token = generate_token()
        assert re.fullmatch(r"[0-9a-f]{64}", token)

    def test_tokens_are_distinct(self):
        tokens = {generate_token() for _ in range(200)}
        assert len(tokens) == 200


class TestHashToken:
    def test_sha256_hex_digest(self):
        assert hash_token("abc") == hashlib.sha256(b"abc").hexdigest()

    def test_deterministic(self):
        token = generate_token()
        assert hash_token(token) == hash_token(token)


class TestLinkUrl:
    def test_base_plus_q_path(self):
        assert build_link_url("t0k", "https://snang.my") == "https://snang.my/q/t0k"

    def test_trailing_slash_on_base_is_dropped(self):
        assert build_link_url("t0k", "https://snang.my/") == "https://snang.my/q/t0k"

    def test_extract_round_trip(self):
        token = generate_token()
        assert extract_token(build_link_url(token, "https://snang.my")) == token

    def test_extract_ignores_query_and_fragment(self):
        assert extract_token("https://snang.my/q/abc123?utm=qr#top") == "abc123"

    def test_extract_without_q_segment(self):
        assert extract_token("https://snang.my/buyer?case=1") is None
        assert extract_token("") is None
        assert extract_token("https://snang.my/q/") is None


class TestQrUrl:
    def test_parameters(self):
        link = "https://snang.my/q/abc"
        qr = build_qr_url(link, "https://api.qrserver.com/v1/create-qr-code/", size=300, fmt="png")
        parsed = urlparse(qr)
        assert f"{parsed.scheme}://{parsed.netloc}{parsed.path}" == "https://api.qrserver.com/v1/create-qr-code/"
        params = parse_qs(parsed.query)
        assert params["size"] == ["300x300"]
        assert params["data"] == [link]
        assert params["format"] == ["png"]
        assert params["margin"] == ["10"]

    def test_data_is_percent_encoded(self):
        qr = build_qr_url("https://snang.my/q/abc", "https://qr.example/")
        assert "data=https%3A%2F%2Fsnang.my%2Fq%2Fabc" in qr
