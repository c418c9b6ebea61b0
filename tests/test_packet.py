"""Tests for OOB packet framing."""

from q2_discovery.protocol.packet import (
    OOB_HEADER,
    build_command,
    has_oob_header,
    prepend_oob_header,
    remove_oob_header,
)


class TestOobFraming:
    """Header add/detect/strip."""

    def test_prepend_adds_four_ff_bytes(self):
        assert prepend_oob_header(b"status\n") == b"\xff\xff\xff\xffstatus\n"

    def test_prepend_empty_payload(self):
        assert prepend_oob_header(b"") == OOB_HEADER

    def test_remove_reverses_prepend(self):
        for payload in (b"", b"x", b"print\n\\a\\b", bytes(range(256))):
            assert remove_oob_header(prepend_oob_header(payload)) == payload

    def test_remove_leaves_unframed_data_unchanged(self):
        assert remove_oob_header(b"status\n") == b"status\n"
        assert remove_oob_header(b"\xff\xff\xff") == b"\xff\xff\xff"

    def test_has_header(self):
        assert has_oob_header(b"\xff\xff\xff\xffprint")
        assert has_oob_header(OOB_HEADER)

    def test_has_header_rejects_short_or_partial(self):
        assert not has_oob_header(b"")
        assert not has_oob_header(b"\xff\xff\xff")
        assert not has_oob_header(b"\xff\xff\xfe\xff")
        assert not has_oob_header(b"print")


class TestBuildCommand:

    def test_status_command(self):
        assert build_command("status") == b"\xff\xff\xff\xffstatus\n"

    def test_custom_terminator(self):
        assert build_command("query", b"\n\x00") == b"\xff\xff\xff\xffquery\n\x00"
