"""Tests for status reply parsing."""

from conftest import STATUS_REPLY

from q2_discovery.models import Endpoint, PlayerEntry
from q2_discovery.protocol.status import (
    DEFAULT_HOSTNAME,
    DEFAULT_MOD,
    MAX_ATTRIBUTES,
    MAX_PAYLOAD_SIZE,
    MAX_PLAYERS,
    is_status_reply,
    parse_info_string,
    parse_player_line,
    parse_status_reply,
)

ENDPOINT = Endpoint("10.0.0.1", 27910)


class TestParseInfoString:

    def test_pairs(self):
        assert parse_info_string("\\hostname\\My Server\\mapname\\q2dm1") == {
            "hostname": "My Server",
            "mapname": "q2dm1",
        }

    def test_without_leading_backslash(self):
        assert parse_info_string("a\\1\\b\\2") == {"a": "1", "b": "2"}

    def test_dangling_key_gets_empty_value(self):
        assert parse_info_string("\\a\\1\\b") == {"a": "1", "b": ""}

    def test_empty(self):
        assert parse_info_string("") == {}
        assert parse_info_string("\\") == {}

    def test_caps_pair_count(self):
        line = "".join(f"\\k{i}\\v{i}" for i in range(MAX_ATTRIBUTES + 50))
        attributes = parse_info_string(line)
        assert len(attributes) == MAX_ATTRIBUTES
        assert attributes["k0"] == "v0"


class TestParsePlayerLine:

    def test_quoted_name(self):
        assert parse_player_line('12 48 "alice"') == PlayerEntry("alice", 12, 48)

    def test_name_with_spaces_and_negative_score(self):
        assert parse_player_line('-3 0 "the player"') == PlayerEntry("the player", -3, 0)

    def test_unquoted_name(self):
        assert parse_player_line("5 20 bob") == PlayerEntry("bob", 5, 20)

    def test_malformed(self):
        assert parse_player_line("not a player") is None
        assert parse_player_line('12 "alice"') is None


class TestParseStatusReply:

    def test_full_reply(self):
        record = parse_status_reply(STATUS_REPLY, ENDPOINT, 42)

        assert record is not None
        assert record.endpoint == ENDPOINT
        assert record.hostname == "^1Red ^7Server"
        assert record.plain_hostname == "Red Server"
        assert record.map_name == "q2dm1"
        assert record.mod == "ctf"
        assert record.max_players == 16
        assert record.current_players == 3
        assert record.latency_ms == 42
        assert [p.name for p in record.players] == ["alice", "^2bob", "carol"]
        assert record.players[1].plain_name == "bob"
        assert record.attributes["cheats"] == "0"

    def test_defaults_for_missing_attributes(self):
        data = b"\xff\xff\xff\xffprint\n\\mapname\\q2dm3\n"
        record = parse_status_reply(data, ENDPOINT, 10)

        assert record.hostname == DEFAULT_HOSTNAME
        assert record.mod == DEFAULT_MOD
        assert record.max_players == 0
        assert record.current_players == 0

    def test_game_attribute_used_as_mod(self):
        data = b"\xff\xff\xff\xffprint\n\\hostname\\x\\game\\rocketarena\n"
        assert parse_status_reply(data, ENDPOINT, 10).mod == "rocketarena"

    def test_clients_attribute_overrides_player_count(self):
        data = b'\xff\xff\xff\xffprint\n\\hostname\\x\\clients\\7\n1 2 "only"\n'
        record = parse_status_reply(data, ENDPOINT, 10)
        assert record.current_players == 7
        assert len(record.players) == 1

    def test_non_ascii_digit_clients_falls_back_to_player_lines(self):
        data = b'\xff\xff\xff\xffprint\n\\hostname\\x\\mapname\\q2dm1\\clients\\\xb2\n1 2 "a"\n'
        record = parse_status_reply(data, ENDPOINT, 10)
        assert record.current_players == 1
        assert record.map_name == "q2dm1"

    def test_non_numeric_maxclients(self):
        data = b"\xff\xff\xff\xffprint\n\\hostname\\x\\maxclients\\lots\n"
        assert parse_status_reply(data, ENDPOINT, 10).max_players == 0

    def test_malformed_player_lines_skipped(self):
        data = b'\xff\xff\xff\xffprint\n\\hostname\\x\ngarbage\n4 50 "ok"\n\n'
        record = parse_status_reply(data, ENDPOINT, 10)
        assert [p.name for p in record.players] == ["ok"]

    def test_player_list_capped(self):
        lines = b"".join(b'1 1 "p%d"\n' % i for i in range(MAX_PLAYERS + 20))
        data = b"\xff\xff\xff\xffprint\n\\hostname\\x\n" + lines
        assert len(parse_status_reply(data, ENDPOINT, 10).players) == MAX_PLAYERS

    def test_oversized_payload_truncated(self):
        line = b'1 1 "%s"\n' % (b"x" * 200)
        data = b"\xff\xff\xff\xffprint\n\\hostname\\big\n" + line * 1000
        assert len(data) > MAX_PAYLOAD_SIZE

        record = parse_status_reply(data, ENDPOINT, 10)
        assert record is not None
        assert record.hostname == "big"
        assert 0 < len(record.players) <= MAX_PLAYERS

    def test_high_bit_characters_decode(self):
        data = b"\xff\xff\xff\xffprint\n\\hostname\\\xe1\xe2\xe3\n"
        assert parse_status_reply(data, ENDPOINT, 10).hostname == "\xe1\xe2\xe3"

    def test_negative_latency_clamped(self):
        assert parse_status_reply(STATUS_REPLY, ENDPOINT, -5).latency_ms == 0

    def test_rejects_other_replies(self):
        assert parse_status_reply(b"\xff\xff\xff\xffservers \x01\x02", ENDPOINT, 1) is None
        assert parse_status_reply(b"\xff\xff\xff\xffprintx\n\\a\\b\n", ENDPOINT, 1) is None
        assert parse_status_reply(b"\xff\xff\xff\xffprint\n\n", ENDPOINT, 1) is None
        assert parse_status_reply(b"", ENDPOINT, 1) is None


class TestIsStatusReply:

    def test_framed_reply(self):
        assert is_status_reply(STATUS_REPLY)

    def test_requires_oob_header(self):
        assert not is_status_reply(STATUS_REPLY[4:])

    def test_requires_attributes(self):
        assert not is_status_reply(b"\xff\xff\xff\xffprint\n")
        assert not is_status_reply(b"\xff\xff\xff\xffstatus\n")
