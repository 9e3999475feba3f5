import pytest

from upload_coordinator.core import ClientInputError, CorruptionError
from upload_coordinator.services import UploadKeys, decode_component, encode_component


def test_chunk_key_layout():
    assert UploadKeys.chunk("abc", "video.mp4", 3) == "chunks/abc/video%2Emp4/part_3"
    assert UploadKeys.session_prefix("abc", "video.mp4") == "chunks/abc/video%2Emp4/"
    assert UploadKeys.merged("abc", "video.mp4") == "merged/abc/video%2Emp4"


def test_chunk_key_starts_with_session_prefix():
    prefix = UploadKeys.session_prefix("s-1", "report.pdf")
    for index in (0, 1, 9, 10, 12345):
        assert UploadKeys.chunk("s-1", "report.pdf", index).startswith(prefix)


@pytest.mark.parametrize(
    "session_id,filename",
    [
        ("plain", "file.bin"),
        ("with/slash", "a/b/c.txt"),
        ("..", ".."),
        ("sess_part_1", "name_part_7"),
        ("ünïcødé", "文件 名.tar.gz"),
        ("%2F", "100%.txt"),
        ("x_merged", "y"),
    ],
)
def test_parse_chunk_round_trips(session_id, filename):
    key = UploadKeys.chunk(session_id, filename, 42)
    assert UploadKeys.parse_chunk(key) == (session_id, filename, 42)
    assert decode_component(encode_component(session_id)) == session_id


def test_encoded_component_has_no_separator_or_dot_segments():
    for value in ("a/b", "..", ".", "/"):
        encoded = encode_component(value)
        assert "/" not in encoded
        assert encoded not in (".", "..")


def test_separator_lookalikes_do_not_share_prefixes():
    # Without escaping, ("a", "b_part_1") would sit inside the prefix of ("a", "b")
    inner = UploadKeys.chunk("a", "b_part_1", 0)
    assert not inner.startswith(UploadKeys.session_prefix("a", "b"))

    # ("a/b", "c") and ("a", "b/c") must not collide either
    assert UploadKeys.session_prefix("a/b", "c") != UploadKeys.session_prefix("a", "b/c")


def test_prefixes_are_disjoint_for_distinct_pairs():
    pairs = [("a", "b"), ("a", "bc"), ("ab", "c"), ("a", "b.c"), ("a.b", "c"), ("a", "b/c")]
    prefixes = [UploadKeys.session_prefix(s, f) for s, f in pairs]
    for i, p in enumerate(prefixes):
        for j, q in enumerate(prefixes):
            if i != j:
                assert not p.startswith(q)


def test_merged_key_never_lands_in_chunk_namespace():
    merged = UploadKeys.merged("x", "y")
    assert not merged.startswith("chunks/")
    with pytest.raises(CorruptionError):
        UploadKeys.parse_chunk(merged)


@pytest.mark.parametrize("leaf", ["part_", "part_01", "part_-1", "part_1a", "part_ 1", "chunk_1", "part_1/x"])
def test_chunk_index_rejects_non_canonical_keys(leaf):
    prefix = UploadKeys.session_prefix("s", "f")
    with pytest.raises(CorruptionError):
        UploadKeys.chunk_index(prefix, prefix + leaf)


def test_chunk_index_parses_numbers_numerically():
    prefix = UploadKeys.session_prefix("s", "f")
    assert UploadKeys.chunk_index(prefix, prefix + "part_0") == 0
    assert UploadKeys.chunk_index(prefix, prefix + "part_10") == 10


def test_parse_chunk_rejects_non_canonical_encoding():
    # "a.b" must be stored as "a%2Eb"; a raw dot means someone else wrote the key
    with pytest.raises(CorruptionError):
        UploadKeys.parse_chunk("chunks/s/a.b/part_0")


def test_empty_identifiers_rejected():
    with pytest.raises(ClientInputError) as exc:
        UploadKeys.chunk("", "f", 0)
    assert exc.value.field == "sessionID"
    with pytest.raises(ClientInputError) as exc:
        UploadKeys.merged("s", "")
    assert exc.value.field == "filename"


def test_negative_index_rejected():
    with pytest.raises(ClientInputError) as exc:
        UploadKeys.chunk("s", "f", -1)
    assert exc.value.field == "chunkIndex"


def test_overlong_key_rejected():
    with pytest.raises(ClientInputError) as exc:
        UploadKeys.chunk("s", "x" * 1100, 0)
    assert exc.value.field == "filename"


def test_segment_limit_applies_to_encoded_form():
    # 90 CJK characters are 270 UTF-8 bytes and 810 bytes once percent-encoded
    with pytest.raises(ClientInputError) as exc:
        UploadKeys.merged("s", "文" * 90)
    assert exc.value.field == "filename"
    with pytest.raises(ClientInputError) as exc:
        UploadKeys.session_prefix("文" * 90, "f")
    assert exc.value.field == "sessionID"

    assert UploadKeys.merged("s", "x" * 255) == "merged/s/" + "x" * 255


def test_parse_chunk_with_overlong_segment_is_corruption():
    with pytest.raises(CorruptionError):
        UploadKeys.parse_chunk("chunks/s/" + "x" * 300 + "/part_0")
