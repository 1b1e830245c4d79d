"""
OneBot segment parsing and CQ codes.
"""

from services.message import Segment, cq_escape, cq_unescape, parse_message


def test_parse_segment_array():
    segments = parse_message([
        {"type": "text", "data": {"text": "hi "}},
        {"type": "at", "data": {"qq": "123"}},
        {"type": "face"},
    ])
    assert segments == [Segment.text("hi "), Segment("at", {"qq": "123"}), Segment("face", {})]


def test_parse_cq_string():
    segments = parse_message("[CQ:reply,id=5]hello &#91;x&#93; [CQ:at,qq=10] bye")
    assert segments == [
        Segment("reply", {"id": "5"}),
        Segment.text("hello [x] "),
        Segment("at", {"qq": "10"}),
        Segment.text(" bye"),
    ]


def test_parse_cq_params_unescaped():
    (share,) = parse_message("[CQ:share,url=https://a.b/?x=1&amp;y=2,title=a&#44;b]")
    assert share.data == {"url": "https://a.b/?x=1&y=2", "title": "a,b"}


def test_parse_cq_without_params():
    assert parse_message("[CQ:shake]") == [Segment("shake", {})]


def test_parse_empty_and_none():
    assert parse_message(None) == []
    assert parse_message("") == []
    assert parse_message([]) == []


def test_str_of_text_is_raw():
    assert str(Segment.text("a [b] & c")) == "a [b] & c"


def test_str_of_other_is_cq_code():
    assert str(Segment("mface", {"summary": "[ok]", "id": "1,2"})) == "[CQ:mface,summary=&#91;ok&#93;,id=1&#44;2]"


def test_escape_unescape_ampersand_order():
    assert cq_unescape("&amp;#91;") == "&#91;"
    assert cq_unescape(cq_escape("a,&[]", param=True)) == "a,&[]"
