from datetime import UTC, datetime
from pathlib import Path

from geo.coords import extract_decimal_coords
from ingest.models import Category, FeedConfig, FeedFormat
from ingest.parsers.base import parse_feed_datetime
from ingest.parsers.dispatch import parse_feed, resolve_format, sniff_format
from ingest.parsers.hospital import parse_hospital_json
from ingest.parsers.json import parse_json_feed
from ingest.parsers.rss import parse_rss
from ingest.parsers.xml import parse_custom_xml


FIXTURES = Path(__file__).resolve().parent / "fixtures"
FETCHED_AT = datetime(2026, 10, 18, 12, 0, tzinfo=UTC)


def _feed(slug: str, fmt: FeedFormat | None = None) -> FeedConfig:
    return FeedConfig(id=f"id-{slug}", slug=slug, url=f"https://example.test/{slug}", format=fmt)


def _read(name: str) -> str:
    return (FIXTURES / name).read_text(encoding="utf-8")


def test_parse_feed_datetime_formats() -> None:
    assert parse_feed_datetime("Sun, 18 Oct 2026 09:15:00 +0800") == datetime(
        2026, 10, 18, 1, 15, tzinfo=UTC
    )
    assert parse_feed_datetime("2026-10-18T02:00:00Z") == datetime(
        2026, 10, 18, 2, 0, tzinfo=UTC
    )
    assert parse_feed_datetime("18/10/2026 3:15pm") == datetime(
        2026, 10, 18, 15, 15, tzinfo=UTC
    )
    assert parse_feed_datetime("") is None
    assert parse_feed_datetime("not a date") is None


def test_parse_rss_fixture() -> None:
    feed = _feed("mtr_rail", FeedFormat.RSS)
    incidents = parse_rss(_read("sample.rss.xml"), feed, fetched_at=FETCHED_AT)
    assert len(incidents) == 3

    delayed = incidents[0]
    assert delayed.title == "Tsuen Wan Line service delayed"
    assert delayed.body == (
        "Train service on the Tsuen Wan Line is delayed due to a signalling fault."
    )
    assert delayed.category == Category.RAIL
    assert delayed.severity == 5
    assert delayed.relevance_score == 75
    assert delayed.source_updated_at == datetime(2026, 10, 18, 1, 15, tzinfo=UTC)
    assert delayed.id.startswith("mtr_rail_")

    assert incidents[1].severity == 2
    assert incidents[2].severity == 8
    assert incidents[2].relevance_score == 90


def test_parse_rss_ids_are_stable_across_fetches() -> None:
    feed = _feed("mtr_rail", FeedFormat.RSS)
    first = parse_rss(_read("sample.rss.xml"), feed, fetched_at=FETCHED_AT)
    second = parse_rss(
        _read("sample.rss.xml"), feed, fetched_at=datetime(2027, 1, 1, tzinfo=UTC)
    )
    assert [i.id for i in first] == [i.id for i in second]
    assert len({i.id for i in first}) == 3


def test_parse_rss_malformed_returns_empty() -> None:
    assert parse_rss("<rss><channel><item><title>", _feed("mtr_rail")) == []
    assert parse_rss("", _feed("mtr_rail")) == []


def test_parse_custom_xml_root_items() -> None:
    feed = _feed("td_special", FeedFormat.CUSTOM_XML)
    incidents = parse_custom_xml(_read("td_special.xml"), feed, fetched_at=FETCHED_AT)
    assert len(incidents) == 2

    tunnel = incidents[0]
    assert tunnel.title == "Major accident closes Lion Rock Tunnel"
    assert tunnel.category == Category.ROAD
    assert tunnel.severity == 7
    assert tunnel.latitude == 22.3505
    assert tunnel.longitude == 114.1781
    assert tunnel.starts_at == datetime(2026, 10, 18, 1, 40, tzinfo=UTC)
    assert tunnel.source_updated_at == datetime(2026, 10, 18, 1, 45, tzinfo=UTC)

    marathon = incidents[1]
    # non-numeric upstream severity falls back to the keyword tiers
    assert marathon.severity == 3
    assert marathon.latitude is None
    assert "Central & Western" in (marathon.body or "")


def test_parse_custom_xml_message_layout() -> None:
    feed = _feed("td_special", FeedFormat.CUSTOM_XML)
    incidents = parse_custom_xml(_read("td_messages.xml"), feed, fetched_at=FETCHED_AT)
    assert len(incidents) == 1
    assert incidents[0].title == "Traffic congestion on Tolo Highway"
    assert incidents[0].source_updated_at == datetime(2026, 10, 17, 23, 30, tzinfo=UTC)


def test_parse_custom_xml_malformed_returns_empty() -> None:
    feed = _feed("td_special", FeedFormat.CUSTOM_XML)
    assert parse_custom_xml("<root><item><title>broken", feed) == []
    assert parse_custom_xml("<root></root>", feed) == []


def test_parse_json_feed_items() -> None:
    feed = _feed("wsd_water", FeedFormat.JSON)
    incidents = parse_json_feed(_read("generic_items.json"), feed, fetched_at=FETCHED_AT)
    assert len(incidents) == 2
    assert incidents[0].title == "Water supply suspended in Mong Kok"
    assert incidents[0].severity == 8
    assert incidents[0].latitude == 22.3193
    assert incidents[0].source_updated_at == datetime(2026, 10, 18, 2, 0, tzinfo=UTC)
    assert incidents[1].title == "Fresh water cut notice"
    assert incidents[1].source_updated_at == datetime(2026, 10, 17, 19, 30, tzinfo=UTC)


def test_parse_json_feed_shapes() -> None:
    feed = _feed("wsd_water", FeedFormat.JSON)
    flat = parse_json_feed('[{"subject": "Notice A"}]', feed, fetched_at=FETCHED_AT)
    assert flat[0].title == "Notice A"
    assert flat[0].source_updated_at == FETCHED_AT

    data = parse_json_feed('{"data": [{"foo": 1}]}', feed, fetched_at=FETCHED_AT)
    assert data[0].title == "Item 1"
    assert data[0].body == '{"foo": 1}'

    assert parse_json_feed('{"unexpected": {"nested": []}}', feed) == []
    assert parse_json_feed("{not json", feed) == []


def test_parse_hospital_wait_time_shape() -> None:
    feed = _feed("ha_ae_waiting", FeedFormat.HOSPITAL_JSON)
    incidents = parse_hospital_json(_read("ha_wait_time.json"), feed, fetched_at=FETCHED_AT)
    assert [i.title for i in incidents] == [
        "A&E Waiting Time: Queen Elizabeth Hospital",
        "A&E Waiting Time: Tuen Mun Hospital",
        "A&E Waiting Time: North Lantau Hospital",
    ]
    assert [i.severity for i in incidents] == [9, 3, 1]
    assert [i.relevance_score for i in incidents] == [95, 65, 55]
    assert all(i.category == Category.UTILITY for i in incidents)
    assert incidents[0].latitude == 22.30884
    assert incidents[0].longitude == 114.174693
    assert incidents[0].source_updated_at == datetime(2026, 10, 18, 7, 15, tzinfo=UTC)


def test_parse_hospital_hosp_data_shape() -> None:
    feed = _feed("ha_ae_waiting", FeedFormat.HOSPITAL_JSON)
    incidents = parse_hospital_json(_read("ha_hosp_data.json"), feed, fetched_at=FETCHED_AT)
    assert len(incidents) == 2
    pwh, qmh = incidents
    assert pwh.severity == 7
    assert (pwh.latitude, pwh.longitude) == (22.380531, 114.202017)
    assert "Hospital Code: PWH" in (pwh.body or "")
    assert (qmh.latitude, qmh.longitude) == (22.270695, 114.131259)
    assert qmh.source_updated_at == datetime(2026, 10, 18, 7, 0, tzinfo=UTC)


def test_parse_hospital_unknown_shape() -> None:
    feed = _feed("ha_ae_waiting", FeedFormat.HOSPITAL_JSON)
    assert parse_hospital_json('{"hospitals": []}', feed) == []
    assert parse_hospital_json("[]", feed) == []
    assert parse_hospital_json("oops", feed) == []


def test_sniff_format() -> None:
    assert sniff_format("ha_ae_waiting", ' {"waitTime": []}') == FeedFormat.HOSPITAL_JSON
    assert sniff_format("wsd", "[]") == FeedFormat.JSON
    assert sniff_format("td_special", "<rss version='2.0'>") == FeedFormat.RSS
    assert sniff_format("td_special", "<root><item/></root>") == FeedFormat.CUSTOM_XML
    assert sniff_format("hko_warn", "<?xml version='1.0'?><rss>") == FeedFormat.RSS


def test_resolve_format_prefers_configuration() -> None:
    configured = _feed("td_special", FeedFormat.RSS)
    assert resolve_format(configured, "<root><item/></root>") == FeedFormat.RSS
    assert resolve_format(_feed("td_special"), "<root><item/></root>") == FeedFormat.CUSTOM_XML


def test_parse_feed_dispatches_by_format() -> None:
    incidents = parse_feed(
        _read("td_special.xml"), _feed("td_special"), fetched_at=FETCHED_AT
    )
    assert len(incidents) == 2
    incidents = parse_feed(
        _read("ha_wait_time.json"),
        _feed("ha_ae_waiting", FeedFormat.HOSPITAL_JSON),
        fetched_at=FETCHED_AT,
    )
    assert len(incidents) == 3


def test_parse_custom_xml_non_finite_severity_falls_back() -> None:
    content = (
        "<root>"
        "<item><title>Lane closure on Tsing Ma Bridge</title>"
        "<severity>NaN</severity><pubDate>2026-10-18 09:00</pubDate></item>"
        "<item><title>Signal failure at Mong Kok</title>"
        "<severity>1e999</severity><latitude>nan</latitude></item>"
        "<item><title>Road works notice</title><severity>4</severity></item>"
        "</root>"
    )
    incidents = parse_custom_xml(
        content, _feed("td_special", FeedFormat.CUSTOM_XML), fetched_at=FETCHED_AT
    )
    assert [i.severity for i in incidents] == [3, 3, 4]
    assert incidents[1].latitude is None


def test_undated_items_are_flagged() -> None:
    incidents = parse_rss(
        _read("undated.rss.xml"), _feed("hko_warn", FeedFormat.RSS), fetched_at=FETCHED_AT
    )
    undated, dated = incidents
    assert undated.source_dated is False
    assert undated.source_updated_at == FETCHED_AT
    assert dated.source_dated is True
    assert dated.source_updated_at == datetime(2026, 10, 17, 22, 0, tzinfo=UTC)


def test_parse_json_untitled_id_ignores_position() -> None:
    feed = _feed("wsd_water", FeedFormat.JSON)
    alone = parse_json_feed('[{"description": "Lane closed"}]', feed, fetched_at=FETCHED_AT)
    shifted = parse_json_feed(
        '[{"title": "Burst main"}, {"description": "Lane closed"}]',
        feed,
        fetched_at=FETCHED_AT,
    )
    assert alone[0].title == "Item 1"
    assert shifted[1].title == "Item 2"
    assert alone[0].id == shifted[1].id

    a = parse_json_feed('[{"description": "Lane closed", "road": "A"}]', feed)
    b = parse_json_feed('[{"description": "Lane closed", "road": "B"}]', feed)
    assert a[0].id != b[0].id


def test_extract_decimal_coords() -> None:
    assert extract_decimal_coords("22.380531,114.202017") == (22.380531, 114.202017)
    assert extract_decimal_coords("lat 22.3, 114.1 approx") == (22.3, 114.1)
    assert extract_decimal_coords("95.0,114.0") is None
    assert extract_decimal_coords("n/a") is None
    assert extract_decimal_coords(None) is None


def test_parse_hospital_bad_coordinate_uses_table() -> None:
    content = (
        '{"result": {"hospData": [{"hospCode": "QMH", "hospNameEn": "Queen Mary Hospital",'
        ' "topWait": "Around 1 hour", "hospCoord": "n/a"}]}}'
    )
    (qmh,) = parse_hospital_json(
        content, _feed("ha_ae_waiting", FeedFormat.HOSPITAL_JSON), fetched_at=FETCHED_AT
    )
    assert (qmh.latitude, qmh.longitude) == (22.270695, 114.131259)
    assert qmh.source_dated is False
