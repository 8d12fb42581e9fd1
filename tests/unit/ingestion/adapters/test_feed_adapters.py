"""
Unit tests for the config-driven feed adapters: Google Calendar, Google
Sheets, iCal, RSS, Meetup and static schedules.
"""

import datetime
import json
from urllib.parse import quote

import pytest

from hareline.configs.settings import get_settings
from hareline.ingestion.adapters.feeds import extract_feed_run_number, extract_people
from hareline.ingestion.adapters.google_calendar import API_URL, GoogleCalendarAdapter, extract_date_time
from hareline.ingestion.adapters.google_sheets import (
    CSV_URL,
    GoogleSheetsAdapter,
    infer_start_time,
    parse_sheet_date,
    tag_and_run_number,
)
from hareline.ingestion.adapters.ical_feed import ICalFeedAdapter, summary_title
from hareline.ingestion.adapters.meetup import MeetupAdapter
from hareline.ingestion.adapters.rss_feed import RssFeedAdapter
from hareline.ingestion.adapters.static_schedule import StaticScheduleAdapter, expand_occurrences
from hareline.ingestion.runtime.results import FetchResult
from hareline.schemas.source import GroupTagRules, StartTimeRules


CALENDAR_ID = "dc-hash@group.calendar.google.com"
CALENDAR_URL = API_URL.format(calendar_id=quote(CALENDAR_ID, safe=""))

CALENDAR_PAGE_1 = {
    "items": [
        {
            "summary": "EWH3 #1506: Revenge",
            "start": {"dateTime": "2026-02-19T18:45:00-05:00"},
            "location": "NoMa",
            "description": "Hares: Captain Hook",
            "htmlLink": "https://calendar.google.com/event?eid=1",
        },
        {"summary": "DCH4 Trail #2298", "start": {"date": "2026-02-07"}},
        {"status": "cancelled", "summary": "EWH3 #1500"},
        {"summary": "Cancelled: EWH3 pub crawl", "start": {"date": "2026-02-10"}},
        {"summary": "EWH3 #1507", "start": {"dateTime": "soon"}},
        {"summary": "Book club", "start": {"date": "2026-02-11"}},
    ],
    "nextPageToken": "page-2",
}
CALENDAR_PAGE_2 = {"items": [{"summary": "DCH4 Trail #2299", "start": {"date": "2026-02-14"}}]}

SHEET_CSV = "\n".join(
    [
        "Run,Date,Hares,Location,Title,Special",
        "1201,2/21/26,Alice,Pub A,Trail,",
        ",2/23/26,Bob,Pub B,Moon run,Full Moon",
        "1202,someday,Carol,Pub C,Bad,",
        ",,,,,",
        "1203,2/28/2026,Dan,,Sat run,",
        "1100,6/1/24,Old,Pub,Ancient,",
    ]
)

ICS = "\r\n".join(
    [
        "BEGIN:VCALENDAR",
        "VERSION:2.0",
        "PRODID:-//hareline tests//EN",
        "BEGIN:VEVENT",
        "UID:1",
        "SUMMARY:BFM #1701: Love Trail",
        "DTSTART;VALUE=DATE:20260214",
        "DESCRIPTION:Hares: Cupid",
        "LOCATION:Rittenhouse Square",
        "URL:https://bfm.example/1701",
        "END:VEVENT",
        "BEGIN:VEVENT",
        "UID:2",
        "SUMMARY:No Hash this week",
        "DTSTART:20260221T190000",
        "END:VEVENT",
        "BEGIN:VEVENT",
        "UID:3",
        "SUMMARY:BFM Social",
        "DTSTART:20260225T190000",
        "STATUS:CANCELLED",
        "END:VEVENT",
        "BEGIN:VEVENT",
        "UID:4",
        "SUMMARY:BFM retro",
        "DTSTART:19990101T190000",
        "END:VEVENT",
        "BEGIN:VEVENT",
        "UID:5",
        "SUMMARY:Philly trail #1702",
        "DTSTART:20260226T191500",
        "GEO:39.95;-75.16",
        "END:VEVENT",
        "END:VCALENDAR",
        "",
    ]
)

RSS = """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0"><channel><title>NYCH3</title><link>https://nych3.example</link>
<item>
  <title>NYCH3 Run #2105: Saturday February 21, 2026</title>
  <link>https://nych3.example/2105</link>
  <description>&lt;p&gt;Hares: Wally&lt;/p&gt;&lt;p&gt;Meet at 3pm&lt;/p&gt;</description>
  <pubDate>Mon, 16 Feb 2026 10:00:00 GMT</pubDate>
</item>
<item>
  <title>Mismanagement notes</title>
  <description>nothing to see</description>
</item>
<item>
  <title>NYCH3 Run #2106</title>
  <description>Hares: Zed</description>
  <pubDate>Mon, 23 Feb 2026 10:00:00 GMT</pubDate>
</item>
</channel></rss>
"""


# =============================================================================
# FIXTURES
# =============================================================================


class PagedHttp:
    """Serves one JSON page per ``pageToken`` parameter."""

    def __init__(self, pages):
        self.pages = pages
        self.calls = []

    def get(self, url, *, headers=None, params=None, cancel=None, timeout_s=None, retries=None):
        token = (params or {}).get("pageToken")
        self.calls.append(token)
        return FetchResult(final_url=url, status_code=200, text=json.dumps(self.pages[token]))


@pytest.fixture
def no_google_key(monkeypatch):
    monkeypatch.delenv("GOOGLE_API_KEY", raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def calendar_source(make_source):
    return make_source(
        "GOOGLE_CALENDAR",
        url=CALENDAR_ID,
        config={
            "calendarId": CALENDAR_ID,
            "groupPatterns": [["EWH3", "EWH3"], ["DCH4", "DCH4"]],
            "skipPatterns": ["cancel+ed"],
        },
    )


@pytest.fixture
def sheet_source(make_source):
    return make_source(
        "GOOGLE_SHEETS",
        url="https://docs.google.com/spreadsheets/d/abc",
        config={
            "sheetId": "abc",
            "tabs": ["2026"],
            "columnMap": {"runNumber": 0, "date": 1, "hares": 2, "location": 3, "title": 4, "specialRun": 5},
            "groupTagRules": {"default": "SH3", "specialRunMap": {"Full Moon": "FMH3"}},
            "startTimeRules": {"byDayOfWeek": {"Sat": "14:00", "Mon": "19:00"}, "default": "18:30"},
        },
    )


# =============================================================================
# TEST CLASSES
# =============================================================================


class TestFeedHelpers:
    """Tests for helpers shared by feed adapters."""

    def test_extract_people(self):
        """Should read a Hares or Who line and ignore generic answers."""
        assert extract_people("Where: Pub\nHares: Alice & Bob\n") == "Alice & Bob"
        assert extract_people("Who: that be you") is None
        assert extract_people(None) is None

    def test_feed_run_number(self):
        """Should prefer the summary number, else a standalone description line."""
        assert extract_feed_run_number("BFM #1701: Love Trail") == 1701
        assert extract_feed_run_number("Trail", "Details\n#2792\nMore") == 2792
        assert extract_feed_run_number("Trail", "no number") is None


class TestGoogleCalendar:
    """Tests for GoogleCalendarAdapter."""

    def test_extract_date_time_keeps_local_time(self):
        """Should keep the wall-clock time without shifting zones."""
        assert extract_date_time({"dateTime": "2026-02-19T18:45:00-05:00"}) == ("2026-02-19", "18:45")
        assert extract_date_time({"date": "2026-02-07"}) == ("2026-02-07", None)

    def test_fetch_paginates_and_isolates_bad_items(self, calendar_source, options):
        """Should follow page tokens and keep good items when one fails."""
        http = PagedHttp({None: CALENDAR_PAGE_1, "page-2": CALENDAR_PAGE_2})
        result = GoogleCalendarAdapter(http, api_key="k").fetch(calendar_source, options)

        assert http.calls == [None, "page-2"]
        assert [e.group_tag for e in result.events] == ["EWH3", "DCH4", "DCH4"]
        first = result.events[0]
        assert (first.date, first.start_time, first.run_number) == ("2026-02-19", "18:45", 1506)
        assert first.people == "Captain Hook"
        assert first.source_url == "https://calendar.google.com/event?eid=1"

        sections = {e.section for e in result.error_details.parse}
        assert sections == {"calendar_events"}
        assert len(result.error_details.parse) == 2
        ctx = result.diagnostic_context
        assert ctx["pagesProcessed"] == 2
        assert ctx["cancelledItems"] == 1
        assert ctx["skippedItems"] == 1

    def test_missing_api_key(self, fake_http, calendar_source, options, no_google_key):
        """Should fail fast with a fetch error when no key is configured."""
        result = GoogleCalendarAdapter(fake_http).fetch(calendar_source, options)
        assert result.errors == ["GOOGLE_API_KEY is not configured"]
        assert fake_http.calls == []

    def test_api_error_status(self, fake_http, calendar_source, options):
        """Should record an HTTP failure as a fetch error."""
        fake_http.add(CALENDAR_URL, "{}", status=403)
        result = GoogleCalendarAdapter(fake_http, api_key="k").fetch(calendar_source, options)
        assert result.events == []
        assert result.error_details.fetch[0].status == 403


class TestGoogleSheets:
    """Tests for GoogleSheetsAdapter and its helpers."""

    @pytest.mark.parametrize(
        "cell,expected",
        [("2/21/26", "2026-02-21"), ("2-21-2026", "2026-02-21"), ("12/05/99", "1999-12-05"), ("soon", None)],
    )
    def test_parse_sheet_date(self, cell, expected):
        """Should read M/D/YY and M-D-YYYY cells."""
        assert parse_sheet_date(cell) == expected

    def test_infer_start_time(self):
        """Should pick the weekday rule, else the default."""
        rules = StartTimeRules(by_day_of_week={"Sat": "14:00"}, default="19:00")
        assert infer_start_time("2026-02-21", rules) == "14:00"
        assert infer_start_time("2026-02-24", rules) == "19:00"
        assert infer_start_time("2026-02-24", None) is None

    def test_tag_and_run_number(self):
        """Should map special runs before falling back to the default tag."""
        rules = GroupTagRules(default="SH3", special_run_map={"Full Moon": "FMH3"}, numeric_special_tag="SPECIAL")
        assert tag_and_run_number("1201", None, rules) == ("SH3", 1201)
        assert tag_and_run_number(None, "Full Moon", rules) == ("FMH3", None)
        assert tag_and_run_number(None, "42", rules) == ("SPECIAL", 42)
        assert tag_and_run_number("TBD", None, rules) is None

    def test_fetch_tab(self, fake_http, sheet_source, options):
        """Should build events per row and report a bad date against its tab."""
        fake_http.add(CSV_URL.format(sheet_id="abc", tab="2026"), SHEET_CSV)
        result = GoogleSheetsAdapter(fake_http).fetch(sheet_source, options)

        assert [(e.group_tag, e.run_number) for e in result.events] == [("SH3", 1201), ("FMH3", None), ("SH3", 1203)]
        assert [e.start_time for e in result.events] == ["14:00", "19:00", "14:00"]
        assert result.events[0].people == "Alice"
        assert result.events[2].location is None

        (error,) = result.error_details.parse
        assert error.section == "2026"
        assert "Unrecognized date" in error.error
        assert result.diagnostic_context["tabsProcessed"] == ["2026"]

    def test_failed_tab_is_isolated(self, fake_http, sheet_source, options):
        """Should record a failed tab and keep processing others."""
        sheet_source.config["tabs"] = ["2026", "2025"]
        fake_http.add(CSV_URL.format(sheet_id="abc", tab="2025"), SHEET_CSV)
        result = GoogleSheetsAdapter(fake_http).fetch(sheet_source, options)
        assert result.errors[0].startswith('Failed to fetch tab "2026"')
        assert len(result.events) == 3

    def test_tab_discovery_needs_key(self, fake_http, make_source, options, no_google_key):
        """Should refuse to discover tabs without an API key."""
        source = make_source("GOOGLE_SHEETS", config={"sheetId": "abc", "columnMap": {"date": 0}})
        result = GoogleSheetsAdapter(fake_http).fetch(source, options)
        assert "GOOGLE_API_KEY" in result.errors[0]


class TestICalFeed:
    """Tests for ICalFeedAdapter."""

    def test_summary_title(self):
        """Should drop the group and run prefix from a summary."""
        assert summary_title("SFH3 #2285: A Very Heated Rivalry") == "A Very Heated Rivalry"
        assert summary_title("Plain summary") == "Plain summary"

    def test_fetch(self, fake_http, make_source, options):
        """Should skip, count cancellations and apply the default tag."""
        url = "https://bfm.example/calendar.ics"
        fake_http.add(url, ICS)
        source = make_source(
            "ICAL_FEED",
            url=url,
            config={"defaultGroupTag": "BFM", "groupPatterns": [["BFM", "BFM"]], "skipPatterns": ["^no hash"]},
        )
        result = ICalFeedAdapter(fake_http).fetch(source, options)

        assert result.errors == []
        first, second = result.events
        assert (first.date, first.start_time) == ("2026-02-14", None)
        assert first.title == "Love Trail"
        assert first.run_number == 1701
        assert first.people == "Cupid"
        assert first.source_url == "https://bfm.example/1701"
        assert (second.date, second.start_time) == ("2026-02-26", "19:15")
        assert second.group_tag == "BFM"
        assert "39.95" in second.location_url
        ctx = result.diagnostic_context
        assert (ctx["totalVEvents"], ctx["skippedPattern"], ctx["cancelledEvents"], ctx["skippedDateRange"]) == (
            5,
            1,
            1,
            1,
        )

    def test_fetch_error(self, fake_http, make_source, options):
        """Should report an unreachable feed."""
        source = make_source("ICAL_FEED", url="https://gone.example/feed.ics", config={"defaultGroupTag": "BFM"})
        result = ICalFeedAdapter(fake_http).fetch(source, options)
        assert result.errors[0].startswith("iCal fetch failed")


class TestRssFeed:
    """Tests for RssFeedAdapter."""

    def test_fetch(self, fake_http, make_source, options):
        """Should date entries from text, then publish date, and isolate failures."""
        url = "https://nych3.example/feed"
        fake_http.add(url, RSS)
        source = make_source("RSS_FEED", url=url, config={"groupPatterns": [["NYCH3", "NYCH3"]]})
        result = RssFeedAdapter(fake_http).fetch(source, options)

        first, second = result.events
        assert first.date == "2026-02-21"
        assert first.run_number == 2105
        assert first.people == "Wally"
        assert first.start_time == "15:00"
        assert first.source_url == "https://nych3.example/2105"
        assert second.date == "2026-02-23"
        assert second.group_tag == "NYCH3"

        (error,) = result.error_details.parse
        assert error.section == "items"
        assert error.partial_data == {"title": "Mismanagement notes"}

    def test_entity_encoded_summary(self, fake_http, make_source, options):
        """Should decode entities left in the HTML summary before reading labels."""
        url = "https://nych3.example/entities"
        fake_http.add(
            url,
            """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0"><channel><title>NYCH3</title>
<item>
  <title>NYCH3 Run #2107: Saturday February 28, 2026</title>
  <description>&lt;p&gt;Hares: Tom &amp;amp; Jerry&lt;/p&gt;</description>
</item>
</channel></rss>
""",
        )
        source = make_source("RSS_FEED", url=url, config={"groupPatterns": [["NYCH3", "NYCH3"]]})
        (event,) = RssFeedAdapter(fake_http).fetch(source, options).events
        assert event.people == "Tom & Jerry"
        assert "&amp;" not in (event.description or "")


class TestMeetup:
    """Tests for MeetupAdapter."""

    def test_fetch(self, fake_http, make_source, options):
        """Should tag every event with the configured group and isolate bad items."""
        items = [
            {
                "id": "1",
                "name": "BoH3 Trail #2500",
                "local_date": "2026-02-22",
                "local_time": "14:00",
                "description": "<p>Hares: Mo</p>",
                "venue": {"name": "Fenway", "city": "Boston"},
                "link": "https://meetup.example/1",
            },
            {"id": "2", "name": "Old", "local_date": "2024-01-01"},
            {"id": "3", "name": "Broken"},
        ]
        fake_http.add("https://api.test/boston-h3/events", json.dumps(items))
        source = make_source("MEETUP", config={"groupUrlName": "boston-h3", "groupTag": "BoH3"})
        result = MeetupAdapter(fake_http, api_base="https://api.test/").fetch(source, options)

        (event,) = result.events
        assert event.group_tag == "BoH3"
        assert event.location == "Fenway, Boston"
        assert event.people == "Mo"
        assert event.start_time == "14:00"
        assert len(result.error_details.parse) == 1
        ctx = result.diagnostic_context
        assert (ctx["eventsFound"], ctx["skippedDateRange"], ctx["eventsParsed"]) == (3, 1, 1)

    def test_entity_encoded_description(self, fake_http, make_source, options):
        """Should decode entities in the description as well as stripping tags."""
        items = [
            {
                "id": "1",
                "name": "BoH3 Trail #2501",
                "local_date": "2026-03-01",
                "description": "<p>Hares: Tom &amp; Jerry</p><p>Bring &quot;shiggy&quot; shoes</p>",
            }
        ]
        fake_http.add("https://api.test/boston-h3/events", json.dumps(items))
        source = make_source("MEETUP", config={"groupUrlName": "boston-h3", "groupTag": "BoH3"})
        (event,) = MeetupAdapter(fake_http, api_base="https://api.test/").fetch(source, options).events
        assert event.people == "Tom & Jerry"
        assert event.description == 'Hares: Tom & Jerry\nBring "shiggy" shoes'

    def test_missing_config(self, fake_http, make_source, options):
        """Should refuse to fetch without groupUrlName and groupTag."""
        result = MeetupAdapter(fake_http, api_base="https://api.test").fetch(make_source("MEETUP"), options)
        assert result.errors == ["Meetup source needs groupUrlName and groupTag"]


class TestStaticSchedule:
    """Tests for StaticScheduleAdapter."""

    def test_expand_weekly(self):
        """Should list occurrences inside the inclusive range."""
        dates = expand_occurrences(
            "FREQ=WEEKLY;BYDAY=SA", datetime.date(2026, 2, 1), datetime.date(2026, 2, 1), datetime.date(2026, 2, 28)
        )
        assert dates == ["2026-02-07", "2026-02-14", "2026-02-21", "2026-02-28"]

    def test_fetch_monthly_from_anchor(self, make_source, options):
        """Should generate third Fridays from the anchor date within the window."""
        source = make_source(
            "STATIC_SCHEDULE",
            config={
                "groupTag": "FMH3",
                "recurrenceRule": "RRULE:FREQ=MONTHLY;BYDAY=+3FR",
                "anchorDate": "2026-01-16",
                "startTime": "19:00",
                "defaultTitle": "Full Moon Hash",
            },
        )
        result = StaticScheduleAdapter().fetch(source, options)
        assert [e.date for e in result.events] == [
            "2026-01-16",
            "2026-02-20",
            "2026-03-20",
            "2026-04-17",
            "2026-05-15",
        ]
        assert {e.start_time for e in result.events} == {"19:00"}
        assert result.events[0].title == "Full Moon Hash"

    def test_bad_rule(self, make_source, options):
        """Should report an invalid rule as a fetch error."""
        source = make_source("STATIC_SCHEDULE", config={"groupTag": "X", "recurrenceRule": "FREQ=SOMETIMES"})
        result = StaticScheduleAdapter().fetch(source, options)
        assert result.events == []
        assert result.errors[0].startswith("Invalid recurrence rule")
