"""
Tests for rule-based field extraction.

Covers:
- Keyword priority detection and its ordering
- Title cleanup
- Fixed description/status
- Purity (same input, same output)
"""

from datetime import datetime, timezone

import pytest

from engine.fallback import FallbackExtractor, clean_title, detect_priority
from engine.models import ExtractedTaskFields, TaskPriority, TaskStatus


@pytest.fixture
def fallback():
    return FallbackExtractor()


class TestPriority:
    @pytest.mark.parametrize("transcript, expected", [
        ("this is urgent, call the vendor", TaskPriority.URGENT),
        ("Critical: database is down", TaskPriority.URGENT),
        ("high priority review the contract", TaskPriority.HIGH),
        ("important: send the invoice", TaskPriority.HIGH),
        ("low priority: clean desk", TaskPriority.LOW),
        ("water the plants", None),
    ])
    def test_keywords(self, transcript, expected):
        assert detect_priority(transcript) == expected

    def test_urgent_wins_over_low(self):
        assert detect_priority("low priority but actually urgent") == TaskPriority.URGENT

    def test_absent_priority_is_not_medium(self, fallback, utc_ctx):
        assert fallback.extract("water the plants", utc_ctx).priority is None


class TestTitle:
    def test_strips_priority_prefix(self):
        assert clean_title("low priority: clean desk") == "clean desk"

    def test_strips_date_phrase(self):
        assert clean_title("Finish the slides by Friday afternoon") == "Finish the slides"

    def test_strips_keyword_mid_sentence(self):
        title = clean_title("this is urgent, call the vendor")
        assert "urgent" not in title.lower()
        assert "call the vendor" in title

    def test_falls_back_to_transcript_when_empty(self):
        assert clean_title("urgent") == "urgent"

    def test_plain_text_untouched(self):
        assert clean_title("Pick up groceries") == "Pick up groceries"


class TestFallbackExtractor:
    def test_fields(self, fallback, ny_ctx):
        fields = fallback.extract("urgent: remind me tomorrow at 5 PM", ny_ctx)
        assert isinstance(fields, ExtractedTaskFields)
        assert fields.priority == TaskPriority.URGENT
        assert fields.status == TaskStatus.TODO
        assert fields.description is None
        assert fields.due_date == datetime(2024, 6, 11, 21, 0, tzinfo=timezone.utc)

    def test_no_date(self, fallback, utc_ctx):
        fields = fallback.extract("buy milk", utc_ctx)
        assert fields.due_date is None
        assert fields.title == "buy milk"

    def test_idempotent(self, fallback, ny_ctx):
        transcript = "important: file the expense report by Friday afternoon"
        assert fallback.extract(transcript, ny_ctx) == fallback.extract(transcript, ny_ctx)

    def test_empty_transcript_never_raises(self, fallback, utc_ctx):
        fields = fallback.extract("", utc_ctx)
        assert fields.status == TaskStatus.TODO
        assert fields.priority is None
