import json

import pytest

from conftest import make_job
from subwatch.errors import ConfigError
from subwatch.filtering import (
    ACCEPT,
    DEFAULT_RULES,
    REJECT,
    UNCERTAIN,
    classify_job,
    is_blacklisted,
    is_nearby,
    load_rules,
    school_level_verdict,
    subject_verdict,
)
from subwatch.models import DayDetail, Job


class TestAxes:
    def test_subject_reject_wins_over_accept(self) -> None:
        # "english language learner" is rejected even though "english" is accepted
        assert subject_verdict("English Language Learner") == REJECT

    def test_subject_accept(self) -> None:
        assert subject_verdict("World History") == ACCEPT

    def test_subject_unknown_is_uncertain(self) -> None:
        assert subject_verdict("Teacher Aide") == UNCERTAIN

    def test_school_level_reject_before_accept(self) -> None:
        assert school_level_verdict("Elementary High School Annex") == REJECT

    def test_school_level_unknown_rejects(self) -> None:
        assert school_level_verdict("District Office") == REJECT

    def test_school_level_accepts_junior_high(self) -> None:
        assert school_level_verdict("Orem Junior High") == ACCEPT

    def test_identity_lists_are_case_insensitive(self) -> None:
        assert is_blacklisted("WESTLAKE HIGH SCHOOL")
        assert is_nearby("timpanogos HIGH school")
        assert not is_nearby("Lone Peak High School")


class TestClassifyJob:
    def test_rejected_subject_rejects_regardless_of_rest(self) -> None:
        job = make_job(school="Lone Peak High School", position="Spanish", duration="Full Day")
        result = classify_job(job)
        assert result.match is False
        assert "Subject rejected" in result.reason

    def test_full_day_accepted_subject_is_certain_match(self) -> None:
        job = make_job(school="Timpanogos High School", position="US History", duration="Full Day")
        result = classify_job(job)
        assert result.match is True
        assert result.uncertain is False

    def test_full_day_uncertain_subject_is_uncertain_match(self) -> None:
        result = classify_job(make_job(position="Teacher Aide"))
        assert result.match is True
        assert result.uncertain is True

    def test_half_day_nearby_accepted_subject_is_uncertain_match(self) -> None:
        job = make_job(school="Timpanogos High School", position="US History", duration="Half Day AM")
        result = classify_job(job)
        assert result.match is True
        assert result.uncertain is True

    def test_half_day_not_nearby_rejects(self) -> None:
        job = make_job(school="Lone Peak High School", position="US History", duration="Half Day AM")
        assert classify_job(job).match is False

    def test_half_day_nearby_uncertain_subject_rejects(self) -> None:
        job = make_job(school="Timpanogos High School", position="Teacher Aide", duration="Half Day PM")
        assert classify_job(job).match is False

    def test_blacklisted_full_day_is_uncertain_match(self) -> None:
        job = make_job(school="Westlake High School", position="US History", duration="Full Day")
        result = classify_job(job)
        assert result.match is True
        assert result.uncertain is True

    def test_blacklisted_half_day_rejects_even_if_nearby(self) -> None:
        rules = DEFAULT_RULES.__class__(nearby_schools=["westlake high school"])
        job = make_job(school="Westlake High School", position="US History", duration="Half Day")
        assert classify_job(job, rules).match is False

    def test_blacklist_skips_school_level_check(self) -> None:
        # "Saratoga Springs" carries no level keyword but is on the blacklist
        job = make_job(school="Saratoga Springs Campus", position="Biology", duration="Full Day")
        result = classify_job(job)
        assert result.match is True
        assert result.uncertain is True

    def test_elementary_rejected(self) -> None:
        job = make_job(school="Cascade Elementary", position="US History")
        assert classify_job(job).match is False

    def test_unknown_duration_rejects(self) -> None:
        assert classify_job(make_job(duration="Custom")).match is False

    def test_multi_day_all_full_days_match(self) -> None:
        days = (
            DayDetail(date="Mon, 10/20/2025", duration="Full Day", location="Timpanogos High School"),
            DayDetail(date="Tue, 10/21/2025", duration="Full Day", location="Timpanogos High School"),
        )
        job = make_job(is_multi_day=True, days=days)
        assert classify_job(job).match is True

    def test_multi_day_with_half_day_is_treated_as_half_day(self) -> None:
        days = (
            DayDetail(date="Mon, 10/20/2025", duration="Full Day"),
            DayDetail(date="Tue, 10/21/2025", duration="Half Day PM"),
        )
        job = make_job(school="Lone Peak High School", is_multi_day=True, days=days)
        assert classify_job(job).match is False

    def test_missing_fields_never_raise(self) -> None:
        job = Job(date=None, school=None, position=None, duration=None)
        result = classify_job(job)
        assert result.match is False


class TestLoadRules:
    def test_missing_file_returns_defaults(self, tmp_path) -> None:
        assert load_rules(tmp_path / "nope.json") is DEFAULT_RULES

    def test_overrides_one_list(self, tmp_path) -> None:
        p = tmp_path / "filters.json"
        p.write_text(json.dumps({"nearby_schools": ["Lone Peak High School"]}), encoding="utf-8")
        rules = load_rules(p)
        assert rules.nearby_schools == ["lone peak high school"]
        assert rules.accepted_subjects == DEFAULT_RULES.accepted_subjects

        job = make_job(school="Lone Peak High School", duration="Half Day")
        assert classify_job(job, rules).match is True

    def test_unknown_key_raises(self, tmp_path) -> None:
        p = tmp_path / "filters.json"
        p.write_text(json.dumps({"favourite_schools": []}), encoding="utf-8")
        with pytest.raises(ConfigError):
            load_rules(p)

    def test_malformed_json_raises(self, tmp_path) -> None:
        p = tmp_path / "filters.json"
        p.write_text("{not json", encoding="utf-8")
        with pytest.raises(ConfigError):
            load_rules(p)
