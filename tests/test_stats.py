"""Tests for arboreo/stats.py: ages, age groups and family statistics."""
import datetime as dt

import pytest

from arboreo import stats
from arboreo.models import AgeGroup, DataIntegrityError, Gender, InvalidDateError
from conftest import make_person

REF = dt.date(2024, 6, 15)


class TestAge:
    def test_year_only(self):
        p = make_person("Dec Baby", "1990-12-31")
        assert stats.age_of(p, dt.date(2024, 1, 1)) == 34

    def test_deceased_uses_death_date(self):
        p = make_person("Old Timer", "1900-05-01", death_date="1980-02-02")
        assert stats.age_of(p, REF) == 80

    @pytest.mark.parametrize("born, group", [
        (dt.date(2023, 1, 1), AgeGroup.INFANT),
        (dt.date(2022, 1, 1), AgeGroup.KID),
        (dt.date(2012, 1, 1), AgeGroup.KID),
        (dt.date(2011, 1, 1), AgeGroup.ADULT),
        (dt.date(1960, 1, 1), AgeGroup.ADULT),
        (dt.date(1959, 1, 1), AgeGroup.SENIOR),
    ])
    def test_age_group_thresholds(self, born, group):
        assert stats.age_group(born, REF) == group

    def test_invalid_date(self):
        p = make_person("Bad Date", "1990-01-01")
        p.date_of_birth = "1990-13-45"
        with pytest.raises(InvalidDateError):
            stats.age_of(p, REF)


class TestAggregate:
    def test_counts_and_average(self):
        people = [
            make_person("One Year", "2023-03-01"),
            make_person("Ten Years", "2014-03-01", Gender.FEMALE),
            make_person("Thirty Years", "1994-03-01", Gender.TRANS),
            make_person("Seventy Years", "1954-03-01"),
        ]
        result = stats.aggregate(people, REF)
        assert result.total_members == 4
        assert result.living_members == 4
        assert result.deceased_members == 0
        assert result.average_age == 27.75
        assert result.age_group_distribution == {"infant": 1, "kid": 1, "adult": 1, "senior": 1}
        assert result.gender_distribution == {"male": 2, "female": 1, "trans": 1}

    def test_common_names(self):
        people = [
            make_person("Anna Lee", "1990-01-01"),
            make_person("Bob Lee", "1990-01-01"),
            make_person("Anna Kim", "1990-01-01"),
        ]
        result = stats.aggregate(people, REF)
        assert (result.common_first_names[0].name, result.common_first_names[0].count) == ("Anna", 2)
        assert (result.common_last_names[0].name, result.common_last_names[0].count) == ("Lee", 2)
        assert [n.name for n in result.common_first_names] == ["Anna", "Bob"]

    def test_top_five(self):
        people = [make_person(f"Name{i} Family{i}", "1990-01-01") for i in range(8)]
        result = stats.aggregate(people, REF)
        assert len(result.common_first_names) == 5
        assert [n.name for n in result.common_first_names][:2] == ["Name0", "Name1"]

    def test_deceased_counted(self):
        people = [
            make_person("Alive Person", "1980-01-01"),
            make_person("Gone Person", "1930-01-01", death_date="2000-01-01"),
        ]
        result = stats.aggregate(people, REF)
        assert result.living_members == 1
        assert result.deceased_members == 1
        assert result.average_age == (44 + 70) / 2

    def test_empty(self):
        result = stats.aggregate([], REF)
        assert result.total_members == 0
        assert result.average_age is None
        assert result.gender_distribution == {"male": 0, "female": 0, "trans": 0}
        assert result.common_first_names == []

    def test_unknown_gender(self):
        p = make_person("Odd One", "1990-01-01")
        p.gender = "robot"
        with pytest.raises(DataIntegrityError):
            stats.aggregate([p], REF)
