"""
Tests for the pure scheduling resolvers.

No database is involved: schedules are built from dataclasses or plain
mappings exactly as the ORM source would hand them over.
"""
import inspect
from datetime import date

import pytest

from scheduling.exceptions import InvalidScheduleData, InvalidTime
from scheduling.services.availability import (
    SOURCE_OVERRIDE,
    SOURCE_WEEKLY,
    WorkingHoursReason,
    check_working_hours,
    resolve_availability,
    resolve_day,
)
from scheduling.services.horizon import scan_horizon
from scheduling.services.overrides import open_intervals_for_date, override_for_date
from scheduling.services.schedule import DateOverride, OverrideSlot, PractitionerSchedule, WeeklyRule
from scheduling.services.slots import generate_slots
from scheduling.services.stats import summarize_week
from scheduling.services.templates import intervals_for_weekday, rules_for_weekday
from scheduling.services.timeutils import ClockTime, Interval

SUNDAY = date(2024, 6, 2)
MONDAY = date(2024, 6, 3)
TUESDAY = date(2024, 6, 4)


def rule(weekday, start, end, **extra):
    return {'weekday': weekday, 'start_time': start, 'end_time': end, **extra}


def office_week():
    return [
        rule(day, '07:30', '17:00', break_start='11:30', break_end='13:30', id=day)
        for day in range(1, 6)
    ]


def starts(slots):
    return [str(s.start) for s in slots]


# --- weekly template -------------------------------------------------------

def test_rules_for_weekday_keeps_split_shifts_in_input_order():
    rules = [rule(1, '14:00', '17:00', id='b'), rule(2, '08:00', '12:00'), rule(1, '08:00', '11:00', id='a')]
    matched = rules_for_weekday(rules, 'Thứ 2')
    assert [r.record_id for r in matched] == ['b', 'a']
    assert rules_for_weekday(rules, 'SUNDAY') == []


def test_camel_case_records_are_accepted():
    rules = [{'dayOfWeek': 'MONDAY', 'startTime': '08:00', 'endTime': '12:00'}]
    assert intervals_for_weekday(rules, 1) == [Interval(480, 720)]


def test_break_splits_rule_into_two_intervals():
    [r] = rules_for_weekday(office_week()[:1], 1)
    assert r.intervals() == [Interval(450, 690), Interval(810, 1020)]
    assert r.working_minutes == 450


def test_break_touching_the_shift_edge_leaves_one_interval():
    r = WeeklyRule(1, ClockTime(8, 0), ClockTime(12, 0), break_start=ClockTime(8, 0), break_end=ClockTime(9, 0))
    assert r.intervals() == [Interval(540, 720)]
    assert rules_for_weekday([r], 'MONDAY') == [r]


def test_effective_window_drops_rules_outside_it():
    rules = [
        rule(1, '08:00', '12:00', effective_from='2024-06-10'),
        rule(1, '13:00', '15:00', effective_to='2024-06-03'),
    ]
    assert intervals_for_weekday(rules, 1, on=MONDAY) == [Interval(780, 900)]
    assert intervals_for_weekday(rules, 1, on=date(2024, 6, 10)) == [Interval(480, 720)]


@pytest.mark.parametrize('bad', [
    rule(1, '12:00', '08:00'),
    rule(1, '08:00', '08:00'),
    rule(9, '08:00', '12:00'),
    rule('Funday', '08:00', '12:00'),
    rule(1, '08:00', '12:00', break_start='10:00'),
    rule(1, '08:00', '12:00', break_start='11:00', break_end='13:00'),
    rule(1, '08:00', '12:00', effective_from='2024-07-01', effective_to='2024-06-01'),
    {'start_time': '08:00', 'end_time': '12:00'},
])
def test_malformed_rules_raise(bad):
    with pytest.raises(InvalidScheduleData):
        rules_for_weekday([bad], 1)


def test_malformed_rule_for_another_weekday_still_raises():
    with pytest.raises(InvalidScheduleData):
        rules_for_weekday([rule(1, '08:00', '12:00'), rule(3, '18:00', '09:00')], 1)


def test_bad_clock_in_record_is_chained_to_invalid_time():
    with pytest.raises(InvalidScheduleData) as info:
        rules_for_weekday([rule(1, '25:00', '26:00', id=42)], 1)
    assert isinstance(info.value.__cause__, InvalidTime)
    assert info.value.record == 42
    assert '(record 42)' in str(info.value)


# --- date overrides --------------------------------------------------------

def test_override_lookup_distinguishes_absent_from_closed():
    overrides = [{'date': '2024-06-03', 'slots': [], 'reason': 'Nghỉ phép'}]
    assert open_intervals_for_date(overrides, TUESDAY) is None
    assert open_intervals_for_date(overrides, MONDAY) == []
    assert override_for_date(overrides, MONDAY).is_closed


def test_override_keeps_only_open_slots_in_stored_order():
    override = DateOverride(MONDAY, slots=(
        OverrideSlot(ClockTime(14, 0), ClockTime(15, 0)),
        OverrideSlot(ClockTime(9, 0), ClockTime(10, 0), is_open=False),
        OverrideSlot(ClockTime(8, 0), ClockTime(9, 0)),
    ))
    assert open_intervals_for_date([override], MONDAY) == [Interval(840, 900), Interval(480, 540)]


@pytest.mark.parametrize('flag, expected', [
    ('false', []), ('0', []), (False, []),
    ('True', [Interval(540, 600)]), (1, [Interval(540, 600)]),
])
def test_override_slot_open_flag_from_json(flag, expected):
    override = DateOverride.coerce({'date': '2024-06-03',
                                    'slots': [{'start': '09:00', 'end': '10:00', 'isOpen': flag}]})
    assert override.open_intervals() == expected


@pytest.mark.parametrize('flag', ['no', '', 2, [True]])
def test_override_slot_open_flag_must_be_boolean(flag):
    with pytest.raises(InvalidScheduleData):
        DateOverride.coerce({'date': MONDAY, 'slots': [{'start': '09:00', 'end': '10:00', 'is_open': flag}]})


def test_duplicate_overrides_for_a_date_are_invalid():
    overrides = [{'id': 1, 'date': MONDAY, 'slots': []}, {'id': 2, 'date': MONDAY, 'slots': []}]
    with pytest.raises(InvalidScheduleData):
        override_for_date(overrides, MONDAY)


def test_override_slot_with_start_after_end_is_invalid():
    overrides = [{'specificDate': '2024-06-03', 'slots': [{'startTime': '10:00', 'endTime': '09:00'}]}]
    with pytest.raises(InvalidScheduleData):
        override_for_date(overrides, MONDAY)


# --- slot generation -------------------------------------------------------

def test_last_slot_ending_on_boundary_is_included():
    slots = list(generate_slots([Interval(540, 600)], 30))
    assert starts(slots) == ['09:00', '09:30']
    assert str(slots[-1].end) == '10:00'


def test_remainder_shorter_than_a_slot_is_dropped():
    slots = generate_slots([Interval(540, 600)], 25)
    assert starts(slots) == ['09:00', '09:25']
    assert len(slots) == 2


def test_interval_shorter_than_slot_yields_nothing():
    assert list(generate_slots([Interval(540, 560)], 30)) == []
    assert not generate_slots([Interval(540, 560)], 30)


def test_slot_sequence_is_restartable_and_processes_intervals_independently():
    seq = generate_slots([Interval(540, 600), Interval(570, 630)], 30)
    first = list(seq)
    assert first == list(seq)
    assert starts(first) == ['09:00', '09:30', '09:30', '10:00']


def test_interval_ending_at_last_minute():
    slots = list(generate_slots([Interval(1380, 1439)], 30))
    assert starts(slots) == ['23:00']


@pytest.mark.parametrize('bad', [0, -30, 7.5, True])
def test_slot_duration_must_be_positive_int(bad):
    with pytest.raises(ValueError):
        generate_slots([Interval(540, 600)], bad)


# --- availability ----------------------------------------------------------

def test_monday_morning_gives_eight_half_hour_slots():
    schedule = PractitionerSchedule(1, weekly_rules=[rule('MONDAY', '08:00', '12:00')])
    slots = resolve_availability(schedule, MONDAY, 30)
    assert len(slots) == 8
    assert starts(slots)[0] == '08:00' and str(slots[-1].end) == '12:00'
    assert resolve_availability(schedule, TUESDAY) == []


def test_office_week_with_lunch_break():
    schedule = PractitionerSchedule(1, weekly_rules=office_week())
    slots = resolve_availability(schedule, MONDAY)
    assert len(slots) == 15
    assert '11:30' not in starts(slots) and '13:30' in starts(slots)


def test_override_replaces_weekly_template():
    schedule = PractitionerSchedule(
        1,
        weekly_rules=[rule(1, '08:00', '12:00')],
        date_overrides=[{'date': MONDAY, 'slots': [{'start': '13:00', 'end': '14:00'}]}],
    )
    day = resolve_day(schedule, MONDAY)
    assert day.source == SOURCE_OVERRIDE
    assert starts(day.slots) == ['13:00', '13:30']
    assert resolve_day(schedule, date(2024, 6, 10)).source == SOURCE_WEEKLY


def test_empty_override_closes_the_day():
    schedule = PractitionerSchedule(
        1,
        weekly_rules=[rule(1, '08:00', '12:00')],
        date_overrides=[{'date': MONDAY, 'slots': [], 'reason': 'Conference'}],
    )
    day = resolve_day(schedule, MONDAY)
    assert day.slots == () and not day.is_open
    assert day.reason == 'Conference'
    assert resolve_availability(schedule, MONDAY) == []


def test_override_with_only_closed_slots_closes_the_day():
    schedule = PractitionerSchedule(
        1,
        weekly_rules=[rule(1, '08:00', '12:00')],
        date_overrides=[{'date': MONDAY, 'slots': [{'start': '08:00', 'end': '12:00', 'is_open': False}]}],
    )
    assert resolve_availability(schedule, MONDAY) == []


def test_corrupt_schedule_raises_instead_of_returning_empty():
    schedule = PractitionerSchedule(1, weekly_rules=[rule(1, '12:00', '08:00', id=7)])
    with pytest.raises(InvalidScheduleData) as info:
        resolve_availability(schedule, MONDAY)
    assert info.value.record == 7


def test_resolution_is_idempotent():
    schedule = PractitionerSchedule(1, weekly_rules=office_week())
    assert resolve_availability(schedule, MONDAY) == resolve_availability(schedule, MONDAY)


def test_working_hours_check():
    schedule = PractitionerSchedule(1, weekly_rules=office_week())
    day = resolve_day(schedule, MONDAY)
    assert check_working_hours(day, ClockTime(9, 0), 30).available
    assert check_working_hours(day, ClockTime(11, 0), 30).interval == Interval(450, 690)

    lunch = check_working_hours(day, ClockTime(11, 15), 30)
    assert lunch.reason is WorkingHoursReason.OUTSIDE_WORKING_HOURS
    assert len(lunch.suggested_slots) == 15

    closed = check_working_hours(resolve_day(schedule, SUNDAY), ClockTime(9, 0), 30)
    assert closed.reason is WorkingHoursReason.NO_SCHEDULE


# --- horizon ---------------------------------------------------------------

def test_horizon_lists_open_days_ascending():
    schedule = PractitionerSchedule(1, weekly_rules=office_week())
    days = list(scan_horizon(schedule, 7, today=date(2024, 6, 1)))
    assert [d.date for d in days] == [date(2024, 6, d) for d in range(3, 8)]
    assert not any(d.is_today or d.is_tomorrow for d in days)
    assert days[0].weekday_code == 'MONDAY'
    assert days[0].as_dict()['display'] == '03/06/2024'


def test_horizon_flags_today_and_tomorrow():
    schedule = PractitionerSchedule(1, weekly_rules=office_week())
    days = list(scan_horizon(schedule, 2, today=MONDAY))
    assert [(d.is_today, d.is_tomorrow) for d in days] == [(True, False), (False, True)]
    assert days[1].weekday_label == 'Thứ 3'


def test_horizon_respects_overrides_and_bounds():
    schedule = PractitionerSchedule(
        1, weekly_rules=office_week(), date_overrides=[{'date': TUESDAY, 'slots': []}]
    )
    assert [d.date for d in scan_horizon(schedule, 2, today=MONDAY)] == [MONDAY]
    assert list(scan_horizon(schedule, 0, today=MONDAY)) == []


def test_horizon_is_lazy_and_rejects_negative_range():
    schedule = PractitionerSchedule(1, weekly_rules=office_week())
    assert inspect.isgenerator(scan_horizon(schedule, 7, today=MONDAY))
    with pytest.raises(ValueError):
        list(scan_horizon(schedule, -1, today=MONDAY))


# --- work statistics -------------------------------------------------------

def test_summarize_week_excludes_breaks():
    stats = summarize_week(office_week())
    assert stats.days_per_week == 5
    assert stats.total_hours_per_week == 37.5
    assert stats.average_hours_per_day == 7.5
    assert stats.hours_per_day['MONDAY'] == 7.5


def test_summarize_week_adds_split_shifts_and_handles_empty():
    stats = summarize_week([rule(6, '08:00', '10:00'), rule(6, '14:00', '15:00')])
    assert stats.as_dict()['hoursPerDay'] == {'SATURDAY': 3.0}
    assert summarize_week([]).total_hours_per_week == 0
