from datetime import datetime, timedelta

from hypothesis import given, strategies as st

from medtracker.models.constraints import MaxPerPeriod, MinTimeBetween
from medtracker.models.medication import LogStatus, Medication, MedicationFrequency, MedicationLog
from medtracker.services.dosage_constraints import DosageConstraintEngine, parse_dosage_amount


NOW = datetime(2025, 3, 10, 14, 0)


def build_med(constraints, dosage="500mg"):
    return Medication(
        id="med-1",
        name="Paracetamol",
        dosage=dosage,
        frequency=MedicationFrequency.AS_NEEDED,
        reminder_times=[],
        dosage_constraints=constraints,
    )


def build_log(timestamp, status=LogStatus.TAKEN, medication_id="med-1"):
    return MedicationLog(
        medication_id=medication_id,
        medication_name="Paracetamol 500mg",
        timestamp=timestamp,
        status=status,
    )


def test_first_dose_always_allowed():
    engine = DosageConstraintEngine()
    med = build_med([{"type": "minTimeBetween", "durationMinutes": 10_000}])

    assert engine.evaluate(med, [], NOW) == []
    assert engine.can_take(med, [], NOW)


def test_min_time_between_reports_remaining_wait():
    engine = DosageConstraintEngine()
    med = build_med([{"type": "minTimeBetween", "durationMinutes": 240}])
    logs = [build_log(NOW - timedelta(minutes=100))]

    violations = engine.evaluate(med, logs, NOW)

    assert len(violations) == 1
    assert violations[0].time_until_allowed == timedelta(minutes=140)
    assert violations[0].is_blocking
    assert "2h 20m" in violations[0].message


def test_min_time_between_uses_most_recent_taken_dose_in_any_order():
    engine = DosageConstraintEngine()
    med = build_med([{"type": "minTimeBetween", "durationMinutes": 60}])
    logs = [
        build_log(NOW - timedelta(hours=5)),
        build_log(NOW - timedelta(minutes=15)),
        build_log(NOW - timedelta(hours=2)),
    ]

    violations = engine.evaluate(med, logs, NOW)

    assert violations[0].time_until_allowed == timedelta(minutes=45)
    assert "45m" in violations[0].message


def test_skipped_doses_and_other_medications_are_ignored():
    engine = DosageConstraintEngine()
    med = build_med([{"type": "minTimeBetween", "durationMinutes": 240}])
    logs = [
        build_log(NOW - timedelta(minutes=10), status=LogStatus.SKIPPED),
        build_log(NOW - timedelta(minutes=10), medication_id="med-2"),
    ]

    assert engine.evaluate(med, logs, NOW) == []


@given(
    duration=st.integers(min_value=2, max_value=24 * 60),
    data=st.data(),
)
def test_wait_shrinks_as_time_passes(duration, data):
    engine = DosageConstraintEngine()
    med = build_med([{"type": "minTimeBetween", "durationMinutes": duration}])
    elapsed = data.draw(st.integers(min_value=0, max_value=duration - 1))
    later = data.draw(st.integers(min_value=0, max_value=duration - elapsed - 1))
    logs = [build_log(NOW - timedelta(minutes=elapsed))]

    first = engine.evaluate(med, logs, NOW)
    assert first[0].time_until_allowed == timedelta(minutes=duration - elapsed)

    second = engine.evaluate(med, logs, NOW + timedelta(minutes=later))
    assert second[0].time_until_allowed == timedelta(minutes=duration - elapsed - later)

    assert engine.evaluate(med, logs, NOW + timedelta(minutes=duration - elapsed)) == []


@given(max_count=st.integers(min_value=1, max_value=8), period_hours=st.integers(min_value=1, max_value=72))
def test_max_per_period_boundary(max_count, period_hours):
    engine = DosageConstraintEngine()
    med = build_med([{"type": "maxPerPeriod", "maxCount": max_count, "periodHours": period_hours}])
    spacing = timedelta(hours=period_hours) / (max_count + 1)
    logs = [build_log(NOW - spacing * (i + 1)) for i in range(max_count)]

    assert len(engine.evaluate(med, logs, NOW)) == 1
    assert engine.evaluate(med, logs[:-1], NOW) == []


def test_max_per_period_waits_for_oldest_dose_to_expire():
    engine = DosageConstraintEngine()
    med = build_med([{"type": "maxPerPeriod", "maxCount": 2, "periodHours": 24}])
    logs = [
        build_log(NOW - timedelta(hours=20)),
        build_log(NOW - timedelta(hours=2)),
        build_log(NOW - timedelta(hours=30)),
    ]

    violations = engine.evaluate(med, logs, NOW)

    assert len(violations) == 1
    assert violations[0].time_until_allowed == timedelta(hours=4)
    assert violations[0].message == "Maximum 2 doses per day reached"


def test_max_per_period_names_short_and_long_periods():
    engine = DosageConstraintEngine()
    logs = [build_log(NOW - timedelta(minutes=30))]

    hourly = build_med([{"type": "maxPerPeriod", "maxCount": 1, "periodHours": 6}])
    assert engine.evaluate(hourly, logs, NOW)[0].message == "Maximum 1 dose per 6 hours reached"

    weekly = build_med([{"type": "maxPerPeriod", "maxCount": 1, "periodHours": 168}])
    assert engine.evaluate(weekly, logs, NOW)[0].message == "Maximum 1 dose per week reached"

    two_days = build_med([{"type": "maxPerPeriod", "maxCount": 1, "periodHours": 48}])
    assert engine.evaluate(two_days, logs, NOW)[0].message == "Maximum 1 dose per 2 days reached"


def test_max_cumulative_amount_reached():
    engine = DosageConstraintEngine()
    med = build_med(
        [{"type": "maxCumulativeAmount", "maxAmount": 1500, "unit": "mg", "periodHours": 24}]
    )
    logs = [build_log(NOW - timedelta(hours=h)) for h in (2, 8, 14)]

    violations = engine.evaluate(med, logs, NOW)

    assert len(violations) == 1
    assert violations[0].message == "Maximum 1500mg per day reached"
    assert violations[0].time_until_allowed is None
    assert not violations[0].is_blocking


def test_max_cumulative_amount_below_limit():
    engine = DosageConstraintEngine()
    med = build_med(
        [{"type": "maxCumulativeAmount", "maxAmount": 1500, "unit": "mg", "periodHours": 24}]
    )
    logs = [build_log(NOW - timedelta(hours=h)) for h in (2, 8, 30)]

    assert engine.evaluate(med, logs, NOW) == []


def test_max_cumulative_amount_skipped_without_numeric_dosage():
    engine = DosageConstraintEngine()
    med = build_med(
        [{"type": "maxCumulativeAmount", "maxAmount": 1, "unit": "tab", "periodHours": 24}],
        dosage="one tablet",
    )
    logs = [build_log(NOW - timedelta(hours=1)) for _ in range(5)]

    assert engine.evaluate(med, logs, NOW) == []


def test_time_window_bounds():
    engine = DosageConstraintEngine()
    med = build_med(
        [{"type": "timeWindow", "params": {"notBefore": "08:00", "notAfter": "8:00 PM"}}]
    )

    early = engine.evaluate(med, [], NOW.replace(hour=7, minute=59))
    assert early[0].message == "Not allowed before 08:00"
    assert early[0].time_until_allowed is None

    assert engine.evaluate(med, [], NOW.replace(hour=8, minute=0)) == []
    assert engine.evaluate(med, [], NOW.replace(hour=19, minute=59)) == []

    late = engine.evaluate(med, [], NOW.replace(hour=20, minute=0))
    assert late[0].message == "Not allowed after 8:00 PM"


def test_custom_and_malformed_constraints_never_block():
    engine = DosageConstraintEngine()
    med = build_med(
        [
            {"type": "custom", "description": "Take with food"},
            {"type": "minTimeBetween"},
            {"type": "maxPerPeriod", "maxCount": "lots", "periodHours": 24},
            {"type": "timeWindow", "params": {"notBefore": "breakfast"}},
            {"type": "somethingNew", "durationMinutes": 60},
            "not-a-record",
        ]
    )
    logs = [build_log(NOW - timedelta(minutes=1)) for _ in range(10)]

    assert engine.evaluate(med, logs, NOW) == []


def test_non_positive_cumulative_limit_never_blocks():
    engine = DosageConstraintEngine()
    logs = [build_log(NOW - timedelta(hours=2))]

    for max_amount in (0, -100):
        med = build_med(
            [{"type": "maxCumulativeAmount", "maxAmount": max_amount, "unit": "mg", "periodHours": 24}]
        )

        assert engine.evaluate(med, [], NOW) == []
        assert engine.evaluate(med, logs, NOW) == []
        assert engine.can_take(med, logs, NOW)


def test_multiple_constraints_accumulate_violations():
    engine = DosageConstraintEngine()
    med = build_med(
        [
            MinTimeBetween(duration_minutes=240),
            MaxPerPeriod(max_count=1, period_hours=24),
        ]
    )
    logs = [build_log(NOW - timedelta(hours=1))]

    violations = engine.evaluate(med, logs, NOW)

    assert [v.constraint.type.value for v in violations] == ["minTimeBetween", "maxPerPeriod"]


def test_next_available_time_uses_longest_wait():
    engine = DosageConstraintEngine()
    med = build_med(
        [
            {"type": "minTimeBetween", "durationMinutes": 240},
            {"type": "maxPerPeriod", "maxCount": 1, "periodHours": 24},
        ]
    )
    logs = [build_log(NOW - timedelta(hours=1))]

    assert engine.next_available_time(med, logs, NOW) == NOW + timedelta(hours=23)


def test_next_available_time_now_when_unconstrained():
    engine = DosageConstraintEngine()
    med = build_med([])

    assert engine.next_available_time(med, [build_log(NOW)], NOW) == NOW


def test_next_available_time_unknown_for_informational_violations():
    engine = DosageConstraintEngine()
    med = build_med([{"type": "timeWindow", "params": {"notAfter": "09:00"}}])

    assert engine.next_available_time(med, [], NOW) is None


def test_next_available_time_ignores_informational_violations_when_one_blocks():
    engine = DosageConstraintEngine()
    med = build_med(
        [
            {"type": "minTimeBetween", "durationMinutes": 240},
            {"type": "timeWindow", "params": {"notAfter": "09:00"}},
        ]
    )
    logs = [build_log(NOW - timedelta(minutes=100))]

    violations = engine.evaluate(med, logs, NOW)

    assert [v.is_blocking for v in violations] == [True, False]
    assert engine.next_available_time(med, logs, NOW) == NOW + timedelta(minutes=140)


def test_parse_dosage_amount():
    assert parse_dosage_amount("500mg") == 500.0
    assert parse_dosage_amount("Take 2.5 ml") == 2.5
    assert parse_dosage_amount("as directed") is None
    assert parse_dosage_amount(None) is None
