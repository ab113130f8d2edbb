# Overview: Pytest coverage for the cash day open/close lifecycle.

"""
Day Session Tests

1. At most one open record per date, even under concurrent requests
2. Close is accepted without a matching open, with a warning
3. A failed lookup is reported as unavailable, never as "not opened"
"""

import threading

import pytest

from zaadpos.records import DaySessionOpen
from zaadpos.validation import ConflictError, UpstreamUnavailable, ValidationError


def open_payload(date="2024-01-10", **overrides):
    payload = {
        "date": date,
        "openingCashTotal": 1000,
        "tillNo": "T1",
        "mpesaWithdrawal": 0,
        "cashBreakdown": [{"denom": 1000, "count": 1, "amount": 1000}],
        "employee": {"id": "E1", "name": "Amina"},
    }
    payload.update(overrides)
    return payload


class TestOpenDay:
    def test_open_then_today(self, engine, fake_store):
        record = engine.sessions.open_day(open_payload())

        assert record.open_id.startswith("2024-01-10-")
        found = engine.sessions.today("2024-01-10")
        assert found is not None
        assert found.open_id == record.open_id
        assert found.opening_cash_total == 1000
        assert found.employee_name == "Amina"
        assert found.cash_breakdown == [{"denom": 1000, "count": 1, "amount": 1000}]
        assert fake_store.data(engine.config.cash_open)[0][0] == "2024-01-10"

    def test_today_for_unopened_date_is_none(self, engine):
        engine.sessions.open_day(open_payload())
        assert engine.sessions.today("2024-01-11") is None

    def test_second_open_same_date_conflicts(self, engine, fake_store):
        first = engine.sessions.open_day(open_payload(openId="open-1"))

        with pytest.raises(ConflictError) as exc:
            engine.sessions.open_day(open_payload(openingCashTotal=5))

        assert exc.value.details == {"openId": first.open_id}
        assert len(fake_store.data(engine.config.cash_open)) == 1

    def test_employee_aliases(self, engine):
        record = engine.sessions.open_day(open_payload(employee={"employeeId": "E9", "username": "juma"}))
        assert (record.employee_id, record.employee_name) == ("E9", "juma")

    @pytest.mark.parametrize("overrides, message", [
        ({"date": "10/01/2024"}, "date is required"),
        ({"openingCashTotal": -1}, "openingCashTotal"),
        ({"openingCashTotal": "abc"}, "openingCashTotal"),
        ({"tillNo": "  "}, "tillNo is required"),
        ({"mpesaWithdrawal": -5}, "mpesaWithdrawal"),
    ])
    def test_invalid_input_is_rejected(self, engine, fake_store, overrides, message):
        with pytest.raises(ValidationError, match=message):
            engine.sessions.open_day(open_payload(**overrides))
        assert fake_store.data(engine.config.cash_open) == []

    def test_concurrent_opens_produce_one_record(self, make_engine, slow_store):
        """Both requests read "not opened" in the slow window; only one may append."""
        engine, store = make_engine(slow_store)
        results, errors = [], []
        barrier = threading.Barrier(4)

        def worker(n):
            barrier.wait()
            try:
                results.append(engine.sessions.open_day(open_payload(openId=f"open-{n}")))
            except ConflictError as e:
                errors.append(e)

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(results) == 1
        assert len(errors) == 3
        assert all(e.details["openId"] == results[0].open_id for e in errors)
        assert len(store.data(engine.config.cash_open)) == 1

    def test_lookup_failure_is_not_not_found(self, engine, fake_store):
        fake_store.fail("read_rows", "CashOpen")

        with pytest.raises(UpstreamUnavailable):
            engine.sessions.today("2024-01-10")
        with pytest.raises(UpstreamUnavailable):
            engine.sessions.open_day(open_payload())
        assert fake_store.data(engine.config.cash_open) == []

    def test_legacy_serial_date_cell_matches(self, engine, fake_store):
        """A date typed into the sheet by hand may come back as a serial number."""
        fake_store.append_row(engine.config.cash_open, [45301, "legacy", "", "", "", "T1", 0, 500, ""])

        found = engine.sessions.today("2024-01-10")
        assert isinstance(found, DaySessionOpen)
        assert found.open_id == "legacy"


class TestCloseDay:
    def test_close_after_open_has_no_warnings(self, engine, fake_store):
        opened = engine.sessions.open_day(open_payload())

        result = engine.sessions.close_day({
            "date": "2024-01-10",
            "openId": opened.open_id,
            "closingCashTotal": 1500,
            "employee": {"id": "E1", "name": "Amina"},
        })

        assert result.warnings == []
        assert result.record.closing_cash_total == 1500
        assert engine.sessions.last_close("2024-01-10").open_id == opened.open_id

    def test_orphaned_close_is_accepted_with_warning(self, engine, fake_store):
        result = engine.sessions.close_day({"date": "2024-01-10", "closingCashTotal": 900})

        assert len(fake_store.data(engine.config.cash_close)) == 1
        assert [w.step for w in result.warnings] == ["close-audit"]
        assert "never opened" in result.warnings[0].message

    def test_unknown_open_id_is_flagged(self, engine):
        engine.sessions.open_day(open_payload())
        result = engine.sessions.close_day({"date": "2024-01-10", "openId": "nope", "closingCashTotal": 1})

        assert "nope" in result.warnings[0].message

    def test_repeated_close_warns_by_default(self, engine, fake_store):
        engine.sessions.open_day(open_payload())
        engine.sessions.close_day({"date": "2024-01-10", "closingCashTotal": 1500})
        result = engine.sessions.close_day({"date": "2024-01-10", "closingCashTotal": 1400})

        assert any("already closed" in w.message for w in result.warnings)
        assert len(fake_store.data(engine.config.cash_close)) == 2
        assert engine.sessions.last_close("2024-01-10").closing_cash_total == 1400

    def test_repeated_close_conflicts_when_strict(self, make_engine):
        engine, store = make_engine(CASH_CLOSE_STRICT=True)
        engine.sessions.open_day(open_payload())
        engine.sessions.close_day({"date": "2024-01-10", "closingCashTotal": 1500})

        with pytest.raises(ConflictError):
            engine.sessions.close_day({"date": "2024-01-10", "closingCashTotal": 1400})
        assert len(store.data(engine.config.cash_close)) == 1

    def test_close_is_written_when_history_is_unreadable(self, engine, fake_store):
        fake_store.fail("read_rows")

        result = engine.sessions.close_day({"date": "2024-01-10", "closingCashTotal": 700})

        assert len(fake_store.data(engine.config.cash_close)) == 1
        assert "could not be verified" in result.warnings[0].message

    def test_close_rejects_negative_total(self, engine):
        with pytest.raises(ValidationError):
            engine.sessions.close_day({"date": "2024-01-10", "closingCashTotal": -1})
