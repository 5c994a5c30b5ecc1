from decimal import Decimal

import pytest
from sqlalchemy.exc import IntegrityError

from examprep.models.batch_enrollment import BatchEnrollment
from examprep.services.enrollment_service import EnrollmentLedger


def test_status_for_unknown_pair(db):
    status = EnrollmentLedger.get_status(db, "s1", 1)

    assert status.is_enrolled is False
    assert status.to_dict() == {
        "isEnrolled": False,
        "status": None,
        "paymentStatus": None,
        "enrolledAt": None,
        "paidAmount": None,
    }


def test_upsert_inserts_active_paid_row(db, make_batch):
    batch = make_batch()

    row = EnrollmentLedger.upsert_on_payment_success(db, "s1", batch.id, Decimal("999.00"), "pay_1")

    assert (row.status, row.payment_status) == ("active", "paid")
    assert row.gateway_payment_id == "pay_1"
    status = EnrollmentLedger.get_status(db, "s1", batch.id)
    assert status.is_enrolled is True
    assert status.to_dict()["paidAmount"] == 999.0


def test_upsert_promotes_pending_row(db, make_batch):
    batch = make_batch()
    db.add(BatchEnrollment(batch_id=batch.id, student_id="s1", status="pending", payment_status="pending"))
    db.commit()

    EnrollmentLedger.upsert_on_payment_success(db, "s1", batch.id, Decimal("999.00"), "pay_1")

    rows = db.query(BatchEnrollment).all()
    assert len(rows) == 1
    assert rows[0].has_access


def test_upsert_same_payment_is_idempotent(db, make_batch):
    batch = make_batch()
    first = EnrollmentLedger.upsert_on_payment_success(db, "s1", batch.id, Decimal("999.00"), "pay_1")
    updated_at = first.updated_at

    second = EnrollmentLedger.upsert_on_payment_success(db, "s1", batch.id, Decimal("999.00"), "pay_1")

    assert second.id == first.id
    assert second.updated_at == updated_at
    assert db.query(BatchEnrollment).count() == 1


def test_upsert_retries_lost_insert_race_as_update(db, session_factory, make_batch, monkeypatch):
    batch = make_batch()
    real_find = EnrollmentLedger._find
    calls = {"n": 0}

    def racing_find(session, student_id, batch_id):
        calls["n"] += 1
        if calls["n"] == 1:
            # another worker inserts the row between our read and our write
            other = session_factory()
            other.add(BatchEnrollment(batch_id=batch_id, student_id=student_id, status="pending", payment_status="pending"))
            other.commit()
            other.close()
            return None
        return real_find(session, student_id, batch_id)

    monkeypatch.setattr(EnrollmentLedger, "_find", staticmethod(racing_find))

    row = EnrollmentLedger.upsert_on_payment_success(db, "s1", batch.id, Decimal("999.00"), "pay_1")

    assert calls["n"] == 2
    assert row.has_access
    assert db.query(BatchEnrollment).count() == 1


def test_pair_is_unique(db, make_batch):
    batch = make_batch()
    db.add(BatchEnrollment(batch_id=batch.id, student_id="s1"))
    db.commit()
    db.add(BatchEnrollment(batch_id=batch.id, student_id="s1"))

    with pytest.raises(IntegrityError):
        db.commit()


def test_ensure_pending_keeps_paid_rows(db, make_batch):
    batch = make_batch()
    EnrollmentLedger.upsert_on_payment_success(db, "s1", batch.id, Decimal("999.00"), "pay_1")

    row = EnrollmentLedger.ensure_pending(db, "s1", batch.id)
    db.commit()

    assert (row.status, row.payment_status) == ("active", "paid")


def test_ensure_pending_reopens_cancelled_row(db, make_batch):
    batch = make_batch()
    db.add(BatchEnrollment(batch_id=batch.id, student_id="s1", status="cancelled", payment_status="unpaid"))
    db.commit()

    row = EnrollmentLedger.ensure_pending(db, "s1", batch.id)
    db.commit()

    assert (row.status, row.payment_status) == ("pending", "pending")


def test_grant_pending_never_grants_access(db, make_batch):
    batch = make_batch()

    row, created = EnrollmentLedger.grant_pending(db, "s1", batch.id)
    again, created_again = EnrollmentLedger.grant_pending(db, "s1", batch.id)

    assert created is True and created_again is False
    assert again.id == row.id
    assert (row.status, row.payment_status) == ("pending", "unpaid")
    assert EnrollmentLedger.get_status(db, "s1", batch.id).is_enrolled is False


def test_counts_and_statuses(db, make_batch):
    one = make_batch("One")
    two = make_batch("Two")
    three = make_batch("Three")
    db.add_all([
        BatchEnrollment(batch_id=one.id, student_id="s1", status="active", payment_status="paid"),
        BatchEnrollment(batch_id=one.id, student_id="s2", status="pending", payment_status="pending"),
        BatchEnrollment(batch_id=one.id, student_id="s3", status="cancelled", payment_status="unpaid"),
        BatchEnrollment(batch_id=two.id, student_id="s2", status="active", payment_status="paid"),
    ])
    db.commit()

    counts = EnrollmentLedger.enrollment_counts(db, [one.id, two.id, three.id])
    statuses = EnrollmentLedger.get_statuses(db, "s2", [one.id, two.id, three.id])

    assert counts == {one.id: 2, two.id: 1, three.id: 0}
    assert statuses[one.id].is_enrolled is False
    assert statuses[one.id].payment_status == "pending"
    assert statuses[two.id].is_enrolled is True
    assert statuses[three.id].status is None
    assert [batch.name for _, batch in EnrollmentLedger.enrolled_batches(db, "s2")] == ["Two"]
