import threading
from datetime import timedelta

import pytest

from patrol_auth.application.services.verification_code_service import (
    VerificationCodeService,
    VerificationStoreError,
)
from patrol_auth.exceptions import ValidationError
from patrol_auth.infrastructure.verification.memory_store import InMemoryVerificationStore

PHONE = "+15551234567"


def make_service(clock, **kwargs):
    return VerificationCodeService(store=InMemoryVerificationStore(), clock=clock, **kwargs)


def test_generated_codes_are_fixed_length_digits(clock):
    svc = make_service(clock)
    for _ in range(500):
        code = svc.generate_code(PHONE)
        assert len(code) == 6
        assert code.isdigit()


def test_generated_codes_respect_configured_length(clock):
    svc = make_service(clock, code_length=8)
    assert all(len(svc.generate_code(PHONE)) == 8 for _ in range(50))


def test_generate_code_rejects_empty_phone(clock):
    with pytest.raises(ValidationError):
        make_service(clock).generate_code("")


def test_correct_code_validates_before_expiry_and_fails_at_expiry(clock):
    svc = make_service(clock)
    vid = svc.store_code(PHONE, "482913")
    assert svc.validate_code(vid, "482913") is True

    clock.current = svc.get_expiration(vid)
    assert svc.validate_code(vid, "482913") is False
    # expired record is purged on access
    assert svc.get_record(vid) is None


def test_wrong_code_is_rejected_regardless_of_expiry(clock):
    svc = make_service(clock)
    vid = svc.store_code(PHONE, "482913")
    assert svc.validate_code(vid, "000000") is False
    clock.advance(minutes=11)
    assert svc.validate_code(vid, "000000") is False


def test_unknown_verification_id_is_rejected(clock):
    svc = make_service(clock)
    svc.store_code(PHONE, "482913")
    assert svc.validate_code("does-not-exist", "482913") is False


def test_code_is_reusable_within_ttl_by_default(clock):
    svc = make_service(clock)
    vid = svc.store_code(PHONE, "482913")
    assert svc.validate_code(vid, "482913") is True
    assert svc.validate_code(vid, "482913") is True


def test_single_use_mode_consumes_code_on_match(clock):
    svc = make_service(clock, single_use=True)
    vid = svc.store_code(PHONE, "482913")
    assert svc.validate_code(vid, "000000") is False
    assert svc.validate_code(vid, "482913") is True
    assert svc.validate_code(vid, "482913") is False


class BarrierStore(InMemoryVerificationStore):
    """Holds every reader after get() until all of them have the record."""

    def __init__(self, parties):
        super().__init__()
        self.barrier = threading.Barrier(parties)

    def get(self, verification_id):
        record = super().get(verification_id)
        self.barrier.wait(timeout=5)
        return record


def test_single_use_code_is_accepted_once_under_concurrent_matches(clock):
    for _ in range(20):
        store = BarrierStore(parties=2)
        svc = VerificationCodeService(store=store, clock=clock, single_use=True)
        vid = svc.store_code(PHONE, "482913")
        results = []

        def worker():
            results.append(svc.validate_code(vid, "482913"))

        threads = [threading.Thread(target=worker) for _ in range(2)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert sorted(results) == [False, True]
        assert len(store) == 0


def test_code_expires_after_ttl(clock):
    svc = make_service(clock, code_ttl=timedelta(minutes=10))
    vid = svc.store_code(PHONE, "482913")
    clock.advance(minutes=11)
    assert svc.validate_code(vid, "482913") is False


def test_code_is_bound_to_its_phone_number(clock):
    svc = make_service(clock)
    vid = svc.store_code(PHONE, "482913")
    assert svc.validate_code(vid, "482913", phone_number="+15557654321") is False
    assert svc.validate_code(vid, "482913", phone_number=PHONE) is True


def test_latest_verification_id_ignores_expired_and_other_phones(clock):
    svc = make_service(clock)
    old = svc.store_code(PHONE, "111111")
    clock.advance(minutes=1)
    newer = svc.store_code(PHONE, "222222")
    svc.store_code("+15557654321", "333333")
    assert svc.latest_verification_id(PHONE) == newer
    assert old != newer

    clock.advance(minutes=20)
    assert svc.latest_verification_id(PHONE) is None


def test_store_code_gives_up_after_bounded_collisions(clock):
    class CollidingStore(InMemoryVerificationStore):
        def __init__(self):
            super().__init__()
            self.attempts = 0

        def add(self, record):
            self.attempts += 1
            return False

    store = CollidingStore()
    svc = VerificationCodeService(store=store, clock=clock)
    with pytest.raises(VerificationStoreError):
        svc.store_code(PHONE, "482913")
    assert store.attempts == 3


def test_get_expiration(clock):
    svc = make_service(clock)
    vid = svc.store_code(PHONE, "482913")
    assert svc.get_expiration(vid) == clock.now() + timedelta(minutes=10)
    assert svc.get_expiration("missing") is None


def test_sweep_removes_only_expired_records(clock):
    svc = make_service(clock)
    stale = svc.store_code(PHONE, "111111")
    clock.advance(minutes=6)
    fresh = svc.store_code(PHONE, "222222")
    clock.advance(minutes=5)

    assert svc.sweep_expired() == 1
    assert svc.get_record(stale) is None
    assert svc.get_record(fresh) is not None
    assert svc.sweep_expired() == 0


def test_sweep_tolerates_records_removed_concurrently(clock):
    class RacingStore(InMemoryVerificationStore):
        def expired_ids(self, now):
            ids = super().expired_ids(now)
            # another worker evicts the first one between snapshot and delete
            if ids:
                super().remove(ids[0])
            return ids

    svc = VerificationCodeService(store=RacingStore(), clock=clock)
    svc.store_code(PHONE, "111111")
    svc.store_code(PHONE, "222222")
    clock.advance(minutes=11)
    assert svc.sweep_expired() == 1
    assert len(svc.store) == 0


def test_concurrent_store_and_validate(clock):
    svc = make_service(clock)
    results = []
    lock = threading.Lock()

    def worker(i):
        phone = f"+1555000{i:04d}"
        code = svc.generate_code(phone)
        vid = svc.store_code(phone, code)
        ok = svc.validate_code(vid, code, phone)
        with lock:
            results.append((vid, ok))

    threads = [threading.Thread(target=worker, args=(i,)) for i in range(50)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(results) == 50
    assert all(ok for _, ok in results)
    assert len({vid for vid, _ in results}) == 50
    assert len(svc.store) == 50
