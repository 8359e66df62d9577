"""Service-level tests for contribution submission, points and the ledger."""

from __future__ import annotations

import unittest
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from unittest import mock

from sqlalchemy import create_engine, delete, func, select
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from shelfwise.config import Settings
from shelfwise.models.base import Base
from shelfwise.models.confirmation_receipt import ConfirmationReceipt
from shelfwise.models.contribution import Contribution
from shelfwise.models.contributor_badge import ContributorBadge
from shelfwise.models.fact import Fact
from shelfwise.models.point_award import PointAward
from shelfwise.models.store import Store
from shelfwise.models.store_entrance import StoreEntrance
from shelfwise.models.store_pioneer import StorePioneer
from shelfwise.schemas.facts import (
    AisleSubject,
    AisleValue,
    Coordinates,
    DepartmentSubject,
    DepartmentValue,
    PriceSubject,
    PriceValue,
)
from shelfwise.scoring.confidence import ContributionKind
from shelfwise.services import fact_store
from shelfwise.services.contributions import submit_aisle_scan, submit_contribution
from shelfwise.services.errors import (
    ConflictError,
    NotFoundError,
    RateLimitedError,
    StorageError,
    ValidationError,
)
from shelfwise.services.ledger import ContributionReceipt, record_contribution_effects

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


class ContributionServiceTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls) -> None:
        cls.engine = create_engine(
            "sqlite+pysqlite:///:memory:",
            future=True,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
        cls.SessionLocal = sessionmaker(bind=cls.engine, autoflush=False, autocommit=False, future=True)
        Base.metadata.create_all(cls.engine)

    @classmethod
    def tearDownClass(cls) -> None:
        Base.metadata.drop_all(cls.engine)
        cls.engine.dispose()

    def setUp(self) -> None:
        self.db: Session = self.SessionLocal()
        self._reset_tables()
        self.settings = Settings()
        store = Store(name="Kroger Downtown", latitude=39.1, longitude=-84.5)
        self.db.add(store)
        self.db.commit()
        self.store_id = store.id

    def tearDown(self) -> None:
        self.db.close()

    def _submit(self, subject, contributor_id: str, kind: ContributionKind, value=None, *, now: datetime = NOW, **kwargs):
        return submit_contribution(
            self.db,
            subject,
            contributor_id,
            kind,
            value,
            settings=self.settings,
            now=now,
            **kwargs,
        )

    def _points_for(self, contributor_id: str) -> int:
        return self.db.scalar(
            select(func.coalesce(func.sum(PointAward.points), 0)).where(PointAward.contributor_id == contributor_id)
        )

    def test_scan_confirm_report_walkthrough(self) -> None:
        aisle = AisleSubject(store_id=self.store_id, aisle_number="12")

        first = self._submit(aisle, "contributor-a", ContributionKind.SCAN, AisleValue(label="Cereal"))
        self.assertEqual(first.fact.confidence, 50.0)
        self.assertEqual(first.fact.verified_count, 1)
        self.assertEqual(first.points_awarded, 50)
        self.assertEqual([(bonus.type, bonus.points) for bonus in first.bonuses], [("first_store_bonus", 200)])
        self.assertTrue(first.ledger_recorded)
        self.assertIn("first_contribution", [badge.badge_type for badge in first.badges])

        confirm = self._submit(aisle, "contributor-b", ContributionKind.CONFIRM, now=NOW + timedelta(minutes=5))
        self.assertEqual(confirm.fact.confidence, 55.0)
        self.assertEqual(confirm.fact.verified_count, 2)
        self.assertEqual(confirm.points_awarded, 10)
        self.assertEqual(confirm.bonuses, [])

        report = self._submit(aisle, "contributor-c", ContributionKind.REPORT, now=NOW + timedelta(minutes=9))
        self.assertEqual(report.fact.confidence, 45.0)
        self.assertEqual(report.fact.verified_count, 2)
        self.assertEqual(report.points_awarded, 15)
        self.assertEqual(report.fact.value.label, "Cereal")

        self.assertEqual(self._points_for("contributor-a"), 250)
        self.assertEqual(self._points_for("contributor-b"), 10)
        self.assertEqual(self._points_for("contributor-c"), 15)

        ledger = list(self.db.scalars(select(Contribution).order_by(Contribution.id.asc())))
        self.assertEqual([row.kind for row in ledger], ["scan", "confirm", "report"])
        self.assertEqual([row.confidence_delta for row in ledger], [50.0, 5.0, -10.0])
        self.assertEqual({row.fact_id for row in ledger}, {first.fact.id})

    def test_duplicate_confirmation_within_cooldown_is_rate_limited(self) -> None:
        aisle = AisleSubject(store_id=self.store_id, aisle_number="4")
        self._submit(aisle, "contributor-a", ContributionKind.SCAN)
        self._submit(aisle, "contributor-b", ContributionKind.CONFIRM, now=NOW + timedelta(hours=1))

        with self.assertRaises(RateLimitedError) as raised:
            self._submit(aisle, "contributor-b", ContributionKind.CONFIRM, now=NOW + timedelta(hours=2))
        self.assertEqual(raised.exception.retry_after_seconds, 23 * 3600)

        fact = fact_store.get_fact(self.db, aisle, settings=self.settings, now=NOW)
        self.assertEqual(fact.confidence, 55.0)
        self.assertEqual(fact.verified_count, 2)
        self.assertEqual(self._points_for("contributor-b"), 10)

        # Another contributor, or the same one after the window, may confirm.
        self._submit(aisle, "contributor-c", ContributionKind.CONFIRM, now=NOW + timedelta(hours=2))
        later = self._submit(aisle, "contributor-b", ContributionKind.CONFIRM, now=NOW + timedelta(hours=25))
        self.assertEqual(later.fact.confidence, 65.0)

    def test_reports_and_scans_are_not_rate_limited(self) -> None:
        aisle = AisleSubject(store_id=self.store_id, aisle_number="8")
        self._submit(aisle, "contributor-a", ContributionKind.SCAN)
        self._submit(aisle, "contributor-a", ContributionKind.SCAN)
        self._submit(aisle, "contributor-b", ContributionKind.REPORT)
        result = self._submit(aisle, "contributor-b", ContributionKind.REPORT)
        self.assertEqual(result.fact.confidence, 40.0)

    def test_first_store_bonus_awarded_once_per_store(self) -> None:
        first = self._submit(AisleSubject(store_id=self.store_id, aisle_number="1"), "contributor-a", ContributionKind.SCAN)
        second = self._submit(AisleSubject(store_id=self.store_id, aisle_number="2"), "contributor-a", ContributionKind.SCAN)
        other = self._submit(AisleSubject(store_id=self.store_id, aisle_number="3"), "contributor-b", ContributionKind.SCAN)

        self.assertEqual(len(first.bonuses), 1)
        self.assertEqual(second.bonuses, [])
        self.assertEqual(other.bonuses, [])

        # Two receipts racing for the same store pair: the pioneer row lets only one win.
        new_store = Store(name="Kroger Eastgate", latitude=39.1, longitude=-84.2)
        self.db.add(new_store)
        self.db.commit()
        receipts = [
            ContributionReceipt(
                contribution_uid=f"race-{index}",
                subject=AisleSubject(store_id=new_store.id, aisle_number=str(index)),
                contributor_id="contributor-a",
                kind=ContributionKind.SCAN,
                fact_id=first.fact.id,
                confidence_delta=50.0,
                points=50,
                created_at=NOW,
            )
            for index in (1, 2)
        ]
        outcomes = [record_contribution_effects(self.db, receipt, settings=self.settings) for receipt in receipts]
        self.assertEqual(sum(len(outcome.bonuses) for outcome in outcomes), 1)
        bonus_total = self.db.scalar(
            select(func.sum(PointAward.points)).where(
                PointAward.contributor_id == "contributor-a",
                PointAward.store_id == new_store.id,
                PointAward.reason == "first_store_bonus",
            )
        )
        self.assertEqual(bonus_total, 200)

    def test_store_expert_badge_after_mapping_most_aisles(self) -> None:
        badges: list[str] = []
        for aisle_number in ("1", "2", "3", "4", "5"):
            result = self._submit(
                AisleSubject(store_id=self.store_id, aisle_number=aisle_number),
                "contributor-a",
                ContributionKind.SCAN,
            )
            badges.extend(badge.badge_type for badge in result.badges)

        self.assertEqual(badges, ["first_contribution", "store_expert"])
        held = self.db.scalar(
            select(ContributorBadge).where(ContributorBadge.badge_type == "store_expert")
        )
        assert held is not None
        self.assertEqual(held.store_id, self.store_id)
        self.assertEqual(held.scope_key, str(self.store_id))

    def test_missing_store_or_parent_is_not_found(self) -> None:
        with self.assertRaises(NotFoundError):
            self._submit(AisleSubject(store_id=self.store_id + 50, aisle_number="1"), "contributor-a", ContributionKind.SCAN)
        with self.assertRaises(NotFoundError):
            self._submit(
                DepartmentSubject(store_id=self.store_id, aisle_number="3", department="dairy"),
                "contributor-a",
                ContributionKind.MANUAL,
            )
        self.assertEqual(self.db.scalar(select(func.count(Fact.id))), 0)
        self.assertEqual(self.db.scalar(select(func.count(Contribution.id))), 0)

        self._submit(AisleSubject(store_id=self.store_id, aisle_number="3"), "contributor-a", ContributionKind.SCAN)
        result = self._submit(
            DepartmentSubject(store_id=self.store_id, aisle_number="3", department="Meat & Seafood"),
            "contributor-a",
            ContributionKind.MANUAL,
            DepartmentValue(display_name="Butcher"),
        )
        self.assertEqual(result.fact.subject_id, "3/meat")
        self.assertEqual(result.points_awarded, 30)

    def test_confirming_unknown_subject_does_not_consume_cooldown(self) -> None:
        aisle = AisleSubject(store_id=self.store_id, aisle_number="11")
        with self.assertRaises(NotFoundError):
            self._submit(aisle, "contributor-b", ContributionKind.CONFIRM)
        self.assertEqual(self.db.scalar(select(func.count(ConfirmationReceipt.id))), 0)

        self._submit(aisle, "contributor-a", ContributionKind.SCAN)
        result = self._submit(aisle, "contributor-b", ContributionKind.CONFIRM)
        self.assertEqual(result.fact.confidence, 55.0)

    def test_malformed_submissions_are_rejected(self) -> None:
        aisle = AisleSubject(store_id=self.store_id, aisle_number="2")
        with self.assertRaises(ValidationError):
            self._submit(aisle, "   ", ContributionKind.SCAN)
        with self.assertRaises(ValidationError):
            self._submit(aisle, "contributor-a", ContributionKind.PROPAGATION)
        with self.assertRaises(ValidationError):
            self._submit(aisle, "contributor-a", ContributionKind.ENTRANCE)
        with self.assertRaises(ValidationError):
            self._submit(aisle, "contributor-a", ContributionKind.SCAN, PriceValue(amount=Decimal("1.99")))
        with self.assertRaises(ValidationError):
            self._submit(PriceSubject(store_id=self.store_id, barcode="012345678905"), "contributor-a", ContributionKind.SCAN)
        self._submit(aisle, "contributor-a", ContributionKind.SCAN)
        with self.assertRaises(ValidationError):
            self._submit(aisle, "contributor-b", ContributionKind.CONFIRM, AisleValue(label="x"))

    def test_conflicts_are_retried_with_the_merge_recomputed(self) -> None:
        aisle = AisleSubject(store_id=self.store_id, aisle_number="6")
        self._submit(aisle, "contributor-a", ContributionKind.SCAN)

        original = fact_store.apply_contribution
        calls = {"count": 0}

        def flaky(*args, **kwargs):
            calls["count"] += 1
            if calls["count"] == 1:
                raise ConflictError("simulated serialization failure")
            return original(*args, **kwargs)

        with mock.patch.object(fact_store, "apply_contribution", side_effect=flaky):
            with self.assertLogs("shelfwise.services.contributions", level="WARNING") as logs:
                result = self._submit(aisle, "contributor-b", ContributionKind.SCAN)

        self.assertEqual(calls["count"], 2)
        self.assertEqual(result.fact.confidence, 60.0)
        self.assertEqual(result.fact.verified_count, 2)
        self.assertTrue(any("crowd.merge_conflict" in line for line in logs.output))

    def test_exhausted_retries_surface_as_storage_error(self) -> None:
        aisle = AisleSubject(store_id=self.store_id, aisle_number="6")
        with mock.patch.object(fact_store, "apply_contribution", side_effect=ConflictError("still conflicting")) as patched:
            with self.assertRaises(StorageError):
                self._submit(aisle, "contributor-a", ContributionKind.SCAN)
        self.assertEqual(patched.call_count, self.settings.max_merge_attempts)
        self.assertEqual(self.db.scalar(select(func.count(Contribution.id))), 0)

    def test_single_attempt_budget_fails_without_retrying(self) -> None:
        aisle = AisleSubject(store_id=self.store_id, aisle_number="6")
        for budget in (1, 0):
            self.settings = Settings(max_merge_attempts=budget)
            with mock.patch.object(fact_store, "apply_contribution", side_effect=ConflictError("conflicting")) as patched:
                with self.assertRaises(StorageError) as ctx:
                    self._submit(aisle, "contributor-a", ContributionKind.SCAN)
            self.assertEqual(patched.call_count, 1)
            self.assertIn("after 1 attempts", str(ctx.exception))
            self.assertIsInstance(ctx.exception.__cause__, ConflictError)

    def test_ledger_failure_keeps_fact_and_reconciles_idempotently(self) -> None:
        aisle = AisleSubject(store_id=self.store_id, aisle_number="10")
        failure = OperationalError("INSERT INTO contributor_badges", {}, Exception("disk I/O error"))
        with mock.patch("shelfwise.services.ledger._award_badges", side_effect=failure):
            with self.assertLogs("shelfwise.services.contributions", level="ERROR") as logs:
                result = self._submit(
                    aisle,
                    "contributor-a",
                    ContributionKind.SCAN,
                    coordinates=Coordinates(latitude=39.1, longitude=-84.5),
                )

        self.assertFalse(result.ledger_recorded)
        self.assertEqual(result.points_awarded, 50)
        self.assertTrue(any("crowd.ledger_failed" in line for line in logs.output))
        self.assertEqual(fact_store.get_fact(self.db, aisle).confidence, 50.0)
        self.assertEqual(self.db.scalar(select(func.count(Contribution.id))), 0)
        self.assertEqual(self._points_for("contributor-a"), 0)

        receipt = ContributionReceipt(
            contribution_uid=result.contribution_uid,
            subject=aisle,
            contributor_id="contributor-a",
            kind=ContributionKind.SCAN,
            fact_id=result.fact.id,
            confidence_delta=50.0,
            points=50,
            created_at=NOW,
            coordinates=Coordinates(latitude=39.1, longitude=-84.5),
        )
        first = record_contribution_effects(self.db, receipt, settings=self.settings)
        again = record_contribution_effects(self.db, receipt, settings=self.settings)

        self.assertEqual(len(first.bonuses), 1)
        self.assertEqual(len(again.bonuses), 1)
        self.assertEqual(self._points_for("contributor-a"), 250)
        self.assertEqual(self.db.scalar(select(func.count(Contribution.id))), 1)
        row = self.db.scalar(select(Contribution))
        assert row is not None
        self.assertEqual((row.latitude, row.longitude), (39.1, -84.5))

    def test_aisle_scan_suggests_departments_from_sign_text(self) -> None:
        result = submit_aisle_scan(
            self.db,
            self.store_id,
            "14b",
            "contributor-a",
            sign_text="DAIRY  Milk  Eggs | Ice Cream",
            settings=self.settings,
            now=NOW,
        )
        self.assertEqual(result.contribution.fact.subject_id, "14B")
        self.assertEqual(result.contribution.fact.value.label, "DAIRY Milk Eggs | Ice Cream")
        self.assertEqual([item.key for item in result.suggested_departments], ["dairy", "frozen"])
        self.assertEqual(
            self.db.scalar(select(func.count(Fact.id)).where(Fact.subject_type == "department")),
            0,
        )
        with self.assertRaises(ValidationError):
            submit_aisle_scan(self.db, self.store_id, "1/2", "contributor-a", settings=self.settings, now=NOW)

    def _reset_tables(self) -> None:
        self.db.execute(delete(ContributorBadge))
        self.db.execute(delete(PointAward))
        self.db.execute(delete(StorePioneer))
        self.db.execute(delete(ConfirmationReceipt))
        self.db.execute(delete(Contribution))
        self.db.execute(delete(StoreEntrance))
        self.db.execute(delete(Fact))
        self.db.execute(delete(Store))
        self.db.commit()


if __name__ == "__main__":
    unittest.main()
