"""Service-level tests for atomic fact merges and store listings."""

from __future__ import annotations

import random
import unittest
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from sqlalchemy import create_engine, delete
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
from shelfwise.propagation.planner import PropagationLink, PropagationStrategy
from shelfwise.schemas.facts import (
    AisleSubject,
    AisleValue,
    DepartmentSubject,
    PriceSubject,
    PriceValue,
    ProductCategorySubject,
)
from shelfwise.scoring.confidence import ContributionKind, FactOrigin, ScoringPolicy, confidence_delta
from shelfwise.services import fact_store
from shelfwise.services.errors import NotFoundError, ValidationError

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


class FactStoreTests(unittest.TestCase):
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
        self.policy = ScoringPolicy.from_settings(self.settings)
        store = Store(name="Kroger Downtown", latitude=39.1, longitude=-84.5)
        self.db.add(store)
        self.db.commit()
        self.store_id = store.id

    def tearDown(self) -> None:
        self.db.close()

    def _apply(self, subject, kind: ContributionKind, value=None, *, now: datetime = NOW) -> Fact:
        fact = fact_store.apply_contribution(self.db, subject, kind, value, policy=self.policy, now=now)
        self.db.commit()
        return fact

    def test_first_scan_creates_fact_at_initial_confidence(self) -> None:
        subject = AisleSubject(store_id=self.store_id, aisle_number="12")
        fact = self._apply(subject, ContributionKind.SCAN, AisleValue(label="Cereal"))

        self.assertEqual(fact.confidence, 50.0)
        self.assertEqual(fact.verified_count, 1)
        self.assertEqual(fact.origin, FactOrigin.DIRECT.value)
        self.assertEqual(fact.revision, 1)
        self.assertEqual(fact.last_confidence_delta, 50.0)
        self.assertEqual(fact.value_json, {"value_type": "aisle", "label": "Cereal"})

    def test_merge_applies_deltas_against_the_stored_row(self) -> None:
        subject = AisleSubject(store_id=self.store_id, aisle_number="3")
        self._apply(subject, ContributionKind.SCAN, AisleValue(label="Snacks"))
        fact = self._apply(subject, ContributionKind.SCAN)
        self.assertEqual(fact.confidence, 60.0)
        self.assertEqual(fact.verified_count, 2)
        self.assertEqual(fact.value_json["label"], "Snacks")

        fact = self._apply(subject, ContributionKind.MANUAL, AisleValue(label="Chips & Snacks"))
        self.assertEqual(fact.confidence, 65.0)
        self.assertEqual(fact.verified_count, 3)
        self.assertEqual(fact.value_json["label"], "Chips & Snacks")
        self.assertEqual(fact.last_confidence_delta, 5.0)
        self.assertEqual(fact.revision, 3)

    def test_confidence_is_clamped_at_both_ends(self) -> None:
        subject = AisleSubject(store_id=self.store_id, aisle_number="7")
        self._apply(subject, ContributionKind.SCAN)
        for _ in range(8):
            fact = self._apply(subject, ContributionKind.SCAN)
            self.assertLessEqual(fact.confidence, 100.0)
        self.assertEqual(fact.confidence, 100.0)
        self.assertEqual(fact.last_confidence_delta, 0.0)

        for _ in range(15):
            fact = self._apply(subject, ContributionKind.REPORT)
            self.assertGreaterEqual(fact.confidence, 0.0)
        self.assertEqual(fact.confidence, 0.0)
        self.assertEqual(fact.verified_count, 9)

    def test_random_sequences_stay_clamped_and_count_verifications(self) -> None:
        rng = random.Random(20261019)
        kinds = [
            ContributionKind.SCAN,
            ContributionKind.MANUAL,
            ContributionKind.CONFIRM,
            ContributionKind.REPORT,
        ]
        for sequence in range(20):
            subject = AisleSubject(store_id=self.store_id, aisle_number=f"R{sequence}")
            fact = self._apply(subject, ContributionKind.SCAN)
            expected_confidence = 50.0
            expected_verified = 1
            for _ in range(25):
                kind = rng.choice(kinds)
                fact = self._apply(subject, kind)
                expected_confidence = max(0.0, min(100.0, expected_confidence + confidence_delta(kind, self.policy)))
                if kind is not ContributionKind.REPORT:
                    expected_verified += 1
                self.assertGreaterEqual(fact.confidence, 0.0)
                self.assertLessEqual(fact.confidence, 100.0)
                self.assertEqual(fact.confidence, expected_confidence)
            self.assertEqual(fact.verified_count, expected_verified)

    def test_report_without_value_keeps_value_and_verification(self) -> None:
        subject = AisleSubject(store_id=self.store_id, aisle_number="9")
        self._apply(subject, ContributionKind.SCAN, AisleValue(label="Baking"))
        fact = self._apply(subject, ContributionKind.REPORT)

        self.assertEqual(fact.confidence, 40.0)
        self.assertEqual(fact.verified_count, 1)
        self.assertEqual(fact.value_json["label"], "Baking")
        self.assertEqual(fact.last_confidence_delta, -10.0)

    def test_report_with_replacement_value_resets_confidence(self) -> None:
        subject = AisleSubject(store_id=self.store_id, aisle_number="9")
        self._apply(subject, ContributionKind.SCAN, AisleValue(label="Baking"))
        self._apply(subject, ContributionKind.SCAN)
        fact = self._apply(subject, ContributionKind.REPORT, AisleValue(label="Spices"))

        self.assertEqual(fact.confidence, 50.0)
        self.assertEqual(fact.verified_count, 2)
        self.assertEqual(fact.value_json["label"], "Spices")

    def test_confirm_and_report_require_existing_fact(self) -> None:
        subject = AisleSubject(store_id=self.store_id, aisle_number="44")
        with self.assertRaises(NotFoundError):
            self._apply(subject, ContributionKind.CONFIRM)
        self.db.rollback()
        with self.assertRaises(NotFoundError):
            self._apply(subject, ContributionKind.REPORT)

    def test_value_type_must_match_subject(self) -> None:
        subject = AisleSubject(store_id=self.store_id, aisle_number="1")
        with self.assertRaises(ValidationError):
            self._apply(subject, ContributionKind.SCAN, PriceValue(amount=Decimal("1.00")))
        with self.assertRaises(ValidationError):
            self._apply(PriceSubject(store_id=self.store_id, barcode="012345678905"), ContributionKind.SCAN)
        with self.assertRaises(ValidationError):
            self._apply(subject, ContributionKind.PROPAGATION)
        with self.assertRaises(ValidationError):
            self._apply(subject, ContributionKind.ENTRANCE)

    def test_propagated_insert_never_overwrites_direct_fact(self) -> None:
        subject = PriceSubject(store_id=self.store_id, barcode="012345678905")
        direct = self._apply(subject, ContributionKind.SCAN, PriceValue(amount=Decimal("2.99")))
        link = PropagationLink(
            target_store_id=self.store_id,
            source_store_id=self.store_id,
            source_fact_id=direct.id,
            strategy=PropagationStrategy.FALLBACK,
            confidence=90.0,
        )

        inserted = fact_store.insert_propagated_fact(
            self.db,
            subject,
            link,
            value_json={"value_type": "price", "amount": "1.00", "currency": "USD"},
            source_last_verified_at=NOW,
            now=NOW,
        )
        self.db.commit()

        self.assertIsNone(inserted)
        current = fact_store.find_fact(self.db, subject)
        assert current is not None
        self.assertEqual(current.origin, FactOrigin.DIRECT.value)
        self.assertEqual(current.value_json["amount"], "2.99")
        self.assertEqual(current.confidence, 50.0)

    def test_direct_scan_supersedes_propagated_fact(self) -> None:
        other = Store(name="Kroger Uptown", latitude=39.2, longitude=-84.5)
        self.db.add(other)
        self.db.commit()
        source = self._apply(
            PriceSubject(store_id=other.id, barcode="012345678905"),
            ContributionKind.SCAN,
            PriceValue(amount=Decimal("2.49")),
        )
        subject = PriceSubject(store_id=self.store_id, barcode="012345678905")
        link = PropagationLink(
            target_store_id=self.store_id,
            source_store_id=other.id,
            source_fact_id=source.id,
            strategy=PropagationStrategy.CHAIN,
            confidence=47.5,
            distance_km=11.12,
            confidence_multiplier=0.95,
        )
        propagated = fact_store.insert_propagated_fact(
            self.db,
            subject,
            link,
            value_json=dict(source.value_json),
            source_last_verified_at=NOW,
            now=NOW,
        )
        self.db.commit()
        assert propagated is not None
        self.assertEqual(propagated.origin, FactOrigin.PROPAGATED.value)
        self.assertEqual(propagated.verified_count, 0)
        self.assertEqual(propagated.confidence, 47.5)

        fact = self._apply(subject, ContributionKind.SCAN, PriceValue(amount=Decimal("2.79")))
        self.assertEqual(fact.id, propagated.id)
        self.assertEqual(fact.origin, FactOrigin.DIRECT.value)
        self.assertEqual(fact.confidence, 50.0)
        self.assertEqual(fact.verified_count, 1)
        self.assertEqual(fact.value_json["amount"], "2.79")
        self.assertIsNone(fact.source_fact_id)
        self.assertIsNone(fact.distance_km)

        refreshed = fact_store.refresh_propagated_fact(
            self.db,
            fact.id,
            fact.revision,
            link,
            value_json=dict(source.value_json),
            source_last_verified_at=NOW,
            now=NOW,
        )
        self.db.commit()
        self.assertIsNone(refreshed)
        self.assertEqual(fact_store.get_fact(self.db, subject).value.amount, Decimal("2.79"))

    def test_get_fact_returns_low_confidence_fact(self) -> None:
        subject = AisleSubject(store_id=self.store_id, aisle_number="5")
        self._apply(subject, ContributionKind.SCAN)
        for _ in range(4):
            self._apply(subject, ContributionKind.REPORT)

        fact = fact_store.get_fact(self.db, subject, settings=self.settings, now=NOW)
        self.assertEqual(fact.confidence, 10.0)
        self.assertEqual(fact.subject_id, "5")
        self.assertEqual(list(fact_store.list_facts_for_store(self.db, self.store_id, settings=self.settings)), [])

        with self.assertRaises(NotFoundError):
            fact_store.get_fact(self.db, AisleSubject(store_id=self.store_id, aisle_number="99"))

    def test_get_fact_reports_read_time_decay(self) -> None:
        subject = AisleSubject(store_id=self.store_id, aisle_number="6")
        self._apply(subject, ContributionKind.SCAN, now=NOW - timedelta(days=200))

        fact = fact_store.get_fact(self.db, subject, settings=self.settings, now=NOW)
        self.assertEqual(fact.confidence, 50.0)
        self.assertEqual(fact.effective_confidence, 30.0)
        stored = fact_store.find_fact(self.db, subject)
        assert stored is not None
        self.assertEqual(stored.confidence, 50.0)

    def test_listing_is_lazy_ordered_and_thresholded(self) -> None:
        aisle_a = AisleSubject(store_id=self.store_id, aisle_number="A")
        aisle_b = AisleSubject(store_id=self.store_id, aisle_number="B")
        self._apply(aisle_a, ContributionKind.SCAN)
        self._apply(aisle_b, ContributionKind.SCAN)
        self._apply(aisle_b, ContributionKind.SCAN)
        department = DepartmentSubject(store_id=self.store_id, aisle_number="A", department="Dairy")
        self._apply(department, ContributionKind.MANUAL)
        category = ProductCategorySubject(
            store_id=self.store_id,
            aisle_number="A",
            department="dairy",
            category="Yogurt",
        )
        self._apply(category, ContributionKind.MANUAL)
        self._apply(category, ContributionKind.REPORT)
        self._apply(category, ContributionKind.REPORT)
        self._apply(category, ContributionKind.REPORT)
        self._apply(category, ContributionKind.REPORT)

        facts = fact_store.list_facts_for_store(self.db, self.store_id, settings=self.settings, now=NOW)
        self.assertFalse(isinstance(facts, list))
        first = next(facts)
        self.assertEqual((first.subject_type, first.subject_id, first.confidence), ("aisle", "B", 60.0))
        rest = [(fact.subject_type, fact.subject_id) for fact in facts]
        self.assertEqual(rest, [("aisle", "A"), ("department", "A/dairy")])

        everything = list(fact_store.list_facts_for_store(self.db, self.store_id, 0, settings=self.settings))
        self.assertEqual(len(everything), 4)
        self.assertEqual(everything[-1].subject_id, "A/dairy/yogurt")

        with self.assertRaises(ValidationError):
            fact_store.list_facts_for_store(self.db, self.store_id, 150)
        with self.assertRaises(NotFoundError):
            fact_store.list_facts_for_store(self.db, self.store_id + 100)

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
