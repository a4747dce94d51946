"""Tests for the order-page classifier."""

import pytest
from pydantic import ValidationError

from autocomplaint.config.settings import ClassifierConfig
from autocomplaint.pipeline.classifier import (
    ClassifierMode,
    PageClassifier,
    SignalRule,
    SignalTier,
)
from autocomplaint.pipeline.errors import InputError


@pytest.fixture
def classifier():
    return PageClassifier()


class TestPageClassifier:
    def test_two_strong_signals_gate_extraction(self, classifier):
        text = "Order Number: 123-4567890. Order confirmed. Payment successful."
        result = classifier.classify(text, ClassifierMode.GATING)
        assert result.is_order_page
        assert result.confidence >= 0.7
        assert "order-number" in result.matched_signals
        assert "payment-successful" in result.matched_signals

    def test_storefront_text_is_not_an_order_page(self, classifier):
        result = classifier.classify("Browse our catalog and add to cart")
        assert not result.is_order_page
        assert result.confidence == 0.0
        assert result.matched_signals == ["add-to-cart", "browse"]

    def test_deterministic(self, classifier):
        text = "Invoice number INV-22 Tracking number AWB12345 shipped"
        assert classifier.classify(text) == classifier.classify(text)

    def test_mode_thresholds(self, classifier):
        # order-status 0.4 + "order" 0.1 + "shipped" 0.1
        text = "Order confirmed, shipped"
        assert classifier.score(text)[0] == pytest.approx(0.6)
        assert classifier.classify(text, ClassifierMode.INFORMATIONAL).is_order_page
        assert not classifier.classify(text, ClassifierMode.GATING).is_order_page

    def test_negative_signals_reduce_score(self, classifier):
        positive, _ = classifier.score("Order confirmed")
        mixed, _ = classifier.score("Order confirmed. Customer reviews. Add to cart")
        assert mixed == pytest.approx(positive - 0.3)

    def test_score_clamped(self, classifier):
        text = (
            "Order Number: ORD-1234 Order placed Invoice number 55 Payment successful "
            "Receipt number 9 Total: $10 Tracking number"
        )
        assert classifier.score(text)[0] == 1.0

    def test_custom_rule_table(self):
        rules = [SignalRule("refund", r"\brefund\s+issued\b", SignalTier.STRONG, weight=0.9)]
        classifier = PageClassifier(rules=rules)
        result = classifier.classify("Refund issued to your card", ClassifierMode.GATING)
        assert result.is_order_page
        assert result.matched_signals == ["refund"]

    def test_custom_thresholds(self):
        classifier = PageClassifier(ClassifierConfig(informational_threshold=0.1, gating_threshold=0.2))
        assert classifier.classify("order", ClassifierMode.INFORMATIONAL).is_order_page

    def test_empty_text(self, classifier):
        result = classifier.classify("")
        assert not result.is_order_page
        assert result.matched_signals == []

    def test_rejects_non_string(self, classifier):
        with pytest.raises(InputError):
            classifier.classify(None)


class TestClassifierConfig:
    def test_defaults(self):
        config = ClassifierConfig()
        assert config.informational_threshold == 0.5
        assert config.gating_threshold == 0.7

    def test_informational_cannot_exceed_gating(self):
        with pytest.raises(ValidationError):
            ClassifierConfig(informational_threshold=0.8, gating_threshold=0.6)

    def test_threshold_bounds(self):
        with pytest.raises(ValidationError):
            ClassifierConfig(gating_threshold=1.5)
