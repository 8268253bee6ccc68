"""Tests for label classification."""

from __future__ import annotations

import pytest

from trac_to_github_migrator.labels import LabelClassifier, LabelFieldSpec, LabelMapping, LabelTally


@pytest.mark.unit
class TestLabelMapping:
    def test_override_wins_over_field_default(self) -> None:
        mapping = LabelMapping({("component", "doc"): "documentation"}, {"component": "area"})
        assert mapping.resolve("component", "doc") == "documentation"
        assert mapping.resolve("component", "ui") == "area"

    def test_value_used_verbatim_without_configuration(self) -> None:
        mapping = LabelMapping()
        assert mapping.resolve("component", "ui") == "ui"

    def test_empty_override_suppresses(self) -> None:
        mapping = LabelMapping({("severity", "normal"): ""}, {"severity": "sev"})
        assert mapping.resolve("severity", "normal") is None
        assert mapping.resolve("severity", "minor") == "sev"

    def test_empty_field_default_suppresses_whole_field(self) -> None:
        mapping = LabelMapping(defaults={"version": ""})
        assert mapping.resolve("version", "1.0") is None


@pytest.mark.unit
class TestLabelClassifier:
    def _classifier(self, **mapping: dict) -> LabelClassifier:
        fields = [
            LabelFieldSpec("type"),
            LabelFieldSpec("priority"),
            LabelFieldSpec("severity"),
            LabelFieldSpec("keywords", split=True),
        ]
        return LabelClassifier(fields, LabelMapping(**mapping))

    def test_suppressed_value_yields_no_label(self) -> None:
        classifier = self._classifier(overrides={("severity", "normal"): ""})
        assert classifier.extract_labels({"severity": "normal"}) == frozenset()

    def test_split_field_is_tokenized_on_commas_and_whitespace(self) -> None:
        classifier = self._classifier()
        labels = classifier.extract_labels({"keywords": "crash,  startup  ui,,crash"})
        assert labels == {"crash", "startup", "ui"}

    def test_unsplit_field_is_one_token(self) -> None:
        classifier = self._classifier()
        assert classifier.extract_labels({"type": " feature request "}) == {"feature request"}

    def test_missing_and_empty_fields_are_ignored(self) -> None:
        classifier = self._classifier()
        assert classifier.extract_labels({"type": "", "priority": None, "other": "x"}) == frozenset()

    def test_labels_are_deduplicated_across_fields(self) -> None:
        classifier = self._classifier(overrides={("priority", "high"): "major", ("severity", "blocker"): "major"})
        labels = classifier.extract_labels({"priority": "high", "severity": "blocker"})
        assert labels == {"major"}

    def test_unconfigured_fields_do_not_contribute(self) -> None:
        classifier = self._classifier()
        assert classifier.extract_labels({"component": "core"}) == frozenset()

    def test_integer_values_are_stringified(self) -> None:
        classifier = self._classifier()
        assert classifier.extract_labels({"priority": 2}) == {"2"}


@pytest.mark.unit
class TestLabelTally:
    def test_clash_between_fields_is_reported(self) -> None:
        tally = LabelTally()
        classifier = LabelClassifier(
            [LabelFieldSpec("priority"), LabelFieldSpec("severity")],
            LabelMapping({("priority", "high"): "major", ("severity", "blocker"): "major"}),
            tally,
        )

        assert classifier.extract_labels({"priority": "high"}) == {"major"}
        assert classifier.extract_labels({"severity": "blocker"}) == {"major"}

        assert tally.clashes() == {"major": ["priority", "severity"]}
        assert tally.counts() == {("priority", "major"): 1, ("severity", "major"): 1}
        assert tally.sources("major") == [("priority", "high"), ("severity", "blocker")]

    def test_same_field_mapping_two_values_is_not_a_clash(self) -> None:
        tally = LabelTally()
        tally.record("priority", "low", "minor")
        tally.record("priority", "lowest", "minor")

        assert tally.clashes() == {}
        assert tally.counts() == {("priority", "minor"): 2}

    def test_suppressed_values_are_not_tallied(self) -> None:
        tally = LabelTally()
        classifier = LabelClassifier([LabelFieldSpec("severity")], LabelMapping({("severity", "normal"): ""}), tally)
        classifier.extract_labels({"severity": "normal"})
        assert tally.counts() == {}
