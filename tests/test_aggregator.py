import unittest

import pytest

from livenote.aggregator import (
    ProgressivePopulator,
    StreamingAggregator,
    dedupe_entities,
    fragment_similarity,
)
from livenote.errors import InvalidTemplate, NotBound
from livenote.lexicon import DEFAULT_LEXICON
from livenote.models import Entity
from livenote.templates import get_template_by_id


def _aggregator(template_id="basic", **kwargs):
    return StreamingAggregator(get_template_by_id(template_id), **kwargs)


class TestStreamingScenarios(unittest.TestCase):
    def test_symptom_sentence_lands_in_symptoms(self):
        agg = _aggregator("general-consultation")
        results = agg.add_text("Patient reports chest pain radiating to left arm.")
        self.assertEqual(len(results), 1)
        self.assertEqual(results[0].section_id, "symptoms_1")
        self.assertGreater(results[0].confidence, 0.3)
        self.assertFalse([e for e in results[0].entities if e.type == "vital"])

        snap = agg.get_snapshot()
        self.assertEqual(snap.sections["symptoms_1"].fragments, ["Patient reports chest pain radiating to left arm"])

    def test_vitals_sentence_entities(self):
        agg = _aggregator("general-consultation")
        agg.add_text("BP 140/90, HR 85 bpm.")
        vitals = agg.get_snapshot().sections["vitals_3"]
        self.assertEqual([e.details.value for e in vitals.entities], ["140/90", "85"])
        self.assertTrue(all(e.sentence_index == 0 for e in vitals.entities))

    def test_medication_sentence(self):
        agg = _aggregator("general-consultation")
        results = agg.add_text("Aspirin 300mg once daily.")
        meds = [e for e in results[0].entities if e.type == "medication"]
        self.assertEqual(len(meds), 1)
        self.assertEqual(meds[0].details.dosage, "300 mg")

    def test_near_duplicate_is_dropped(self):
        agg = _aggregator()
        agg.add_text("Patient has severe chest pain.")
        second = agg.add_text("Patient complained of severe chest pain.")
        self.assertTrue(second[0].duplicate)
        self.assertEqual(agg.get_snapshot().sections["symptoms_1"].fragments, ["Patient has severe chest pain"])

    def test_same_sentence_twice_yields_one_fragment(self):
        agg = _aggregator()
        agg.add_text("Patient reports a dry cough at night.")
        agg.add_text("Patient reports a dry cough at night.")
        self.assertEqual(len(agg.get_snapshot().sections["symptoms_1"].fragments), 1)

    def test_negation_is_not_a_duplicate(self):
        agg = _aggregator()
        agg.add_text("Patient reports chest pain.")
        agg.add_text("Patient reports no chest pain.")
        self.assertEqual(len(agg.get_snapshot().sections["symptoms_1"].fragments), 2)

    def test_reset_clears_session(self):
        agg = _aggregator()
        agg.add_text("Patient reports chest pain. Diagnosis is viral infection.")
        self.assertGreater(agg.get_snapshot().completeness, 0)

        agg.reset()
        snap = agg.get_snapshot()
        self.assertEqual(snap.completeness, 0)
        self.assertTrue(all(not s.fragments for s in snap.sections.values()))
        self.assertEqual(snap.processed_text, "")
        self.assertEqual(snap.state, "idle")
        self.assertEqual(agg.template.id, "basic")


class TestStreamingBuffering(unittest.TestCase):
    def test_unterminated_tail_waits(self):
        agg = _aggregator()
        self.assertEqual(agg.add_text("Patient reports chest pain"), [])
        snap = agg.get_snapshot()
        self.assertEqual(snap.pending_text, "Patient reports chest pain")
        self.assertEqual(snap.state, "accumulating")

        results = agg.add_text(" radiating to left arm.")
        self.assertEqual([r.text for r in results], ["Patient reports chest pain radiating to left arm"])
        self.assertEqual(agg.get_snapshot().pending_text, "")

    def test_flush_classifies_tail(self):
        agg = _aggregator()
        agg.add_text("Patient reports severe headache")
        results = agg.flush()
        self.assertEqual(results[0].section_id, "symptoms_1")
        self.assertEqual(agg.get_snapshot().pending_text, "")
        self.assertEqual(agg.flush(), [])

    def test_decimal_split_across_chunks(self):
        agg = _aggregator("general-consultation")
        self.assertEqual(agg.add_text("Temperature 38."), [])
        self.assertEqual(agg.get_snapshot().pending_text, "Temperature 38.")

        results = agg.add_text("5 degrees and BP 140/90 today.")
        self.assertEqual([r.text for r in results], ["Temperature 38.5 degrees and BP 140/90 today"])
        values = {e.details.value for e in results[0].entities if e.type == "vital"}
        self.assertEqual(values, {"38.5", "140/90"})
        fragments = [f for s in agg.get_snapshot().sections.values() for f in s.fragments]
        self.assertNotIn("Temperature 38", fragments)

    def test_number_at_chunk_end_released_by_next_chunk(self):
        agg = _aggregator()
        self.assertEqual(agg.add_text("Heart rate was 85."), [])
        results = agg.add_text(" Plan to review in clinic.")
        self.assertEqual([r.text for r in results], ["Heart rate was 85", "Plan to review in clinic"])

    def test_number_at_chunk_end_released_by_flush(self):
        agg = _aggregator()
        agg.add_text("Heart rate was 85.")
        self.assertEqual([r.text for r in agg.flush()], ["Heart rate was 85"])

    def test_abbreviation_split_across_chunks(self):
        agg = _aggregator()
        self.assertEqual(agg.add_text("Seen by Dr."), [])
        results = agg.add_text(" Smith who noted chest pain.")
        self.assertEqual([r.text for r in results], ["Seen by Dr. Smith who noted chest pain"])

    def test_empty_chunks_are_noops(self):
        agg = _aggregator()
        self.assertEqual(agg.add_text(""), [])
        self.assertEqual(agg.add_text("   "), [])
        self.assertEqual(agg.add_text(None), [])
        self.assertEqual(agg.state, "idle")

    def test_unclassified_sentences_recorded(self):
        agg = _aggregator()
        agg.add_text("The weather outside is lovely today.")
        self.assertEqual(agg.get_snapshot().unclassified, ["The weather outside is lovely today"])

    def test_processed_text_accumulates_chunks(self):
        agg = _aggregator()
        agg.add_text("Patient reports ")
        agg.add_text("chest pain.")
        self.assertEqual(agg.get_snapshot().processed_text, "Patient reports chest pain.")


class TestSnapshotProperties(unittest.TestCase):
    def test_confidence_never_decreases(self):
        agg = _aggregator()
        chunks = [
            "Patient reports chest pain radiating to left arm.",
            "Also mild headache.",
            "Some tiredness in the evenings.",
            "Complains of nausea, vomiting and dizziness after meals.",
        ]
        previous = 0.0
        for chunk in chunks:
            agg.add_text(chunk)
            current = agg.get_snapshot().sections["symptoms_1"].confidence
            self.assertGreaterEqual(current, previous)
            previous = current

    def test_completeness_is_exact_ratio(self):
        agg = _aggregator()
        agg.add_text("Patient reports chest pain.")
        snap = agg.get_snapshot()
        self.assertEqual(snap.total_sections, 5)
        self.assertEqual(snap.populated_sections, 1)
        self.assertEqual(snap.completeness, 1 / 5)

    def test_snapshot_is_a_copy(self):
        agg = _aggregator()
        agg.add_text("Patient reports chest pain.")
        snap = agg.get_snapshot()
        snap.sections["symptoms_1"].fragments.append("tampered")
        self.assertEqual(agg.get_snapshot().sections["symptoms_1"].fragments, ["Patient reports chest pain"])

    def test_entities_deduplicated_per_section(self):
        agg = _aggregator("general-consultation")
        agg.add_text("BP 140/90, HR 85 bpm.")
        agg.add_text("BP 140/90 again, HR 85 bpm stable.")
        vitals = agg.get_snapshot().sections["vitals_3"]
        self.assertEqual(len(vitals.fragments), 2)
        self.assertEqual(len(vitals.entities), 2)
        self.assertTrue(all(e.sentence_index == 0 for e in vitals.entities))


class TestBinding(unittest.TestCase):
    def test_unbound_raises(self):
        agg = StreamingAggregator()
        self.assertFalse(agg.is_bound)
        with self.assertRaises(NotBound):
            agg.add_text("Patient reports chest pain.")
        with self.assertRaises(NotBound):
            agg.get_snapshot()
        with self.assertRaises(NotBound):
            agg.flush()

    def test_empty_template_rejected(self):
        agg = StreamingAggregator()
        with self.assertRaises(InvalidTemplate):
            agg.bind_template({"id": "empty", "name": "Empty", "sections": []})

    def test_duplicate_section_ids_rejected(self):
        section = {"id": "symptoms_1", "title": "Symptoms", "type": "symptoms"}
        with self.assertRaises(InvalidTemplate):
            StreamingAggregator({"id": "dup", "name": "Dup", "sections": [section, section]})

    def test_bind_from_mapping(self):
        agg = StreamingAggregator()
        agg.bind_template({
            "id": "mini",
            "name": "Mini",
            "sections": [{"id": "s1", "title": "Symptoms", "type": "symptoms"}],
        })
        agg.add_text("Patient reports chest pain.")
        self.assertEqual(agg.get_snapshot().completeness, 1.0)

    def test_rebind_discards_previous_content(self):
        agg = _aggregator()
        agg.add_text("Patient reports chest pain.")
        agg.bind_template(get_template_by_id("general-consultation"))
        snap = agg.get_snapshot()
        self.assertEqual(snap.populated_sections, 0)
        self.assertEqual(snap.total_sections, 7)


class _FakeClassifier:
    def __init__(self, result=None, error=None):
        self.result = result
        self.error = error
        self.calls = []

    def classify(self, sentence_text, candidate_section_ids):
        self.calls.append((sentence_text, list(candidate_section_ids)))
        self.candidates = candidate_section_ids
        if self.error:
            raise self.error
        return self.result


class TestClassifierDelegation(unittest.TestCase):
    UNMATCHED = "The weather outside is lovely today."

    def test_classifier_used_when_no_local_match(self):
        fake = _FakeClassifier(("notes_5", 0.9))
        agg = _aggregator(classifier=fake)
        results = agg.add_text(self.UNMATCHED)
        self.assertEqual(results[0].section_id, "notes_5")
        self.assertEqual(results[0].source, "classifier")
        self.assertEqual(fake.calls[0][1], ["symptoms_1", "examination_2", "diagnosis_3", "treatment_4", "notes_5"])
        self.assertEqual(fake.candidates["notes_5"], "Notes")

    def test_classifier_not_called_for_local_match(self):
        fake = _FakeClassifier(("notes_5", 0.9))
        agg = _aggregator(classifier=fake)
        results = agg.add_text("Patient reports chest pain.")
        self.assertEqual(results[0].source, "lexicon")
        self.assertEqual(fake.calls, [])

    def test_classifier_failure_keeps_sentence_unclassified(self):
        agg = _aggregator(classifier=_FakeClassifier(error=RuntimeError("timeout")))
        results = agg.add_text(self.UNMATCHED)
        self.assertIsNone(results[0].section_id)
        self.assertEqual(agg.get_snapshot().unclassified, ["The weather outside is lovely today"])

    def test_classifier_unknown_section_or_low_confidence_ignored(self):
        for result in (("nope", 0.9), ("notes_5", 0.1), None):
            agg = _aggregator(classifier=_FakeClassifier(result))
            self.assertIsNone(agg.add_text(self.UNMATCHED)[0].section_id)


class TestUrgency(unittest.TestCase):
    def test_reevaluated_after_enough_text(self):
        agg = _aggregator()
        agg.add_text(
            "Patient reports crushing chest pain radiating to the left arm "
            "for the past two hours with sweating and nausea."
        )
        snap = agg.get_snapshot()
        self.assertEqual(snap.urgency_level, "urgent")
        self.assertTrue(any(a.priority == "urgent" for a in snap.suggested_actions))

    def test_not_reevaluated_before_threshold(self):
        agg = _aggregator()
        agg.add_text("Sudden weakness on one side, possible stroke last night.")
        self.assertEqual(agg.get_snapshot().urgency_level, "low")
        agg.flush()
        self.assertEqual(agg.get_snapshot().urgency_level, "urgent")

    def test_short_text_never_evaluated(self):
        agg = _aggregator()
        agg.add_text("Possible stroke.")
        agg.flush()
        self.assertEqual(agg.get_snapshot().urgency_level, "low")


def test_fragment_similarity_ignores_filler():
    filler = DEFAULT_LEXICON.filler_words
    assert fragment_similarity(
        "Patient has severe chest pain",
        "Patient complained of severe chest pain",
        filler,
    ) == 1.0
    assert fragment_similarity("Patient reports chest pain", "Patient reports no chest pain", filler) < 0.8


def test_fragment_similarity_all_filler():
    assert fragment_similarity("the patient", "The patient", DEFAULT_LEXICON.filler_words) == 1.0


def test_dedupe_entities_keeps_first():
    a = Entity(type="device", text="Inhaler", start_index=0, end_index=7, confidence=0.85, sentence_index=0)
    b = Entity(type="device", text="inhaler", start_index=4, end_index=11, confidence=0.85, sentence_index=3)
    assert dedupe_entities([a, b]) == [a]


class _Clock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


def test_populator_waits_for_interval():
    clock = _Clock()
    pop = ProgressivePopulator(get_template_by_id("basic"), clock=clock)
    assert pop.add_transcription_segment("Patient reports chest pain.") is False
    assert pop.get_populated_template() == {}

    clock.now = 11.0
    assert pop.add_transcription_segment("Nothing else to add today.") is True
    populated = pop.get_populated_template()
    assert list(populated) == ["symptoms_1"]
    assert populated["symptoms_1"]["content"] == "Patient reports chest pain"
    assert populated["symptoms_1"]["confidence"] > 0.3
    assert pop.buffered_text == ""


def test_populator_analyses_when_buffer_fills():
    clock = _Clock()
    pop = ProgressivePopulator(get_template_by_id("basic"), clock=clock, buffer_chars=40)
    triggered = pop.add_transcription_segment("Patient reports chest pain radiating to left arm since this morning")
    assert triggered is True
    assert "symptoms_1" in pop.get_populated_template()


def test_populator_reset_and_ignores_empty():
    clock = _Clock()
    pop = ProgressivePopulator(get_template_by_id("basic"), clock=clock)
    assert pop.add_transcription_segment("   ") is False
    pop.add_transcription_segment("Patient reports chest pain.")
    pop.analyze_now()
    assert pop.get_snapshot().populated_sections == 1
    pop.reset()
    assert pop.get_snapshot().populated_sections == 0
    assert pop.buffered_text == ""


def test_populator_requires_valid_template():
    with pytest.raises(InvalidTemplate):
        ProgressivePopulator({"id": "x", "name": "X", "sections": []})
