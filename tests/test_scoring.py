import unittest

from livenote.models import TemplateSection
from livenote.scoring import assign_best_section, categorize_content, score_section
from livenote.templates import get_template_by_id


def _section(sid, type_, keywords=()):
    return TemplateSection(id=sid, title=sid, type=type_, keywords=list(keywords))


class TestScoreSection(unittest.TestCase):
    def test_symptom_sentence_scores_symptoms(self):
        symptoms = _section("symptoms_1", "symptoms")
        plan = _section("plan_2", "plan")
        sentence = "Patient reports chest pain radiating to left arm"
        self.assertGreater(score_section(sentence, symptoms), 0.3)
        self.assertEqual(score_section(sentence, plan), 0.0)

    def test_score_is_bounded(self):
        vitals = _section("vitals_1", "vitals")
        score = score_section("BP 140/90 mmHg, HR 85 bpm, temperature 37 degrees, weight 80 kg", vitals)
        self.assertGreaterEqual(score, 0.0)
        self.assertLessEqual(score, 1.0)

    def test_empty_sentence(self):
        self.assertEqual(score_section("", _section("symptoms_1", "symptoms")), 0.0)

    def test_short_keywords_need_whole_words(self):
        # "hr" inside "three" is not a heart rate.
        vitals = _section("vitals_1", "vitals")
        self.assertEqual(score_section("Three siblings at home", vitals), 0.0)

    def test_section_keywords_extend_vocabulary(self):
        notes = _section("notes_1", "notes", ["incidental"])
        self.assertEqual(score_section("Incidental finding on the left", _section("notes_2", "notes")), 0.0)
        self.assertGreater(score_section("Incidental finding on the left", notes), 0.3)


class TestAssignBestSection(unittest.TestCase):
    def test_tie_goes_to_earlier_section(self):
        sections = [_section("symptoms_1", "symptoms"), _section("symptoms_2", "symptoms")]
        result = assign_best_section("Patient reports chest pain", sections)
        self.assertEqual(result.section_id, "symptoms_1")

    def test_below_floor_returns_none(self):
        sections = get_template_by_id("basic").sections
        self.assertIsNone(assign_best_section("The weather outside is lovely today", sections))

    def test_custom_floor(self):
        sections = get_template_by_id("basic").sections
        self.assertIsNone(assign_best_section("Patient reports chest pain", sections, floor=1.1))

    def test_vitals_sentence(self):
        sections = get_template_by_id("general-consultation").sections
        result = assign_best_section("BP 140/90, HR 85 bpm", sections)
        self.assertEqual(result.section_id, "vitals_3")


def test_categorize_content_groups_by_section():
    template = get_template_by_id("basic")
    text = (
        "Patient reports chest pain since yesterday. "
        "Also complains of nausea and dizziness. "
        "The weather outside is lovely today."
    )
    results = categorize_content(text, template.sections)
    assert [r.section_id for r in results] == ["symptoms_1"]
    assert results[0].suggested_content == (
        "Patient reports chest pain since yesterday Also complains of nausea and dizziness"
    )
    assert 0.3 <= results[0].confidence <= 1.0


def test_categorize_content_empty():
    assert categorize_content("", get_template_by_id("basic").sections) == []
