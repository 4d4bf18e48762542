from livenote.segmenter import segment_sentences, split_complete


def test_segment_basic_terminators():
    text = "Patient reports chest pain. Denies nausea! Any fever today?"
    assert segment_sentences(text) == [
        "Patient reports chest pain",
        "Denies nausea",
        "Any fever today",
    ]


def test_segment_drops_short_fragments():
    assert segment_sentences("OK. Yes. Patient feels dizzy on standing.") == ["Patient feels dizzy on standing"]


def test_segment_keeps_decimals_and_ratios():
    out = segment_sentences("Temperature 38.5 degrees and BP 140/90 today.")
    assert out == ["Temperature 38.5 degrees and BP 140/90 today"]


def test_segment_collapses_whitespace():
    assert segment_sentences("  Patient   reports\nheadache  .") == ["Patient reports headache"]


def test_segment_empty_input():
    assert segment_sentences("") == []
    assert segment_sentences("   ") == []
    assert segment_sentences(None) == []


def test_segment_is_idempotent():
    text = "Patient reports chest pain radiating to left arm. Plan ECG."
    first = segment_sentences(text)
    assert segment_sentences(". ".join(first) + ".") == first


def test_split_complete_holds_tail():
    done, tail = split_complete("Severe headache since Monday. Also reports")
    assert done == "Severe headache since Monday."
    assert tail == " Also reports"


def test_split_complete_no_terminator():
    assert split_complete("still talking") == ("", "still talking")


def test_split_complete_terminator_at_end():
    assert split_complete("Plan to review.") == ("Plan to review.", "")


def test_split_complete_ignores_decimal_point():
    done, tail = split_complete("Temperature 38.5")
    assert done == ""
    assert tail == "Temperature 38.5"


def test_segment_keeps_abbreviations_inside_sentence():
    text = "Seen by Dr. Smith who noted BP 140/90 today. Pain is approx. 7/10 now."
    assert segment_sentences(text) == [
        "Seen by Dr. Smith who noted BP 140/90 today",
        "Pain is approx. 7/10 now",
    ]


def test_segment_abbreviations_are_configurable():
    assert segment_sentences("Seen by Dr. Smith today for review.", abbreviations=frozenset()) == [
        "Seen by Dr",
        "Smith today for review",
    ]


def test_split_complete_holds_number_at_end():
    assert split_complete("Temperature 38.") == ("", "Temperature 38.")
    assert split_complete("Chest pain noted. Temperature 38.") == ("Chest pain noted.", " Temperature 38.")
    assert split_complete("Temperature 38. Then") == ("Temperature 38.", " Then")


def test_split_complete_holds_abbreviation_at_end():
    assert split_complete("Referred to Dr.") == ("", "Referred to Dr.")
    assert split_complete("Referred to Dr. Smith.") == ("Referred to Dr. Smith.", "")
