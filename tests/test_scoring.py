import pytest

from verse_recall.scoring import (
    NEAR_MISS,
    PASS,
    ScoreResult,
    WordResult,
    calculate_score,
    categorize_score,
    clamp_score,
    edit_distance,
)

TEXTS = [
    "There is now no condemnation for those in Christ Jesus.",
    "1 For God so loved the world",
    "Abba, Father!",
    "a",
]


@pytest.mark.parametrize("text", TEXTS)
def test_identical_text_scores_perfectly(text):
    result = calculate_score(text, text)
    assert result.score == 1.0
    assert all(w.status == "correct" for w in result.word_results)


def test_formatting_differences_are_ignored():
    result = calculate_score("1 For God, so loved…", "for god so loved")
    # the ellipsis character is not in the stripped set
    assert result.score < 1.0
    assert calculate_score("1 For God, so loved!", "for god so loved").score == 1.0


def test_both_empty_is_vacuous_match():
    result = calculate_score("", "")
    assert result.score == 1.0
    assert result.word_results == []


def test_empty_input_against_text():
    result = calculate_score("", "hello")
    assert result.score < 1.0
    assert result.score == 0.0
    assert result.word_results == [WordResult("hello", "missing")]


def test_edit_distance_basics():
    assert edit_distance([], []) == 0
    assert edit_distance(["a", "b", "c"], ["a", "c"]) == 1
    assert edit_distance(["a", "b"], ["b", "a"]) == 2
    assert edit_distance([], ["x", "y"]) == 2


@pytest.mark.parametrize("a, b", [
    ("the law of the spirit", "the law of sin and death"),
    ("we cry abba father", "abba"),
    ("", "for those who love god"),
])
def test_distance_and_score_are_symmetric(a, b):
    assert edit_distance(a.split(), b.split()) == edit_distance(b.split(), a.split())
    assert calculate_score(a, b).score == calculate_score(b, a).score


def test_single_substitution_is_near_miss():
    result = calculate_score("For God so love the world", "For God so loved the world")
    assert result.score == pytest.approx(1 - 1 / 6)
    assert result.category == "near_miss"
    assert [(w.word, w.status) for w in result.word_results] == [
        ("for", "correct"),
        ("god", "correct"),
        ("so", "correct"),
        ("loved", "close"),
        ("the", "correct"),
        ("world", "correct"),
        ("love", "extra"),
    ]


def test_word_results_order_expected_then_extras():
    result = calculate_score("zeal grace peace", "peace be with you")
    assert [(w.word, w.status) for w in result.word_results] == [
        ("peace", "correct"),
        ("be", "missing"),
        ("with", "missing"),
        ("you", "missing"),
        ("zeal", "extra"),
        ("grace", "extra"),
    ]


def test_every_expected_word_reported_once_in_order():
    expected = "the law of the spirit of life"
    result = calculate_score("the law of life", expected)
    non_extra = [w.word for w in result.word_results if w.status != "extra"]
    assert non_extra == expected.split()


def test_duplicate_extras_are_each_reported():
    result = calculate_score("amen amen", "go")
    assert [(w.word, w.status) for w in result.word_results] == [
        ("go", "missing"),
        ("amen", "extra"),
        ("amen", "extra"),
    ]


def test_close_requires_three_letters():
    # "so" vs "se" share a letter but both are too short
    result = calculate_score("se", "so")
    assert result.word_results[0] == WordResult("so", "missing")


def test_close_uses_positional_overlap():
    # "glory" vs "glorx": 4 of 5 positions match
    assert calculate_score("glorx", "glory").word_results[0].status == "close"
    # "sinful" vs "sin": 3 matches against length 6 is exactly 0.5
    assert calculate_score("sinful", "sin").word_results[0].status == "missing"


def test_diagnostics_are_independent_of_alignment():
    # Reordered words are all "correct" even though the score drops
    result = calculate_score("father abba", "abba father")
    assert result.score == 0.0
    assert {w.status for w in result.word_results} == {"correct"}


def test_categorize_score_thresholds():
    assert categorize_score(1.0) == "pass"
    assert categorize_score(PASS) == "pass"
    assert categorize_score(0.919) == "near_miss"
    assert categorize_score(NEAR_MISS) == "near_miss"
    assert categorize_score(0.79) == "fail"


def test_score_result_to_dict_uses_wire_keys():
    result = ScoreResult(score=0.5, word_results=[WordResult("god", "correct")])
    assert result.to_dict() == {"score": 0.5, "wordResults": [{"word": "god", "status": "correct"}]}


def test_clamp_score():
    assert clamp_score(-0.2) == 0.0
    assert clamp_score(1.3) == 1.0
    assert clamp_score(0.4) == 0.4
