"""Unit tests for Grader."""

from quizgate.engines.grading.grader import Grader
from quizgate.engines.progression.types import OptionTag


class TestGrader:
    def test_correctness_in_question_order(self, questions):
        answers = [OptionTag.A, OptionTag.A, OptionTag.B, OptionTag.D]
        assert Grader.correctness(questions, answers) == [True, False, True, True]
        assert Grader.count_correct(questions, answers) == 3

    def test_answers_keyed_by_index(self, questions):
        answers = {0: OptionTag.A, 3: OptionTag.D}
        assert Grader.correctness(questions, answers) == [True, False, False, True]

    def test_short_answer_list_counts_missing_as_wrong(self, questions):
        assert Grader.count_correct(questions, [OptionTag.A]) == 1

    def test_raw_string_answers(self, questions):
        assert Grader.count_correct(questions, ["A", "C", "B", "D"]) == 4

    def test_percentage_rounds_half_up(self):
        assert Grader.percentage(2, 3) == 67
        assert Grader.percentage(1, 8) == 13
        assert Grader.percentage(5, 10) == 50

    def test_percentage_empty_quiz(self):
        assert Grader.percentage(0, 0) == 0
