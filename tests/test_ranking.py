import unittest

from cbcperf.core.aggregation import RawScore, StudentInfo, SubjectDefinition, aggregate
from cbcperf.core.ranking import RankingPolicy, analyze, rank, subject_averages


MATH = SubjectDefinition("math", "Mathematics", 100)
ENGLISH = SubjectDefinition("eng", "English", 100)
SCIENCE = SubjectDefinition("sci", "Science", 100)
KISWAHILI = SubjectDefinition("kis", "Kiswahili", 100)
SUBJECTS = [MATH, ENGLISH, SCIENCE, KISWAHILI]


def _result(student_id, **marks):
    raw = [RawScore(subject_id, value) for subject_id, value in marks.items()]
    return aggregate(student_id, StudentInfo(f"REG-{student_id}", student_id.title()), raw, SUBJECTS)


class RankTests(unittest.TestCase):
    def test_ties_get_sequential_positions_in_input_order(self):
        alice = _result("alice", math=90)
        bob = _result("bob", math=90)

        ranked, _ = analyze([alice, bob], SUBJECTS)
        self.assertEqual([(r.student_id, r.position) for r in ranked], [("alice", 1), ("bob", 2)])
        self.assertEqual([r.overall_grade_band.letter for r in ranked], ["EE", "EE"])

        ranked, _ = analyze([bob, alice], SUBJECTS)
        self.assertEqual([(r.student_id, r.position) for r in ranked], [("bob", 1), ("alice", 2)])

    def test_reordering_input_keeps_the_set_of_positions(self):
        results = [_result("a", math=40), _result("b", math=90), _result("c", math=70), _result("d", math=70)]
        forward = {r.position for r in rank(results)}
        backward = {r.position for r in rank(list(reversed(results)))}
        self.assertEqual(forward, {1, 2, 3, 4})
        self.assertEqual(forward, backward)

    def test_competition_policy_shares_positions(self):
        results = [_result("a", math=90), _result("b", math=90), _result("c", math=80), _result("d", math=80)]
        ranked = rank(results, RankingPolicy.COMPETITION)
        self.assertEqual([r.position for r in ranked], [1, 1, 3, 3])

    def test_orders_by_total_marks_not_percentage(self):
        # fewer subjects, higher percentage, lower total
        focused = _result("focused", math=95)
        broad = _result("broad", math=60, eng=60)
        ranked = rank([focused, broad])
        self.assertEqual([r.student_id for r in ranked], ["broad", "focused"])

    def test_inputs_are_not_modified(self):
        results = [_result("a", math=10), _result("b", math=20)]
        rank(results)
        self.assertEqual([r.position for r in results], [None, None])

    def test_all_zero_student_is_last(self):
        ranked, metrics = analyze([_result("zero", math=0, eng=0), _result("a", math=30, eng=20)], SUBJECTS)
        self.assertEqual(ranked[-1].student_id, "zero")
        self.assertEqual(ranked[-1].position, 2)
        self.assertEqual(ranked[-1].overall_percentage, 0)
        self.assertEqual(ranked[-1].overall_grade_band.letter, "BE")


class AnalyzeTests(unittest.TestCase):
    def test_empty_class(self):
        ranked, metrics = analyze([], SUBJECTS, grade="Grade 4", term="Term 1", academic_year="2024")
        self.assertEqual(ranked, [])
        self.assertEqual(metrics.grade, "Grade 4")
        self.assertEqual(metrics.total_students, 0)
        self.assertEqual(metrics.average_percentage, 0)
        self.assertEqual(metrics.pass_rate, 0)
        self.assertEqual(metrics.subject_averages, {})
        self.assertEqual(metrics.grade_distribution, {"EE": 0, "ME": 0, "AE": 0, "BE": 0})
        self.assertEqual(metrics.top_performers, ())
        self.assertEqual(metrics.bottom_performers, ())
        self.assertEqual(metrics.subject_strengths, ())
        self.assertEqual(metrics.subject_weaknesses, ())

    def test_average_pass_rate_and_distribution(self):
        results = [_result("a", math=90), _result("b", math=60), _result("c", math=30)]
        _, metrics = analyze(results, SUBJECTS, grade="Grade 5", term="Term 2", academic_year="2024")
        self.assertEqual(metrics.total_students, 3)
        self.assertEqual(metrics.average_percentage, 60)
        self.assertEqual(metrics.pass_rate, 67)
        self.assertEqual(metrics.grade_distribution, {"EE": 1, "ME": 1, "AE": 0, "BE": 1})
        self.assertEqual((metrics.term, metrics.academic_year), ("Term 2", "2024"))

    def test_subject_average_counts_only_students_who_sat_the_subject(self):
        results = [_result("a", math=80, eng=60), _result("b", math=40)]
        self.assertEqual(subject_averages(results, SUBJECTS), {"math": 60, "eng": 60})
        _, metrics = analyze(results, SUBJECTS)
        self.assertNotIn("sci", metrics.subject_averages)
        self.assertEqual(metrics.subject_attempts, {"math": 2, "eng": 1})

    def test_strengths_and_weaknesses_may_overlap(self):
        results = [_result("a", math=90, eng=70, sci=50, kis=30)]
        _, metrics = analyze(results, SUBJECTS)
        self.assertEqual(metrics.subject_strengths, ("math", "eng", "sci"))
        self.assertEqual(metrics.subject_weaknesses, ("eng", "sci", "kis"))

    def test_top_and_bottom_performers(self):
        results = [_result(f"s{n}", math=n * 10) for n in range(1, 8)]
        ranked, metrics = analyze(results, SUBJECTS)
        self.assertEqual([r.student_id for r in metrics.top_performers], ["s7", "s6", "s5", "s4", "s3"])
        self.assertEqual([r.student_id for r in metrics.bottom_performers], ["s1", "s2", "s3", "s4", "s5"])
        self.assertEqual(metrics.bottom_performers[0].position, 7)
        self.assertEqual(ranked[0].position, 1)

    def test_custom_highlight_counts(self):
        results = [_result(f"s{n}", math=n * 10, eng=n * 5) for n in range(1, 4)]
        _, metrics = analyze(results, SUBJECTS, top_n=1, subject_n=1)
        self.assertEqual([r.student_id for r in metrics.top_performers], ["s3"])
        self.assertEqual([r.student_id for r in metrics.bottom_performers], ["s1"])
        self.assertEqual(metrics.subject_strengths, ("math",))
        self.assertEqual(metrics.subject_weaknesses, ("eng",))

    def test_negative_highlight_counts_select_nobody(self):
        results = [_result(f"s{n}", math=n * 10) for n in range(1, 4)]
        _, metrics = analyze(results, SUBJECTS, top_n=-1, subject_n=-1)
        self.assertEqual(metrics.top_performers, ())
        self.assertEqual(metrics.bottom_performers, ())
        self.assertEqual(metrics.subject_strengths, ())
        self.assertEqual(metrics.subject_weaknesses, ())

    def test_analyze_is_repeatable(self):
        results = [_result("a", math=55, eng=66), _result("b", math=55, eng=66), _result("c", sci=12)]
        first = analyze(results, SUBJECTS)
        second = analyze(results, SUBJECTS)
        self.assertEqual(first, second)


if __name__ == "__main__":
    unittest.main()
