import unittest

from cbcperf.core.grading import (
    CBC_BANDS,
    DEFAULT_SCALE,
    SECONDARY_SCALE,
    GradeBand,
    GradeScaleError,
    SortedGradeScale,
    calculate_percentage,
    classify,
    find_band,
    round_half_up,
)


class GradingTests(unittest.TestCase):
    def test_grade_bands(self):
        self.assertEqual(classify(95).letter, "EE")
        self.assertEqual(classify(80).letter, "EE")
        self.assertEqual(classify(79).letter, "ME")
        self.assertEqual(classify(50).letter, "ME")
        self.assertEqual(classify(49).letter, "AE")
        self.assertEqual(classify(40).letter, "AE")
        self.assertEqual(classify(39).letter, "BE")
        self.assertEqual(classify(0).letter, "BE")
        self.assertEqual(classify(100).letter, "EE")

    def test_every_percentage_has_exactly_one_band(self):
        for percentage in range(0, 101):
            band = classify(percentage)
            self.assertTrue(band.contains(percentage))
            matching = [b for b in DEFAULT_SCALE if b.contains(percentage)]
            self.assertEqual(matching, [band])

    def test_unmatched_percentage_falls_back_to_lowest_band(self):
        self.assertEqual(classify(120).letter, "BE")
        self.assertEqual(classify(-5).letter, "BE")
        self.assertEqual(classify(79.5).letter, "BE")
        self.assertEqual(classify(float("nan")).letter, "BE")

    def test_find_band_reports_misses(self):
        self.assertIsNone(find_band(120))
        self.assertIsNone(find_band(79.5))
        self.assertEqual(find_band(64).letter, "ME")

    def test_secondary_scale(self):
        self.assertEqual(classify(77, SECONDARY_SCALE).letter, "A-")
        self.assertEqual(classify(29, SECONDARY_SCALE).letter, "E")
        self.assertEqual(len(SECONDARY_SCALE), 12)

    def test_percentage_rounds_half_up(self):
        self.assertEqual(calculate_percentage(45, 50), 90)
        self.assertEqual(calculate_percentage(1, 8), 13)
        self.assertEqual(calculate_percentage(2, 3), 67)
        self.assertEqual(calculate_percentage(0, 0), 0)
        self.assertEqual(round_half_up(2.5), 3)
        self.assertEqual(round_half_up(3.5), 4)
        self.assertEqual(round_half_up(4.49), 4)


class SortedGradeScaleTests(unittest.TestCase):
    def test_sorts_bands_descending(self):
        scale = SortedGradeScale(reversed(CBC_BANDS))
        self.assertEqual(scale.letters, ("EE", "ME", "AE", "BE"))
        self.assertEqual(scale, DEFAULT_SCALE)
        self.assertEqual(scale.highest.letter, "EE")
        self.assertEqual(scale.lowest.letter, "BE")

    def test_pass_bands_are_top_two_by_points(self):
        self.assertEqual([band.letter for band in DEFAULT_SCALE.pass_bands], ["EE", "ME"])
        self.assertTrue(DEFAULT_SCALE.is_pass(CBC_BANDS[1]))
        self.assertFalse(DEFAULT_SCALE.is_pass(CBC_BANDS[2]))
        self.assertEqual(DEFAULT_SCALE.rank_of("BE"), 3)
        self.assertIsNone(DEFAULT_SCALE.rank_of("A"))

    def test_single_band_scale(self):
        scale = SortedGradeScale([GradeBand("P", "Pass", 1, 0, 100)])
        self.assertEqual(classify(42, scale).letter, "P")
        self.assertEqual([band.letter for band in scale.pass_bands], ["P"])

    def test_rejects_gap(self):
        bands = [
            GradeBand("EE", "Exceeding", 4, 80, 100),
            GradeBand("ME", "Meeting", 3, 50, 78),
            GradeBand("BE", "Below", 1, 0, 49),
        ]
        with self.assertRaises(GradeScaleError):
            SortedGradeScale(bands)

    def test_rejects_overlap(self):
        bands = [
            GradeBand("EE", "Exceeding", 4, 80, 100),
            GradeBand("ME", "Meeting", 3, 50, 80),
            GradeBand("BE", "Below", 1, 0, 49),
        ]
        with self.assertRaises(GradeScaleError):
            SortedGradeScale(bands)

    def test_rejects_incomplete_coverage(self):
        with self.assertRaises(GradeScaleError):
            SortedGradeScale([GradeBand("EE", "Exceeding", 4, 80, 99), GradeBand("BE", "Below", 1, 0, 79)])
        with self.assertRaises(GradeScaleError):
            SortedGradeScale([GradeBand("EE", "Exceeding", 4, 80, 100), GradeBand("BE", "Below", 1, 1, 79)])
        with self.assertRaises(GradeScaleError):
            SortedGradeScale([])

    def test_rejects_duplicate_letters(self):
        with self.assertRaises(GradeScaleError):
            SortedGradeScale([GradeBand("X", "High", 2, 50, 100), GradeBand("X", "Low", 1, 0, 49)])

    def test_from_rows(self):
        rows = [
            {"grade_letter": "BE", "grade_descriptor": "Below", "points": 1, "min_percentage": 0, "max_percentage": 49},
            {"grade_letter": "EE", "grade_descriptor": "Exceeding", "points": 2, "min_percentage": 50, "max_percentage": 100},
        ]
        scale = SortedGradeScale.from_rows(rows)
        self.assertEqual(scale.letters, ("EE", "BE"))
        self.assertEqual(scale.highest.label, "EE - Exceeding")

    def test_from_rows_rejects_malformed_row(self):
        with self.assertRaises(GradeScaleError):
            SortedGradeScale.from_rows([{"grade_letter": "EE", "points": "many"}])


if __name__ == "__main__":
    unittest.main()
