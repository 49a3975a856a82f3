import unittest
from fractions import Fraction

from mensura.durations import DurationChecker, get_expected_duration
from mensura.measure import Measure
from mensura.score import Page, Score, System, SystemPart
from mensura.slots import build_slots
from mensura.symbols import Chord, InvalidTimeSignature, Mark, Note, Staff, \
    TimeSignature
from mensura.voices import build_voices

Q = Fraction(1, 4)


def make_part(n_measures=1):
    staff = Staff(1, 100, 40)
    part = SystemPart('P1', staves=[staff])
    Score([Page(systems=[System(parts=[part], width=1000)])])
    measures = [Measure(part=part) for _ in range(n_measures)]
    return measures, staff


def add_quarters(measure, staff, n, y=110, start_x=50):
    return [Chord(staff, (start_x + 50 * i, y), Q, notes=[Note('HEAD')],
                  measure=measure)
            for i in range(n)]


def check(measure, repair=True):
    build_slots(measure)
    build_voices(measure)
    return DurationChecker(repair=repair).check(measure)


class ExpectedDurationTest(unittest.TestCase):
    def test_default_is_four_four(self):
        (measure,), _ = make_part()
        self.assertEqual(get_expected_duration(measure), 1)

    def test_time_signature_in_measure(self):
        (measure,), staff = make_part()
        TimeSignature(staff, (30, 120), 3, 8, measure=measure)
        self.assertEqual(measure.get_expected_duration(), Fraction(3, 8))

    def test_time_signature_in_preceding_measure(self):
        (first, second, third), staff = make_part(3)
        TimeSignature(staff, (30, 120), 3, 4, measure=first)
        self.assertEqual(third.get_expected_duration(), Fraction(3, 4))

    def test_invalid_time_signature_raises(self):
        (first, second), staff = make_part(2)
        TimeSignature(staff, (30, 120), 3, None, measure=first)
        with self.assertRaises(InvalidTimeSignature):
            get_expected_duration(second)

    def test_zero_denominator_raises(self):
        (measure,), staff = make_part()
        TimeSignature(staff, (30, 120), 3, 0, measure=measure)
        with self.assertRaises(InvalidTimeSignature):
            get_expected_duration(measure)


class DurationCheckerTest(unittest.TestCase):
    def test_full_measure(self):
        (measure,), staff = make_part()
        add_quarters(measure, staff, 4)
        excess = check(measure)

        self.assertIsNone(excess)
        self.assertEqual(measure.errors, [])
        self.assertEqual(measure.expected_duration, 1)
        self.assertEqual(measure.actual_duration, 1)
        self.assertIsNone(measure.voices[0].termination)

    def test_excess_repaired_by_removing_final_mark(self):
        (measure,), staff = make_part()
        chords = add_quarters(measure, staff, 4)
        chords[-1].marks.append(Mark(Q))
        excess = check(measure)

        self.assertIsNone(excess)
        self.assertEqual(chords[-1].marks, [])
        self.assertIsNone(measure.voices[0].termination)
        self.assertEqual(len(measure.errors), 1)
        self.assertIn('exceeds', measure.errors[0])

    def test_excess_kept_without_repair(self):
        (measure,), staff = make_part()
        chords = add_quarters(measure, staff, 4)
        chords[-1].marks.append(Mark(Q))
        excess = check(measure, repair=False)

        self.assertEqual(excess, Q)
        self.assertEqual(len(chords[-1].marks), 1)
        self.assertEqual(measure.voices[0].termination, Q)

    def test_excess_without_mark(self):
        (measure,), staff = make_part()
        chords = add_quarters(measure, staff, 5)
        excess = check(measure)

        self.assertEqual(excess, Q)
        self.assertEqual(len(chords[-1].errors), 1)
        self.assertEqual(chords[-1].errors[0],
                         'No final mark to remove in a partial measure')
        self.assertEqual(len(measure.errors), 2)

    def test_shorten_skips_inconsistent_voice(self):
        (measure,), staff = make_part()
        upper = add_quarters(measure, staff, 4, y=105)
        lower = add_quarters(measure, staff, 4, y=135)
        upper[-1].marks.append(Mark(Fraction(1, 2)))
        lower[-1].marks.append(Mark(Q))
        excess = check(measure)

        # The excess is 1/2: the upper voice is repaired, the lower
        # voice ends 1/4 late and cannot be.
        self.assertEqual(upper[-1].marks, [])
        self.assertEqual(len(lower[-1].marks), 1)
        self.assertEqual(excess, Q)
        self.assertTrue(any(e.startswith('Non consistent')
                            for e in measure.errors))

    def test_empty_measure(self):
        (measure,), _ = make_part()
        excess = check(measure)

        self.assertIsNone(excess)
        self.assertEqual(measure.expected_duration, 1)
        self.assertEqual(measure.get_actual_duration(), 0)
        self.assertEqual(measure.errors, [])

    def test_whole_rest_measure(self):
        (measure,), staff = make_part()
        measure.add_whole_rest(staff, (300, 120))
        self.assertIsNone(check(measure))
        self.assertEqual(measure.errors, [])
        self.assertEqual(measure.get_notated_duration(), 1)

    def test_short_measure(self):
        (measure,), staff = make_part()
        add_quarters(measure, staff, 3)
        excess = check(measure)

        self.assertIsNone(excess)
        self.assertEqual(measure.voices[0].termination, -Q)
        self.assertEqual(len(measure.errors), 1)
        self.assertIn('shorter', measure.errors[0])

    def test_short_implicit_measure(self):
        (measure,), staff = make_part()
        add_quarters(measure, staff, 1)
        measure.set_implicit()
        check(measure)
        self.assertEqual(measure.errors, [])

    def test_rests_do_not_sound(self):
        (measure,), staff = make_part()
        add_quarters(measure, staff, 2)
        Chord(staff, (200, 110), Fraction(1, 2),
              notes=[Note('REST', is_rest=True)], measure=measure)
        check(measure)

        self.assertEqual(measure.get_notated_duration(), 1)
        self.assertEqual(measure.get_last_sound_time(), Fraction(1, 2))
        self.assertEqual(measure.errors, [])


if __name__ == '__main__':
    unittest.main()
