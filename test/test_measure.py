import unittest
from fractions import Fraction

from mensura.measure import Measure, MeasureKind
from mensura.score import Page, Score, ScoreStructureError, System, \
    SystemPart
from mensura.slots import build_slots
from mensura.symbols import Barline, Beam, Chord, Clef, KeySignature, Note, \
    Staff, TimeSignature
from mensura.voices import Voice, build_voices

Q = Fraction(1, 4)


def make_page(n_measures, width=600, two_staves=False):
    staves = [Staff(1, 100, 40)]
    if two_staves:
        staves.append(Staff(2, 200, 40))
    part = SystemPart('P1', staves=staves)
    page = Page(systems=[System(parts=[part], left=0, width=width)])
    for i in range(n_measures):
        measure = Measure(part=part)
        measure.set_barline(Barline(200 * (i + 1) - 2, 200 * (i + 1)))
    for measure in part.measures:
        measure.compute_box()
    return page, part, staves


def add_chord(measure, staff, x, y=110, chord_id=None):
    return Chord(staff, (x, y), Q, notes=[Note('HEAD')], measure=measure,
                 chord_id=chord_id)


class MeasureContentTest(unittest.TestCase):
    def test_symbols_register_in_measure(self):
        page, part, (staff,) = make_page(1)
        measure = part.measures[0]
        clef = Clef(staff, (10, 120), 'G', measure=measure)
        key = KeySignature(staff, (20, 120), -2, measure=measure)
        time_signature = TimeSignature(staff, (30, 120), 3, 4,
                                       measure=measure)
        beam = Beam(staff, 40, 90, measure=measure)
        chord = add_chord(measure, staff, 50)

        self.assertEqual(measure.clefs, [clef])
        self.assertEqual(measure.keysigs, [key])
        self.assertEqual(measure.timesigs, [time_signature])
        self.assertEqual(measure.beams, [beam])
        self.assertEqual(measure.chords, [chord])
        self.assertIs(chord.measure, measure)

    def test_reset_is_idempotent(self):
        page, part, (staff,) = make_page(1)
        measure = part.measures[0]
        barline = measure.barline
        Clef(staff, (10, 120), 'G', measure=measure)
        add_chord(measure, staff, 50)
        measure.add_whole_rest(staff, (100, 120))
        measure.set_implicit()
        measure.add_error('foo')

        measure.reset()
        measure.reset()
        for name in ('clefs', 'keysigs', 'timesigs', 'chords', 'beams',
                     'slots', 'beam_groups', 'whole_chords', 'voices',
                     'errors'):
            self.assertEqual(getattr(measure, name), [], name)
        self.assertIsNone(measure.expected_duration)
        self.assertFalse(measure.is_implicit())
        self.assertIs(measure.barline, barline)

    def test_clear_timing_keeps_symbols(self):
        page, part, (staff,) = make_page(1)
        measure = part.measures[0]
        chord = add_chord(measure, staff, 50)
        whole = measure.add_whole_rest(staff, (100, 120))
        build_slots(measure)
        build_voices(measure)

        measure.clear_timing()
        measure.clear_timing()
        self.assertEqual(measure.chords, [chord, whole])
        self.assertEqual(measure.whole_chords, [whole])
        self.assertEqual(measure.slots, [])
        self.assertEqual(measure.voices, [])
        self.assertIsNone(chord.start_time)
        self.assertIsNone(chord.voice)

    def test_kind_is_immutable(self):
        measure = Measure(kind=MeasureKind.DUMMY)
        self.assertTrue(measure.is_dummy())
        self.assertFalse(measure.is_temporary())
        with self.assertRaises(AttributeError):
            measure.kind = MeasureKind.ORDINARY

    def test_box_and_width(self):
        page, part, _ = make_page(3)
        first, second, third = part.measures
        self.assertEqual(first.box, (100, 0, 140, 200))
        self.assertEqual(second.get_left_x(), 200)
        self.assertEqual(third.get_width(), 200)
        self.assertIsNone(Measure(kind=MeasureKind.DUMMY).get_width())

    def test_accept(self):
        class Visitor(object):
            def visit_measure(self, measure):
                return 'visited {0}'.format(measure.get_id_value())

        page, part, _ = make_page(1)
        self.assertEqual(part.measures[0].accept(Visitor()), 'visited 0')


class MeasureContextTest(unittest.TestCase):
    def test_lookups_without_context(self):
        page, part, (staff,) = make_page(2)
        measure = part.measures[1]
        point = (250, 120)
        self.assertIsNone(measure.get_clef_before(point))
        self.assertIsNone(measure.get_key_before(point, staff))
        self.assertIsNone(measure.get_key_before(None, None))
        self.assertIsNone(measure.get_current_time_signature())
        self.assertIsNone(measure.get_clef_after(point))
        self.assertIsNone(Measure().get_clef_before(point))

    def test_clef_before(self):
        page, part, (staff,) = make_page(3)
        first, second, third = part.measures
        g_clef = Clef(staff, (10, 120), 'G', measure=first)
        f_clef = Clef(staff, (300, 120), 'F', measure=second)

        self.assertIs(second.get_clef_before((250, 120)), g_clef)
        self.assertIs(second.get_clef_before((350, 120)), f_clef)
        self.assertIs(third.get_clef_before((450, 120)), f_clef)
        self.assertIs(first.get_clef_after((50, 120)), f_clef)

    def test_context_across_pages(self):
        first_page, first_part, (staff,) = make_page(1)
        second_page, second_part, (second_staff,) = make_page(1)
        Score([first_page, second_page])
        previous = first_part.measures[0]
        measure = second_part.measures[0]
        clef = Clef(staff, (10, 120), 'C', measure=previous)
        key = KeySignature(staff, (20, 120), 3, measure=previous)
        time_signature = TimeSignature(staff, (30, 120), 6, 8,
                                       measure=previous)

        self.assertIs(measure.get_clef_before((50, 120)), clef)
        self.assertIs(measure.get_key_before((50, 120), second_staff), key)
        self.assertIs(measure.get_current_time_signature(), time_signature)
        self.assertEqual(measure.get_expected_duration(), Fraction(3, 4))
        self.assertIs(previous.get_following(), measure)

    def test_context_across_pages_stays_in_part(self):
        first_page, first_part, (staff,) = make_page(1)
        other_staff = Staff(1, 100, 40)
        other_part = SystemPart('P2', staves=[other_staff])
        second_page = Page(systems=[System(parts=[other_part], width=600)])
        measure = Measure(part=other_part)
        Score([first_page, second_page])
        previous = first_part.measures[0]
        Clef(staff, (10, 120), 'F', measure=previous)
        KeySignature(staff, (20, 120), -3, measure=previous)
        time_signature = TimeSignature(staff, (30, 120), 3, 4,
                                       measure=previous)

        self.assertIsNone(measure.get_clef_before((50, 120)))
        self.assertIsNone(measure.get_key_before((50, 120), other_staff))
        self.assertIs(measure.get_current_time_signature(), time_signature)

    def test_lookups_without_point(self):
        page, part, (staff,) = make_page(2)
        first, second = part.measures
        self.assertIsNone(first.get_clef_before(None, staff))
        self.assertIsNone(first.get_clef_after(None))

        clef = Clef(staff, (150, 120), 'G', measure=first)
        self.assertIs(first.get_measure_clef_before(None, staff), clef)
        self.assertIs(first.get_clef_before(None, staff), clef)
        self.assertIs(second.get_clef_before(None, staff), clef)

    def test_key_per_staff(self):
        page, part, staves = make_page(1, two_staves=True)
        measure = part.measures[0]
        upper = KeySignature(staves[0], (20, 120), 1, measure=measure)
        lower = KeySignature(staves[1], (20, 220), -1, measure=measure)
        self.assertIs(measure.get_key_before((100, 120), staves[0]), upper)
        self.assertIs(measure.get_key_before(None, staves[1]), lower)
        self.assertIs(measure.get_first_measure_key(2), lower)

    def test_chord_queries(self):
        page, part, staves = make_page(1, two_staves=True)
        measure = part.measures[0]
        upper = add_chord(measure, staves[0], 50, 115)
        upper_late = add_chord(measure, staves[0], 150, 115)
        lower = add_chord(measure, staves[1], 52, 215)
        build_slots(measure)
        build_voices(measure)

        point = (148, 170)
        self.assertEqual(measure.get_chords_above(point), [upper, upper_late])
        self.assertEqual(measure.get_chords_below(point), [lower])
        self.assertIs(measure.get_closest_chord_above(point), upper_late)
        self.assertIs(measure.get_closest_chord_below(point), lower)
        self.assertIs(measure.get_closest_slot(point), measure.slots[1])
        self.assertIs(measure.get_event_chord(point), upper_late)
        self.assertIs(measure.get_direction_chord((48, 170)), upper)
        self.assertIsNone(measure.get_closest_whole_chord_above(point))


class MeasureVoicesTest(unittest.TestCase):
    def test_swap_voice_id_twice_restores(self):
        page, part, _ = make_page(1)
        measure = part.measures[0]
        v1, v2, v3 = Voice(measure), Voice(measure), Voice(measure)

        measure.swap_voice_id(v1, 3)
        self.assertEqual((v1.voice_id, v3.voice_id), (3, 1))
        self.assertEqual(measure.voices, [v3, v2, v1])

        measure.swap_voice_id(v1, 1)
        self.assertEqual([v.voice_id for v in (v1, v2, v3)], [1, 2, 3])
        self.assertEqual(measure.voices, [v1, v2, v3])
        self.assertEqual(measure.get_voices_number(), 3)

    def test_swap_to_unused_id(self):
        page, part, _ = make_page(1)
        measure = part.measures[0]
        v1, v2 = Voice(measure), Voice(measure)
        measure.swap_voice_id(v1, 5)
        self.assertEqual(measure.voices, [v2, v1])
        self.assertEqual(measure.next_voice_id(), 1)


class MeasureMergeTest(unittest.TestCase):
    def _chord_ids(self, measure):
        return [c.chord_id for c in measure.chords]

    def _fill(self, part, staff):
        for i, measure in enumerate(part.measures):
            add_chord(measure, staff, 200 * i + 50, chord_id='c{0}'.format(i))

    def test_merge(self):
        page, part, (staff,) = make_page(2)
        left, right = part.measures
        self._fill(part, staff)
        left_barline = left.barline
        right_barline = right.barline
        Voice(right).add_chord(right.chords[0])

        part.merge_measures(left, right)
        self.assertEqual(part.measures, [left])
        self.assertEqual(page.part_sequence('P1'), [left])
        self.assertEqual(self._chord_ids(left), ['c0', 'c1'])
        self.assertTrue(all(c.measure is left for c in left.chords))
        self.assertTrue(all(v.measure is left for v in left.voices))
        self.assertIs(left.inside_barline, left_barline)
        self.assertIs(left.barline, right_barline)
        self.assertEqual(left.box, (100, 0, 140, 400))

    def test_merge_keeps_voice_ids_unique(self):
        page, part, (staff,) = make_page(2)
        left, right = part.measures
        self._fill(part, staff)
        Voice(left).add_chord(left.chords[0])
        Voice(right).add_chord(right.chords[0])
        self.assertEqual([v.voice_id for v in left.voices + right.voices],
                         [1, 1])

        part.merge_measures(left, right)
        voice_ids = [v.voice_id for v in left.voices]
        self.assertEqual(voice_ids, [1, 2])
        self.assertEqual(left.get_voices_number(), 2)
        self.assertEqual([v.chords[0].chord_id for v in left.voices],
                         ['c0', 'c1'])

    def test_merge_is_associative(self):
        page_a, part_a, (staff_a,) = make_page(3)
        self._fill(part_a, staff_a)
        a1, a2, a3 = part_a.measures
        part_a.merge_measures(a1, a2)
        part_a.merge_measures(a1, a3)

        page_b, part_b, (staff_b,) = make_page(3)
        self._fill(part_b, staff_b)
        b1, b2, b3 = part_b.measures
        part_b.merge_measures(b2, b3)
        part_b.merge_measures(b1, b2)

        self.assertEqual(self._chord_ids(a1), self._chord_ids(b1))
        self.assertEqual(a1.box, b1.box)
        self.assertEqual(a1.barline.right, b1.barline.right)

    def test_merge_not_adjacent(self):
        page, part, _ = make_page(3)
        first, second, third = part.measures
        with self.assertRaises(ScoreStructureError):
            part.merge_measures(first, third)


class TemporaryMeasureTest(unittest.TestCase):
    def test_create_temporary_before(self):
        page, part, staves = make_page(2, two_staves=True)
        first, second = part.measures
        for staff in staves:
            Clef(staff, (10, staff.center_y), 'G', measure=first)
            KeySignature(staff, (20, staff.center_y), 2, measure=first)
        TimeSignature(staves[0], (30, 120), 3, 4, measure=first)

        dummy = second.create_temporary_before()
        self.assertTrue(dummy.is_temporary())
        self.assertTrue(dummy.is_dummy())
        self.assertIsNone(dummy.part)
        self.assertIsNone(dummy.get_width())
        self.assertEqual(len(dummy.clefs), 2)
        self.assertEqual(len(dummy.keysigs), 2)
        self.assertEqual(len(dummy.timesigs), 2)
        self.assertEqual(dummy.clefs[0].center, (160, 120))
        self.assertEqual(dummy.keysigs[1].center, (170, 220))
        self.assertEqual(dummy.timesigs[1].center, (180, 220))
        self.assertEqual(dummy.keysigs[0].key, 2)
        self.assertIs(dummy.clefs[1].staff, staves[1])

    def test_nothing_to_copy(self):
        page, part, _ = make_page(1)
        dummy = part.measures[0].create_temporary_before()
        self.assertEqual(dummy.clefs, [])
        self.assertEqual(dummy.timesigs, [])

    def test_temporary_measure_not_in_part(self):
        page, part, _ = make_page(1)
        dummy = part.measures[0].create_temporary_before()
        with self.assertRaises(ScoreStructureError):
            part.add_measure(dummy)


if __name__ == '__main__':
    unittest.main()
