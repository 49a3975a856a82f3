import unittest
from fractions import Fraction

from mensura.durations import DurationChecker
from mensura.measure import Measure
from mensura.score import Page, Score, System, SystemPart
from mensura.slots import build_slots
from mensura.symbols import Chord, Mark, Note, Staff
from mensura.voices import Voice, VoiceAssigner, build_voices

Q = Fraction(1, 4)
H = Fraction(1, 2)


def make_measure():
    staves = [Staff(1, 100, 40), Staff(2, 200, 40)]
    part = SystemPart('P1', staves=staves)
    Score([Page(systems=[System(parts=[part], width=400)])])
    return Measure(part=part), staves


def add_chord(measure, staff, x, y, duration=Q, tied_from=None, rest=False):
    return Chord(staff, (x, y), duration, notes=[Note('HEAD', is_rest=rest)],
                 tied_from=tied_from, measure=measure)


def infer(measure):
    build_slots(measure)
    return build_voices(measure)


class VoiceAssignerTest(unittest.TestCase):
    def test_single_voice(self):
        measure, staves = make_measure()
        chords = [add_chord(measure, staves[0], x, 110)
                  for x in (50, 100, 150, 200)]
        voices = infer(measure)

        self.assertEqual(len(voices), 1)
        self.assertEqual(voices[0].voice_id, 1)
        self.assertEqual(voices[0].chords, chords)
        self.assertEqual([c.start_time for c in chords],
                         [0, Q, H, 3 * Q])
        self.assertEqual([s.start_time for s in measure.slots],
                         [0, Q, H, 3 * Q])
        self.assertEqual(voices[0].get_duration(), 1)
        self.assertEqual(measure.actual_duration, 1)

    def test_single_voice_mixed_durations(self):
        measure, staves = make_measure()
        chords = [add_chord(measure, staves[0], 50, 110),
                  add_chord(measure, staves[0], 100, 110),
                  add_chord(measure, staves[0], 150, 110, duration=H)]
        voices = infer(measure)

        self.assertEqual(len(voices), 1)
        self.assertEqual(voices[0].chords, chords)
        self.assertEqual([c.start_time for c in chords], [0, Q, H])
        self.assertEqual(measure.actual_duration, 1)

        self.assertIsNone(DurationChecker().check(measure))
        self.assertIsNone(measure.excess)
        self.assertEqual(measure.errors, [])
        self.assertIsNone(voices[0].termination)

    def test_two_voices(self):
        measure, staves = make_measure()
        upper1 = add_chord(measure, staves[0], 50, 110, duration=H)
        upper2 = add_chord(measure, staves[0], 150, 110, duration=H)
        lower = [add_chord(measure, staves[0], x, 130)
                 for x in (52, 100, 152, 200)]
        voices = infer(measure)

        self.assertEqual(len(voices), 2)
        self.assertEqual(voices[0].chords, [upper1, upper2])
        self.assertEqual(voices[1].chords, lower)
        self.assertEqual(upper2.start_time, H)
        self.assertEqual([c.start_time for c in lower], [0, Q, H, 3 * Q])
        # Every start time is the end of the previous chord in the voice.
        for voice in voices:
            for previous, chord in zip(voice.chords[:-1], voice.chords[1:]):
                self.assertEqual(previous.get_end_time(), chord.start_time)

    def test_tie_continuation_has_priority(self):
        measure, staves = make_measure()
        upper = add_chord(measure, staves[0], 50, 110)
        add_chord(measure, staves[0], 50, 130)
        tied = add_chord(measure, staves[0], 100, 131, tied_from=upper)
        infer(measure)

        self.assertIs(tied.voice, upper.voice)
        self.assertEqual(tied.start_time, Q)

    def test_whole_voice(self):
        measure, staves = make_measure()
        chord = measure.add_whole_rest(staves[0], (200, 120))
        voices = infer(measure)

        self.assertEqual(len(voices), 1)
        self.assertTrue(voices[0].is_whole())
        self.assertIs(voices[0].whole_chord, chord)
        self.assertEqual(chord.start_time, 0)
        self.assertEqual(voices[0].get_end_time(Fraction(3, 4)),
                         Fraction(3, 4))

    def test_whole_voice_next_to_timed_voice(self):
        measure, staves = make_measure()
        measure.add_whole_rest(staves[1], (200, 220))
        chords = [add_chord(measure, staves[0], x, 110)
                  for x in (50, 100)]
        voices = infer(measure)

        self.assertEqual(len(voices), 2)
        self.assertTrue(voices[0].is_whole())
        self.assertEqual(voices[1].chords, chords)
        self.assertEqual(chords[1].start_time, Q)

    def test_new_voice_gets_minimal_unused_id(self):
        measure, staves = make_measure()
        Voice(measure, voice_id=1)
        Voice(measure, voice_id=3)
        self.assertEqual(measure.next_voice_id(), 2)
        self.assertEqual(Voice(measure).voice_id, 2)
        self.assertEqual([v.voice_id for v in measure.voices], [1, 2, 3])

    def test_failure_contained_in_measure(self):
        measure, staves = make_measure()
        add_chord(measure, staves[0], 50, 110, duration=None)
        add_chord(measure, staves[0], 100, 110)
        voices = infer(measure)

        self.assertEqual(len(voices), 1)
        self.assertEqual(len(measure.errors), 1)
        self.assertTrue(measure.errors[0].startswith('Error building voices'))

    def test_match_prefers_same_staff(self):
        measure, staves = make_measure()
        v_upper = Voice(measure)
        v_upper.add_chord(add_chord(measure, staves[0], 50, 138))
        v_lower = Voice(measure)
        v_lower.add_chord(add_chord(measure, staves[1], 50, 202))

        # Closer to the upper voice vertically, but on the lower staff.
        chord = add_chord(measure, staves[1], 100, 165)
        pairs = VoiceAssigner.match_chords_to_voices([chord],
                                                     [v_upper, v_lower])
        self.assertEqual(pairs, [(chord, v_lower)])

    def test_match_nothing(self):
        measure, staves = make_measure()
        chord = add_chord(measure, staves[0], 100, 110)
        self.assertEqual(VoiceAssigner.match_chords_to_voices([chord], []),
                         [])


class VoiceTest(unittest.TestCase):
    def test_termination(self):
        measure, staves = make_measure()
        chords = [add_chord(measure, staves[0], x, 110)
                  for x in (50, 100, 150)]
        voice = infer(measure)[0]

        self.assertEqual(voice.check_duration(Fraction(1)), -Q)
        self.assertEqual(voice.check_duration(Fraction(3, 4)), None)

        chords[-1].marks.append(Mark(Q))
        self.assertEqual(voice.get_end_time(), Fraction(1))
        self.assertEqual(voice.check_duration(Fraction(3, 4)), Q)

    def test_to_strip(self):
        measure, staves = make_measure()
        add_chord(measure, staves[0], 50, 110)
        voice = infer(measure)[0]
        self.assertEqual(voice.to_strip(), 'V1 |0+1/4')


if __name__ == '__main__':
    unittest.main()
