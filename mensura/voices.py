"""This module implements voices and their construction from the time
slots of a measure.

A voice is one continuous line of chords within a measure. Voices are
built slot after slot, left to right:

1. Each whole chord (whole or multi-measure rest) starts at time 0 in a
   voice of its own. Such a *whole voice* is never shared.
2. For each slot, the slot start time is the earliest end time among
   the active (not whole) voices; the voices ending by that time are
   *open*, i.e. ready to receive a new chord.
3. A chord that continues a tie from the last chord of an active voice
   extends that voice.
4. The other chords of the slot go to the open voices whose last chord
   is vertically closest (changing staff is penalized). Open voices that
   get no chord stop being active.
5. Chords left over start new voices, with the smallest id not yet
   used in the measure.
"""
import logging
from fractions import Fraction

import numpy

from mensura.inference_engine_constants import _CONST

__version__ = "0.1.0"


class Voice(object):
    def __init__(self, measure, voice_id=None, whole_chord=None):
        self.measure = measure
        if voice_id is None:
            voice_id = measure.next_voice_id()
        self.voice_id = voice_id
        self.chords = []

        self.whole_chord = whole_chord
        '''The whole (or multi-measure) rest this voice is made of,
        if any.'''

        self.termination = None
        '''How much the voice ends after (positive) or before (negative)
        the expected measure duration. ``None`` when the voice fits
        exactly, or is a whole voice.'''

        if whole_chord is not None:
            self.add_chord(whole_chord)
        measure.add_voice(self)

    def is_whole(self):
        return self.whole_chord is not None

    def add_chord(self, chord):
        chord.voice = self
        self.chords.append(chord)

    def get_last_chord(self):
        if len(self.chords) == 0:
            return None
        return self.chords[-1]

    def get_start_time(self):
        if len(self.chords) == 0:
            return None
        return self.chords[0].start_time

    def get_duration(self):
        """The sum of the durations of the voice chords."""
        return sum([c.duration for c in self.chords
                    if c.duration is not None], Fraction(0))

    def get_end_time(self, expected=None):
        """When the voice ends, counting the forward marks of its
        last chord. A whole voice ends with the measure, i.e. at the
        ``expected`` duration."""
        if self.is_whole():
            return expected
        chord = self.get_last_chord()
        if chord is None:
            return None
        end = chord.get_end_time()
        if end is None:
            return None
        return end + chord.get_extension()

    def check_duration(self, expected):
        """Computes the termination of this voice with respect to
        the expected measure duration."""
        self.termination = None
        if self.is_whole():
            return None
        end = self.get_end_time()
        if end is None:
            return None
        delta = end - expected
        if delta != 0:
            logging.debug('{0} in {1}: ends at {2}, expected {3}'
                          ''.format(self, self.measure, end, expected))
            self.termination = delta
        return self.termination

    def to_strip(self):
        """One-line rendering of the voice, for debugging printouts."""
        if self.is_whole():
            return '{0} |W'.format(self)
        items = ['{0}+{1}'.format(c.start_time, c.duration)
                 for c in self.chords]
        line = '{0} |{1}'.format(self, '|'.join(items))
        if self.termination is not None:
            line += ' ({0})'.format(self.termination)
        return line

    def __repr__(self):
        return 'V{0}'.format(self.voice_id)


def create_whole_voice(chord):
    """Starts the given whole chord at time 0, in a voice of its own."""
    chord.start_time = Fraction(0)
    return Voice(chord.measure, whole_chord=chord)


##############################################################################


class VoiceAssigner(object):
    """Builds the voices of one measure from its slots and whole
    chords. Assumes the slots have already been built."""

    def __init__(self, measure):
        self.measure = measure

        self.active_voices = []
        '''The voices that may still receive chords at the current slot.'''

    def build_voices(self):
        """Browses the slots and whole chords of the measure, to compute
        its voices and the start times of its chords.

        An unexpected failure is logged and ends the construction for
        this measure only: the voices built so far are kept.

        :returns: The voices of the measure.
        """
        measure = self.measure
        if logging.getLogger().isEnabledFor(logging.DEBUG):
            measure.print_chords('Initial chords for ')

        self.active_voices = []
        for chord in sorted(measure.whole_chords, key=lambda c: c.x):
            self.active_voices.append(create_whole_voice(chord))

        try:
            for slot in measure.slots:
                self.process_slot(slot)
        except Exception as e:
            logging.warning('Error building voices in measure {0}'
                            ''.format(measure.get_page_id()), exc_info=True)
            measure.add_error('Error building voices: {0}'.format(e))

        measure.actual_duration = measure.get_last_sound_time()

        if logging.getLogger().isEnabledFor(logging.DEBUG):
            measure.print_voices('Final voices for ')

        return measure.voices

    def process_slot(self, slot):
        timed_voices = [v for v in self.active_voices if not v.is_whole()]
        end_times = [v.get_end_time() for v in timed_voices]
        if len(timed_voices) == 0:
            start_time = Fraction(0)
        else:
            start_time = min(end_times)
        open_voices = [v for v, end in zip(timed_voices, end_times)
                       if end <= start_time]

        slot.start_time = start_time
        for chord in slot.chords:
            chord.start_time = start_time

        remaining = list(slot.chords)

        # Tie continuations first: they stay in the voice of the
        # chord they are tied from.
        for chord in slot.chords:
            if chord.tied_from is None:
                continue
            for voice in timed_voices:
                if voice.get_last_chord() is chord.tied_from:
                    voice.add_chord(chord)
                    remaining.remove(chord)
                    if voice in open_voices:
                        open_voices.remove(voice)
                    break

        for chord, voice in self.match_chords_to_voices(remaining, open_voices):
            voice.add_chord(chord)
            remaining.remove(chord)
            open_voices.remove(voice)

        # Open voices that did not continue are over.
        for voice in open_voices:
            self.active_voices.remove(voice)

        for chord in remaining:
            voice = Voice(self.measure)
            voice.add_chord(chord)
            self.active_voices.append(voice)
            logging.debug('{0}: new voice {1} at {2}'
                          ''.format(self.measure, voice, start_time))

    @staticmethod
    def match_chords_to_voices(chords, voices):
        """Pairs chords with voices, greedily by smallest vertical
        distance between the chord head and the head of the voice's
        last chord.

        :returns: A list of ``(chord, voice)`` pairs; every chord and
            every voice appears at most once.
        """
        if (len(chords) == 0) or (len(voices) == 0):
            return []

        last_chords = [v.get_last_chord() for v in voices]
        chord_ys = numpy.array([c.y for c in chords], dtype=float)
        voice_ys = numpy.array([c.y for c in last_chords], dtype=float)
        distances = numpy.abs(chord_ys[:, None] - voice_ys[None, :])
        for i, chord in enumerate(chords):
            for j, last in enumerate(last_chords):
                if chord.staff is not last.staff:
                    distances[i, j] += _CONST.STAFF_MISMATCH_PENALTY

        pairs = []
        for _ in range(min(len(chords), len(voices))):
            i, j = numpy.unravel_index(numpy.argmin(distances),
                                       distances.shape)
            pairs.append((chords[i], voices[j]))
            distances[i, :] = numpy.inf
            distances[:, j] = numpy.inf
        return pairs


def build_voices(measure):
    """Convenience function: builds the voices of the measure."""
    return VoiceAssigner(measure).build_voices()
