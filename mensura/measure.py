"""This module implements the measure: all the entities of one system part
within the same time frame, for all the staves of that part.

A measure owns its clefs, key signatures, time signatures, chords and
beams, each kind in its own ordered list, and the timing structures
derived from them: slots, beam groups, whole chords and voices. It
references its bar lines (left, inside and ending) and its part.

Measure ids are stored with respect to the containing page only (they
are page-based ids, see :mod:`mensura.measure_id`); score-based ids
are derived for display.

Context lookups
---------------

The clef, key or time signature in effect at a given point is searched
backwards: first in the measure itself, then in the preceding measures
of the same part on the page, then in the preceding pages (in the same
part for clefs and keys, in any part for time signatures). The lookups
never raise, they return ``None`` when nothing is found.
"""
import enum
import logging
from fractions import Fraction

from mensura.durations import get_expected_duration
from mensura.inference_engine_constants import _CONST
from mensura.measure_id import PageBasedId
from mensura.symbols import Chord, Note, merge_bboxes
from mensura.voices import create_whole_voice

__version__ = "0.1.0"


class MeasureKind(enum.Enum):
    ORDINARY = 'ordinary'
    DUMMY = 'dummy'
    TEMPORARY = 'temporary'
    '''A dummy measure created for playback or export, to set up
    the clef, key and time context before a real measure.'''


def _staff_id(symbol):
    if symbol.staff is None:
        return None
    return symbol.staff.staff_id


class Measure(object):
    def __init__(self, part=None, kind=MeasureKind.ORDINARY, barline=None,
                 box=None):
        self._kind = kind

        self.part = None
        self.left_barline = None
        self.inside_barline = None
        self.barline = barline
        '''The ending bar line. May only be ``None`` for the last measure
        of a part that has no drawn bar line at its end.'''

        self.box = box
        '''The (top, left, bottom, right) bounding box of the measure.'''

        self.page_id = None

        self.reset()

        if part is not None:
            part.add_measure(self)

    @property
    def kind(self):
        return self._kind

    def is_dummy(self):
        return self._kind in (MeasureKind.DUMMY, MeasureKind.TEMPORARY)

    def is_temporary(self):
        return self._kind == MeasureKind.TEMPORARY

    def accept(self, visitor):
        return visitor.visit_measure(self)

    ##########################################################################
    # Content

    def reset(self):
        """Gets rid of everything in this measure, except the bar lines.
        Can be called any number of times."""
        self.clefs = []
        self.keysigs = []
        self.timesigs = []
        self.chords = []
        self.beams = []

        self.slots = []
        self.beam_groups = []
        self.whole_chords = []
        '''Chords of just a whole (or multi-measure) rest, handled
        outside the slots. They are also in ``chords``.'''
        self.voices = []
        '''Sorted by increasing voice id.'''

        self.expected_duration = None
        self.actual_duration = None
        self.excess = None

        self.implicit = False
        self.first_half = False
        self.errors = []

    def clear_timing(self):
        """Discards the timing information computed for this measure
        (slots, voices, start times, durations and error annotations),
        keeping its symbols. Can be called any number of times."""
        self.slots = []
        self.voices = []
        self.expected_duration = None
        self.actual_duration = None
        self.excess = None
        self.errors = []
        for chord in self.chords:
            chord.start_time = None
            chord.voice = None
            chord.errors = []

    def add_clef(self, clef):
        clef.measure = self
        self.clefs.append(clef)

    def add_key_signature(self, key_signature):
        key_signature.measure = self
        self.keysigs.append(key_signature)

    def add_time_signature(self, time_signature):
        time_signature.measure = self
        self.timesigs.append(time_signature)

    def add_chord(self, chord):
        chord.measure = self
        self.chords.append(chord)

    def add_beam(self, beam):
        beam.measure = self
        self.beams.append(beam)

    def add_group(self, group):
        self.beam_groups.append(group)

    def add_whole_chord(self, chord):
        """Registers a whole (or multi-measure) rest chord."""
        if chord not in self.chords:
            self.add_chord(chord)
        self.whole_chords.append(chord)

    def add_whole_rest(self, staff, center):
        """Inserts a whole rest at the given center, with its own voice."""
        chord = Chord(staff, center, None,
                      notes=[Note('WHOLE_REST', is_rest=True)],
                      measure=self)
        self.whole_chords.append(chord)
        create_whole_voice(chord)
        return chord

    def get_timed_chords(self):
        """The chords that take part in slots: all but the whole chords."""
        return [c for c in self.chords if c not in self.whole_chords]

    def set_barline(self, barline):
        self.barline = barline

    def add_error(self, message):
        logging.debug('{0}: {1}'.format(self, message))
        self.errors.append(message)

    ##########################################################################
    # Geometry

    def compute_box(self):
        """Recomputes the bounding box from the bar lines: the measure
        starts at the end of the previous bar line in the part (or at
        the start of the system), and ends with its own bar line (or
        with the system)."""
        part = self.part
        if part is None:
            return self.box

        left = None
        right = None
        system = part.system
        index = part.measures.index(self)
        if index > 0:
            previous = part.measures[index - 1]
            if previous.barline is not None:
                left = previous.barline.get_right_x()
        if (left is None) and (system is not None):
            left = system.left
        if self.barline is not None:
            right = self.barline.get_right_x()
        elif system is not None:
            right = system.right

        self.box = (part.top, left, part.bottom, right)
        return self.box

    def invalidate(self):
        """To be called after any change of the bar lines or of the
        measure sequence: recomputes the derived geometry."""
        self.compute_box()

    def get_left_x(self):
        if self.box is None:
            return None
        return self.box[1]

    def get_right_x(self):
        if self.box is None:
            return None
        return self.box[3]

    def get_width(self):
        """The width of the measure, or ``None`` for a dummy measure."""
        if self.is_dummy() or (self.box is None):
            return None
        return self.get_right_x() - self.get_left_x()

    ##########################################################################
    # Navigation

    def get_page(self):
        if self.part is None:
            return None
        return self.part.get_page()

    def get_preceding_in_page(self):
        """The measure before this one in the same part, in this system
        or in a preceding system of the same page."""
        if self.part is None:
            return None
        page = self.get_page()
        position = None
        if page is not None:
            position = page.position_of(self)
        if position is None:
            index = self.part.measures.index(self)
            if index == 0:
                return None
            return self.part.measures[index - 1]
        if position == 0:
            return None
        return page.part_sequence(self.part.part_id)[position - 1]

    def get_following(self):
        """The measure after this one in the same part, on this page
        or on a following one."""
        if self.part is None:
            return None
        page = self.get_page()
        if page is None:
            index = self.part.measures.index(self)
            if index + 1 < len(self.part.measures):
                return self.part.measures[index + 1]
            return None
        part_id = self.part.part_id
        sequence = page.part_sequence(part_id)
        position = page.position_of(self)
        if (position is not None) and (position + 1 < len(sequence)):
            return sequence[position + 1]
        page = page.following_in_score()
        while page is not None:
            measure = page.get_first_measure(part_id)
            if measure is not None:
                return measure
            page = page.following_in_score()
        return None

    def iter_preceding(self, any_part=False):
        """Iterates over all the measures before this one: first on
        the page, then on the preceding pages, from the last one.

        :param any_part: On a preceding page where the part of this
            measure does not appear, continue with the last measure of
            whatever part is there. Otherwise such a page is skipped.
        """
        page = self.get_page()
        part_id = None
        if self.part is not None:
            part_id = self.part.part_id
        measure = self.get_preceding_in_page()
        while True:
            while measure is not None:
                yield measure
                measure = measure.get_preceding_in_page()
            if page is None:
                return
            page = page.preceding_in_score()
            if page is None:
                return
            if any_part:
                measure = page.get_last_measure(part_id)
            else:
                sequence = page.part_sequence(part_id)
                measure = sequence[-1] if sequence else None

    def get_staff_id(self, point, staff=None):
        """The id of the staff containing the point, or of the given
        staff if known."""
        if staff is not None:
            return staff.staff_id
        if (point is None) or (self.part is None) or (not self.part.staves):
            return None
        return self.part.get_staff_at(point).staff_id

    ##########################################################################
    # Clefs

    def get_measure_clef_before(self, point, staff=None):
        """The last clef of this measure, in the staff, located at or
        before the point."""
        staff_id = self.get_staff_id(point, staff)
        for clef in reversed(self.clefs):
            if _staff_id(clef) != staff_id:
                continue
            if (point is None) or (clef.center[0] <= point[0]):
                return clef
        return None

    def get_clef_before(self, point, staff=None):
        """The clef in effect at the given point, in the staff of the
        point (or the given staff)."""
        clef = self.get_measure_clef_before(point, staff)
        if clef is not None:
            return clef

        staff_id = self.get_staff_id(point, staff)
        for measure in self.iter_preceding():
            clef = measure.get_last_measure_clef(staff_id)
            if clef is not None:
                return clef
        return None

    def get_clef_after(self, point):
        """The first clef defined after the point, in this measure
        or in the following ones, in the same staff."""
        staff_id = self.get_staff_id(point)
        for clef in self.clefs:
            if (_staff_id(clef) == staff_id) and \
                    ((point is None) or (clef.center[0] >= point[0])):
                return clef
        measure = self.get_following()
        while measure is not None:
            clef = measure.get_first_measure_clef(staff_id)
            if clef is not None:
                return clef
            measure = measure.get_following()
        return None

    def get_first_measure_clef(self, staff_id):
        for clef in self.clefs:
            if _staff_id(clef) == staff_id:
                return clef
        return None

    def get_last_measure_clef(self, staff_id):
        for clef in reversed(self.clefs):
            if _staff_id(clef) == staff_id:
                return clef
        return None

    ##########################################################################
    # Keys

    def get_key_before(self, point, staff):
        """The key signature in effect at the given point of the given
        staff. Without a point, any key of the measure qualifies."""
        staff_id = self.get_staff_id(point, staff)
        for key in reversed(self.keysigs):
            if _staff_id(key) != staff_id:
                continue
            if (point is None) or (key.center[0] < point[0]):
                return key
        for measure in self.iter_preceding():
            key = measure.get_last_measure_key(staff_id)
            if key is not None:
                return key
        return None

    def get_first_measure_key(self, staff_id):
        for key in self.keysigs:
            if _staff_id(key) == staff_id:
                return key
        return None

    def get_last_measure_key(self, staff_id):
        for key in reversed(self.keysigs):
            if _staff_id(key) == staff_id:
                return key
        return None

    ##########################################################################
    # Time signatures

    def get_time_signature(self, staff=None):
        """The time signature of this measure for the given staff,
        or for any staff."""
        for time_signature in self.timesigs:
            if (staff is None) or (time_signature.staff is staff):
                return time_signature
        return None

    def get_current_time_signature(self):
        """The time signature which applies in this measure: the one
        starting this measure in whatever staff, or the closest one in
        the preceding measures, even on preceding pages."""
        time_signature = self.get_time_signature()
        if time_signature is not None:
            return time_signature
        for measure in self.iter_preceding(any_part=True):
            time_signature = measure.get_time_signature()
            if time_signature is not None:
                return time_signature
        return None

    ##########################################################################
    # Chord queries

    def _system(self):
        if self.part is None:
            return None
        return self.part.system

    def get_chords_above(self, point):
        """The chords in the staff above the point, whose head is above
        the point."""
        system = self._system()
        if system is None:
            return []
        staff = system.get_staff_above(point)
        return [c for c in self.chords
                if (c.staff is staff) and (c.head_location is not None)
                and (c.y < point[1])]

    def get_chords_below(self, point):
        system = self._system()
        if system is None:
            return []
        staff = system.get_staff_below(point)
        return [c for c in self.chords
                if (c.staff is staff) and (c.head_location is not None)
                and (c.y > point[1])]

    def get_whole_chords_above(self, point):
        system = self._system()
        if system is None:
            return []
        staff = system.get_staff_above(point)
        return [c for c in self.whole_chords
                if (c.staff is staff) and (c.y < point[1])]

    def get_whole_chords_below(self, point):
        system = self._system()
        if system is None:
            return []
        staff = system.get_staff_below(point)
        return [c for c in self.whole_chords
                if (c.staff is staff) and (c.y > point[1])]

    def get_closest_chord(self, point, chords=None):
        """The chord (of the given ones, or of this measure) with
        the abscissa closest to the point."""
        if chords is None:
            chords = self.chords
        if len(chords) == 0:
            return None
        return min(chords, key=lambda c: abs(c.x - point[0]))

    def get_closest_chord_above(self, point):
        return self.get_closest_chord(point, self.get_chords_above(point))

    def get_closest_chord_below(self, point):
        return self.get_closest_chord(point, self.get_chords_below(point))

    def get_closest_whole_chord_above(self, point):
        return self.get_closest_chord(point,
                                      self.get_whole_chords_above(point))

    def get_closest_whole_chord_below(self, point):
        return self.get_closest_chord(point,
                                      self.get_whole_chords_below(point))

    def get_closest_slot(self, point):
        if len(self.slots) == 0:
            return None
        return min(self.slots, key=lambda s: abs(s.x - point[0]))

    def get_event_chord(self, point):
        """The most suitable chord to attach an event (e.g. a dynamic)
        at the given point to: in the closest slot, the chord just above,
        or else just below."""
        slot = self.get_closest_slot(point)
        if slot is None:
            return None
        chord = slot.get_chord_just_above(point)
        if chord is None:
            chord = slot.get_chord_just_below(point)
        return chord

    def get_direction_chord(self, point):
        chord = self.get_event_chord(point)
        if chord is None:
            chord = self.get_closest_chord_above(point)
        if chord is None:
            chord = self.get_closest_chord_below(point)
        return chord

    ##########################################################################
    # Durations

    def get_expected_duration(self):
        """The theoretical duration of this measure, from the current
        time signature.

        :raises InvalidTimeSignature: the governing time signature
            cannot be read.
        """
        return get_expected_duration(self)

    def get_actual_duration(self):
        """The duration computed from the voices of this measure,
        or 0 if it has no note or rest."""
        if self.actual_duration is None:
            return Fraction(0)
        return self.actual_duration

    def get_last_sound_time(self):
        """The time, counted from the start of this measure, when the
        sound stops: chords made only of rests do not count."""
        last_time = Fraction(0)
        for chord in self.chords:
            if chord.is_all_rests():
                continue
            end = chord.get_end_time()
            if (end is not None) and (end > last_time):
                last_time = end
        return last_time

    def get_notated_duration(self, expected=None):
        """The duration written in this measure: the latest end of its
        voices, forward marks included. Whole voices last for the
        ``expected`` duration."""
        if expected is None:
            expected = self.expected_duration
        ends = [v.get_end_time(expected) for v in self.voices]
        ends = [e for e in ends if e is not None]
        if len(ends) == 0:
            return Fraction(0)
        return max(ends)

    def compute_excess(self, expected=None):
        """Recomputes (and returns) the excess duration of this measure,
        ``None`` if there is no excess."""
        if expected is None:
            expected = self.expected_duration
        if expected is None:
            expected = self.get_expected_duration()
        notated = self.get_notated_duration(expected)
        self.excess = None
        if notated > expected:
            self.excess = notated - expected
        return self.excess

    def check_duration(self):
        """Checks the duration of each voice against the expected
        duration of this measure."""
        expected = self.expected_duration
        if expected is None:
            expected = self.get_expected_duration()
        for voice in self.voices:
            voice.check_duration(expected)

    def shorten(self, shortening):
        """Removes the final forward mark of each voice whose termination
        is exactly the given shortening, so that the measure loses that
        much duration. Whole voices, and voices which fit exactly, are
        left alone.

        A voice whose termination does not match, or whose last chord has
        no mark to remove, gets an error annotation and is skipped.

        :returns: True if every voice could be shortened consistently.
        """
        consistent = True
        for voice in self.voices:
            termination = voice.termination
            if termination is None:
                continue

            if termination != shortening:
                self.add_error('Non consistent partial measure shortening:'
                               ' {0} {1}: {2}'.format(-shortening, voice,
                                                      -termination))
                consistent = False
                continue

            chord = voice.get_last_chord()
            if chord is None:
                self.add_error('No final chord in {0}'.format(voice))
                consistent = False
                continue

            if len(chord.marks) == 0:
                chord.add_error('No final mark to remove in a partial measure')
                self.add_error('No final mark to remove in {0}'.format(voice))
                consistent = False
                continue

            mark = chord.marks.pop()
            logging.debug('{0} Removing final forward: {1}'
                          ''.format(self, mark.data))

        self.check_duration()
        self.compute_excess()
        return consistent

    ##########################################################################
    # Voices

    def add_voice(self, voice):
        self.voices.append(voice)
        self.voices.sort(key=lambda v: v.voice_id)

    def get_voices_number(self):
        return len(self.voices)

    def next_voice_id(self):
        """The smallest voice id not used in this measure yet."""
        used = set([v.voice_id for v in self.voices])
        voice_id = 1
        while voice_id in used:
            voice_id += 1
        return voice_id

    def swap_voice_id(self, voice, voice_id):
        """Changes the id of the given voice to ``voice_id``; the voice
        which owned that id, if any, takes over the old id of ``voice``."""
        old_owner = None
        for v in self.voices:
            if v.voice_id == voice_id:
                old_owner = v
                break

        old_id = voice.voice_id
        voice.voice_id = voice_id
        if old_owner is not None:
            old_owner.voice_id = old_id

        self.voices.sort(key=lambda v: v.voice_id)

    ##########################################################################
    # Identity

    def set_page_id(self, value, second_half=False):
        """Assigns the page-based id of this measure. ``value`` is either
        the numeric value, or another page-based id to copy."""
        if isinstance(value, PageBasedId):
            self.page_id = PageBasedId(self, value.value, value.second_half)
        else:
            self.page_id = PageBasedId(self, value, second_half)

    def get_page_id(self):
        return self.page_id

    def get_id_value(self):
        if self.page_id is None:
            return 0
        return self.page_id.value

    def get_score_id(self):
        """The score-based id string of this measure, or ``None``."""
        if self.page_id is None:
            return None
        return self.page_id.to_score_string()

    def is_implicit(self):
        return self.implicit

    def set_implicit(self):
        self.implicit = True

    def is_first_half(self):
        return self.first_half

    def set_first_half(self, first_half):
        self.first_half = first_half

    ##########################################################################
    # Merging

    def merge_with_right(self, other):
        """Merges into this measure the content of the measure that
        follows it on the right. The content of ``other`` is appended as
        is: it is assumed to come after the content of this measure."""
        for clef in other.clefs:
            self.add_clef(clef)
        for key in other.keysigs:
            self.add_key_signature(key)
        for time_signature in other.timesigs:
            self.add_time_signature(time_signature)
        for chord in other.chords:
            self.add_chord(chord)
        for beam in other.beams:
            self.add_beam(beam)

        for slot in other.slots:
            slot.measure = self
        self.slots.extend(other.slots)
        self.beam_groups.extend(other.beam_groups)
        self.whole_chords.extend(other.whole_chords)
        # Incoming voices are numbered after the voices of this measure.
        last_id = max([v.voice_id for v in self.voices] or [0])
        for i, voice in enumerate(other.voices):
            voice.measure = self
            voice.voice_id = last_id + i + 1
        self.voices.extend(other.voices)

        self.box = merge_bboxes(self.box, other.box)

        self.inside_barline = self.barline
        self.barline = other.barline

    ##########################################################################
    # Temporary measure

    def create_temporary_before(self):
        """Creates a temporary measure, to be exported right before this
        measure, just to set up the clef, key and time context. It is not
        attached to any part.

        :returns: The temporary (dummy) measure.
        """
        dummy = Measure(kind=MeasureKind.TEMPORARY)
        if self.part is None:
            return dummy

        right = self.get_left_x()
        if right is None:
            right = 0

        time_signature = self.get_current_time_signature()
        for staff in self.part.staves:
            mid_y = staff.center_y
            point = (right, mid_y)

            clef = self.get_clef_before(point, staff)
            if clef is not None:
                clef.create_dummy_copy(dummy, (right - _CONST.DUMMY_CLEF_DX,
                                               mid_y), staff=staff)

            key = self.get_key_before(point, staff)
            if key is not None:
                key.create_dummy_copy(dummy, (right - _CONST.DUMMY_KEY_DX,
                                              mid_y), staff=staff)

            if time_signature is not None:
                time_signature.create_dummy_copy(
                    dummy, (right - _CONST.DUMMY_TIME_DX, mid_y), staff=staff)

        return dummy

    ##########################################################################
    # Checks and printouts

    def check_tied_chords(self):
        for chord in list(self.chords):
            chord.check_ties()

    def get_current_duration(self):
        """The duration reached by the slots of this measure, formatted
        for printouts. Measures with only whole rests give ``W``."""
        duration = Fraction(0)
        for slot in self.slots:
            if slot.start_time is None:
                continue
            for chord in slot.chords:
                if chord.duration is None:
                    continue
                end = slot.start_time + chord.duration
                if end > duration:
                    duration = end
        if (duration == 0) and self.whole_chords:
            return _CONST.WHOLE_DURATION_SYMBOL
        return '{0:<5}'.format(str(duration))

    def print_chords(self, title=None):
        lines = [(title or '') + str(self)]
        lines.extend([str(c) for c in self.chords])
        logging.info('\n'.join(lines))

    def print_slots(self, title=None):
        lines = [(title or '') + str(self)]
        lines.extend([s.to_chord_string() for s in self.slots])
        logging.info('\n'.join(lines))

    def print_voices(self, title=None):
        lines = [(title or '') + str(self)]
        if self.slots:
            header = ''.join(['|{0:<5}'.format(str(s.start_time))
                              for s in self.slots
                              if s.start_time is not None])
            lines.append('    ' + header + '|' + self.get_current_duration())
        lines.extend([v.to_strip() for v in self.voices])
        logging.info('\n'.join(lines))

    def __repr__(self):
        return '{{Measure#{0}}}'.format(self.page_id)
