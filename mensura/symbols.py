"""This module implements the recognized symbols that the rhythm
inference works with: staves, bar lines, clefs, key and time signatures,
chords with their notes and marks, and beams.

These objects come from symbol recognition. The rhythm inference only
reads their geometry and numeric fields, and writes the timing fields
of chords (``start_time``, ``voice``) and their error annotations.

Geometry conventions
--------------------

* Points are ``(x, y)`` tuples in page pixel coordinates.
* Bounding boxes are ``(top, left, bottom, right)`` tuples.
* Durations are ``fractions.Fraction`` values, counted in whole notes
  (a quarter note lasts ``Fraction(1, 4)``).

A symbol that is given a ``measure`` when it is created registers itself
in the matching collection of that measure (a clef into the clefs, etc.).
"""
import logging
from fractions import Fraction

from mensura.inference_engine_constants import _CONST

__version__ = "0.1.0"


class InvalidTimeSignature(ValueError):
    pass


##############################################################################
# Geometry


def merge_bboxes(*bboxes):
    """Returns the union of the given ``(top, left, bottom, right)``
    bounding boxes. ``None`` boxes are ignored; if all of them are
    ``None``, returns ``None``.

    >>> merge_bboxes((10, 0, 50, 100), (12, 100, 48, 180))
    (10, 0, 50, 180)
    >>> merge_bboxes(None, (1, 2, 3, 4))
    (1, 2, 3, 4)
    >>> merge_bboxes(None, None) is None
    True
    """
    boxes = [b for b in bboxes if b is not None]
    if len(boxes) == 0:
        return None
    t = min([b[0] for b in boxes])
    l = min([b[1] for b in boxes])
    b_ = max([b[2] for b in boxes])
    r = max([b[3] for b in boxes])
    return t, l, b_, r


##############################################################################


class Staff(object):
    """A staff of a system part. Staff ids are 1-based, and
    they identify the *logical* staff of a part: the second staff of
    a piano part has the id 2 in every system."""

    def __init__(self, staff_id, top, height, left=0, width=None):
        self.staff_id = staff_id
        self.top = top
        self.height = height
        self.left = left
        self.width = width

    @property
    def bottom(self):
        return self.top + self.height

    @property
    def center_y(self):
        return self.top + self.height // 2

    def __repr__(self):
        return 'Staff#{0}'.format(self.staff_id)


class Barline(object):
    """A bar line, as far as the rhythm is concerned: its horizontal
    extent. The vertical extent is optional."""

    def __init__(self, left, right, top=None, bottom=None):
        self.left = left
        self.right = right
        self.top = top
        self.bottom = bottom

    def get_right_x(self):
        return self.right

    @property
    def center(self):
        y = None
        if (self.top is not None) and (self.bottom is not None):
            y = (self.top + self.bottom) // 2
        return (self.left + self.right) // 2, y

    def __repr__(self):
        return 'Barline[{0}-{1}]'.format(self.left, self.right)


##############################################################################
# Context symbols


class Clef(object):
    def __init__(self, staff, center, shape, pitch_position=None,
                 measure=None):
        self.staff = staff
        self.center = center
        self.shape = shape
        self.pitch_position = pitch_position
        self.measure = None
        if measure is not None:
            measure.add_clef(self)

    def create_dummy_copy(self, measure, center, staff=None):
        """Creates a copy of this clef in the given (dummy) measure,
        located at ``center``."""
        if staff is None:
            staff = self.staff
        return Clef(staff, center, self.shape,
                    pitch_position=self.pitch_position,
                    measure=measure)

    def __repr__(self):
        return '{{Clef {0} {1} {2}}}'.format(self.shape, self.staff,
                                             self.center)


class KeySignature(object):
    """The ``key`` is the signed number of accidentals: positive for
    sharps, negative for flats, 0 for no accidental."""

    def __init__(self, staff, center, key, measure=None):
        self.staff = staff
        self.center = center
        self.key = key
        self.measure = None
        if measure is not None:
            measure.add_key_signature(self)

    def create_dummy_copy(self, measure, center, staff=None):
        if staff is None:
            staff = self.staff
        return KeySignature(staff, center, self.key, measure=measure)

    def __repr__(self):
        return '{{Key {0} {1}}}'.format(self.key, self.staff)


class TimeSignature(object):
    """A time signature. Recognition may fail to read one of the numbers,
    in which case the field is ``None`` and the signature is invalid:
    asking for its value raises :class:`InvalidTimeSignature`."""

    def __init__(self, staff, center, numerator, denominator, measure=None):
        self.staff = staff
        self.center = center
        self.numerator = numerator
        self.denominator = denominator
        self.measure = None
        if measure is not None:
            measure.add_time_signature(self)

    def get_value(self):
        """The duration of a measure governed by this time signature.

        >>> TimeSignature(None, (0, 0), 3, 8).get_value()
        Fraction(3, 8)
        >>> TimeSignature(None, (0, 0), None, 4).get_value()
        Traceback (most recent call last):
        ...
        mensura.symbols.InvalidTimeSignature: Invalid time signature None/4
        """
        if (self.numerator is None) or (not self.denominator):
            raise InvalidTimeSignature('Invalid time signature {0}/{1}'
                                       ''.format(self.numerator,
                                                 self.denominator))
        return Fraction(self.numerator, self.denominator)

    def create_dummy_copy(self, measure, center, staff=None):
        if staff is None:
            staff = self.staff
        return TimeSignature(staff, center, self.numerator,
                             self.denominator, measure=measure)

    def __repr__(self):
        return '{{Time {0}/{1} {2}}}'.format(self.numerator,
                                             self.denominator,
                                             self.staff)


##############################################################################
# Chords


class Note(object):
    def __init__(self, shape, is_rest=False):
        self.shape = shape
        self.is_rest = is_rest

    def __repr__(self):
        return '{{Note {0}}}'.format(self.shape)


class Mark(object):
    """An annotation attached to a chord. The forward marks carry
    in ``data`` the duration by which they extend the voice past the
    end of the chord."""

    def __init__(self, data, kind=_CONST.FORWARD_MARK):
        self.data = data
        self.kind = kind

    def __repr__(self):
        return '{{Mark {0} {1}}}'.format(self.kind, self.data)


class Chord(object):
    """A set of notes sharing one stem and one rhythmic value.

    The ``tied_from`` attribute points to the chord this chord is
    the tie continuation of (in the same measure, or in a preceding one).
    Whole (and multi-measure) rests are chords without their own duration:
    ``duration`` is ``None`` and they last for the whole measure.
    """

    def __init__(self, staff, head_location, duration, notes=None,
                 tied_from=None, measure=None, chord_id=None):
        self.chord_id = chord_id
        self.staff = staff
        self.head_location = head_location
        self.duration = duration
        self.notes = []
        if notes:
            self.notes = list(notes)
        self.tied_from = tied_from

        self.start_time = None
        '''Offset from the start of the measure. Assigned when
        voices are built.'''

        self.voice = None
        self.marks = []
        self.errors = []

        self.measure = None
        if measure is not None:
            measure.add_chord(self)

    @property
    def x(self):
        return self.head_location[0]

    @property
    def y(self):
        return self.head_location[1]

    def is_all_rests(self):
        """A chord made exclusively of rests (or with no notes at all)
        produces no sound."""
        return all([n.is_rest for n in self.notes])

    def get_extension(self):
        """Total duration of the forward marks of this chord."""
        return sum([m.data for m in self.marks
                    if m.kind == _CONST.FORWARD_MARK], Fraction(0))

    def get_end_time(self):
        if (self.start_time is None) or (self.duration is None):
            return None
        return self.start_time + self.duration

    def add_error(self, message):
        logging.debug('{0}: {1}'.format(self, message))
        self.errors.append(message)

    def check_ties(self):
        """Checks that the tie coming into this chord is consistent:
        no rest on either side, and within one measure, the tied chord
        ends exactly when this one starts."""
        if self.tied_from is None:
            return
        source = self.tied_from
        if self.is_all_rests() or source.is_all_rests():
            self.add_error('Tie attached to a rest')
            return
        if (source.measure is not None) and (source.measure is self.measure):
            end = source.get_end_time()
            if (end is not None) and (self.start_time is not None) \
                    and (end != self.start_time):
                self.add_error('Tied chord starts at {0}, but {1} ends at {2}'
                               ''.format(self.start_time, source, end))

    def __repr__(self):
        name = self.chord_id
        if name is None:
            name = '@{0}'.format(self.head_location)
        return '{{Chord {0} dur:{1} start:{2}}}'.format(name, self.duration,
                                                        self.start_time)


##############################################################################
# Beams


class Beam(object):
    def __init__(self, staff, left, right, measure=None):
        self.staff = staff
        self.left = left
        self.right = right
        self.measure = None
        if measure is not None:
            measure.add_beam(self)

    def __repr__(self):
        return '{{Beam {0}-{1}}}'.format(self.left, self.right)


class BeamGroup(object):
    """A set of beams that make one beaming unit. Pure grouping:
    the group computes no timing of its own."""

    def __init__(self, beams=None, group_id=None):
        self.group_id = group_id
        self.beams = []
        if beams:
            self.beams = list(beams)

    def __repr__(self):
        return '{{BeamGroup#{0} {1}}}'.format(self.group_id, self.beams)
