"""This module stores the constants used by the rhythm inference engine."""
from fractions import Fraction

__version__ = "0.1.0"


class InferenceEngineConstants(object):
    """This class stores the constants used for rhythm inference.
    The engine and the scripts may override some of them per run."""

    SLOT_MARGIN = 10
    '''Maximum horizontal distance (in pixels) between the head abscissae
    of two consecutive chords for them to be considered simultaneous,
    i.e. to fall into the same time slot.'''

    DEFAULT_TIME_SIGNATURE = (4, 4)
    '''Time signature assumed when no time signature can be found
    anywhere before the measure, in the whole score.'''

    STAFF_MISMATCH_PENALTY = 10000
    '''Added to the vertical distance between a chord and a voice when
    they do not belong to the same staff, so that voices prefer to stay
    on their staff.'''

    # Offsets of dummy symbols in a temporary measure, counted leftwards
    # from the left side of the real measure.
    DUMMY_CLEF_DX = 40
    DUMMY_KEY_DX = 30
    DUMMY_TIME_DX = 20

    FIRST_HALF_SUFFIX = 'a'
    SECOND_HALF_SUFFIX = 'b'

    FORWARD_MARK = 'forward'
    '''Kind of the duration-extension marks carried by chords.'''

    WHOLE_DURATION_SYMBOL = 'W'
    '''Printed instead of a duration for measures that only
    contain whole rests.'''

    @property
    def default_expected_duration(self):
        """The expected measure duration, absent any time signature."""
        numerator, denominator = self.DEFAULT_TIME_SIGNATURE
        return Fraction(numerator, denominator)


_CONST = InferenceEngineConstants()
