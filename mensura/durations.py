"""This module implements the measure duration checks: the expected
duration given by the governing time signature, the comparison with
the duration actually notated by the voices, and the repair of excess
durations.

Durations are ``fractions.Fraction`` values counted in whole notes,
so that a 3/4 measure lasts ``Fraction(3, 4)``.
"""
import logging
from fractions import Fraction

from mensura.inference_engine_constants import _CONST

__version__ = "0.1.0"


def parse_duration(text):
    """Reads a duration written as a fraction, an integer or a decimal
    number.

    >>> parse_duration('3/8')
    Fraction(3, 8)
    >>> parse_duration('1')
    Fraction(1, 1)
    >>> parse_duration('0.25')
    Fraction(1, 4)
    >>> parse_duration(None) is None
    True
    """
    if text is None:
        return None
    return Fraction(text.strip())


def get_expected_duration(measure):
    """The theoretical duration of the measure, based on its current
    time signature: the one in the measure, or the closest one before it,
    looking back through the preceding pages if needed. Without any time
    signature in the score, a 4/4 measure is assumed.

    :raises InvalidTimeSignature: if the governing time signature
        misses its numerator or denominator.
    """
    time_signature = measure.get_current_time_signature()
    if time_signature is None:
        return _CONST.default_expected_duration
    return time_signature.get_value()


class DurationChecker(object):
    """Compares the duration notated in a measure to the expected one.

    Mismatches are recorded as error annotations on the measure, they are
    never raised. Only an invalid time signature is raised, because the
    expected duration cannot be computed without it.

    :param repair: If set, a measure with excess duration is shortened
        (see :meth:`mensura.measure.Measure.shorten`).
    """

    def __init__(self, repair=True):
        self.repair = repair

    def check(self, measure):
        """Checks the duration of the given measure. Assumes its voices
        have been built.

        :returns: The excess duration of the measure, or ``None``.

        :raises InvalidTimeSignature: see :func:`get_expected_duration`.
        """
        expected = measure.get_expected_duration()
        measure.expected_duration = expected
        measure.actual_duration = measure.get_last_sound_time()

        measure.check_duration()
        notated = measure.get_notated_duration(expected)
        excess = measure.compute_excess(expected)

        if excess is not None:
            measure.add_error('Measure duration {0} exceeds expected {1}'
                              ''.format(notated, expected))
            if self.repair:
                logging.info('{0}: shortening by {1}'.format(measure, excess))
                measure.shorten(excess)
        elif (notated < expected) and (len(measure.voices) > 0) \
                and not (measure.implicit or measure.first_half):
            measure.add_error(self._shortfall_message(notated, expected))

        return measure.excess

    @staticmethod
    def _shortfall_message(notated, expected):
        return 'Measure duration {0} shorter than expected {1}'.format(notated,
                                                                       expected)

    def withdraw_shortfall(self, measure):
        """Removes the shortfall annotation of an already checked measure,
        once it is known to be legitimately short (e.g. the first half of
        a split measure)."""
        expected = measure.expected_duration
        if expected is None:
            return
        message = self._shortfall_message(
            measure.get_notated_duration(expected), expected)
        measure.errors = [e for e in measure.errors if e != message]
