"""This module implements measure identifiers and their allocation.

Measure ids are stored with respect to their containing page only: they
are *page-based* ids. What is displayed to the user are *score-based* ids,
obtained by adding to the page-based value the numbers consumed by all
the preceding pages. The score-based ids are always derived on demand and
never stored, so they cannot go stale when an earlier page changes.

Implicit measures
-----------------

* A pickup measure (implicit, at the start of the score) does not consume
  a number by default: it gets the current counter value, 0 on the first
  page.
* A measure split in two halves (typically by a repeat sign) keeps one
  number for both halves. The first half is displayed with an ``a``
  suffix, the second half (which is also implicit) with a ``b`` suffix:

>>> str(ScoreBasedId(12))
'12'
>>> str(ScoreBasedId(12, first_half=True))
'12a'
>>> str(ScoreBasedId(12, second_half=True))
'12b'
"""
import logging

from mensura.inference_engine_constants import _CONST

__version__ = "0.1.0"


class ScoreBasedId(object):
    """The display form of a measure id."""

    def __init__(self, value, second_half=False, first_half=False):
        self.value = value
        self.second_half = second_half
        self.first_half = first_half

    def __str__(self):
        suffix = ''
        if self.second_half:
            suffix = _CONST.SECOND_HALF_SUFFIX
        elif self.first_half:
            suffix = _CONST.FIRST_HALF_SUFFIX
        return '{0}{1}'.format(self.value, suffix)


class PageBasedId(object):
    """The stored form of a measure id: the numeric value within
    the page, and whether the measure is the second half of a split
    measure."""

    def __init__(self, measure, value, second_half=False):
        self.measure = measure
        self.value = value
        self.second_half = second_half

    def to_score_based(self):
        offset = 0
        page = self.measure.get_page()
        if page is not None:
            offset = page.get_measure_id_offset()
        return ScoreBasedId(self.value + offset,
                            second_half=self.second_half,
                            first_half=self.measure.first_half)

    def to_score_string(self):
        return str(self.to_score_based())

    def __str__(self):
        if self.second_half:
            return '{0}{1}'.format(self.value, _CONST.SECOND_HALF_SUFFIX)
        return str(self.value)

    def __repr__(self):
        return 'PageBasedId({0})'.format(self)


class MeasureIdAllocator(object):
    """Assigns page-based ids to the measures of a page.

    Ids are allocated per system *column*: the i-th measures of all
    the parts of a system share the same id. The measure of the first
    part in the column decides whether the column is implicit or a split
    half.
    """

    def __init__(self, count_implicit=False):
        self.count_implicit = count_implicit
        '''If set, implicit (pickup) measures consume a number
        like any other measure.'''

    def allocate(self, page):
        """Numbers the measures of the given page.

        :returns: The last value allocated on the page.
        """
        counter = 0

        # A first half at the end of the previous page is completed
        # by the first column of this page.
        previous = None
        preceding_page = page.preceding_in_score()
        if preceding_page is not None:
            previous = preceding_page.get_last_measure(self._first_part_id(page))

        for system in page.systems:
            if len(system.parts) == 0:
                continue
            n_columns = max([len(p.measures) for p in system.parts])
            for i in range(n_columns):
                column = [p.measures[i] for p in system.parts
                          if i < len(p.measures)]
                reference = column[0]

                second_half = False
                if (previous is not None) and previous.first_half:
                    second_half = True
                    value = counter
                elif reference.implicit and not self.count_implicit:
                    value = counter
                else:
                    counter += 1
                    value = counter

                for measure in column:
                    measure.set_page_id(value, second_half=second_half)
                logging.debug('Page {0}: column {1} gets id {2}'
                              ''.format(page.index, i, reference.get_page_id()))
                previous = reference

        return counter

    @staticmethod
    def _first_part_id(page):
        for system in page.systems:
            if system.parts:
                return system.parts[0].part_id
        return None
