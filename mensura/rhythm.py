"""This module implements the rhythm inference engine, which runs
the measure-level rhythm reconstruction over a whole score.

Pages are processed in score order, because the context lookups of
a page (time signatures, clefs, the id offset) depend on the pages
before it. Within a page, the engine works in passes over the measures
in their total order (system by system, part by part, left to right):

1. **Voices.** The timing of each measure is cleared, its slots are built
   from the chord abscissae, and its voices are built from the slots.
2. **Implicit measures.** A measure whose notated duration is shorter
   than the expected one may be legitimately short:

   * the very first measure of the score is a pickup (anacrusis),
     and becomes implicit;
   * two consecutive short measures whose durations add up to the
     expected duration are the two halves of one split measure (for
     instance around a repeat sign): the first one is marked as first
     half, the second one as implicit.

   These decisions are made on the measures of the first part of each
   system and are applied to the whole system column.
3. **Durations.** Each measure is checked against its expected duration
   and, unless disabled, excess durations are repaired.
4. **Ids.** Page-based ids are allocated to the measures of the page.

An invalid time signature only affects the measures that it governs:
the problem is logged, recorded on the measure, and the pass goes on.
"""
import copy
import logging

from mensura.durations import DurationChecker
from mensura.inference_engine_constants import _CONST
from mensura.measure_id import MeasureIdAllocator
from mensura.slots import build_slots
from mensura.symbols import InvalidTimeSignature
from mensura.voices import build_voices

__version__ = "0.1.0"


def get_column(measure):
    """The measures of all the parts of the system that are at the same
    position as the given measure in its part."""
    part = measure.part
    if (part is None) or (part.system is None):
        return [measure]
    index = part.measures.index(measure)
    return [p.measures[index] for p in part.system.parts
            if index < len(p.measures)]


class RhythmInferenceEngine(object):
    """The Rhythm Inference Engine computes the timing of every measure
    of a score: slots, voices, start times, durations, and measure ids.

    :param slot_margin: Maximum abscissa gap between chords of one slot.
        Defaults to ``InferenceEngineConstants.SLOT_MARGIN``.

    :param repair: If set, measures with an excess duration are shortened
        by removing the final forward marks of their voices.

    :param count_implicit: If set, implicit measures consume a measure
        number like any other.
    """
    def __init__(self, slot_margin=None, repair=True, count_implicit=False):
        if slot_margin is None:
            slot_margin = _CONST.SLOT_MARGIN
        self.slot_margin = slot_margin
        self.repair = repair
        self.count_implicit = count_implicit

        self.duration_checker = DurationChecker(repair=repair)
        self.id_allocator = MeasureIdAllocator(count_implicit=count_implicit)

        # Results
        self.errors = {}
        '''For each score-based measure id, the error annotations of
        the measures with that id (all parts together).'''

        self.n_measures = 0

    def reset(self):
        self.__init__(slot_margin=self.slot_margin,
                      repair=self.repair,
                      count_implicit=self.count_implicit)

    def infer_rhythm(self, score):
        """The main workhorse: processes all pages of the score.

        :returns: A dict of score-based measure id to the list of error
            annotations of the measures with that id. Measures without
            errors are not listed.
        """
        self.errors = {}
        self.n_measures = 0
        for page in score.pages:
            self.process_page(page)

        # Collected only once all pages are done: a page may still change
        # the ids and annotations of the last measures of the page before.
        for page in score.pages:
            for measure in page.measures():
                if measure.errors:
                    errors = self.errors.setdefault(measure.get_score_id(),
                                                    [])
                    errors.extend(measure.errors)

        logging.info('Rhythm inferred for {0} measures in {1} pages,'
                     ' {2} measure ids with errors.'
                     ''.format(self.n_measures, len(score.pages),
                               len(self.errors)))
        return copy.deepcopy(self.errors)

    def process_page(self, page):
        logging.info('Processing page {0}'.format(page.index))
        page.invalidate()
        measures = [m for m in page.measures() if not m.is_temporary()]

        for measure in measures:
            self.build_measure_voices(measure)

        self.detect_implicit_measures(page)

        for measure in measures:
            self.check_measure_duration(measure)

        self.id_allocator.allocate(page)

        self.n_measures += len(measures)

    def build_measure_voices(self, measure):
        measure.clear_timing()
        measure.implicit = False
        measure.first_half = False
        build_slots(measure, margin=self.slot_margin)
        build_voices(measure)
        measure.check_tied_chords()

    def check_measure_duration(self, measure):
        try:
            self.duration_checker.check(measure)
        except InvalidTimeSignature as e:
            logging.warning('Measure {0} on page {1}: {2}'
                            ''.format(measure.get_page_id(),
                                      measure.get_page().index, e))
            measure.add_error(str(e))

    ##########################################################################
    # Implicit measures

    def _short_duration(self, measure):
        """The notated duration of a measure with content that is shorter
        than expected, or ``None`` if the measure is not short."""
        if len(measure.voices) == 0:
            return None
        try:
            expected = measure.get_expected_duration()
        except InvalidTimeSignature:
            # Reported when the durations are checked.
            return None
        notated = measure.get_notated_duration(expected)
        if notated < expected:
            return notated
        return None

    def detect_implicit_measures(self, page):
        """Marks the pickup measure and the halves of split measures
        of the page. Only the first part of each system is inspected."""
        previous = None
        preceding_page = page.preceding_in_score()
        if preceding_page is not None:
            previous = preceding_page.get_last_measure()
            if (previous is not None) and (len(get_column(previous)) > 0):
                previous = get_column(previous)[0]

        is_first = (page.index == 0) or (page.index is None)
        for system in page.systems:
            if len(system.parts) == 0:
                continue
            for measure in system.parts[0].measures:
                if measure.is_temporary():
                    continue
                notated = self._short_duration(measure)

                if notated is None:
                    pass
                elif is_first:
                    logging.info('{0}: pickup measure'.format(measure))
                    for m in get_column(measure):
                        m.set_implicit()
                elif (previous is not None) and not previous.implicit \
                        and not previous.first_half \
                        and self._completes(previous, measure):
                    logging.info('{0} and {1}: split measure'
                                 ''.format(previous, measure))
                    for m in get_column(previous):
                        m.set_first_half(True)
                        if m.get_page() is not page:
                            # Already checked with the preceding page.
                            self.duration_checker.withdraw_shortfall(m)
                    for m in get_column(measure):
                        m.set_implicit()

                is_first = False
                previous = measure

    def _completes(self, first, second):
        """Do the two short measures add up to one expected duration?"""
        notated_first = self._short_duration(first)
        notated_second = self._short_duration(second)
        if (notated_first is None) or (notated_second is None):
            return False
        expected = second.get_expected_duration()
        return notated_first + notated_second == expected
