"""This module implements time slots: the groups of chords of a measure
that start at the same time, ordered left to right.

Chords are grouped by the horizontal projection of their heads: two
chords whose head abscissae are at most ``margin`` apart belong to the
same slot, and the grouping is transitive (single linkage), the same way
staffline segments are merged by their horizontal projections.

Whole rests (and multi-measure rests) never take part in slots: they are
kept separately in the measure's whole chords.
"""
import logging

import numpy

from mensura.inference_engine_constants import _CONST

__version__ = "0.1.0"


class Slot(object):
    """A position in time within a measure, holding the chords that
    start together. The slot only references the chords, the measure
    owns them."""

    def __init__(self, measure, slot_id, chords):
        self.measure = measure
        self.slot_id = slot_id
        self.chords = sorted(chords, key=lambda c: c.y)
        '''Member chords, top to bottom.'''

        self.start_time = None
        '''Offset of the slot from the start of the measure. Unknown
        until the voices of the measure are built.'''

    @property
    def x(self):
        """Mean head abscissa of the slot chords."""
        return int(round(numpy.mean([c.x for c in self.chords])))

    def _system(self):
        part = self.measure.part
        if (part is None) or (part.system is None):
            return None
        return part.system

    def get_chord_just_above(self, point):
        """The chord of this slot located just above the given point,
        in the staff above it."""
        candidates = [c for c in self.chords if c.y < point[1]]
        system = self._system()
        if system is not None:
            staff = system.get_staff_above(point)
            candidates = [c for c in candidates if c.staff is staff]
        if len(candidates) == 0:
            return None
        return max(candidates, key=lambda c: c.y)

    def get_chord_just_below(self, point):
        candidates = [c for c in self.chords if c.y > point[1]]
        system = self._system()
        if system is not None:
            staff = system.get_staff_below(point)
            candidates = [c for c in candidates if c.staff is staff]
        if len(candidates) == 0:
            return None
        return min(candidates, key=lambda c: c.y)

    def to_chord_string(self):
        return 'slot#{0} start={1} {2}'.format(self.slot_id,
                                               self.start_time,
                                               self.chords)

    def __repr__(self):
        return '{{Slot#{0} x={1}}}'.format(self.slot_id, self.x)


##############################################################################


def cluster_abscissae(xs, margin):
    """Groups positions on a line so that positions in one group are
    chained by gaps of at most ``margin``. Returns for each group the
    indices into ``xs``, groups ordered left to right.

    >>> [g.tolist() for g in cluster_abscissae([100, 52, 50, 200, 105], 10)]
    [[2, 1], [0, 4], [3]]
    >>> cluster_abscissae([], 10)
    []
    """
    xs = numpy.asarray(xs)
    if xs.size == 0:
        return []
    order = numpy.argsort(xs, kind='stable')
    gaps = numpy.diff(xs[order])
    breaks = numpy.nonzero(gaps > margin)[0] + 1
    return numpy.split(order, breaks)


def build_slots(measure, margin=None):
    """Builds the time slots of the given measure from its timed
    chords (all chords but the whole chords). The slots are stored
    in the measure, replacing any previous ones.

    :param margin: Maximum abscissa gap between chords of a slot.
        Defaults to ``InferenceEngineConstants.SLOT_MARGIN``.

    :returns: The list of slots, ordered left to right. Empty if the
        measure has no timed chord: such a measure reports its duration
        through its whole chords only.
    """
    if margin is None:
        margin = _CONST.SLOT_MARGIN

    chords = measure.get_timed_chords()
    groups = cluster_abscissae([c.x for c in chords], margin)

    slots = [Slot(measure, i + 1, [chords[j] for j in group])
             for i, group in enumerate(groups)]
    measure.slots = slots

    if (len(slots) == 0) and measure.whole_chords:
        logging.debug('{0}: no slot, duration given by {1} whole chord(s).'
                      ''.format(measure, len(measure.whole_chords)))
    else:
        logging.debug('{0}: {1} chords in {2} slots.'
                      ''.format(measure, len(chords), len(slots)))
    return slots
