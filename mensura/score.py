"""This module implements the containment structure of a score: pages,
systems, system parts and their staves and measures, and the indexed
navigation between measures that the rhythm inference relies on.

Context lookups (which clef, key or time signature is in effect) walk
backwards through the measures of the same part, first in the current
page, then in the preceding pages. Instead of chasing parent/sibling
links, every page keeps an explicit sequence of measures per logical
part (the part id), across all its systems. The sequences are rebuilt
by :meth:`Page.invalidate`, which must be called after any structural
change (adding systems, merging or removing measures). The parts
take care of this themselves when they are attached to a page.
"""
import collections
import logging

__version__ = "0.1.0"


class ScoreStructureError(ValueError):
    pass


class Score(object):
    """The Score is the ordered list of pages."""

    def __init__(self, pages=None):
        self.pages = []
        if pages:
            for page in pages:
                self.add_page(page)

    def __len__(self):
        return len(self.pages)

    def add_page(self, page):
        page.score = self
        page.index = len(self.pages)
        self.pages.append(page)

    def measures(self):
        """All measures of the score, in processing order."""
        output = []
        for page in self.pages:
            output.extend(page.measures())
        return output


class Page(object):
    def __init__(self, systems=None, page_id=None):
        self.page_id = page_id
        self.score = None
        self.index = None
        '''Position of the page in its score.'''

        self.systems = []

        self._sequences = {}
        '''For each part id, the measures of that part across all systems
        of the page, left to right, top to bottom.'''

        self._positions = {}
        '''For each measure (by ``id()``), its position in its part
        sequence.'''

        if systems:
            for system in systems:
                system.page = self
                self.systems.append(system)
        self.invalidate()

    def add_system(self, system):
        system.page = self
        self.systems.append(system)
        self.invalidate()

    def invalidate(self):
        """Rebuilds the per-part measure sequences of this page."""
        sequences = collections.OrderedDict()
        positions = {}
        for system in self.systems:
            for part in system.parts:
                sequence = sequences.setdefault(part.part_id, [])
                for measure in part.measures:
                    positions[id(measure)] = len(sequence)
                    sequence.append(measure)
        self._sequences = sequences
        self._positions = positions
        logging.debug('Page {0}: indexed {1} measures in {2} parts.'
                      ''.format(self.index, len(positions), len(sequences)))

    def part_ids(self):
        return list(self._sequences.keys())

    def part_sequence(self, part_id):
        """The measures of the given part on this page, in order.
        Empty if the part does not appear on the page."""
        return self._sequences.get(part_id, [])

    def position_of(self, measure):
        """Position of the measure within its part sequence,
        or ``None`` if the measure is not indexed on this page."""
        return self._positions.get(id(measure))

    def measures(self):
        """All measures of the page in processing order: system
        by system, part by part, left to right."""
        output = []
        for system in self.systems:
            for part in system.parts:
                output.extend(part.measures)
        return output

    def preceding_in_score(self):
        if (self.score is None) or (not self.index):
            return None
        return self.score.pages[self.index - 1]

    def following_in_score(self):
        if (self.score is None) or (self.index is None):
            return None
        if self.index + 1 >= len(self.score.pages):
            return None
        return self.score.pages[self.index + 1]

    def get_last_measure(self, part_id=None):
        """The last measure of the given part on this page. If the part
        does not appear on the page (or no part is given), the last
        measure of the last part of the last system."""
        sequence = self.part_sequence(part_id)
        if sequence:
            return sequence[-1]
        for system in reversed(self.systems):
            for part in reversed(system.parts):
                if part.measures:
                    return part.measures[-1]
        return None

    def get_first_measure(self, part_id=None):
        sequence = self.part_sequence(part_id)
        if sequence:
            return sequence[0]
        for system in self.systems:
            for part in system.parts:
                if part.measures:
                    return part.measures[0]
        return None

    def get_delta_measure_id(self):
        """How many measure numbers this page consumes: the highest
        page-based measure id value on the page."""
        values = [m.get_id_value() for m in self.measures()
                  if m.get_page_id() is not None]
        if len(values) == 0:
            return 0
        return max(values)

    def get_measure_id_offset(self):
        """The number to add to page-based measure ids of this page
        to obtain score-based ids. Computed by walking all the preceding
        pages, never stored."""
        offset = 0
        page = self.preceding_in_score()
        while page is not None:
            offset += page.get_delta_measure_id()
            page = page.preceding_in_score()
        return offset

    def __repr__(self):
        return '{{Page#{0}}}'.format(self.index)


class System(object):
    def __init__(self, parts=None, left=0, width=None):
        self.page = None
        self.left = left
        self.width = width
        self.parts = []
        if parts:
            for part in parts:
                part.system = self
                self.parts.append(part)

    @property
    def right(self):
        if self.width is None:
            return None
        return self.left + self.width

    def add_part(self, part):
        part.system = self
        self.parts.append(part)
        if self.page is not None:
            self.page.invalidate()

    def staves(self):
        output = []
        for part in self.parts:
            output.extend(part.staves)
        return output

    def get_staff_above(self, point):
        """The closest staff whose middle lies above the given point."""
        candidates = [s for s in self.staves() if s.center_y < point[1]]
        if len(candidates) == 0:
            return None
        return max(candidates, key=lambda s: s.center_y)

    def get_staff_below(self, point):
        """The closest staff whose middle lies below the given point."""
        candidates = [s for s in self.staves() if s.center_y > point[1]]
        if len(candidates) == 0:
            return None
        return min(candidates, key=lambda s: s.center_y)


class SystemPart(object):
    """The portion of one part (instrument) within one system: its
    staves, and its measures, left to right."""

    def __init__(self, part_id, staves=None, measures=None):
        self.part_id = part_id
        self.system = None
        self.staves = []
        if staves:
            self.staves = list(staves)
        self.measures = []
        if measures:
            for measure in measures:
                self._check_not_temporary(measure)
                measure.part = self
                self.measures.append(measure)

    def _check_not_temporary(self, measure):
        if measure.is_temporary():
            raise ScoreStructureError('Temporary measure {0} cannot be part'
                                      ' of {1}.'.format(measure, self))

    def get_page(self):
        if self.system is None:
            return None
        return self.system.page

    def _invalidate_page(self):
        page = self.get_page()
        if page is not None:
            page.invalidate()

    @property
    def top(self):
        if not self.staves:
            return None
        return min([s.top for s in self.staves])

    @property
    def bottom(self):
        if not self.staves:
            return None
        return max([s.bottom for s in self.staves])

    def add_measure(self, measure):
        self._check_not_temporary(measure)
        measure.part = self
        self.measures.append(measure)
        self._invalidate_page()

    def remove_measure(self, measure):
        if measure not in self.measures:
            raise ValueError('Cannot remove measure {0}: not in part {1}!'
                             ''.format(measure, self.part_id))
        self.measures.remove(measure)
        measure.part = None
        self._invalidate_page()

    def get_staff(self, staff_id):
        for staff in self.staves:
            if staff.staff_id == staff_id:
                return staff
        return None

    def get_staff_at(self, point):
        """The staff that contains the given point vertically, or
        the vertically closest one."""
        if not self.staves:
            raise ScoreStructureError('Part {0} has no staff!'
                                      ''.format(self.part_id))
        y = point[1]
        for staff in self.staves:
            if staff.top <= y <= staff.bottom:
                return staff
        return min(self.staves, key=lambda s: abs(s.center_y - y))

    def merge_measures(self, left, right):
        """Merges the ``right`` measure into the ``left`` one, for
        instance after the bar line between them has been discarded.
        The measures must be adjacent, ``right`` directly after ``left``.
        """
        if (left not in self.measures) or (right not in self.measures):
            raise ScoreStructureError('Cannot merge measures {0} and {1}:'
                                      ' not both in part {2}.'
                                      ''.format(left, right, self.part_id))
        if self.measures.index(right) != self.measures.index(left) + 1:
            raise ScoreStructureError('Cannot merge measures {0} and {1}:'
                                      ' not adjacent.'.format(left, right))
        left.merge_with_right(right)
        self.remove_measure(right)

    def __repr__(self):
        return '{{Part#{0}}}'.format(self.part_id)
