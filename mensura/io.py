"""This module implements functions for reading the symbols recognized
on score pages, and for exporting the results of rhythm inference.

Symbol list format
------------------

The recognized symbols come as an XML tree that mirrors the containment
of the score: pages contain systems, systems contain parts, parts contain
their staves and measures, and measures contain their bar line and their
symbols. Coordinates are integer page pixels, durations are fractions
of a whole note (``1/4`` for a quarter).

.. code-block:: xml

    <?xml version="1.0" encoding="utf-8"?>
    <Score>
      <Page id="1">
        <System left="0" width="400">
          <Part id="P1">
            <Staff id="1" top="100" height="40"/>
            <Measure>
              <Barline left="198" right="200"/>
              <Clef staff="1" x="10" y="120" shape="G"/>
              <Time staff="1" x="30" y="120" numerator="2" denominator="4"/>
              <Chord id="c1" staff="1" x="60" y="110" duration="1/4"/>
              <Chord id="c2" staff="1" x="120" y="130" duration="1/4"
                     rest="true" forward="1/8"/>
            </Measure>
            <Measure>
              <Chord id="c3" staff="1" x="300" y="120" whole="true"/>
            </Measure>
          </Part>
        </System>
      </Page>
    </Score>

Chord attributes:

* ``duration``: the raw duration of the chord. Not used for whole
  rests (``whole="true"``), which last for the whole measure.
* ``rest``: ``true`` if the chord is a rest.
* ``tiedFrom``: the ``id`` of the chord this one is tied from. It may
  be in a preceding measure, or on a preceding page.
* ``forward``: the duration of a forward mark extending the chord's
  voice. May be repeated, separated by whitespace.

Missing numbers of a time signature are left out; the signature is then
invalid and reported as such by the rhythm inference.

>>> score = parse_symbol_list('''<Score><Page><System left="0" width="400">
...   <Part id="P1"><Staff id="1" top="100" height="40"/>
...     <Measure><Chord id="a" staff="1" x="60" y="110" duration="1/2"/>
...     </Measure>
...   </Part></System></Page></Score>''')
>>> measure = score.measures()[0]
>>> measure.chords[0].duration
Fraction(1, 2)
>>> measure.box
(100, 0, 140, 400)
"""
import logging
import os

from lxml import etree

from mensura.durations import parse_duration
from mensura.measure import Measure
from mensura.score import Page, Score, ScoreStructureError, System, SystemPart
from mensura.symbols import Barline, Beam, Chord, Clef, KeySignature, Mark, \
    Note, Staff, TimeSignature

__version__ = "0.1.0"


##############################################################################
# Parsing symbol lists


def _int_or_none(text):
    if text is None:
        return None
    return int(text)


def _is_true(text):
    return (text is not None) and (text.lower() in ('true', '1', 'yes'))


def _center(element):
    return int(element.get('x')), int(element.get('y'))


def parse_symbol_list(filename):
    """From an XML symbol list file (or an XML string), read the score.

    :param filename: A path to the file, or the XML text itself (anything
        that starts with ``<`` once stripped).

    :returns: The :class:`mensura.score.Score`, with the boxes of its
        measures computed.

    :raises ScoreStructureError: if a symbol refers to a staff
        or chord that does not exist.
    """
    if filename.lstrip().startswith('<'):
        tree = etree.fromstring(filename.encode('utf-8'))
    else:
        if not os.path.isfile(filename):
            raise ValueError('Symbol list file {0} not found!'
                             ''.format(filename))
        tree = etree.parse(filename).getroot()

    if tree.tag != 'Score':
        raise ScoreStructureError('Symbol list root must be <Score>,'
                                  ' found <{0}>.'.format(tree.tag))

    chords_by_id = {}
    pending_ties = []

    score = Score()
    for page_element in tree.iterfind('Page'):
        page = Page(page_id=page_element.get('id'))
        score.add_page(page)
        for system_element in page_element.iterfind('System'):
            system = System(left=int(system_element.get('left', 0)),
                            width=_int_or_none(system_element.get('width')))
            page.add_system(system)
            for part_element in system_element.iterfind('Part'):
                part = _parse_part(part_element, chords_by_id, pending_ties)
                system.add_part(part)
        page.invalidate()

    for chord, source_id in pending_ties:
        if source_id not in chords_by_id:
            raise ScoreStructureError('Chord {0} is tied from unknown chord'
                                      ' {1}.'.format(chord, source_id))
        chord.tied_from = chords_by_id[source_id]

    for measure in score.measures():
        measure.compute_box()

    logging.info('Parsed {0} pages, {1} measures, {2} chords.'
                 ''.format(len(score), len(score.measures()),
                           len(chords_by_id)))
    return score


def _parse_part(part_element, chords_by_id, pending_ties):
    part = SystemPart(part_element.get('id'))
    for staff_element in part_element.iterfind('Staff'):
        part.staves.append(Staff(int(staff_element.get('id')),
                                 int(staff_element.get('top')),
                                 int(staff_element.get('height')),
                                 left=int(staff_element.get('left', 0)),
                                 width=_int_or_none(staff_element.get('width'))))

    for measure_element in part_element.iterfind('Measure'):
        measure = Measure()
        part.add_measure(measure)
        for element in measure_element:
            _parse_measure_child(element, measure, part,
                                 chords_by_id, pending_ties)
    return part


def _get_staff(element, part):
    staff_id = int(element.get('staff'))
    staff = part.get_staff(staff_id)
    if staff is None:
        raise ScoreStructureError('{0} refers to staff {1}, which is not'
                                  ' in part {2}.'.format(element.tag, staff_id,
                                                         part.part_id))
    return staff


def _parse_measure_child(element, measure, part, chords_by_id, pending_ties):
    tag = element.tag
    if tag == 'Barline':
        measure.set_barline(Barline(int(element.get('left')),
                                    int(element.get('right')),
                                    top=_int_or_none(element.get('top')),
                                    bottom=_int_or_none(element.get('bottom'))))
    elif tag == 'Clef':
        Clef(_get_staff(element, part), _center(element),
             element.get('shape'),
             pitch_position=_int_or_none(element.get('pitchPosition')),
             measure=measure)
    elif tag == 'Key':
        KeySignature(_get_staff(element, part), _center(element),
                     int(element.get('key')), measure=measure)
    elif tag == 'Time':
        TimeSignature(_get_staff(element, part), _center(element),
                      _int_or_none(element.get('numerator')),
                      _int_or_none(element.get('denominator')),
                      measure=measure)
    elif tag == 'Chord':
        chord = _parse_chord(element, measure, part)
        if chord.chord_id is not None:
            chords_by_id[chord.chord_id] = chord
        if element.get('tiedFrom') is not None:
            pending_ties.append((chord, element.get('tiedFrom')))
    elif tag == 'Beam':
        Beam(_get_staff(element, part), int(element.get('left')),
             int(element.get('right')), measure=measure)
    else:
        logging.warning('Unknown measure element <{0}>, skipping.'
                        ''.format(tag))


def _parse_chord(element, measure, part):
    staff = _get_staff(element, part)
    is_rest = _is_true(element.get('rest'))
    if _is_true(element.get('whole')):
        chord = Chord(staff, _center(element), None,
                      notes=[Note('WHOLE_REST', is_rest=True)],
                      chord_id=element.get('id'))
        measure.add_whole_chord(chord)
        return chord

    shape = 'REST' if is_rest else 'HEAD'
    chord = Chord(staff, _center(element),
                  parse_duration(element.get('duration')),
                  notes=[Note(shape, is_rest=is_rest)],
                  measure=measure,
                  chord_id=element.get('id'))
    forward = element.get('forward')
    if forward is not None:
        for item in forward.split():
            chord.marks.append(Mark(parse_duration(item)))
    return chord


##############################################################################
# Exporting rhythm reports


def _set_optional(element, name, value):
    if value is not None:
        element.set(name, str(value))


def export_rhythm_report(score):
    """Writes the results of rhythm inference for every measure
    of the score as an XML string: the measure ids, its durations, its
    voices with the start times of their chords, and its error
    annotations.

    :returns: The XML text, with an XML declaration.
    """
    root = etree.Element('RhythmReport')
    for page in score.pages:
        page_element = etree.SubElement(root, 'Page')
        _set_optional(page_element, 'index', page.index)
        _set_optional(page_element, 'id', page.page_id)
        for measure in page.measures():
            page_element.append(_measure_element(measure))
    text = etree.tostring(root, encoding='utf-8', xml_declaration=True,
                          pretty_print=True)
    return text.decode('utf-8')


def _measure_element(measure):
    element = etree.Element('Measure')
    element.set('part', str(measure.part.part_id))
    _set_optional(element, 'pageId', measure.get_page_id())
    _set_optional(element, 'id', measure.get_score_id())
    _set_optional(element, 'expected', measure.expected_duration)
    _set_optional(element, 'actual', measure.actual_duration)
    _set_optional(element, 'excess', measure.excess)
    if measure.is_implicit():
        element.set('implicit', 'true')
    if measure.is_first_half():
        element.set('firstHalf', 'true')

    for voice in measure.voices:
        voice_element = etree.SubElement(element, 'Voice')
        voice_element.set('id', str(voice.voice_id))
        if voice.is_whole():
            voice_element.set('whole', 'true')
        _set_optional(voice_element, 'termination', voice.termination)
        for chord in voice.chords:
            chord_element = etree.SubElement(voice_element, 'Chord')
            _set_optional(chord_element, 'id', chord.chord_id)
            _set_optional(chord_element, 'start', chord.start_time)
            _set_optional(chord_element, 'duration', chord.duration)
            for error in chord.errors:
                etree.SubElement(chord_element, 'Error').text = error

    for error in measure.errors:
        etree.SubElement(element, 'Error').text = error
    return element
