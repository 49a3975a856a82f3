#!/usr/bin/env python
"""This is a script that takes the symbols recognized on score pages
and reconstructs the rhythm of every measure: time slots, voices,
start times of chords, expected and actual durations, and measure ids.

Input is a symbol list XML file (see :mod:`mensura.io`). Output is
a rhythm report XML: for each measure its ids, durations, voices and
error annotations.

Assumptions
-----------

* Bar lines are already detected, so that every symbol belongs
  to a measure.
* Chord durations are known. Whole rests are marked as such and have
  no duration of their own.
* Pages are given in reading order.

Measures that do not add up are not an error of this script: they are
reported (and, unless ``--no_repair`` is given, excess durations that
come from forward marks are repaired).
"""
import argparse
import logging
import os
import time

from mensura.io import parse_symbol_list, export_rhythm_report
from mensura.rhythm import RhythmInferenceEngine

__version__ = "0.1.0"


##############################################################################


def build_argument_parser():
    parser = argparse.ArgumentParser(description=__doc__, add_help=True,
                                     formatter_class=argparse.RawDescriptionHelpFormatter)

    parser.add_argument('-a', '--annot', action='store', required=True,
                        help='The symbol list file for which the rhythm'
                             ' should be inferred.')
    parser.add_argument('-e', '--export', action='store',
                        help='A filename to which the rhythm report'
                             ' should be saved. If not given, will print to'
                             ' stdout.')

    parser.add_argument('--slot_margin', action='store', type=int,
                        help='Maximum horizontal gap between chords of the'
                             ' same time slot, in pixels.')
    parser.add_argument('--no_repair', action='store_true',
                        help='Only report excess measure durations,'
                             ' do not shorten the measures.')
    parser.add_argument('--count_implicit', action='store_true',
                        help='Implicit measures (pickups, second halves)'
                             ' consume a measure number.')

    parser.add_argument('-v', '--verbose', action='store_true',
                        help='Turn on INFO messages.')
    parser.add_argument('--debug', action='store_true',
                        help='Turn on DEBUG messages.')
    return parser


##############################################################################


def main(args):
    logging.info('Starting main...')
    _start_time = time.perf_counter()

    if not os.path.isfile(args.annot):
        raise ValueError('Symbol list file {0} not found!'
                         ''.format(args.annot))
    score = parse_symbol_list(args.annot)

    inference_engine = RhythmInferenceEngine(slot_margin=args.slot_margin,
                                             repair=not args.no_repair,
                                             count_implicit=args.count_implicit)

    logging.info('Running rhythm inference.')
    errors = inference_engine.infer_rhythm(score)
    for measure_id in sorted(errors, key=str):
        for error in errors[measure_id]:
            logging.warning('Measure {0}: {1}'.format(measure_id, error))

    if args.export is not None:
        with open(args.export, 'w') as hdl:
            hdl.write(export_rhythm_report(score))
            hdl.write('\n')
    else:
        print(export_rhythm_report(score))

    _end_time = time.perf_counter()
    logging.info('infer_rhythm.py done in {0:.3f} s'.format(_end_time - _start_time))


##############################################################################


if __name__ == '__main__':
    parser = build_argument_parser()
    args = parser.parse_args()

    if args.verbose:
        logging.basicConfig(format='%(levelname)s: %(message)s', level=logging.INFO)
    if args.debug:
        logging.basicConfig(format='%(levelname)s: %(message)s', level=logging.DEBUG)

    main(args)
