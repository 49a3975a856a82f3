#!/usr/bin/env python
# -*-coding: utf-8 -*-
from setuptools import setup
import io
import logging
import os

here = os.path.abspath(os.path.dirname(__file__))


def read(*filenames, **kwargs):
    encoding = kwargs.get('encoding', 'utf-8')
    sep = kwargs.get('sep', '\n')
    buf = []
    for filename in filenames:
        with io.open(filename, encoding=encoding) as f:
            buf.append(f.read())
    return sep.join(buf)


def get_version():
    with io.open(os.path.join(here, 'mensura', '__init__.py'),
                 encoding='utf-8') as f:
        for line in f:
            if line.startswith('__version__'):
                return line.split('=')[1].strip().strip('"\'')
    raise RuntimeError('Could not find the mensura version.')


def get_long_description():
    readme = os.path.join(here, 'README.md')
    changes = os.path.join(here, 'CHANGES.md')

    if os.path.isfile(readme) and os.path.isfile(changes):
        long_description = read(readme, changes)
    else:
        logging.warning('Could not find README.md and CHANGES.md file'
                        ' in directory {0}. Contents:'
                        ' {1}'.format(here, os.listdir(here)))
        long_description = 'Rhythm reconstruction for measures of recognized' \
                           ' music scores. [README.md and CHANGES.md not found]'
    return long_description

setup(
    name='mensura',
    version=get_version(),
    license='MIT Software License',
    install_requires=['numpy>=1.11.1',
                      'lxml>=3.6.4'],
    extras_require={'test': ['pytest']},
    description='Rhythm reconstruction for measures of recognized music scores.',
    long_description=get_long_description(),
    long_description_content_type='text/markdown',
    packages=['mensura'],
    include_package_data=True,
    scripts=['scripts/infer_rhythm.py'],
    platforms='any',
    python_requires='>=3.6',
    classifiers=[
        'Programming Language :: Python',
        'Programming Language :: Python :: 3',
        'Development Status :: 4 - Beta',
        'Natural Language :: English',
        'Intended Audience :: Science/Research',
        'License :: OSI Approved :: MIT License',
        'Operating System :: OS Independent',
        'Topic :: Multimedia :: Sound/Audio',
        'Topic :: Scientific/Engineering :: Image Recognition',
        ],
)
