#!/usr/bin/env python

"""
Install profclust with:
 `pip install .`

External programs (BLAST+ and muscle) are installed separately, e.g.:
 `conda install blast muscle -c conda-forge -c bioconda`

Or, for developers, install profclust w/ pip local in editable mode
with the test dependencies:
 `cd profclust/`
 `pip install -e .[test]`
"""

import re
from setuptools import setup, find_packages


# Fetch version from the package __init__.py
INITFILE = "profclust/__init__.py"
CUR_VERSION = re.search(r"^__version__ = ['\"]([^'\"]*)['\"]",
                        open(INITFILE, "r").read(),
                        re.M).group(1)

setup(
    name="profclust",
    version=CUR_VERSION,
    description="Greedy sequence clustering and purified profile/PSSM construction",
    long_description=open('README.rst').read(),
    long_description_content_type='text/x-rst',
    packages=find_packages(),
    python_requires=">=3.10",
    install_requires=[
        "ipyparallel",
        "ipython",
        "numpy",
        "pandas",
        "pydantic>=2",
        "loguru",
    ],
    extras_require={
        "test": ["pytest"],
    },
    entry_points={'console_scripts': ['profclust = profclust.__main__:main']},
    license='GPL',
    classifiers=[
        'Programming Language :: Python',
        'Programming Language :: Python :: 3.10',
        'Programming Language :: Python :: 3.11',
        'Programming Language :: Python :: 3.12',
    ],
)
