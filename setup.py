"""Minimal setup.py for stochastic_experiments package."""

import os
from pathlib import Path

from setuptools import find_packages, setup

# Read the version from _version.py
__version__ = ""
exec(open(os.path.join("stochastic_experiments", "_version.py")).read())

# Read the README file
this_directory = Path(__file__).parent
long_description = (this_directory / "README.md").read_text(encoding="utf-8")

setup(
    name="stochastic_experiments",
    version=__version__,
    description="Monte Carlo harness comparing simulated Markov processes with theory",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(include=["stochastic_experiments", "stochastic_experiments.*"]),
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Science/Research",
        "Topic :: Scientific/Engineering :: Mathematics",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.12",
    ],
    python_requires=">=3.10",
    install_requires=[
        "numpy>=2.0",
        "pydantic>=2.11.7",
        "pyyaml>=6.0.2",
        "scipy>=1.13",
        "tqdm>=4.66",
        "psutil>=5.9",
    ],
    extras_require={
        "dev": [
            "pytest>=8.4.1",
            "pytest-cov>=6.2.1",
            "pytest-xdist>=3.8.0",
            "pylint>=3.3.8",
            "black>=25.1.0",
            "mypy>=1.17.1",
            "isort>=6.0.1",
            "types-PyYAML>=6.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "stochastic-experiments=stochastic_experiments.cli:main",
        ],
    },
    include_package_data=True,
    zip_safe=False,
)
