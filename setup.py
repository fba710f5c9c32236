#  -*- coding: utf-8 -*-
"""
Setuptools script for the uPnPControl project.
"""

import os
from textwrap import fill, dedent

from setuptools import setup, find_packages


def required(fname):
    with open(os.path.join(os.path.dirname(__file__), fname)) as req_file:
        return [line.strip() for line in req_file if line.strip()]


setup(
    name="uPnPControl",
    version="0.1.0",
    packages=find_packages(
        exclude=[
            "*.tests",
            "*.tests.*",
            "tests.*",
            "tests",
        ]
    ),
    scripts=[],
    include_package_data=True,
    install_requires=required("requirements.txt"),
    extras_require={"test": ["pytest", "mock"]},
    python_requires=">=3.7",
    zip_safe=False,
    description=fill(dedent("""\
        Asyncio library for controlling uPnP devices: descriptions, actions
        and event subscriptions.
    """)),
    classifiers=[
        "Programming Language :: Python",
        "Programming Language :: Python :: 3",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Natural Language :: English",
        "Operating System :: OS Independent",
        "Topic :: Communications",
        "Topic :: Home Automation",
        "Topic :: System :: Networking"
    ],
    license="MIT",
    keywords="upnp",
)
