#! /usr/bin/env python
# -*- coding: utf-8 -*-

from setuptools import find_packages, setup


install_requires = [
    "attrs",
    "eliot >= 1.9.0",
    "hyperlink",
    "treq",
    "Twisted[tls] >= 19.10.0",
    "zope.interface",
]
test_requires = [
    "fixtures",
    "hypothesis",
    "testtools",
]


trove_classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: End Users/Desktop",
    "Intended Audience :: System Administrators",
    "Operating System :: POSIX :: Linux",
    "Operating System :: POSIX",
    "Operating System :: OS Independent",
    "Natural Language :: English",
    "Programming Language :: Python",
    "Programming Language :: Python :: 3",
    "Topic :: Utilities",
    "Topic :: System :: Filesystems",
    "Topic :: System :: Distributed Computing",
    ]


setup(
    name="stfuse-config",
    version="0.1.0",
    description="Configuration editor for the syncthing-fuse agent",
    author="the Syncthing-FUSE developers",
    url="https://github.com/burkemw3/syncthingfuse/",
    license="MPL-2.0",
    package_dir={"": "src"},
    packages=find_packages("src"),
    classifiers=trove_classifiers,
    python_requires=">=3.6",
    install_requires=install_requires,
    extras_require={
        "test": test_requires,
    },
    include_package_data=True,
    entry_points={
        "console_scripts": [
            "stfuse-config = stfuse_config.cli:_entry",
        ],
    },
)
