#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""The setup script."""

from setuptools import setup

setup(
    setup_requires=['pbr'],
    pbr=True,
)
