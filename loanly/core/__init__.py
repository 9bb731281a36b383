#!/usr/bin/env python

"""
    Core module for Loanly, db & lending

    :copyright: (c) 2025 by AUTHORS
    :license: see LICENSE for more details
"""

from loanly.core import db as database
from loanly.core import models
from loanly.core.lending import Lending

__all__ = ["database", "models", "Lending"]
