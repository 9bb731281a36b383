#!/usr/bin/env python

"""
    Loanly, a request/approval lending service for finite-copy items

    :copyright: (c) 2025 by AUTHORS
    :license: see LICENSE for more details
"""

__version__ = "0.1.0"
