#!/usr/bin/env python3
"""
GEE PostgreSQL Reset Tool - Main Entry Point

This script is a wrapper for the reset tool located in gee_pgdb/reset/
"""

import sys
from gee_pgdb.reset.__main__ import main

if __name__ == '__main__':
    sys.exit(main())
