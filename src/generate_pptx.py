#!/usr/bin/env python3
"""
Script to turn a deck descriptor with inline LaTeX into a PowerPoint file.
This is a thin wrapper around the latex_pptx package.
"""

import sys
from latex_pptx.cli import main

if __name__ == '__main__':
    sys.exit(main())
