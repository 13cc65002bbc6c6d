#!/usr/bin/env python3
# -*- encoding: utf-8 -*-

import sys

from gitdump.cli import main

if __name__ == '__main__':
    sys.exit(main())
