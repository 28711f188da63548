import sys

from tablelock.cli import main

sys.exit(main())
