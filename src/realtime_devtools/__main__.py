"""Allow running as `python -m realtime_devtools`."""

import sys

from realtime_devtools.cli import main

sys.exit(main())
