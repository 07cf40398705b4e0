"""Allow running FME Connect with ``python -m fmeconnect``."""

import sys

from fmeconnect.app import main

sys.exit(main())
