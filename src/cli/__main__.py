"""Allow ``python -m src.cli`` as a shortcut for ``python -m src.cli.process``."""

import sys

from src.cli.process import main

sys.exit(main())
