"""Allow running s3commander as a module: python -m s3commander."""

import sys

from s3commander.cli import main

sys.exit(main())
