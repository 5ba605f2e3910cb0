"""Allow ``python -m photos_mcp``."""

import sys

from photos_mcp.main import main

sys.exit(main())
