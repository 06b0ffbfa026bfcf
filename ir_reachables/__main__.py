"""Allow ``python -m ir_reachables``."""

from ir_reachables.main import main

raise SystemExit(main())
