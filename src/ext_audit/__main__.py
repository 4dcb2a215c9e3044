"""Run the extension audit as ``python -m ext_audit``."""

from ext_audit.cli import main

raise SystemExit(main())
