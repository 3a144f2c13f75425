from __future__ import annotations

from map_compiler.cli import main

raise SystemExit(main())
