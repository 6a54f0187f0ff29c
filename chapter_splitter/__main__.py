"""Allow ``python -m chapter_splitter``."""

from .cli import main

raise SystemExit(main())
