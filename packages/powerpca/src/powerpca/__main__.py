"""python -m powerpca"""

from powerpca.cli import main

raise SystemExit(main())
