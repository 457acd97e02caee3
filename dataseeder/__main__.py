import sys

from dataseeder.cli import main

sys.exit(main())
