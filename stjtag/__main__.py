import sys

from stjtag.cli import main

sys.exit(main())
