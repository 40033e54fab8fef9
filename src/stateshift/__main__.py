import sys

from stateshift.cli import main

sys.exit(main())
