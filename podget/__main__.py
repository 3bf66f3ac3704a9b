import sys

from podget.cli import main

sys.exit(main())
