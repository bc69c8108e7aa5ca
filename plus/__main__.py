import sys

from plus.modules.cli import main

sys.exit(main())
