import sys

from stockroom.server import main

sys.exit(main())
