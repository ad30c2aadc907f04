import sys

from imagelink.cli import main

sys.exit(main())
