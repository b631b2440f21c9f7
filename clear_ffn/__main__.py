import sys

from clear_ffn.cli import main

sys.exit(main())
