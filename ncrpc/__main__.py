import sys

from ncrpc.cli import main

sys.exit(main())
