import sys

from shopcrawl.cli import main

sys.exit(main())
