import sys

from katreview.tools.annotate_sgf import main

sys.exit(main())
