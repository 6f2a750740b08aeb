import sys

from sql2csv.cli.main import main

sys.exit(main())
